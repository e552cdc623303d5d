"""
Operation-scoped database sessions.

Sessions are acquired lazily and released as soon as the operation ends, so
no connection is held while a service waits on Redis or the billing provider.

    # One-off read: acquire, run, release
    async with get_session(readonly=True) as session:
        user = await session.get(UserEntity, user_id)

    # Multi-row write: everything inside shares one session and commits once
    async with transaction():
        await subscription_repo.update_by_external_id(...)
        await user_repo.update_billing_state(...)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
    is_readonly_forced,
)

logger = get_logger(__name__)


def _session_factory(readonly: bool):
    return AsyncSessionLocalReadonly if readonly else AsyncSessionLocal


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    Commits on success (unless readonly) and rolls back and re-raises on any
    exception, so a failed transition never leaves one of its rows updated.
    """
    effective_readonly = readonly or is_readonly_forced()

    start = time.perf_counter()
    async with _session_factory(effective_readonly)() as session:
        logger.debug(
            f"Transaction session acquire: {(time.perf_counter() - start) * 1000:.2f}ms, "
            f"readonly={effective_readonly}"
        )

        token = set_current_session(session, readonly=effective_readonly)
        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token, readonly=effective_readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for a single DB operation.

    Joins the enclosing transaction() when there is one (and leaves the commit
    to it); otherwise acquires a session, commits, and releases it.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)

    if existing:
        yield existing
        return

    async with _session_factory(effective_readonly)() as session:
        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except Exception as e:
            logger.error(f"Operation rollback due to: {e}")
            await session.rollback()
            raise
