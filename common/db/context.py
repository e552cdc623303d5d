"""
Database session context.

The active session for the current task lives in a ContextVar so repositories
called inside ``transaction()`` join it instead of opening their own. Billing
transitions rely on this to write the subscription and user rows atomically:

    async with transaction():
        await subscription_repo.upsert_by_external_id(...)
        await user_repo.update_billing_state(...)  # same session, one commit

``@readonly`` routes every lookup in a call chain to the read session factory.
"""

from contextvars import ContextVar
from functools import wraps
from typing import Optional, Callable, TypeVar, ParamSpec

from sqlalchemy.ext.asyncio import AsyncSession

_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)
_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)
_force_readonly: ContextVar[bool] = ContextVar("db_force_readonly", default=False)


def is_readonly_forced() -> bool:
    """Check if current context is forced to readonly."""
    return _force_readonly.get()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """Return the session of the enclosing transaction, if any."""
    if readonly or is_readonly_forced():
        return _read_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> object:
    """Bind a session to the current context and return the reset token."""
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: object, readonly: bool = False) -> None:
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)


def in_transaction(readonly: bool = False) -> bool:
    """True while inside a transaction() block of the given kind."""
    return get_current_session(readonly=readonly) is not None


P = ParamSpec("P")
T = TypeVar("T")


def readonly(func: Callable[P, T]) -> Callable[P, T]:
    """
    Force every DB operation in the decorated call chain onto read sessions.

    Usage:
        @readonly
        async def count_notes(user_id: str) -> int:
            ...
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        token = _force_readonly.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _force_readonly.reset(token)

    return wrapper

