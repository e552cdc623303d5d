from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar, Optional, Type, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository with explicit or lazy session management.

    Without a db_session, every operation goes through get_session(), which
    joins the enclosing transaction() if one is open. Passing a session pins
    the repository to it and leaves its lifecycle to the caller.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._explicit_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._explicit_session is not None:
            yield self._explicit_session
        else:
            async with get_session() as session:
                yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    @trace_span
    async def get(self, id: Any) -> Optional[DomainModelType]:
        query = select(self.entity_class).where(self.entity_class.id == id)
        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None
