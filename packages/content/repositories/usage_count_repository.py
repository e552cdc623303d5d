"""
Live counts of quota-limited content.

These queries are the source of truth for quota checks; cached counters are
only ever a copy of their results.
"""

from datetime import datetime
from sqlalchemy import func, select

from common.core.otel_axiom_exporter import trace_span
from common.db.context import readonly
from common.db.scoped import get_session
from packages.content.models.database.content import (
    NoteEntity,
    SavedArticleEntity,
    SummaryEntity,
)


class UsageCountRepository:
    @trace_span
    @readonly
    async def count_saved_articles(self, user_id: str) -> int:
        async with get_session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(SavedArticleEntity)
                .where(SavedArticleEntity.user_id == user_id)
            )
            return result.scalar_one()

    @trace_span
    @readonly
    async def count_summaries_since(self, user_id: str, since: datetime) -> int:
        """Count summaries created at or after since."""
        async with get_session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(SummaryEntity)
                .where(
                    SummaryEntity.user_id == user_id,
                    SummaryEntity.created_at >= since,
                )
            )
            return result.scalar_one()

    @trace_span
    @readonly
    async def count_notes(self, user_id: str) -> int:
        async with get_session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(NoteEntity)
                .where(NoteEntity.user_id == user_id)
            )
            return result.scalar_one()
