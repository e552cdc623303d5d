"""
Database entities for user content that counts against plan quotas.
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SavedArticleEntity(Base):
    __tablename__ = "saved_articles"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    article_url = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_saved_article_user", "user_id"),)


class SummaryEntity(Base):
    __tablename__ = "summaries"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Monthly quota counts filter on (user_id, created_at)
    __table_args__ = (Index("idx_summary_user_created", "user_id", "created_at"),)


class NoteEntity(Base):
    __tablename__ = "notes"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_note_user", "user_id"),)
