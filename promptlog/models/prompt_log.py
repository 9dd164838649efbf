"""Prompt log model."""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects import mysql
from promptlog.db.base import Base

# MySQL DATETIME drops fractional seconds unless asked to keep them.
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


class PromptLogRecord(Base):
    """One AI-assisted coding session: PR metadata plus the markdown log."""
    __tablename__ = "prompt_logs"

    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=True, index=True)
    pr_url = Column(Text, nullable=False)
    branch = Column(Text, nullable=True)
    author_email = Column(Text, nullable=False)
    orchestrator = Column(Text, nullable=False)
    llm = Column(Text, nullable=False)
    tags_json = Column(Text, nullable=False, default="[]")  # JSON array of tags
    content = Column(Text, nullable=False)
    created_at = Column(Timestamp, nullable=False)
    updated_at = Column(Timestamp, nullable=False)

    __table_args__ = (
        Index("ix_prompt_logs_user_created", "user_id", "created_at"),
    )
