"""Server-side session model."""

from sqlalchemy import Column, String, Text, DateTime
from promptlog.db.base import Base


class SessionRecord(Base):
    """Serialized session payload keyed by the id carried in the cookie."""
    __tablename__ = "sessions"

    sid = Column(String(255), primary_key=True)
    sess = Column(Text, nullable=False)  # JSON payload, e.g. {"userId": "..."}
    expire = Column(DateTime, nullable=False, index=True)
