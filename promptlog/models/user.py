"""User model."""

from sqlalchemy import Column, String, DateTime, func
from promptlog.db.base import Base


class UserRecord(Base):
    """Account created or refreshed at every successful OAuth sign-in."""
    __tablename__ = "users"

    id = Column(String(255), primary_key=True)  # identity provider subject id
    email = Column(String(255), unique=True, nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_image_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
