"""SQLAlchemy model for analysis jobs and their persisted results."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from app.models.base import Base


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True)
    type = Column(String(64), nullable=False)
    text_content = Column(Text, nullable=False)
    additional_context = Column(Text, nullable=True)
    llm_provider = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="pending", index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    results = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    saved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


__all__ = ["Analysis"]
