"""SQLAlchemy model for messages discussing an analysis."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from app.models.base import Base


class Discussion(Base):
    __tablename__ = "discussions"

    id = Column(String(36), primary_key=True)
    analysis_id = Column(String(36), nullable=False, index=True)
    message = Column(Text, nullable=False)
    sender = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


__all__ = ["Discussion"]
