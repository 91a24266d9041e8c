"""Sync log - one row per object type per sync run."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class SyncLog(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "sync_log"

    platform: Mapped[str] = mapped_column(String(20), default="salesforce")
    object_type: Mapped[str] = mapped_column(String(50))  # account, contact, opportunity
    direction: Mapped[str] = mapped_column(String(10), default="import")  # import, export
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, completed, failed
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<SyncLog {self.platform}:{self.object_type} {self.status}>"
