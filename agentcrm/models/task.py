"""Task model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, GeneratedDataMixin


class Task(UUIDMixin, TimestampMixin, GeneratedDataMixin, Base):
    __tablename__ = "task"

    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(String(50), default="pending")  # pending, in_progress, done
    priority: Mapped[str] = mapped_column(String(20), default="medium")  # low, medium, high
    assignee_id: Mapped[str | None] = mapped_column(String(100), default=None)
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<Task {self.title!r}>"
