"""Activity model - follow-ups scheduled against contacts and opportunities."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, GeneratedDataMixin


class Activity(UUIDMixin, TimestampMixin, GeneratedDataMixin, Base):
    __tablename__ = "activity"

    type: Mapped[str] = mapped_column(String(50), index=True)  # task, email, meeting, call, note
    subject: Mapped[str] = mapped_column(String(300))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(String(50), default="scheduled")  # scheduled, completed, cancelled
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contact.id", ondelete="CASCADE"),
        default=None, index=True
    )
    opportunity_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("opportunity.id", ondelete="CASCADE"),
        default=None, index=True
    )

    contact: Mapped["Contact | None"] = relationship(back_populates="activities")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Activity {self.type} {self.subject!r}>"
