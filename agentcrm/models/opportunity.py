"""Opportunity model - deals moving through pipeline stages."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin

STAGES = (
    "prospecting",
    "qualification",
    "proposal",
    "negotiation",
    "closed_won",
    "closed_lost",
)


class Opportunity(UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin, Base):
    __tablename__ = "opportunity"

    name: Mapped[str] = mapped_column(String(300))
    amount: Mapped[float | None] = mapped_column(Float, default=None)
    stage: Mapped[str] = mapped_column(String(50), default="prospecting")
    probability: Mapped[int] = mapped_column(Integer, default=0)  # 0-100
    expected_close_date: Mapped[date | None] = mapped_column(Date, default=None)
    priority: Mapped[str | None] = mapped_column(String(20), default=None)  # high, medium, low
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    owner_id: Mapped[str | None] = mapped_column(String(100), default=None)
    company_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("company.id", ondelete="SET NULL"),
        default=None, index=True
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contact.id", ondelete="SET NULL"),
        default=None, index=True
    )

    # Relationships
    company: Mapped["Company | None"] = relationship(back_populates="opportunities")  # noqa: F821
    contact: Mapped["Contact | None"] = relationship(back_populates="opportunities")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Opportunity {self.name!r}>"
