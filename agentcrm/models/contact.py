"""Contact (lead) model."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin

CONTACT_STATUSES = ("new", "working", "qualified", "nurturing", "warm", "hot", "unqualified")


class Contact(UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin, Base):
    __tablename__ = "contact"

    first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    email: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), default=None)
    title: Mapped[str | None] = mapped_column(String(150), default=None)
    department: Mapped[str | None] = mapped_column(String(100), default=None)
    lead_source: Mapped[str | None] = mapped_column(String(100), default=None)
    lead_score: Mapped[int] = mapped_column(Integer, default=0)  # 0-100
    status: Mapped[str] = mapped_column(String(50), default="new")
    tags: Mapped[list | None] = mapped_column(JSON, default=None)
    preferred_contact_method: Mapped[str | None] = mapped_column(String(50), default=None)
    owner_id: Mapped[str | None] = mapped_column(String(100), default=None)
    company_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("company.id", ondelete="SET NULL"),
        default=None, index=True
    )

    # Relationships
    company: Mapped["Company | None"] = relationship(back_populates="contacts")  # noqa: F821
    opportunities: Mapped[list["Opportunity"]] = relationship(  # noqa: F821
        back_populates="contact"
    )
    activities: Mapped[list["Activity"]] = relationship(  # noqa: F821
        back_populates="contact", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or "Unnamed"

    def __repr__(self) -> str:
        return f"<Contact {self.full_name!r}>"
