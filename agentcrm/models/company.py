"""Company model."""

from __future__ import annotations

from sqlalchemy import Float, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin


class Company(UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin, Base):
    __tablename__ = "company"

    name: Mapped[str] = mapped_column(String(200))
    industry: Mapped[str | None] = mapped_column(String(100), default=None)
    size: Mapped[str | None] = mapped_column(String(50), default=None)  # 1-10, 11-50, 51-200, ...
    revenue: Mapped[float | None] = mapped_column(Float, default=None)
    website: Mapped[str | None] = mapped_column(String(255), default=None)

    # Relationships
    contacts: Mapped[list["Contact"]] = relationship(back_populates="company")  # noqa: F821
    opportunities: Mapped[list["Opportunity"]] = relationship(  # noqa: F821
        back_populates="company"
    )

    def __repr__(self) -> str:
        return f"<Company {self.name!r}>"
