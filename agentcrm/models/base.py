"""Base model classes and mixins for AgentCRM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UUIDMixin:
    """Adds a UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ExternalIdMixin:
    """Adds remote CRM identifiers and sync tracking."""

    salesforce_id: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    hubspot_id: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )


class GeneratedDataMixin:
    """Flags rows created by the test-data generator."""

    is_test_data: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
