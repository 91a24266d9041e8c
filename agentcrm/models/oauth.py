"""OAuth token and state models for the Salesforce and HubSpot integrations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class OAuthTokenMixin:
    """Columns shared by per-platform token tables.

    A user may accumulate several rows per platform; the newest by
    ``created_at`` is the one consulted.
    """

    user_id: Mapped[str] = mapped_column(String(100), index=True)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text, default=None)
    token_type: Mapped[str] = mapped_column(String(20), default="Bearer")
    scope: Mapped[str | None] = mapped_column(Text, default=None)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class SalesforceToken(UUIDMixin, TimestampMixin, OAuthTokenMixin, Base):
    __tablename__ = "salesforce_token"

    instance_url: Mapped[str] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"<SalesforceToken user={self.user_id!r}>"


class HubSpotToken(UUIDMixin, TimestampMixin, OAuthTokenMixin, Base):
    __tablename__ = "hubspot_token"

    hub_id: Mapped[str | None] = mapped_column(String(50), default=None)

    def __repr__(self) -> str:
        return f"<HubSpotToken user={self.user_id!r}>"


class OAuthState(UUIDMixin, TimestampMixin, Base):
    """CSRF state issued with an authorize URL, valid for a short window."""

    __tablename__ = "oauth_state"

    state: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    platform: Mapped[str] = mapped_column(String(20))  # salesforce, hubspot
    user_id: Mapped[str] = mapped_column(String(100))
    code_verifier: Mapped[str | None] = mapped_column(String(200), default=None)  # PKCE (Salesforce)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<OAuthState {self.platform} user={self.user_id!r}>"
