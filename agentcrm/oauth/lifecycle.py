"""Token lifecycle: valid -> expiring_soon -> refreshing -> valid | invalid.

The newest stored token for a user/platform is classified by wall clock.
Tokens close to (or past) expiry are refreshed through the provider's token
endpoint and the refreshed row is stored; a failed refresh of an expired
token leaves the connection ``invalid`` and the caller must reconnect.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..integrations.hubspot import HubSpotClient
from ..integrations.salesforce import SalesforceClient
from ..services import token_svc
from .client import OAuthClient, OAuthError, get_oauth_client

logger = logging.getLogger(__name__)


class TokenState(str, enum.Enum):
    MISSING = "missing"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    REFRESHING = "refreshing"
    INVALID = "invalid"


class TokenInvalidError(Exception):
    """No usable token; the user has to (re)connect the platform."""

    requires_auth = True

    def __init__(self, platform: str, reason: str):
        self.platform = platform
        self.reason = reason
        super().__init__(reason)


def assess(token: Any, now: datetime | None = None, expiring_soon_seconds: int | None = None) -> TokenState:
    """Classify a stored token row without touching the network."""
    if token is None:
        return TokenState.MISSING
    now = now or datetime.now(timezone.utc)
    window = settings.token_expiring_soon_seconds if expiring_soon_seconds is None else expiring_soon_seconds
    expires_at = token_svc.as_utc(token.expires_at)
    if expires_at <= now:
        return TokenState.EXPIRED
    if expires_at - now <= timedelta(seconds=window):
        return TokenState.EXPIRING_SOON
    return TokenState.VALID


@dataclass
class TokenStatus:
    platform: str
    state: TokenState
    expires_at: datetime | None = None
    instance_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "state": self.state.value,
            "connected": self.state in {TokenState.VALID, TokenState.EXPIRING_SOON},
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "instanceUrl": self.instance_url,
        }


class TokenLifecycle:
    """Resolves a usable token for ``(platform, user_id)``, refreshing when due."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        oauth_client_factory: Callable[[str], OAuthClient] = get_oauth_client,
        expiring_soon_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = db
        self.oauth_client_factory = oauth_client_factory
        self.expiring_soon_seconds = expiring_soon_seconds
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.transitions: list[TokenState] = []

    def _enter(self, state: TokenState, platform: str) -> None:
        self.transitions.append(state)
        logger.debug("Token lifecycle %s -> %s", platform, state.value)

    async def status(self, platform: str, user_id: str) -> TokenStatus:
        token = await token_svc.get_latest_token(self.db, platform, user_id)
        state = assess(token, self.clock(), self.expiring_soon_seconds)
        return TokenStatus(
            platform=platform,
            state=state,
            expires_at=token_svc.as_utc(token.expires_at) if token else None,
            instance_url=getattr(token, "instance_url", None) if token else None,
        )

    async def ensure_valid(self, platform: str, user_id: str):
        """Return a usable token row or raise TokenInvalidError."""
        token = await token_svc.get_latest_token(self.db, platform, user_id)
        state = assess(token, self.clock(), self.expiring_soon_seconds)
        self._enter(state, platform)

        if state is TokenState.MISSING:
            self._enter(TokenState.INVALID, platform)
            raise TokenInvalidError(
                platform, f"No {platform} connection found. Please connect to {platform} first."
            )
        if state is TokenState.VALID:
            return token

        if not token.refresh_token:
            if state is TokenState.EXPIRING_SOON:
                return token
            self._enter(TokenState.INVALID, platform)
            raise TokenInvalidError(
                platform, f"{platform} token expired. Please reconnect to {platform}."
            )

        self._enter(TokenState.REFRESHING, platform)
        try:
            refreshed = await self._refresh(platform, user_id, token)
        except OAuthError as e:
            logger.warning("Token refresh failed for %s user %s: %s", platform, user_id, e)
            if state is TokenState.EXPIRING_SOON:
                # Still usable until it actually expires
                self._enter(TokenState.EXPIRING_SOON, platform)
                return token
            self._enter(TokenState.INVALID, platform)
            raise TokenInvalidError(
                platform, f"{platform} token refresh failed - please reconnect"
            ) from e

        self._enter(TokenState.VALID, platform)
        return refreshed

    async def _refresh(self, platform: str, user_id: str, token: Any):
        oauth = self.oauth_client_factory(platform)
        instance_url = getattr(token, "instance_url", None)
        tokens = await oauth.refresh_tokens(token.refresh_token, instance_url=instance_url)
        logger.info("Refreshed %s token for user %s", platform, user_id)
        return await token_svc.store_token(
            self.db,
            platform,
            user_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            instance_url=tokens.instance_url or instance_url,
            scope=tokens.scope or token.scope,
            hub_id=tokens.hub_id or getattr(token, "hub_id", None),
        )

    async def open_client(self, platform: str, user_id: str):
        """Build an API client from a valid token (caller closes it)."""
        token = await self.ensure_valid(platform, user_id)
        if platform == "salesforce":
            return SalesforceClient(token.access_token, token.instance_url)
        if platform == "hubspot":
            return HubSpotClient(token.access_token)
        raise ValueError(f"Unsupported platform: {platform}")
