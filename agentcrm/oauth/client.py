"""OAuth 2.0 clients for the Salesforce and HubSpot integrations.

Handles the Authorization Code flow:
1. Generate authorization URL (PKCE for Salesforce)
2. Exchange code for access + refresh tokens
3. Refresh tokens before they expire
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import settings

HUBSPOT_AUTH_URL = "https://app.hubspot.com/oauth/authorize"
HUBSPOT_TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"
HUBSPOT_SCOPES = ["oauth", "crm.objects.contacts.read", "crm.objects.companies.read", "crm.objects.deals.read"]

SALESFORCE_SCOPES = ["api", "refresh_token", "offline_access"]
SALESFORCE_DEFAULT_EXPIRES_IN = 3600


@dataclass
class OAuthTokens:
    """Tokens returned by a provider's token endpoint."""

    access_token: str
    refresh_token: str | None
    expires_in: int  # seconds
    token_type: str = "Bearer"
    scope: str = ""
    instance_url: str | None = None
    hub_id: str | None = None
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)


class OAuthError(Exception):
    """OAuth-related error."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


def generate_state() -> str:
    """Random state value for CSRF protection."""
    return secrets.token_urlsafe(32)


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(64)[:128]


def code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class OAuthClient:
    """Provider-agnostic Authorization Code client.

    Subclasses fix the endpoints and how token responses are parsed.
    """

    platform = ""
    auth_url = ""
    token_url = ""
    default_scopes: list[str] = []

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not client_id:
            raise OAuthError(
                f"{self.platform} OAuth client id not configured",
                error_code="not_configured",
            )
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(self.default_scopes)
        self._http_client = http_client

    def get_authorization_url(self, state: str, code_verifier: str | None = None) -> str:
        """Build the URL the user visits to grant access."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        if code_verifier:
            params["code_challenge"] = code_challenge(code_verifier)
            params["code_challenge_method"] = "S256"
        return f"{self.auth_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str | None = None) -> OAuthTokens:
        """Exchange an authorization code for tokens.

        Raises:
            OAuthError: If the provider rejects the exchange
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        payload = await self._post_token(self.token_url, data, "exchange_failed")
        return self._parse_token_response(payload)

    async def refresh_tokens(self, refresh_token: str, instance_url: str | None = None) -> OAuthTokens:
        """Refresh an access token.

        Raises:
            OAuthError: If refresh fails
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        payload = await self._post_token(self.refresh_url(instance_url), data, "refresh_failed")
        tokens = self._parse_token_response(payload)
        # Providers may omit the refresh token on refresh; keep the old one
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        if not tokens.instance_url:
            tokens.instance_url = instance_url
        return tokens

    def refresh_url(self, instance_url: str | None = None) -> str:
        return self.token_url

    async def _post_token(self, url: str, data: dict, default_code: str) -> dict[str, Any]:
        client = self._http_client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(
                url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise OAuthError(f"Token request failed: {e}", error_code=default_code) from e
        finally:
            if self._http_client is None:
                await client.aclose()

        if response.status_code != 200:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"raw_response": response.text[:500]}
            raise OAuthError(
                f"Token request failed: {response.status_code}",
                error_code=error_data.get("error", default_code),
                details=error_data,
            )
        return response.json()

    def _parse_token_response(self, data: dict[str, Any]) -> OAuthTokens:
        try:
            return OAuthTokens(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expires_in=int(data.get("expires_in") or SALESFORCE_DEFAULT_EXPIRES_IN),
                token_type=data.get("token_type", "Bearer"),
                scope=data.get("scope", ""),
                instance_url=data.get("instance_url"),
                hub_id=str(data["hub_id"]) if data.get("hub_id") else None,
            )
        except KeyError as e:
            raise OAuthError(
                f"Invalid token response: missing {e}",
                error_code="invalid_response",
                details={"missing_field": str(e), "response_keys": list(data.keys())},
            )


class SalesforceOAuthClient(OAuthClient):
    """Salesforce web-server flow with PKCE. Access tokens last one hour."""

    platform = "salesforce"
    default_scopes = SALESFORCE_SCOPES

    def __init__(self, *args, login_url: str = "https://login.salesforce.com", **kwargs):
        self.login_url = login_url.rstrip("/")
        super().__init__(*args, **kwargs)

    @property
    def auth_url(self) -> str:  # type: ignore[override]
        return f"{self.login_url}/services/oauth2/authorize"

    @property
    def token_url(self) -> str:  # type: ignore[override]
        return f"{self.login_url}/services/oauth2/token"

    def refresh_url(self, instance_url: str | None = None) -> str:
        if instance_url:
            return f"{instance_url.rstrip('/')}/services/oauth2/token"
        return self.token_url


class HubSpotOAuthClient(OAuthClient):
    platform = "hubspot"
    auth_url = HUBSPOT_AUTH_URL
    token_url = HUBSPOT_TOKEN_URL
    default_scopes = HUBSPOT_SCOPES


def get_oauth_client(platform: str, http_client: httpx.AsyncClient | None = None) -> OAuthClient:
    """Build the configured OAuth client for ``platform``."""
    if platform == "salesforce":
        return SalesforceOAuthClient(
            settings.salesforce_client_id,
            settings.salesforce_client_secret,
            settings.salesforce_redirect_uri,
            login_url=settings.salesforce_login_url,
            http_client=http_client,
        )
    if platform == "hubspot":
        return HubSpotOAuthClient(
            settings.hubspot_client_id,
            settings.hubspot_client_secret,
            settings.hubspot_redirect_uri,
            http_client=http_client,
        )
    raise OAuthError(f"Unsupported OAuth platform: {platform}", error_code="unsupported_platform")
