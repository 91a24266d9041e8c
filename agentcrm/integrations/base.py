"""Shared httpx wrapper and error hierarchy for remote CRM APIs."""

from __future__ import annotations

from typing import Any

import httpx


class CRMAPIError(Exception):
    """Base exception for remote CRM API errors."""

    platform = "crm"

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class CRMAuthError(CRMAPIError):
    """Token rejected by the remote API."""

    pass


class CRMRateLimitError(CRMAPIError):
    """Rate limit exceeded."""

    pass


def _error_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


class BaseCRMClient:
    """Async REST client with bearer auth and uniform error mapping.

    Subclasses set ``error_class``/``auth_error_class`` so callers can catch
    per-platform failures while still handling ``CRMAPIError`` generically.
    """

    error_class: type[CRMAPIError] = CRMAPIError
    auth_error_class: type[CRMAPIError] = CRMAuthError

    def __init__(
        self,
        access_token: str,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict[str, Any]:
        """Make an API request with error handling. Single attempt, no retry."""
        try:
            response = await self._client.request(
                method=method,
                url=path,
                params=params,
                json=json,
            )
        except httpx.HTTPError as e:
            raise self.error_class(f"{self.error_class.platform} request failed: {e}") from e

        if response.status_code == 401:
            raise self.auth_error_class(
                f"{self.error_class.platform} rejected the access token", 401, _error_body(response)
            )

        if response.status_code == 429:
            raise CRMRateLimitError(
                "Rate limit exceeded. Wait and retry.",
                429,
                _error_body(response),
            )

        if response.status_code >= 400:
            raise self.error_class(
                f"{self.error_class.platform} API error: {response.status_code}",
                response.status_code,
                _error_body(response),
            )

        if not response.content:
            return {}
        return response.json()
