"""HubSpot CRM v3 API client."""

from __future__ import annotations

from typing import Any

import httpx

from .base import BaseCRMClient, CRMAPIError, CRMAuthError

HUBSPOT_API_BASE = "https://api.hubapi.com"

CONTACT_PROPERTIES = (
    "firstname", "lastname", "email", "phone", "jobtitle", "company",
    "lifecyclestage", "hubspot_owner_id", "createdate", "lastmodifieddate",
)
DEAL_PROPERTIES = (
    "dealname", "amount", "closedate", "dealstage", "pipeline",
    "hubspot_owner_id", "createdate", "lastmodifieddate",
)


class HubSpotError(CRMAPIError):
    """HubSpot API error."""

    platform = "hubspot"


class HubSpotAuthError(HubSpotError, CRMAuthError):
    """HubSpot rejected the access token."""

    pass


class HubSpotClient(BaseCRMClient):
    """HubSpot client for contacts, deals and tasks."""

    error_class = HubSpotError
    auth_error_class = HubSpotAuthError

    def __init__(
        self,
        access_token: str,
        base_url: str = HUBSPOT_API_BASE,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(access_token, base_url, http_client=http_client, timeout=timeout)

    async def list_objects(
        self, object_type: str, properties: tuple[str, ...], limit: int = 50
    ) -> list[dict[str, Any]]:
        params = {"properties": ",".join(properties), "limit": limit}
        data = await self._request("GET", f"/crm/v3/objects/{object_type}", params=params)
        return list(data.get("results", []))[:limit]

    async def read_objects(
        self, object_type: str, properties: tuple[str, ...], ids: list[str]
    ) -> list[dict[str, Any]]:
        """Batch read objects by HubSpot id; unknown ids are left out."""
        body = {"properties": list(properties), "inputs": [{"id": i} for i in ids]}
        data = await self._request("POST", f"/crm/v3/objects/{object_type}/batch/read", json=body)
        return list(data.get("results", []))

    async def list_contacts(self, limit: int = 50, ids: list[str] | None = None) -> list[dict[str, Any]]:
        if ids:
            return (await self.read_objects("contacts", CONTACT_PROPERTIES, ids))[:limit]
        return await self.list_objects("contacts", CONTACT_PROPERTIES, limit)

    async def list_deals(self, limit: int = 50, ids: list[str] | None = None) -> list[dict[str, Any]]:
        if ids:
            return (await self.read_objects("deals", DEAL_PROPERTIES, ids))[:limit]
        return await self.list_objects("deals", DEAL_PROPERTIES, limit)

    async def update_contact(self, contact_id: str, properties: dict[str, Any]) -> dict:
        return await self._request(
            "PATCH", f"/crm/v3/objects/contacts/{contact_id}", json={"properties": properties}
        )

    async def update_deal(self, deal_id: str, properties: dict[str, Any]) -> dict:
        return await self._request(
            "PATCH", f"/crm/v3/objects/deals/{deal_id}", json={"properties": properties}
        )

    async def create_task(self, properties: dict[str, Any]) -> dict:
        return await self._request("POST", "/crm/v3/objects/tasks", json={"properties": properties})
