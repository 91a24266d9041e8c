"""Salesforce REST API client."""

from __future__ import annotations

from typing import Any

import httpx

from .base import BaseCRMClient, CRMAPIError, CRMAuthError

QUERY_API_VERSION = "v58.0"
SOBJECTS_API_VERSION = "v61.0"

CONTACT_FIELDS = (
    "Id, FirstName, LastName, Email, Phone, Title, Department, LeadSource, "
    "Account.Name, Account.Industry, Account.AnnualRevenue, CreatedDate, LastModifiedDate"
)
OPPORTUNITY_FIELDS = (
    "Id, Name, Amount, CloseDate, StageName, Probability, Account.Name, "
    "Account.Industry, OwnerId, CreatedDate"
)
ACCOUNT_FIELDS = "Id, Name, Industry, AnnualRevenue, NumberOfEmployees, Website"

OPPORTUNITY_QUERY_CAP = 20


def _id_filter(ids: list[str] | None) -> str:
    """SOQL clause restricting a query to the given record ids."""
    if not ids:
        return ""
    quoted = ", ".join("'" + i.replace("\\", "\\\\").replace("'", "\\'") + "'" for i in ids)
    return f" AND Id IN ({quoted})"


class SalesforceError(CRMAPIError):
    """Salesforce API error."""

    platform = "salesforce"


class SalesforceAuthError(SalesforceError, CRMAuthError):
    """Salesforce rejected the access token."""

    pass


class SalesforceClient(BaseCRMClient):
    """Salesforce client bound to one org's ``instance_url``.

    Usage:
        async with SalesforceClient(token.access_token, token.instance_url) as sf:
            contacts = await sf.list_contacts(limit=50)
            await sf.update("Contact", contacts[0]["Id"], {"Lead_Score__c": 80})
    """

    error_class = SalesforceError
    auth_error_class = SalesforceAuthError

    def __init__(
        self,
        access_token: str,
        instance_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(access_token, instance_url, http_client=http_client, timeout=timeout)
        self.instance_url = self.base_url

    async def query(self, soql: str) -> list[dict[str, Any]]:
        """Run a SOQL query and return its records."""
        data = await self._request(
            "GET", f"/services/data/{QUERY_API_VERSION}/query/", params={"q": soql}
        )
        return list(data.get("records", []))

    async def list_contacts(
        self, limit: int = 50, ids: list[str] | None = None
    ) -> list[dict[str, Any]]:
        soql = (
            f"SELECT {CONTACT_FIELDS} FROM Contact WHERE Email != null"
            f"{_id_filter(ids)} LIMIT {int(limit)}"
        )
        return (await self.query(soql))[:limit]

    async def list_opportunities(
        self, limit: int = OPPORTUNITY_QUERY_CAP, ids: list[str] | None = None
    ) -> list[dict[str, Any]]:
        limit = min(limit, OPPORTUNITY_QUERY_CAP)
        soql = (
            f"SELECT {OPPORTUNITY_FIELDS} FROM Opportunity "
            f"WHERE CloseDate >= THIS_YEAR{_id_filter(ids)} LIMIT {int(limit)}"
        )
        return (await self.query(soql))[:limit]

    async def list_accounts(self, limit: int = 50) -> list[dict[str, Any]]:
        soql = f"SELECT {ACCOUNT_FIELDS} FROM Account LIMIT {int(limit)}"
        return (await self.query(soql))[:limit]

    async def update(self, sobject: str, record_id: str, fields: dict[str, Any]) -> dict:
        """PATCH an sObject. Salesforce answers 204 with an empty body."""
        return await self._request(
            "PATCH", f"/services/data/{SOBJECTS_API_VERSION}/sobjects/{sobject}/{record_id}", json=fields
        )

    async def create(self, sobject: str, fields: dict[str, Any]) -> dict:
        """Create an sObject, returning ``{"id": ..., "success": ...}``."""
        return await self._request(
            "POST", f"/services/data/{SOBJECTS_API_VERSION}/sobjects/{sobject}", json=fields
        )

    async def create_task(self, fields: dict[str, Any]) -> dict:
        return await self.create("Task", fields)

    async def create_event(self, fields: dict[str, Any]) -> dict:
        return await self.create("Event", fields)
