"""Tests for the Salesforce import."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentcrm.integrations.salesforce import SalesforceAuthError, SalesforceError
from agentcrm.models.company import Company
from agentcrm.models.contact import Contact
from agentcrm.models.opportunity import Opportunity
from agentcrm.models.sync_log import SyncLog
from agentcrm.oauth.lifecycle import TokenLifecycle
from agentcrm.sync.salesforce_sync import import_records, list_sync_logs, sync_salesforce

from conftest import FakeSalesforce, sf_contact

ACCOUNTS = [
    {"Id": "001ACME", "Name": "Acme Corp", "Industry": "Technology", "AnnualRevenue": 25_000_000},
    {"Id": "001GLOBEX", "Name": "Globex", "Industry": "Manufacturing", "NumberOfEmployees": 900},
]
OPPORTUNITIES = [
    {
        "Id": "006BIG",
        "Name": "Acme Platform Deal",
        "Amount": 120000,
        "StageName": "Proposal",
        "Probability": 60,
        "CloseDate": "2026-12-15",
        "Account": {"Name": "Acme Corp"},
    },
]


class BrokenContacts(FakeSalesforce):
    async def list_contacts(self, limit: int = 50):
        raise SalesforceError("salesforce API error: 500", 500, "boom")


class RejectedToken(FakeSalesforce):
    async def list_accounts(self, limit: int = 50):
        raise SalesforceAuthError("salesforce rejected the access token", 401)


async def _all(db: AsyncSession, model):
    return list((await db.execute(select(model))).scalars().all())


@pytest.mark.asyncio
async def test_import_accounts_then_contacts_links_company(db: AsyncSession):
    accounts = await import_records(db, "account", ACCOUNTS)
    contacts = await import_records(db, "contact", [sf_contact("003JANE")])

    assert accounts.created == 2
    assert contacts.created == 1

    globex = (await db.execute(select(Company).where(Company.salesforce_id == "001GLOBEX"))).scalar_one()
    assert globex.size == "900"

    jane = (await db.execute(select(Contact).where(Contact.salesforce_id == "003JANE"))).scalar_one()
    acme = (await db.execute(select(Company).where(Company.salesforce_id == "001ACME"))).scalar_one()
    assert jane.company_id == acme.id
    assert jane.last_synced_at is not None


@pytest.mark.asyncio
async def test_reimport_updates_in_place(db: AsyncSession):
    await import_records(db, "contact", [sf_contact("003JANE")])
    result = await import_records(db, "contact", [sf_contact("003JANE", Title="CTO")])

    assert result.created == 0
    assert result.updated == 1
    contacts = await _all(db, Contact)
    assert len(contacts) == 1
    assert contacts[0].title == "CTO"


@pytest.mark.asyncio
async def test_invalid_rows_are_counted(db: AsyncSession):
    rows = [
        {"FirstName": "No", "LastName": "Id"},
        {"Id": "003NOLAST", "FirstName": "Cher"},
        sf_contact("003OK"),
    ]
    result = await import_records(db, "contact", rows)

    assert result.skipped == 1
    assert result.failed == 1
    assert result.created == 1
    assert result.errors == ["Contact 003NOLAST: missing LastName"]


@pytest.mark.asyncio
async def test_opportunity_stage_and_close_date(db: AsyncSession):
    await import_records(db, "opportunity", OPPORTUNITIES)
    opp = (await _all(db, Opportunity))[0]

    assert opp.stage == "proposal"
    assert opp.amount == 120000
    assert opp.probability == 60
    assert opp.expected_close_date.isoformat() == "2026-12-15"


@pytest.mark.asyncio
async def test_sync_writes_one_log_per_object(db: AsyncSession):
    client = FakeSalesforce(ACCOUNTS, [sf_contact("003JANE"), sf_contact("003JOHN", "John")], OPPORTUNITIES)

    results = await sync_salesforce(db, client, limit=50)

    assert list(results) == ["account", "contact", "opportunity"]
    assert results["contact"].created == 2
    logs = await list_sync_logs(db)
    assert {log.object_type for log in logs} == {"account", "contact", "opportunity"}
    assert all(log.status == "completed" for log in logs)
    assert {log.object_type: log.records_processed for log in logs}["contact"] == 2


@pytest.mark.asyncio
async def test_sync_subset_of_objects(db: AsyncSession):
    results = await sync_salesforce(db, FakeSalesforce(ACCOUNTS), objects=["account"])
    assert list(results) == ["account"]
    assert len(await _all(db, SyncLog)) == 1


@pytest.mark.asyncio
async def test_api_error_fails_only_that_object(db: AsyncSession):
    client = BrokenContacts(ACCOUNTS, [], OPPORTUNITIES)

    results = await sync_salesforce(db, client)

    assert results["contact"].errors
    assert results["opportunity"].created == 1
    statuses = {log.object_type: log.status for log in await _all(db, SyncLog)}
    assert statuses == {"account": "completed", "contact": "failed", "opportunity": "completed"}


@pytest.mark.asyncio
async def test_rejected_token_aborts_sync(db: AsyncSession):
    with pytest.raises(SalesforceAuthError):
        await sync_salesforce(db, RejectedToken(ACCOUNTS))

    logs = await _all(db, SyncLog)
    assert [(log.object_type, log.status) for log in logs] == [("account", "failed")]
    assert "rejected" in logs[0].error_message


@pytest.mark.asyncio
async def test_sync_api(client: AsyncClient, monkeypatch):
    fake = FakeSalesforce(ACCOUNTS, [sf_contact("003JANE")], OPPORTUNITIES)

    async def open_client(self, platform, user_id):
        return fake

    monkeypatch.setattr(TokenLifecycle, "open_client", open_client)

    resp = await client.post("/api/sync/salesforce", json={"limit": 10})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["results"]["account"]["created"] == 2
    assert fake.closed

    logs = (await client.get("/api/sync/logs")).json()
    assert len(logs) == 3


@pytest.mark.asyncio
async def test_sync_api_without_connection(client: AsyncClient):
    resp = await client.post("/api/sync/salesforce", json={})
    assert resp.status_code == 401
    assert resp.json()["requiresAuth"] is True
