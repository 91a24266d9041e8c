"""Tests for exporting lead analyses to Salesforce."""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agentcrm.models.contact import Contact
from agentcrm.oauth.lifecycle import TokenLifecycle
from agentcrm.schemas.analysis import LeadAnalysis
from agentcrm.schemas.sync import ExportItem
from agentcrm.sync.exporter import analysis_note, export_batch, export_contact

from conftest import FakeSalesforce

ANALYSIS = LeadAnalysis(
    new_score=84.6,
    priority="High",
    reasoning="Active evaluation with budget approved",
    recommended_actions=["Book demo", "Send pricing"],
    next_steps="Call Tuesday",
)


def test_analysis_note_layout():
    note = analysis_note(ANALYSIS)
    assert note.startswith("AI LEAD ANALYSIS RESULTS\n\nLead Score: 85/100\nPriority: High")
    assert "1. Book demo\n2. Send pricing" in note
    assert "NEXT STEPS:\nCall Tuesday" in note
    assert note.endswith("Generated by AI Lead Intelligence Agent")


def test_analysis_note_without_optional_sections():
    note = analysis_note(LeadAnalysis(new_score=20, priority="Low"))
    assert "RECOMMENDED ACTIONS" not in note
    assert "NEXT STEPS" not in note


@pytest.mark.asyncio
async def test_export_contact_updates_and_logs_task():
    sf = FakeSalesforce()
    task_id = await export_contact(sf, "003JANE", ANALYSIS, today="2026-10-18")

    assert task_id == "00T001"
    sobject, record_id, fields = sf.updates[0]
    assert (sobject, record_id) == ("Contact", "003JANE")
    assert fields["Lead_Score__c"] == 85
    assert sf.tasks[0]["Subject"] == "AI Lead Analysis - Score: 85"
    assert sf.tasks[0]["ActivityDate"] == "2026-10-18"
    assert sf.tasks[0]["WhoId"] == "003JANE"


@pytest.mark.asyncio
async def test_task_failure_is_tolerated():
    sf = FakeSalesforce(fail_tasks=True)
    assert await export_contact(sf, "003JANE", ANALYSIS) is None
    assert len(sf.updates) == 1


@pytest.mark.asyncio
async def test_export_batch_reports_per_contact(db: AsyncSession, jane):
    jane.salesforce_id = "003JANE"
    await db.commit()

    local_only = Contact(first_name="Local", last_name="Only")
    db.add(local_only)
    await db.commit()

    items = [
        ExportItem(contact_id=str(jane.id), analysis=ANALYSIS),
        ExportItem(contact_id=str(local_only.id), analysis=ANALYSIS),
        ExportItem(contact_id=str(uuid.uuid4()), analysis=ANALYSIS),
        ExportItem(contact_id="not-a-uuid", analysis=ANALYSIS),
    ]
    sf = FakeSalesforce()
    result = await export_batch(db, sf, items, pool_size=3)

    assert result.exported == 1
    assert result.failed == 3
    assert result.success is False
    assert [r.error for r in result.results] == [
        None,
        "Salesforce ID is required for export",
        "Contact not found",
        "Contact not found",
    ]
    assert result.results[0].task_id == "00T001"
    assert result.results[0].salesforce_id == "003JANE"


@pytest.mark.asyncio
async def test_export_batch_update_failure(db: AsyncSession, jane):
    jane.salesforce_id = "003JANE"
    await db.commit()

    result = await export_batch(
        db, FakeSalesforce(fail_updates=True), [ExportItem(contact_id=str(jane.id), analysis=ANALYSIS)]
    )
    assert result.exported == 0
    assert "400" in result.results[0].error


@pytest.mark.asyncio
async def test_export_api(client: AsyncClient, db: AsyncSession, jane, monkeypatch):
    jane.salesforce_id = "003JANE"
    await db.commit()
    fake = FakeSalesforce()

    async def open_client(self, platform, user_id):
        return fake

    monkeypatch.setattr(TokenLifecycle, "open_client", open_client)

    resp = await client.post(
        "/api/export/salesforce",
        json={"items": [{"contactId": str(jane.id), "analysis": {"newScore": 70, "priority": "medium"}}]},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["exported"] == 1
    assert body["results"][0]["taskId"] == "00T001"
    assert fake.updates[0][2]["Lead_Score__c"] == 70
    assert fake.closed


@pytest.mark.asyncio
async def test_export_api_requires_items(client: AsyncClient):
    resp = await client.post("/api/export/salesforce", json={"items": []})
    assert resp.status_code == 422
