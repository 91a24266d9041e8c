"""Local CRM -> Salesforce export of lead analyses."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..agents.pool import WorkerPool
from ..config import settings
from ..integrations.base import CRMAPIError
from ..integrations.salesforce import SalesforceClient
from ..schemas.analysis import LeadAnalysis
from ..schemas.sync import ExportItem, ExportItemResult, ExportResponse
from ..services import contact_svc

logger = logging.getLogger(__name__)


def _numbered(lines: list[str]) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, 1))


def analysis_note(analysis: LeadAnalysis) -> str:
    """Plain-text note written to the Salesforce Contact description."""
    parts = [
        "AI LEAD ANALYSIS RESULTS",
        "",
        f"Lead Score: {analysis.new_score:.0f}/100",
        f"Priority: {analysis.priority}",
        "",
        "SUMMARY:",
        analysis.reasoning or "-",
    ]
    if analysis.recommended_actions:
        parts += ["", "RECOMMENDED ACTIONS:", _numbered(analysis.recommended_actions)]
    if analysis.next_steps:
        parts += ["", "NEXT STEPS:", analysis.next_steps]
    parts += ["", "Generated by AI Lead Intelligence Agent"]
    return "\n".join(parts)


async def export_contact(
    client: SalesforceClient,
    salesforce_id: str,
    analysis: LeadAnalysis,
    *,
    today: str | None = None,
) -> str | None:
    """Update the Contact and log a completed Task; returns the Task id.

    A failed contact update raises; a failed Task is logged and tolerated.
    """
    note = analysis_note(analysis)
    score = int(round(analysis.new_score))
    await client.update("Contact", salesforce_id, {"Description": note, "Lead_Score__c": score})

    try:
        created = await client.create_task({
            "Subject": f"AI Lead Analysis - Score: {score}",
            "Description": note,
            "Status": "Completed",
            "Priority": analysis.priority,
            "ActivityDate": today or datetime.now(timezone.utc).date().isoformat(),
            "Type": "Other",
            "WhoId": salesforce_id,
        })
    except CRMAPIError as e:
        logger.warning("Salesforce task for %s not created (contact still updated): %s", salesforce_id, e)
        return None
    return created.get("id")


async def export_batch(
    db: AsyncSession,
    client: SalesforceClient,
    items: list[ExportItem],
    *,
    pool_size: int | None = None,
) -> ExportResponse:
    """Export several contacts; remote calls run concurrently, results keep request order."""
    results: list[ExportItemResult] = []
    jobs: list[tuple[ExportItemResult, str, LeadAnalysis]] = []

    for item in items:
        result = ExportItemResult(contact_id=item.contact_id)
        results.append(result)
        try:
            contact = await contact_svc.get_contact(db, uuid.UUID(item.contact_id))
        except ValueError:
            contact = None
        if contact is None:
            result.error = "Contact not found"
            continue
        if not contact.salesforce_id:
            result.error = "Salesforce ID is required for export"
            continue
        result.salesforce_id = contact.salesforce_id
        jobs.append((result, contact.salesforce_id, item.analysis))

    async def _export(job: tuple[ExportItemResult, str, LeadAnalysis]) -> str | None:
        _, salesforce_id, analysis = job
        return await export_contact(client, salesforce_id, analysis)

    pool = WorkerPool(pool_size or settings.pool_size)
    for outcome in await pool.map(_export, jobs):
        result = outcome.item[0]
        if outcome.ok:
            result.success = True
            result.task_id = outcome.result
        else:
            result.error = str(outcome.error)

    exported = sum(1 for r in results if r.success)
    logger.info("Exported %d/%d lead analyses to Salesforce", exported, len(results))
    return ExportResponse(
        success=exported == len(results),
        exported=exported,
        failed=len(results) - exported,
        results=results,
    )
