"""Write-back executors: turn an accepted analysis into CRM updates.

Every write is independent. Local writes go through the service layer; when
an open remote client is available and the record carries the platform's
id, the remote object is updated too. A failed write is logged and reported
as a failed action, earlier writes are left in place.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..integrations.base import CRMAPIError
from ..schemas.analysis import (
    AnalysisBase,
    ChurnPrediction,
    CoachingAnalysis,
    CommunicationAnalysis,
    LeadAnalysis,
    OpportunityScore,
    PipelineAnalysis,
    SegmentationAnalysis,
    SentimentAnalysis,
)
from ..services import activity_svc, contact_svc, opportunity_svc, task_svc

logger = logging.getLogger(__name__)

PROBABILITY_CHANGE_THRESHOLD = 10
SEGMENT_STATUS = {"Enterprise": "hot", "Mid-Market": "warm", "SMB": "new"}


@dataclass
class WriteBack:
    """Per-item write session; collects action strings and the success count."""

    db: AsyncSession
    platform: str
    client: Any = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    actions: list[str] = field(default_factory=list)
    executed: int = 0

    @property
    def remote(self) -> bool:
        return self.client is not None and self.platform in {"salesforce", "hubspot"}

    def external_id(self, unit: dict) -> str | None:
        return unit.get(f"{self.platform}_id") if self.remote else None

    async def local(self, label: str, write: Callable[[], Awaitable[Any]]) -> bool:
        try:
            result = await write()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Local write failed (%s): %s", label, e)
            self.actions.append(f"Failed: {label}")
            return False
        if result is None:
            self.actions.append(f"Failed: {label} (record not found)")
            return False
        self.actions.append(label)
        self.executed += 1
        return True

    async def remote_write(self, label: str, write: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await write()
        except CRMAPIError as e:
            logger.warning("%s write failed (%s): %s", self.platform, label, e)
            self.actions.append(f"Failed: {label}")
            return False
        self.actions.append(label)
        self.executed += 1
        return True


def _local_id(unit: dict) -> uuid.UUID | None:
    raw = unit.get("id")
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


def _hubspot_task(subject: str, body: str, when: datetime) -> dict[str, Any]:
    return {
        "hs_task_subject": subject,
        "hs_task_body": body,
        "hs_task_status": "NOT_STARTED",
        "hs_task_priority": "HIGH",
        "hs_task_type": "CALL",
        "hs_timestamp": when.isoformat(),
    }


async def writeback_lead(wb: WriteBack, unit: dict, analysis: LeadAnalysis, name: str) -> None:
    high = analysis.priority == "High"
    score = int(round(analysis.new_score))
    contact_id = _local_id(unit)

    if contact_id:
        await wb.local(
            f"Updated lead score to {score} for {name}",
            lambda: contact_svc.update_contact(
                wb.db, contact_id, lead_score=score, status="qualified" if high else "working"
            ),
        )
        if high:
            await wb.local(
                f"Created high-priority follow-up for {name}",
                lambda: activity_svc.create_activity(
                    wb.db,
                    type="task",
                    subject=f"HIGH PRIORITY: Follow up with {name}",
                    description=analysis.reasoning,
                    scheduled_at=wb.now + timedelta(hours=2),
                    contact_id=contact_id,
                ),
            )
        await wb.local(
            f"Drafted email for {name}",
            lambda: activity_svc.create_activity(
                wb.db,
                type="email",
                subject=analysis.email_subject or f"Following up, {name}",
                description=analysis.next_steps,
                status="draft",
                contact_id=contact_id,
            ),
        )

    external_id = wb.external_id(unit)
    if not external_id:
        return
    if wb.platform == "salesforce":
        await wb.remote_write(
            f"Updated Salesforce contact {name}",
            lambda: wb.client.update("Contact", external_id, {
                "Lead_Score__c": score,
                "Description": f"AI Analysis: {analysis.reasoning}",
            }),
        )
        if high:
            await wb.remote_write(
                f"Created Salesforce task for {name}",
                lambda: wb.client.create_task({
                    "Subject": f"AI: High Priority Follow-up - {name}",
                    "Description": analysis.next_steps or analysis.reasoning,
                    "Status": "Not Started",
                    "Priority": "High",
                    "WhoId": external_id,
                    "ActivityDate": (wb.now + timedelta(days=1)).date().isoformat(),
                }),
            )
    else:
        await wb.remote_write(
            f"Updated HubSpot contact {name}",
            lambda: wb.client.update_contact(external_id, {
                "hs_lead_status": "QUALIFIED" if high else "OPEN",
                "notes_last_contacted": f"AI Lead Score: {score}/100 - {analysis.reasoning}",
            }),
        )
        if high:
            await wb.remote_write(
                f"Created HubSpot task for {name}",
                lambda: wb.client.create_task(_hubspot_task(
                    f"AI: Follow up with {name}",
                    analysis.next_steps or analysis.reasoning,
                    wb.now + timedelta(hours=2),
                )),
            )


async def writeback_sentiment(wb: WriteBack, unit: dict, analysis: SentimentAnalysis, name: str) -> None:
    contact_id = _local_id(unit)
    status = "hot" if analysis.classification == "positive" else "nurturing"
    if contact_id:
        await wb.local(
            f"Set {name} to {status} ({analysis.classification} sentiment)",
            lambda: contact_svc.update_contact(wb.db, contact_id, status=status),
        )

    external_id = wb.external_id(unit)
    if not external_id:
        return
    note = f"AI Sentiment: {analysis.classification} ({analysis.sentiment_score:+.2f})"
    if wb.platform == "salesforce":
        await wb.remote_write(
            f"Updated Salesforce contact {name}",
            lambda: wb.client.update("Contact", external_id, {"Description": note}),
        )
        return
    await wb.remote_write(
        f"Updated HubSpot contact {name}",
        lambda: wb.client.update_contact(external_id, {"notes_last_contacted": note}),
    )
    if analysis.sentiment_score < -0.5:
        await wb.remote_write(
            f"Created HubSpot task for {name}",
            lambda: wb.client.create_task(_hubspot_task(
                f"AI: Negative sentiment - reach out to {name}",
                "; ".join(analysis.recommendations) or analysis.reasoning,
                wb.now + timedelta(hours=2),
            )),
        )


async def writeback_segmentation(
    wb: WriteBack, unit: dict, analysis: SegmentationAnalysis, name: str
) -> None:
    contact_id = _local_id(unit)
    if not contact_id:
        return
    await wb.local(
        f"Tagged {name} as {analysis.segment}",
        lambda: contact_svc.update_contact(
            wb.db,
            contact_id,
            tags=[analysis.segment.lower()],
            status=SEGMENT_STATUS[analysis.segment],
        ),
    )


async def writeback_communication(
    wb: WriteBack, unit: dict, analysis: CommunicationAnalysis, name: str
) -> None:
    contact_id = _local_id(unit)
    if not contact_id:
        return
    await wb.local(
        f"Set preferred channel for {name} to {analysis.preferred_channel}",
        lambda: contact_svc.update_contact(
            wb.db, contact_id, preferred_contact_method=analysis.preferred_channel
        ),
    )


async def writeback_pipeline(wb: WriteBack, unit: dict, analysis: PipelineAnalysis, name: str) -> None:
    """Writes grow with risk: Low adjusts probability only, Medium adds a
    review meeting, High/Critical add an urgent task."""
    opp_id = _local_id(unit)
    current = float(unit.get("probability") or 0)
    adjusted = int(round(analysis.probability_adjustment))
    adjust = abs(adjusted - current) > PROBABILITY_CHANGE_THRESHOLD
    level = analysis.risk_level

    if opp_id:
        if adjust:
            await wb.local(
                f"Adjusted probability for {name} from {int(current)}% to {adjusted}%",
                lambda: opportunity_svc.update_opportunity(wb.db, opp_id, probability=adjusted),
            )
        if level in {"High", "Critical"}:
            await wb.local(
                f"Created {level.lower()}-risk task for {name}",
                lambda: activity_svc.create_activity(
                    wb.db,
                    type="task",
                    subject=f"{level.upper()} RISK: {name}",
                    description=analysis.next_steps or analysis.reasoning,
                    scheduled_at=wb.now + timedelta(minutes=30),
                    opportunity_id=opp_id,
                ),
            )
        elif level == "Medium":
            await wb.local(
                f"Scheduled pipeline review for {name}",
                lambda: activity_svc.create_activity(
                    wb.db,
                    type="meeting",
                    subject=f"Pipeline Review: {name}",
                    description=analysis.reasoning,
                    scheduled_at=wb.now + timedelta(hours=24),
                    opportunity_id=opp_id,
                ),
            )

    external_id = wb.external_id(unit)
    if not external_id:
        return
    if wb.platform == "hubspot":
        await wb.remote_write(
            f"Updated HubSpot deal {name}",
            lambda: wb.client.update_deal(external_id, {
                "notes_last_contacted": f"AI Risk: {level} ({analysis.risk_score:.0f}) - {analysis.reasoning}",
            }),
        )
        return
    if adjust:
        await wb.remote_write(
            f"Updated Salesforce opportunity {name} probability to {adjusted}%",
            lambda: wb.client.update("Opportunity", external_id, {"Probability": adjusted}),
        )
    if level in {"High", "Critical"}:
        await wb.remote_write(
            f"Created Salesforce task for {name}",
            lambda: wb.client.create_task({
                "Subject": f"AI: {level} Risk Deal - {name}",
                "Description": "; ".join(analysis.recommended_actions) or analysis.reasoning,
                "Status": "Not Started",
                "Priority": "High",
                "WhatId": external_id,
                "ActivityDate": wb.now.date().isoformat(),
            }),
        )
    elif level == "Medium":
        await wb.remote_write(
            f"Scheduled Salesforce review for {name}",
            lambda: wb.client.create_event({
                "Subject": f"AI: Pipeline Review - {name}",
                "Description": analysis.reasoning,
                "StartDateTime": (wb.now + timedelta(hours=24)).isoformat(),
                "DurationInMinutes": 30,
                "WhatId": external_id,
            }),
        )


async def writeback_opportunity(wb: WriteBack, unit: dict, analysis: OpportunityScore, name: str) -> None:
    opp_id = _local_id(unit)
    score = int(round(analysis.score))
    if opp_id and analysis.priority == "high":
        await wb.local(
            f"Marked {name} as high priority",
            lambda: opportunity_svc.update_opportunity(
                wb.db, opp_id, priority="high", notes=f"AI-scored as high priority ({score})"
            ),
        )

    external_id = wb.external_id(unit)
    if external_id and wb.platform == "hubspot":
        await wb.remote_write(
            f"Updated HubSpot deal score for {name}",
            lambda: wb.client.update_deal(external_id, {
                "hs_deal_score": score,
                "notes_last_contacted": f"AI Opportunity Score: {score} ({analysis.priority})",
            }),
        )


async def writeback_churn(wb: WriteBack, unit: dict, analysis: ChurnPrediction, name: str) -> None:
    if analysis.risk_level != "high":
        return
    await wb.local(
        f"Created churn intervention task for {name}",
        lambda: task_svc.create_task(
            wb.db,
            title=f"URGENT: Churn Risk - {name}",
            description="; ".join(analysis.interventions) or analysis.reasoning,
            priority="high",
            assignee_id=unit.get("owner_id"),
            due_at=wb.now + timedelta(days=1),
        ),
    )


async def writeback_coaching(wb: WriteBack, unit: dict, analysis: CoachingAnalysis, name: str) -> None:
    await wb.local(
        f"Assigned coaching task to {name}",
        lambda: task_svc.create_task(
            wb.db,
            title=f"Sales Coaching: {analysis.recommendation}",
            description=f"Performance review for {unit.get('opportunity_count', 0)} opportunities",
            assignee_id=unit.get("owner_id"),
            due_at=wb.now + timedelta(days=7),
        ),
    )


# Write-back handler registry
WRITEBACK_HANDLERS: dict[str, Callable[..., Awaitable[None]]] = {
    "lead-intelligence": writeback_lead,
    "customer-sentiment": writeback_sentiment,
    "customer-segmentation": writeback_segmentation,
    "communication-ai": writeback_communication,
    "pipeline-analysis": writeback_pipeline,
    "opportunity-scoring": writeback_opportunity,
    "churn-prediction": writeback_churn,
    "sales-coaching": writeback_coaching,
}


async def execute_writeback(
    agent_type: str,
    unit: dict,
    analysis: AnalysisBase,
    name: str,
    *,
    db: AsyncSession,
    platform: str,
    client: Any = None,
    now: datetime | None = None,
) -> WriteBack:
    """Dispatch to the agent's handler and return the collected actions."""
    wb = WriteBack(db=db, platform=platform, client=client, now=now or datetime.now(timezone.utc))
    handler = WRITEBACK_HANDLERS.get(agent_type)
    if handler is None:
        wb.actions.append(f"Skipped: no write-back for {agent_type}")
        return wb
    await handler(wb, unit, analysis, name)
    return wb
