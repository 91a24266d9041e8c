"""Agent test runs: run several agent types and keep a row per type."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..agents.runner import AgentRunner
from ..integrations.base import CRMAPIError
from ..integrations.llm import LLMError
from ..models.test_run import AITestRun
from ..oauth.lifecycle import TokenInvalidError
from ..schemas.agent import AgentRunRequest
from ..schemas.sync import AgentTestRunRequest

logger = logging.getLogger(__name__)


def _result_summary(response) -> dict:
    return {
        "status": response.status,
        "recordsAnalyzed": response.records_analyzed,
        "confidence": response.confidence,
        "degradedItems": sum(1 for i in response.analysis if i.status != "ok"),
        "executionTimeMs": response.execution_time_ms,
        "executionId": response.execution_id,
        "simulated": response.simulated,
    }


async def start_test_runs(
    db: AsyncSession,
    request: AgentTestRunRequest,
    runner_factory: Callable[[AsyncSession], AgentRunner],
) -> list[AITestRun]:
    """Run each requested agent type analysis-only, one ``ai_test_run`` row per type.

    A run stopped while another type is executing is left ``stopped``.
    """
    runs = [AITestRun(agent_type=t, platform=request.platform, status="running") for t in request.agent_types]
    db.add_all(runs)
    await db.commit()

    for run in runs:
        await db.refresh(run)
        if run.status != "running":
            continue
        runner = runner_factory(db)
        try:
            response = await runner.run(AgentRunRequest(
                agent_type=run.agent_type,
                platform=request.platform,
                enable_actions=False,
                user_id=request.user_id,
                simulate=request.simulate,
            ))
        except (CRMAPIError, LLMError, TokenInvalidError) as e:
            logger.warning("Test run %s (%s) failed: %s", run.id, run.agent_type, e)
            await db.refresh(run)
            run.status = "failed"
            run.error_message = str(e)
            run.completed_at = datetime.now(timezone.utc)
            await db.commit()
            continue

        await db.refresh(run)
        if run.status == "running":
            run.status = "completed"
            run.results = _result_summary(response)
            run.completed_at = datetime.now(timezone.utc)
            await db.commit()

    return runs


async def stop_test_runs(db: AsyncSession, test_run_id: uuid.UUID | None = None) -> int:
    """Mark running test runs (or just one) as stopped; returns how many."""
    stmt = select(AITestRun).where(AITestRun.status == "running")
    if test_run_id:
        stmt = stmt.where(AITestRun.id == test_run_id)
    runs = list((await db.execute(stmt)).scalars().all())
    now = datetime.now(timezone.utc)
    for run in runs:
        run.status = "stopped"
        run.completed_at = now
    await db.commit()
    logger.info("Stopped %d test run(s)", len(runs))
    return len(runs)


async def list_test_runs(db: AsyncSession, *, limit: int = 20) -> list[AITestRun]:
    stmt = select(AITestRun).order_by(AITestRun.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())
