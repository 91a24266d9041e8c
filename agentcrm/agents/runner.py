"""Agent pipeline runner.

received -> fetching -> analyzing -> (writing-back) -> responding

LLM calls for one invocation fan out through a bounded worker pool; database
writes (write-back and the audit row) stay sequential on the runner's
session, in fetch order.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..integrations.llm import LLMClient
from ..models.agent import AgentExecution
from ..oauth.lifecycle import TokenInvalidError, TokenLifecycle
from ..schemas.agent import AgentRunRequest, AgentRunResponse, AnalysisItem
from ..schemas.analysis import PipelineAnalysis
from ..services.test_data_svc import simulated_records
from ..services.token_svc import DEFAULT_USER_ID
from .cache import AnalysisCache
from .parser import ParseOutcome, fallback_analysis, parse_analysis
from .pool import ItemOutcome, WorkerPool
from .prompts import build_prompt, system_prompt
from .registry import DEGRADED_CONFIDENCE, AgentDefinition, get_agent
from .sources import clamp_limit, fetch_records
from .writeback import PROBABILITY_CHANGE_THRESHOLD, execute_writeback

logger = logging.getLogger(__name__)

LOW_RISK_HEALTHY_SHARE = 0.6


def pipeline_summary(items: list[AnalysisItem], records: list[dict]) -> dict[str, Any]:
    """Risk distribution and health for a pipeline-analysis run.

    Failed items carry only the fallback analysis and are left out of the risk
    counts and the health share.
    """
    assessed = [i for i in items if i.status != "failed" and isinstance(i.analysis, PipelineAnalysis)]
    levels = [i.analysis.risk_level for i in assessed]
    high = sum(1 for level in levels if level in {"High", "Critical"})
    medium = sum(1 for level in levels if level == "Medium")
    low = sum(1 for level in levels if level == "Low")
    adjustments = sum(1 for i in assessed if i.details.get("probability_adjusted"))
    confidences = [i.confidence for i in items]
    return {
        "total_opportunities": len(items),
        "high_risk_deals": high,
        "medium_risk_deals": medium,
        "low_risk_deals": low,
        "avg_confidence": round(sum(confidences) / len(confidences), 3) if confidences else 0.0,
        "probability_adjustments": adjustments,
        "pipeline_health": "Good" if assessed and low / len(assessed) > LOW_RISK_HEALTHY_SHARE else "Needs Attention",
        "total_pipeline_value": sum(float(r.get("amount") or 0) for r in records),
    }


class AgentRunner:
    """Runs one agent invocation end to end and records it in ``ai_agent_execution``."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        llm_factory: Callable[[], LLMClient] = LLMClient.from_settings,
        cache: AnalysisCache | None = None,
        pool_size: int | None = None,
        lifecycle: TokenLifecycle | None = None,
    ):
        self.db = db
        self.llm_factory = llm_factory
        self.cache = cache
        self.pool = WorkerPool(pool_size or settings.pool_size)
        self.lifecycle = lifecycle or TokenLifecycle(db)
        self.states: list[str] = []
        self._client = None

    def _enter(self, state: str, agent_type: str) -> None:
        self.states.append(state)
        logger.info("Agent %s: %s", agent_type, state)

    async def run(self, request: AgentRunRequest, agent_id: uuid.UUID | None = None) -> AgentRunResponse:
        agent = get_agent(request.agent_type)
        self.states = []
        self._enter("received", agent.agent_type)
        start_time = time.monotonic()

        cache_key = None
        if self.cache is not None:
            if request.enable_actions:
                self.cache.invalidate(agent.agent_type, request.platform)
            else:
                cache_key = self.cache.key(
                    agent.agent_type,
                    request.platform,
                    user_id=request.user_id,
                    record_ids=request.record_ids,
                    limit=request.limit,
                )

        execution = AgentExecution(
            agent_id=agent_id,
            agent_type=agent.agent_type,
            platform=request.platform,
            execution_type="autonomous_action" if request.enable_actions else "analysis",
            status="running",
            input=request.model_dump(mode="json", by_alias=True),
        )
        self.db.add(execution)
        await self.db.commit()
        await self.db.refresh(execution)

        self._client = None
        try:
            cached = None
            if cache_key is not None and await self._connected(request):
                cached = self.cache.get(cache_key)
            if cached is not None:
                response = cached.model_copy(update={"cached": True})
            else:
                response = await self._execute(agent, request)
            response.execution_time_ms = int((time.monotonic() - start_time) * 1000)
            response.execution_id = str(execution.id)

            self._enter("responding", agent.agent_type)
            await self._finish(execution, "completed", response=response)
            if (
                cache_key is not None
                and not response.cached
                and not response.simulated
                and response.status == "completed"
            ):
                self.cache.set(cache_key, response)
            return response
        except Exception as e:
            logger.error("Agent %s failed: %s", agent.agent_type, e)
            await self.db.rollback()
            elapsed = int((time.monotonic() - start_time) * 1000)
            await self._finish(execution, "failed", error=str(e), elapsed_ms=elapsed)
            raise
        finally:
            if self._client is not None:
                await self._client.close()
                self._client = None

    async def _connected(self, request: AgentRunRequest) -> bool:
        """Token check ahead of a cache lookup.

        Cached remote analysis is only served to a user whose connection is
        still usable; without one a real run raises and a simulated run skips
        the cache.
        """
        if request.platform == "native":
            return True
        try:
            await self.lifecycle.ensure_valid(request.platform, request.user_id or DEFAULT_USER_ID)
        except TokenInvalidError:
            if not request.simulate:
                raise
            return False
        return True

    async def _execute(self, agent: AgentDefinition, request: AgentRunRequest):
        self._enter("fetching", agent.agent_type)
        limit = clamp_limit(request.limit, agent.default_limit)
        records, simulated = await self._fetch(agent, request, limit)

        if not records:
            logger.info("Agent %s: no records on %s, skipping analysis", agent.agent_type, request.platform)
            return AgentRunResponse(
                status="empty",
                agent_type=agent.agent_type,
                platform=request.platform,
                message="No records found to analyze",
            )

        units = agent.build_units(records)
        self._enter("analyzing", agent.agent_type)
        items = await self._analyze(agent, units)

        actions: list[str] = []
        executed = 0
        if request.enable_actions and not simulated:
            self._enter("writing-back", agent.agent_type)
            now = datetime.now(timezone.utc)
            for item, unit in zip(items, units):
                if item.status != "ok":
                    continue
                wb = await execute_writeback(
                    agent.agent_type, unit, item.analysis, item.name,
                    db=self.db, platform=request.platform, client=self._client, now=now,
                )
                item.actions = wb.actions
                item.actions_executed = wb.executed
                actions.extend(wb.actions)
                executed += wb.executed

        confidence = sum(i.confidence for i in items) / len(items)
        degraded = any(i.status != "ok" for i in items)
        response = AgentRunResponse(
            status="degraded" if degraded else "completed",
            agent_type=agent.agent_type,
            platform=request.platform,
            analysis=items,
            confidence=round(confidence, 3),
            actions_executed=executed,
            records_analyzed=len(records),
            actions=actions,
            summary=pipeline_summary(items, records) if agent.agent_type == "pipeline-analysis" else None,
            simulated=simulated,
        )
        return response

    async def _fetch(self, agent: AgentDefinition, request: AgentRunRequest, limit: int):
        """Return ``(records, simulated)``; remote platforms leave an open client on ``self._client``."""
        if request.platform != "native":
            try:
                self._client = await self.lifecycle.open_client(
                    request.platform, request.user_id or DEFAULT_USER_ID
                )
            except TokenInvalidError:
                if not request.simulate:
                    raise
                logger.info("No usable %s token, running on simulated records", request.platform)
                return simulated_records(agent.record_kind, limit), True

        records = await fetch_records(
            self.db,
            request.platform,
            agent.record_kind,
            limit=limit,
            record_ids=request.record_ids,
            client=self._client,
        )
        if not records and request.simulate:
            return simulated_records(agent.record_kind, limit), True
        return records, False

    async def _analyze(self, agent: AgentDefinition, units: list[dict]) -> list[AnalysisItem]:
        system = system_prompt(agent.agent_type)

        async with self.llm_factory() as llm:
            async def analyze(unit: dict) -> ParseOutcome:
                reply = await llm.complete(system, build_prompt(unit, agent.agent_type))
                return parse_analysis(reply, agent.agent_type, unit)

            outcomes = await self.pool.map(analyze, units)

        return [self._item(agent, outcome) for outcome in outcomes]

    def _item(self, agent: AgentDefinition, outcome: ItemOutcome) -> AnalysisItem:
        unit = outcome.item
        record_id = unit.get("id") or unit.get("salesforce_id") or unit.get("hubspot_id") or unit.get("owner_id")
        name = agent.unit_name(unit)
        details: dict[str, Any] = {}

        if not outcome.ok:
            return AnalysisItem(
                record_id=record_id,
                name=name,
                status="failed",
                confidence=0.0,
                analysis=fallback_analysis(agent.agent_type, unit),
                error=str(outcome.error),
            )

        parsed: ParseOutcome = outcome.result
        if parsed.degraded:
            status, confidence = "degraded", DEGRADED_CONFIDENCE
        else:
            status, confidence = "ok", agent.confidence
            reported = getattr(parsed.analysis, "confidence", None)
            if agent.model_reports_confidence and reported is not None:
                confidence = reported

        if isinstance(parsed.analysis, PipelineAnalysis):
            current = float(unit.get("probability") or 0)
            details["current_probability"] = current
            details["probability_adjusted"] = (
                abs(parsed.analysis.probability_adjustment - current) > PROBABILITY_CHANGE_THRESHOLD
            )

        return AnalysisItem(
            record_id=record_id,
            name=name,
            status=status,
            confidence=confidence,
            analysis=parsed.analysis,
            error=parsed.error,
            details=details,
        )

    async def _finish(
        self,
        execution: AgentExecution,
        status: str,
        *,
        response: AgentRunResponse | None = None,
        error: str | None = None,
        elapsed_ms: int | None = None,
    ) -> None:
        """Single terminal transition for the audit row."""
        await self.db.refresh(execution)
        if execution.is_terminal:
            logger.warning("Execution %s already %s, not updating", execution.id, execution.status)
            return
        execution.status = status
        execution.completed_at = datetime.now(timezone.utc)
        if response is not None:
            execution.output = response.model_dump(mode="json", by_alias=True)
            execution.confidence_score = response.confidence
            execution.execution_time_ms = response.execution_time_ms
        else:
            execution.error_message = error
            execution.execution_time_ms = elapsed_ms
        await self.db.commit()
