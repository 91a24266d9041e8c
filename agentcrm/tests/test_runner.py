"""Tests for the agent pipeline runner."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentcrm.agents.cache import AnalysisCache
from agentcrm.agents.runner import AgentRunner, pipeline_summary
from agentcrm.integrations.llm import LLMError
from agentcrm.models.activity import Activity
from agentcrm.models.agent import AgentExecution
from agentcrm.models.contact import Contact
from agentcrm.models.opportunity import Opportunity
from agentcrm.models.task import Task
from agentcrm.oauth.lifecycle import TokenInvalidError, TokenLifecycle
from agentcrm.schemas.agent import AgentRunRequest, AnalysisItem
from agentcrm.schemas.analysis import PipelineAnalysis
from agentcrm.services import token_svc

from conftest import FakeLLM, FakeSalesforce, failing_llm_factory, sf_contact


def make_runner(db: AsyncSession, llm: FakeLLM, **kwargs) -> AgentRunner:
    return AgentRunner(db, llm_factory=lambda: llm, **kwargs)


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _executions(db: AsyncSession) -> list[AgentExecution]:
    return list((await db.execute(select(AgentExecution))).scalars().all())


async def _add_contacts(db: AsyncSession, count: int) -> None:
    db.add_all([Contact(first_name=f"Lead{i}", last_name="Test", lead_score=30) for i in range(count)])
    await db.commit()


# ============================================================================
# Analysis-only runs
# ============================================================================


@pytest.mark.asyncio
async def test_jane_doe_analysis_only(db: AsyncSession, jane: Contact):
    llm = FakeLLM()
    runner = make_runner(db, llm)

    response = await runner.run(AgentRunRequest(agent_type="lead-intelligence"))

    assert len(llm.calls) == 1
    assert "Jane Doe" in llm.calls[0][1]
    assert response.success
    assert response.status == "completed"
    assert response.records_analyzed == 1
    assert response.actions_executed == 0
    assert response.confidence == pytest.approx(0.92)
    item = response.analysis[0]
    assert item.record_id == str(jane.id)
    assert item.name == "Jane Doe"
    assert 0 <= item.analysis.new_score <= 100

    envelope = response.model_dump(by_alias=True)
    assert envelope["analysis"][0]["analysis"]["newScore"] == 85
    assert envelope["recordsAnalyzed"] == 1

    await db.refresh(jane)
    assert jane.lead_score == 40
    assert await _count(db, Activity) == 0
    assert await _count(db, Task) == 0
    assert runner.states == ["received", "fetching", "analyzing", "responding"]


@pytest.mark.asyncio
async def test_no_records_short_circuits_without_llm(db: AsyncSession):
    factory_calls = []

    def factory():
        factory_calls.append(1)
        return FakeLLM()

    runner = AgentRunner(db, llm_factory=factory)
    response = await runner.run(AgentRunRequest(agent_type="pipeline-analysis", enable_actions=True))

    assert factory_calls == []
    assert response.status == "empty"
    assert response.confidence == 0
    assert response.actions_executed == 0
    assert response.records_analyzed == 0
    assert response.message == "No records found to analyze"
    [execution] = await _executions(db)
    assert execution.status == "completed"


@pytest.mark.asyncio
async def test_records_bounded_by_limit(db: AsyncSession):
    await _add_contacts(db, 15)
    llm = FakeLLM()

    response = await make_runner(db, llm).run(AgentRunRequest(agent_type="lead-intelligence", limit=5))
    assert response.records_analyzed == 5
    assert len(llm.calls) == 5


@pytest.mark.asyncio
async def test_records_bounded_by_agent_default(db: AsyncSession):
    await _add_contacts(db, 12)
    llm = FakeLLM()

    response = await make_runner(db, llm).run(AgentRunRequest(agent_type="customer-sentiment"))
    assert response.records_analyzed == 10
    assert len(llm.calls) == 10


@pytest.mark.asyncio
async def test_sentiment_confidence_reported_by_model(db: AsyncSession, jane: Contact):
    response = await make_runner(db, FakeLLM()).run(AgentRunRequest(agent_type="customer-sentiment"))
    assert response.analysis[0].confidence == pytest.approx(0.8)


# ============================================================================
# Degraded and failed items
# ============================================================================


@pytest.mark.asyncio
async def test_unparseable_reply_marks_run_degraded(db: AsyncSession, jane: Contact):
    llm = FakeLLM({"lead-intelligence": "Sorry, I can't do that."})

    response = await make_runner(db, llm).run(
        AgentRunRequest(agent_type="lead-intelligence", enable_actions=True)
    )

    assert response.status == "degraded"
    item = response.analysis[0]
    assert item.status == "degraded"
    assert item.confidence == pytest.approx(0.6)
    assert item.analysis.new_score == 65
    assert item.error
    assert response.actions_executed == 0
    await db.refresh(jane)
    assert jane.lead_score == 40


@pytest.mark.asyncio
async def test_llm_error_isolated_to_one_item(db: AsyncSession, jane: Contact):
    db.add(Contact(first_name="John", last_name="Roe", lead_score=20))
    await db.commit()

    def reply(prompt: str):
        if "John Roe" in prompt:
            return LLMError("LLM API failed: 502", 502)
        return {"newScore": 70, "priority": "Medium", "reasoning": "ok"}

    llm = FakeLLM({"lead-intelligence": reply})
    response = await make_runner(db, llm).run(AgentRunRequest(agent_type="lead-intelligence"))

    statuses = {i.name: i.status for i in response.analysis}
    assert statuses == {"Jane Doe": "ok", "John Roe": "failed"}
    failed = next(i for i in response.analysis if i.status == "failed")
    assert failed.confidence == 0
    assert "502" in failed.error
    assert response.status == "degraded"
    assert response.confidence == pytest.approx(0.46)


@pytest.mark.asyncio
async def test_llm_unavailable_fails_run(db: AsyncSession, jane: Contact):
    runner = AgentRunner(db, llm_factory=failing_llm_factory)

    with pytest.raises(LLMError):
        await runner.run(AgentRunRequest(agent_type="lead-intelligence"))

    [execution] = await _executions(db)
    assert execution.status == "failed"
    assert "not configured" in execution.error_message
    assert execution.completed_at is not None


# ============================================================================
# Write-back
# ============================================================================


@pytest.mark.asyncio
async def test_actions_write_back_to_native_contact(db: AsyncSession, jane: Contact):
    runner = make_runner(db, FakeLLM())
    response = await runner.run(AgentRunRequest(agent_type="lead-intelligence", enable_actions=True))

    assert runner.states == ["received", "fetching", "analyzing", "writing-back", "responding"]
    assert response.actions_executed == 3
    assert response.analysis[0].actions_executed == 3
    assert "Updated lead score to 85 for Jane Doe" in response.actions
    await db.refresh(jane)
    assert jane.lead_score == 85
    assert jane.status == "qualified"
    [execution] = await _executions(db)
    assert execution.execution_type == "autonomous_action"


@pytest.mark.asyncio
async def test_pipeline_run_includes_summary(db: AsyncSession, acme):
    db.add_all([
        Opportunity(name="Big Deal", amount=200_000, probability=60, company_id=acme.id, owner_id="rep-001"),
        Opportunity(name="Small Deal", amount=20_000, probability=30, company_id=acme.id, owner_id="rep-002"),
    ])
    await db.commit()

    response = await make_runner(db, FakeLLM()).run(AgentRunRequest(agent_type="pipeline-analysis"))

    assert [i.name for i in response.analysis] == ["Big Deal", "Small Deal"]
    summary = response.summary
    assert summary["total_opportunities"] == 2
    assert summary["high_risk_deals"] == 2
    assert summary["probability_adjustments"] == 1
    assert summary["pipeline_health"] == "Needs Attention"
    assert summary["total_pipeline_value"] == 220_000
    assert response.analysis[0].details == {"current_probability": 60, "probability_adjusted": True}


@pytest.mark.asyncio
async def test_sales_coaching_groups_by_owner(db: AsyncSession, acme):
    db.add_all([
        Opportunity(name="A", amount=10_000, probability=60, company_id=acme.id, owner_id="rep-001"),
        Opportunity(name="B", amount=20_000, probability=20, company_id=acme.id, owner_id="rep-002"),
        Opportunity(name="C", amount=30_000, probability=40, company_id=acme.id, owner_id="rep-001"),
    ])
    await db.commit()
    llm = FakeLLM()

    response = await make_runner(db, llm).run(
        AgentRunRequest(agent_type="sales-coaching", enable_actions=True)
    )

    assert len(llm.calls) == 2
    assert response.records_analyzed == 3
    assert {i.name for i in response.analysis} == {"Owner rep-001", "Owner rep-002"}
    assert await _count(db, Task) == 2
    assert response.summary is None


def test_pipeline_summary_health():
    def item(level: str, adjusted: bool = False) -> AnalysisItem:
        analysis = PipelineAnalysis(risk_score=10, risk_level=level, probability_adjustment=50)
        return AnalysisItem(confidence=0.88, analysis=analysis, details={"probability_adjusted": adjusted})

    items = [item("Low"), item("Low"), item("Low", True), item("Critical")]
    summary = pipeline_summary(items, [{"amount": 100}, {"amount": None}, {"amount": 50.5}, {}])
    assert summary["low_risk_deals"] == 3
    assert summary["high_risk_deals"] == 1
    assert summary["pipeline_health"] == "Good"
    assert summary["probability_adjustments"] == 1
    assert summary["avg_confidence"] == pytest.approx(0.88)
    assert summary["total_pipeline_value"] == 150.5


def test_pipeline_summary_leaves_failed_items_out_of_risk_counts():
    low = AnalysisItem(
        confidence=0.88,
        analysis=PipelineAnalysis(risk_score=10, risk_level="Low", probability_adjustment=50),
    )
    failed = AnalysisItem(
        status="failed",
        confidence=0.0,
        analysis=PipelineAnalysis(risk_score=50, risk_level="Medium", probability_adjustment=50),
        error="LLM request failed",
    )

    summary = pipeline_summary([low, failed], [{"amount": 10}, {"amount": 20}])
    assert summary["total_opportunities"] == 2
    assert summary["medium_risk_deals"] == 0
    assert summary["low_risk_deals"] == 1
    assert summary["pipeline_health"] == "Good"


# ============================================================================
# Remote platforms and tokens
# ============================================================================


@pytest.mark.asyncio
async def test_expired_token_fails_before_llm_call(db: AsyncSession):
    await token_svc.store_token(
        db, "salesforce", "default",
        access_token="stale",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        instance_url="https://acme.my.salesforce.com",
    )
    llm = FakeLLM()
    runner = make_runner(db, llm)

    with pytest.raises(TokenInvalidError) as exc:
        await runner.run(AgentRunRequest(agent_type="lead-intelligence", platform="salesforce", enable_actions=True))

    assert exc.value.platform == "salesforce"
    assert llm.calls == []
    assert runner.states == ["received", "fetching"]
    [execution] = await _executions(db)
    assert execution.status == "failed"
    assert await _count(db, Activity) == 0


@pytest.mark.asyncio
async def test_missing_token_with_simulate_uses_sample_records(db: AsyncSession):
    llm = FakeLLM()
    response = await make_runner(db, llm).run(AgentRunRequest(
        agent_type="lead-intelligence", platform="hubspot", enable_actions=True, simulate=True, limit=3,
    ))

    assert response.simulated
    assert response.records_analyzed == 3
    assert len(llm.calls) == 3
    assert response.actions_executed == 0
    assert await _count(db, Activity) == 0


@pytest.mark.asyncio
async def test_salesforce_run_writes_back_remotely_and_closes_client(db: AsyncSession, monkeypatch):
    fake = FakeSalesforce(contacts=[sf_contact("003A")])

    async def open_client(self, platform, user_id):
        assert (platform, user_id) == ("salesforce", "default")
        return fake

    monkeypatch.setattr(TokenLifecycle, "open_client", open_client)

    response = await make_runner(db, FakeLLM()).run(
        AgentRunRequest(agent_type="lead-intelligence", platform="salesforce", enable_actions=True)
    )

    assert response.records_analyzed == 1
    assert response.analysis[0].record_id == "003A"
    assert response.actions_executed == 2
    assert fake.updates == [("Contact", "003A", {
        "Lead_Score__c": 85,
        "Description": "AI Analysis: Senior engineering buyer at a large technology account",
    })]
    assert fake.tasks[0]["WhoId"] == "003A"
    assert fake.closed


# ============================================================================
# Cache and audit
# ============================================================================


@pytest.mark.asyncio
async def test_cache_hit_skips_llm_but_is_audited(db: AsyncSession, jane: Contact):
    llm = FakeLLM()
    cache = AnalysisCache(ttl_seconds=300)
    request = AgentRunRequest(agent_type="lead-intelligence")

    first = await make_runner(db, llm, cache=cache).run(request)
    second = await make_runner(db, llm, cache=cache).run(request)

    assert not first.cached
    assert second.cached
    assert len(llm.calls) == 1
    assert second.analysis == first.analysis
    assert second.execution_id != first.execution_id
    executions = await _executions(db)
    assert len(executions) == 2
    assert all(e.status == "completed" for e in executions)


@pytest.mark.asyncio
async def test_action_run_invalidates_cache(db: AsyncSession, jane: Contact):
    llm = FakeLLM()
    cache = AnalysisCache(ttl_seconds=300)

    await make_runner(db, llm, cache=cache).run(AgentRunRequest(agent_type="lead-intelligence"))
    assert len(cache) == 1
    await make_runner(db, llm, cache=cache).run(
        AgentRunRequest(agent_type="lead-intelligence", enable_actions=True)
    )
    assert len(cache) == 0
    third = await make_runner(db, llm, cache=cache).run(AgentRunRequest(agent_type="lead-intelligence"))
    assert not third.cached
    assert len(llm.calls) == 3


@pytest.mark.asyncio
async def test_degraded_runs_are_not_cached(db: AsyncSession, jane: Contact):
    cache = AnalysisCache()
    llm = FakeLLM({"lead-intelligence": "not json"})
    await make_runner(db, llm, cache=cache).run(AgentRunRequest(agent_type="lead-intelligence"))
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_simulated_run_does_not_answer_later_real_request(db: AsyncSession):
    llm = FakeLLM()
    cache = AnalysisCache(ttl_seconds=300)

    simulated = await make_runner(db, llm, cache=cache).run(AgentRunRequest(
        agent_type="lead-intelligence", platform="hubspot", simulate=True, limit=3,
    ))
    assert simulated.simulated
    assert len(cache) == 0

    with pytest.raises(TokenInvalidError) as exc:
        await make_runner(db, llm, cache=cache).run(
            AgentRunRequest(agent_type="lead-intelligence", platform="hubspot", limit=3)
        )
    assert exc.value.platform == "hubspot"
    statuses = sorted(e.status for e in await _executions(db))
    assert statuses == ["completed", "failed"]


@pytest.mark.asyncio
async def test_cached_remote_analysis_requires_live_token(db: AsyncSession, monkeypatch):
    fake = FakeSalesforce(contacts=[sf_contact("003A")])

    async def open_client(self, platform, user_id):
        return fake

    monkeypatch.setattr(TokenLifecycle, "open_client", open_client)
    await token_svc.store_token(
        db, "salesforce", "default",
        access_token="live",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=2),
        instance_url="https://acme.my.salesforce.com",
    )
    llm = FakeLLM()
    cache = AnalysisCache(ttl_seconds=300)
    request = AgentRunRequest(agent_type="lead-intelligence", platform="salesforce")

    first = await make_runner(db, llm, cache=cache).run(request)
    second = await make_runner(db, llm, cache=cache).run(request)
    assert not first.cached
    assert second.cached

    await token_svc.store_token(
        db, "salesforce", "default",
        access_token="stale",
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        instance_url="https://acme.my.salesforce.com",
    )
    with pytest.raises(TokenInvalidError):
        await make_runner(db, llm, cache=cache).run(request)
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_audit_row_records_output(db: AsyncSession, jane: Contact):
    runner = make_runner(db, FakeLLM())
    response = await runner.run(AgentRunRequest(agent_type="lead-intelligence"))

    [execution] = await _executions(db)
    assert str(execution.id) == response.execution_id
    assert execution.status == "completed"
    assert execution.input["agentType"] == "lead-intelligence"
    assert execution.output["recordsAnalyzed"] == 1
    assert execution.confidence_score == pytest.approx(0.92)
    assert execution.execution_time_ms is not None
    assert execution.completed_at is not None


@pytest.mark.asyncio
async def test_terminal_audit_row_is_not_updated_again(db: AsyncSession, jane: Contact):
    runner = make_runner(db, FakeLLM())
    await runner.run(AgentRunRequest(agent_type="lead-intelligence"))
    [execution] = await _executions(db)

    await runner._finish(execution, "failed", error="late failure", elapsed_ms=1)

    await db.refresh(execution)
    assert execution.status == "completed"
    assert execution.error_message is None
