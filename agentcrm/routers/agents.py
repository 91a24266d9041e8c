"""Agent pipeline API: run agents, stored agents, cache and audit trail."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..agents.cache import AnalysisCache
from ..agents.registry import AGENTS
from ..agents.runner import AgentRunner
from ..database import get_db
from ..deps import get_analysis_cache, get_runner_factory
from ..schemas.agent import (
    AgentCreate,
    AgentExecuteRequest,
    AgentResponse,
    AgentRunRequest,
    AgentRunResponse,
    ExecutionDetailResponse,
    ExecutionResponse,
)
from ..services import agent_svc

router = APIRouter(prefix="/api/agents", tags=["agents"])


@router.post("/run", response_model=AgentRunResponse, response_model_by_alias=True)
async def run_agent(
    data: AgentRunRequest,
    db: AsyncSession = Depends(get_db),
    runner_factory: Callable[[AsyncSession], AgentRunner] = Depends(get_runner_factory),
):
    return await runner_factory(db).run(data)


@router.get("/types")
async def list_agent_types():
    return [
        {
            "agentType": a.agent_type,
            "label": a.label,
            "recordKind": a.record_kind,
            "defaultLimit": a.default_limit,
        }
        for a in AGENTS.values()
    ]


@router.get("", response_model=list[AgentResponse])
async def list_agents(
    status: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await agent_svc.list_agents(db, status=status)


@router.post("", response_model=AgentResponse, status_code=201)
async def create_agent(data: AgentCreate, db: AsyncSession = Depends(get_db)):
    return await agent_svc.create_agent(db, **data.model_dump())


@router.post("/cache/clear")
async def clear_cache(cache: AnalysisCache = Depends(get_analysis_cache)):
    cleared = len(cache)
    cache.clear()
    return {"success": True, "cleared": cleared}


@router.get("/cache")
async def cache_stats(cache: AnalysisCache = Depends(get_analysis_cache)):
    return cache.stats()


@router.get("/executions", response_model=list[ExecutionResponse])
async def list_executions(
    limit: int = Query(default=20, ge=1, le=200),
    agent_type: str | None = Query(default=None, alias="agentType"),
    status: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await agent_svc.list_executions(db, limit=limit, agent_type=agent_type, status=status)


@router.get("/executions/{execution_id}", response_model=ExecutionDetailResponse)
async def get_execution(execution_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    execution = await agent_svc.get_execution(db, execution_id)
    if not execution:
        raise HTTPException(status_code=404, detail="Execution not found")
    return execution


@router.post("/{agent_id}/execute", response_model=AgentRunResponse, response_model_by_alias=True)
async def execute_agent(
    agent_id: uuid.UUID,
    data: AgentExecuteRequest,
    db: AsyncSession = Depends(get_db),
    runner_factory: Callable[[AsyncSession], AgentRunner] = Depends(get_runner_factory),
):
    agent = await agent_svc.get_active_agent(db, agent_id)
    request = AgentRunRequest(agent_type=agent.type, **data.model_dump())
    return await runner_factory(db).run(request, agent_id=agent.id)
