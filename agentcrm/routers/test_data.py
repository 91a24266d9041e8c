"""Sample data and agent test-run endpoints."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..agents.runner import AgentRunner
from ..database import get_db
from ..deps import get_runner_factory
from ..schemas.sync import AgentTestRunRequest, AgentTestRunResponse, GenerateDataRequest
from ..services import test_data_svc, test_run_svc

router = APIRouter(prefix="/api", tags=["test-data"])


@router.post("/test-data/generate")
async def generate(data: GenerateDataRequest, db: AsyncSession = Depends(get_db)):
    created = await test_data_svc.generate_test_data(
        db,
        companies=data.companies,
        contacts=data.contacts,
        opportunities=data.opportunities,
        seed=data.seed,
    )
    return {"success": True, "created": created}


@router.post("/test-data/clear")
async def clear(db: AsyncSession = Depends(get_db)):
    deleted = await test_data_svc.clear_test_data(db)
    return {"success": True, "deleted": deleted}


@router.post("/test-runs", response_model=list[AgentTestRunResponse])
async def start_test_runs(
    data: AgentTestRunRequest,
    db: AsyncSession = Depends(get_db),
    runner_factory: Callable[[AsyncSession], AgentRunner] = Depends(get_runner_factory),
):
    return await test_run_svc.start_test_runs(db, data, runner_factory)


@router.post("/test-runs/stop")
async def stop_test_runs(
    test_run_id: uuid.UUID | None = Query(default=None, alias="testRunId"),
    db: AsyncSession = Depends(get_db),
):
    stopped = await test_run_svc.stop_test_runs(db, test_run_id)
    return {
        "success": True,
        "stoppedCount": stopped,
        "message": f"Stopped {stopped} test run(s)" if stopped else "No running tests found",
    }


@router.get("/test-runs", response_model=list[AgentTestRunResponse])
async def list_test_runs(
    limit: int = Query(default=20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    return await test_run_svc.list_test_runs(db, limit=limit)
