"""Salesforce import and export endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_token_lifecycle
from ..oauth.lifecycle import TokenLifecycle
from ..schemas.sync import ExportRequest, ExportResponse, SyncLogResponse, SyncRequest, SyncResponse
from ..services.token_svc import DEFAULT_USER_ID
from ..sync.exporter import export_batch
from ..sync.salesforce_sync import list_sync_logs, sync_salesforce

router = APIRouter(prefix="/api", tags=["sync"])


@router.post("/sync/salesforce", response_model=SyncResponse)
async def run_salesforce_sync(
    data: SyncRequest,
    db: AsyncSession = Depends(get_db),
    lifecycle: TokenLifecycle = Depends(get_token_lifecycle),
):
    client = await lifecycle.open_client("salesforce", data.user_id or DEFAULT_USER_ID)
    async with client:
        results = await sync_salesforce(db, client, objects=data.objects, limit=data.limit)
    return SyncResponse(success=all(not r.errors for r in results.values()), results=results)


@router.get("/sync/logs", response_model=list[SyncLogResponse])
async def sync_logs(
    limit: int = Query(default=20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    return await list_sync_logs(db, limit=limit)


@router.post("/export/salesforce", response_model=ExportResponse, response_model_by_alias=True)
async def export_salesforce(
    data: ExportRequest,
    db: AsyncSession = Depends(get_db),
    lifecycle: TokenLifecycle = Depends(get_token_lifecycle),
):
    client = await lifecycle.open_client("salesforce", data.user_id or DEFAULT_USER_ID)
    async with client:
        return await export_batch(db, client, data.items)
