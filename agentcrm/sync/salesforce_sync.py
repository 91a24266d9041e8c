"""Salesforce -> local CRM import.

Accounts, contacts and opportunities are upserted on ``salesforce_id``.
Each object type gets its own ``sync_log`` row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..integrations.base import CRMAPIError, CRMAuthError
from ..integrations.salesforce import SalesforceClient
from ..models.company import Company
from ..models.contact import Contact
from ..models.opportunity import Opportunity
from ..models.sync_log import SyncLog
from ..schemas.sync import SyncResult
from .field_mapper import salesforce_to_local

logger = logging.getLogger(__name__)

SYNC_ORDER = ("account", "contact", "opportunity")
LOCAL_MODELS = {"account": Company, "contact": Contact, "opportunity": Opportunity}


async def _company_ids_by_name(db: AsyncSession) -> dict[str, object]:
    rows = (await db.execute(select(Company.id, Company.name))).all()
    return {name.strip().lower(): cid for cid, name in rows if name}


async def _upsert(db: AsyncSession, model, salesforce_id: str, fields: dict, result: SyncResult) -> None:
    stmt = select(model).where(model.salesforce_id == salesforce_id)
    row = (await db.execute(stmt)).scalars().first()
    now = datetime.now(timezone.utc)
    if row:
        for k, v in fields.items():
            setattr(row, k, v)
        row.last_synced_at = now
        result.updated += 1
    else:
        db.add(model(salesforce_id=salesforce_id, last_synced_at=now, **fields))
        result.created += 1
    await db.flush()


async def import_records(db: AsyncSession, object_type: str, rows: list[dict]) -> SyncResult:
    """Upsert already-fetched Salesforce rows of one object type."""
    result = SyncResult()
    model = LOCAL_MODELS[object_type]
    companies = await _company_ids_by_name(db) if object_type != "account" else {}

    for data in rows:
        salesforce_id = data.get("Id")
        fields = salesforce_to_local(object_type, data)
        if not salesforce_id or not fields:
            result.skipped += 1
            continue
        if object_type == "contact" and not fields.get("last_name"):
            result.failed += 1
            result.errors.append(f"Contact {salesforce_id}: missing LastName")
            continue
        if object_type == "opportunity" and not fields.get("name"):
            result.failed += 1
            result.errors.append(f"Opportunity {salesforce_id}: missing Name")
            continue

        account_name = ((data.get("Account") or {}).get("Name") or "").strip().lower()
        if account_name and account_name in companies:
            fields["company_id"] = companies[account_name]

        await _upsert(db, model, salesforce_id, fields, result)

    await db.commit()
    return result


async def _fetch(client: SalesforceClient, object_type: str, limit: int) -> list[dict]:
    if object_type == "account":
        return await client.list_accounts(limit=limit)
    if object_type == "contact":
        return await client.list_contacts(limit=limit)
    return await client.list_opportunities(limit=limit)


async def sync_salesforce(
    db: AsyncSession,
    client: SalesforceClient,
    *,
    objects: list[str] | tuple[str, ...] = SYNC_ORDER,
    limit: int = 50,
) -> dict[str, SyncResult]:
    """Pull each requested object type and record one sync_log row per type.

    A rejected token aborts the whole sync; other API errors fail only the
    object type they occurred in.
    """
    results: dict[str, SyncResult] = {}
    for object_type in SYNC_ORDER:
        if object_type not in objects:
            continue

        log = SyncLog(platform="salesforce", object_type=object_type, direction="import", status="pending")
        db.add(log)
        await db.commit()

        try:
            rows = await _fetch(client, object_type, limit)
            result = await import_records(db, object_type, rows)
        except CRMAPIError as e:
            await db.rollback()
            await db.refresh(log)
            logger.warning("Salesforce %s sync failed: %s", object_type, e)
            log.status = "failed"
            log.error_message = str(e)
            log.completed_at = datetime.now(timezone.utc)
            await db.commit()
            results[object_type] = SyncResult(errors=[str(e)])
            if isinstance(e, CRMAuthError):
                raise
            continue

        log.status = "completed"
        log.records_processed = result.processed
        log.records_failed = result.failed
        log.completed_at = datetime.now(timezone.utc)
        await db.commit()
        logger.info(
            "Salesforce %s sync: %d created, %d updated, %d failed",
            object_type, result.created, result.updated, result.failed,
        )
        results[object_type] = result

    return results


async def list_sync_logs(db: AsyncSession, *, limit: int = 20) -> list[SyncLog]:
    stmt = select(SyncLog).order_by(SyncLog.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())
