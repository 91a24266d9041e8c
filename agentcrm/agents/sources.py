"""Record fetch: a bounded batch of contacts or opportunities per platform."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..integrations.hubspot import HubSpotClient
from ..integrations.salesforce import SalesforceClient
from ..services import contact_svc, opportunity_svc
from ..sync import field_mapper

logger = logging.getLogger(__name__)

RECORD_KINDS = ("contact", "opportunity")


def clamp_limit(limit: int | None, default: int, max_records: int | None = None) -> int:
    """Effective batch size: ``min(limit or default, max_records)``, at least 1."""
    cap = settings.max_records if max_records is None else max_records
    return max(1, min(limit or default, cap))


async def _attach_local_ids(db: AsyncSession, platform: str, kind: str, records: list[dict]) -> None:
    """Link remote records to rows previously synced into the local tables."""
    finder = contact_svc.find_by_external_id if kind == "contact" else opportunity_svc.find_by_external_id
    id_key = f"{platform}_id"
    for record in records:
        external_id = record.get(id_key)
        if not external_id:
            continue
        local = await finder(db, platform, external_id)
        if local is not None:
            record["id"] = str(local.id)


async def _fetch_native(db: AsyncSession, kind: str, limit: int, record_ids: list[str] | None) -> list[dict]:
    now = datetime.now(timezone.utc)
    if kind == "contact":
        contacts = await contact_svc.list_contacts(db, limit=limit, ids=record_ids)
        return [field_mapper.contact_record(c) for c in contacts]
    opps = await opportunity_svc.list_opportunities(db, limit=limit, ids=record_ids)
    return [field_mapper.opportunity_record(o, now) for o in opps]


async def _fetch_salesforce(
    client: SalesforceClient, kind: str, limit: int, record_ids: list[str] | None
) -> list[dict]:
    by_id = {"ids": record_ids} if record_ids else {}
    if kind == "contact":
        rows = await client.list_contacts(limit=limit, **by_id)
        return [field_mapper.salesforce_contact_record(r) for r in rows]
    now = datetime.now(timezone.utc)
    rows = await client.list_opportunities(limit=limit, **by_id)
    return [field_mapper.salesforce_opportunity_record(r, now) for r in rows]


async def _fetch_hubspot(
    client: HubSpotClient, kind: str, limit: int, record_ids: list[str] | None
) -> list[dict]:
    by_id = {"ids": record_ids} if record_ids else {}
    if kind == "contact":
        rows = await client.list_contacts(limit=limit, **by_id)
        return [field_mapper.hubspot_contact_record(r) for r in rows]
    now = datetime.now(timezone.utc)
    rows = await client.list_deals(limit=limit, **by_id)
    return [field_mapper.hubspot_deal_record(r, now) for r in rows]


async def fetch_records(
    db: AsyncSession,
    platform: str,
    kind: str,
    *,
    limit: int,
    record_ids: list[str] | None = None,
    client: Any = None,
) -> list[dict]:
    """Return at most ``limit`` records normalized to local field names.

    ``client`` is an open Salesforce/HubSpot client for remote platforms.
    Remote ``record_ids`` match the platform's own ids and are sent with the
    query, so matching rows are found beyond the first ``limit`` rows.
    CRM errors propagate as CRMAPIError.
    """
    if kind not in RECORD_KINDS:
        raise ValueError(f"Unsupported record kind: {kind}")

    if platform == "native":
        records = await _fetch_native(db, kind, limit, record_ids)
    elif platform == "salesforce":
        records = await _fetch_salesforce(client, kind, limit, record_ids)
    elif platform == "hubspot":
        records = await _fetch_hubspot(client, kind, limit, record_ids)
    else:
        raise ValueError(f"Unsupported platform: {platform}")

    if platform != "native":
        if record_ids:
            wanted = set(record_ids)
            records = [r for r in records if r.get(f"{platform}_id") in wanted]
        await _attach_local_ids(db, platform, kind, records)

    records = records[:limit]
    logger.info("Fetched %d %s record(s) from %s", len(records), kind, platform)
    return records
