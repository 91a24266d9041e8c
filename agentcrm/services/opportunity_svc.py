"""Opportunity service."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.opportunity import Opportunity
from .contact_svc import _parse_ids


async def list_opportunities(
    db: AsyncSession,
    *,
    limit: int = 10,
    ids: list[str] | None = None,
) -> list[Opportunity]:
    """Largest deals first."""
    stmt = select(Opportunity).options(
        selectinload(Opportunity.company), selectinload(Opportunity.contact)
    )
    if ids is not None:
        stmt = stmt.where(Opportunity.id.in_(_parse_ids(ids)))
    stmt = stmt.order_by(Opportunity.amount.desc().nullslast()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_opportunity(db: AsyncSession, opportunity_id: uuid.UUID) -> Opportunity | None:
    result = await db.execute(select(Opportunity).where(Opportunity.id == opportunity_id))
    return result.scalar_one_or_none()


async def find_by_external_id(db: AsyncSession, platform: str, external_id: str) -> Opportunity | None:
    column = Opportunity.salesforce_id if platform == "salesforce" else Opportunity.hubspot_id
    result = await db.execute(select(Opportunity).where(column == external_id))
    return result.scalars().first()


async def update_opportunity(db: AsyncSession, opportunity_id: uuid.UUID, **kwargs) -> Opportunity | None:
    opp = await get_opportunity(db, opportunity_id)
    if not opp:
        return None
    for key, value in kwargs.items():
        setattr(opp, key, value)
    await db.commit()
    await db.refresh(opp)
    return opp
