"""Activity service - follow-ups created by people or by agent write-back."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.activity import Activity


async def create_activity(
    db: AsyncSession,
    *,
    type: str,
    subject: str,
    description: str | None = None,
    status: str = "scheduled",
    scheduled_at: datetime | None = None,
    contact_id: uuid.UUID | None = None,
    opportunity_id: uuid.UUID | None = None,
) -> Activity:
    activity = Activity(
        type=type,
        subject=subject,
        description=description,
        status=status,
        scheduled_at=scheduled_at,
        contact_id=contact_id,
        opportunity_id=opportunity_id,
    )
    db.add(activity)
    await db.commit()
    await db.refresh(activity)
    return activity


async def list_activities(
    db: AsyncSession,
    *,
    contact_id: uuid.UUID | None = None,
    opportunity_id: uuid.UUID | None = None,
    limit: int = 50,
) -> list[Activity]:
    stmt = select(Activity)
    if contact_id:
        stmt = stmt.where(Activity.contact_id == contact_id)
    if opportunity_id:
        stmt = stmt.where(Activity.opportunity_id == opportunity_id)
    stmt = stmt.order_by(Activity.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
