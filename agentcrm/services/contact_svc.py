"""Contact service."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.contact import Contact


def _parse_ids(ids: list[str] | None) -> list[uuid.UUID]:
    parsed = []
    for raw in ids or []:
        try:
            parsed.append(uuid.UUID(str(raw)))
        except ValueError:
            continue
    return parsed


async def list_contacts(
    db: AsyncSession,
    *,
    limit: int = 50,
    ids: list[str] | None = None,
) -> list[Contact]:
    stmt = select(Contact).options(selectinload(Contact.company))
    if ids is not None:
        stmt = stmt.where(Contact.id.in_(_parse_ids(ids)))
    stmt = stmt.order_by(Contact.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_contact(db: AsyncSession, contact_id: uuid.UUID) -> Contact | None:
    stmt = select(Contact).where(Contact.id == contact_id).options(selectinload(Contact.company))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_by_external_id(db: AsyncSession, platform: str, external_id: str) -> Contact | None:
    column = Contact.salesforce_id if platform == "salesforce" else Contact.hubspot_id
    result = await db.execute(select(Contact).where(column == external_id))
    return result.scalars().first()


async def update_contact(db: AsyncSession, contact_id: uuid.UUID, **kwargs) -> Contact | None:
    result = await db.execute(select(Contact).where(Contact.id == contact_id))
    contact = result.scalar_one_or_none()
    if not contact:
        return None
    for key, value in kwargs.items():
        setattr(contact, key, value)
    await db.commit()
    await db.refresh(contact)
    return contact
