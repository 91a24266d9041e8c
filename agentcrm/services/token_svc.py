"""OAuth token and state persistence."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.oauth import HubSpotToken, OAuthState, SalesforceToken

DEFAULT_USER_ID = "default"

TOKEN_MODELS = {
    "salesforce": SalesforceToken,
    "hubspot": HubSpotToken,
}


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _model_for(platform: str):
    try:
        return TOKEN_MODELS[platform]
    except KeyError:
        raise ValueError(f"Unsupported token platform: {platform}") from None


async def get_latest_token(db: AsyncSession, platform: str, user_id: str):
    """Most recently created token row for the user, or None."""
    model = _model_for(platform)
    stmt = (
        select(model)
        .where(model.user_id == user_id)
        .order_by(model.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def store_token(
    db: AsyncSession,
    platform: str,
    user_id: str,
    *,
    access_token: str,
    expires_at: datetime,
    refresh_token: str | None = None,
    instance_url: str | None = None,
    scope: str | None = None,
    hub_id: str | None = None,
):
    model = _model_for(platform)
    kwargs = dict(
        user_id=user_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at,
        scope=scope,
        # Explicit so a refresh issued in the same second still sorts last
        created_at=datetime.now(timezone.utc),
    )
    if platform == "salesforce":
        kwargs["instance_url"] = instance_url or ""
    else:
        kwargs["hub_id"] = hub_id
    token = model(**kwargs)
    db.add(token)
    await db.commit()
    await db.refresh(token)
    return token


async def delete_tokens(db: AsyncSession, platform: str, user_id: str) -> int:
    model = _model_for(platform)
    result = await db.execute(delete(model).where(model.user_id == user_id))
    await db.commit()
    return result.rowcount or 0


async def create_state(
    db: AsyncSession,
    platform: str,
    user_id: str,
    state: str,
    *,
    ttl_seconds: int,
    code_verifier: str | None = None,
) -> OAuthState:
    row = OAuthState(
        state=state,
        platform=platform,
        user_id=user_id,
        code_verifier=code_verifier,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return row


async def consume_state(db: AsyncSession, platform: str, state: str) -> OAuthState | None:
    """Return and delete a matching, unexpired state row; None if invalid."""
    stmt = select(OAuthState).where(OAuthState.state == state, OAuthState.platform == platform)
    result = await db.execute(stmt)
    row = result.scalar_one_or_none()
    if not row:
        return None
    await db.delete(row)
    await db.commit()
    if as_utc(row.expires_at) <= datetime.now(timezone.utc):
        return None
    return row
