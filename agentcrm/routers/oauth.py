"""OAuth connect flows for Salesforce and HubSpot."""

from __future__ import annotations

import logging
from typing import Callable, Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..deps import get_oauth_client_factory, get_token_lifecycle
from ..oauth.client import OAuthClient, generate_code_verifier, generate_state
from ..oauth.lifecycle import TokenLifecycle
from ..schemas.agent import CamelModel
from ..services import token_svc
from ..services.token_svc import DEFAULT_USER_ID

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/oauth", tags=["oauth"])

OAuthPlatform = Literal["salesforce", "hubspot"]


class CallbackRequest(CamelModel):
    code: str
    state: str


@router.get("/{platform}/authorize")
async def authorize(
    platform: OAuthPlatform,
    user_id: str = DEFAULT_USER_ID,
    db: AsyncSession = Depends(get_db),
    oauth_client_factory: Callable[[str], OAuthClient] = Depends(get_oauth_client_factory),
):
    oauth = oauth_client_factory(platform)
    state = generate_state()
    # HubSpot does not support PKCE for confidential apps
    verifier = generate_code_verifier() if platform == "salesforce" else None
    await token_svc.create_state(
        db, platform, user_id, state,
        ttl_seconds=settings.oauth_state_ttl_seconds,
        code_verifier=verifier,
    )
    return {
        "success": True,
        "authUrl": oauth.get_authorization_url(state, code_verifier=verifier),
        "state": state,
    }


@router.post("/{platform}/callback")
async def callback(
    platform: OAuthPlatform,
    data: CallbackRequest,
    db: AsyncSession = Depends(get_db),
    oauth_client_factory: Callable[[str], OAuthClient] = Depends(get_oauth_client_factory),
):
    row = await token_svc.consume_state(db, platform, data.state)
    if row is None:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    oauth = oauth_client_factory(platform)
    tokens = await oauth.exchange_code(data.code, code_verifier=row.code_verifier)
    token = await token_svc.store_token(
        db,
        platform,
        row.user_id,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.expires_at,
        instance_url=tokens.instance_url,
        scope=tokens.scope,
        hub_id=tokens.hub_id,
    )
    logger.info("Connected %s for user %s", platform, row.user_id)
    return {
        "success": True,
        "platform": platform,
        "expiresAt": token_svc.as_utc(token.expires_at).isoformat(),
        "instanceUrl": getattr(token, "instance_url", None),
    }


@router.get("/{platform}/status")
async def status(
    platform: OAuthPlatform,
    user_id: str = DEFAULT_USER_ID,
    lifecycle: TokenLifecycle = Depends(get_token_lifecycle),
):
    return (await lifecycle.status(platform, user_id)).to_dict()


@router.post("/{platform}/refresh")
async def refresh(
    platform: OAuthPlatform,
    user_id: str = DEFAULT_USER_ID,
    lifecycle: TokenLifecycle = Depends(get_token_lifecycle),
):
    await lifecycle.ensure_valid(platform, user_id)
    return (await lifecycle.status(platform, user_id)).to_dict()


@router.delete("/{platform}")
async def disconnect(
    platform: OAuthPlatform,
    user_id: str = DEFAULT_USER_ID,
    db: AsyncSession = Depends(get_db),
):
    removed = await token_svc.delete_tokens(db, platform, user_id)
    return {"success": True, "removed": removed}
