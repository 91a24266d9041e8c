"""FastAPI dependencies shared by the API routers."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .agents.cache import AnalysisCache
from .agents.runner import AgentRunner
from .database import get_db
from .integrations.llm import LLMClient
from .oauth.client import OAuthClient, get_oauth_client
from .oauth.lifecycle import TokenLifecycle


def get_analysis_cache(request: Request) -> AnalysisCache:
    return request.app.state.analysis_cache


def get_llm_factory() -> Callable[[], LLMClient]:
    return LLMClient.from_settings


def get_oauth_client_factory() -> Callable[[str], OAuthClient]:
    return get_oauth_client


def get_token_lifecycle(
    db: AsyncSession = Depends(get_db),
    oauth_client_factory: Callable[[str], OAuthClient] = Depends(get_oauth_client_factory),
) -> TokenLifecycle:
    return TokenLifecycle(db, oauth_client_factory=oauth_client_factory)


def get_runner_factory(
    cache: AnalysisCache = Depends(get_analysis_cache),
    llm_factory: Callable[[], LLMClient] = Depends(get_llm_factory),
    oauth_client_factory: Callable[[str], OAuthClient] = Depends(get_oauth_client_factory),
) -> Callable[[AsyncSession], AgentRunner]:
    def _build(db: AsyncSession) -> AgentRunner:
        return AgentRunner(
            db,
            llm_factory=llm_factory,
            cache=cache,
            lifecycle=TokenLifecycle(db, oauth_client_factory=oauth_client_factory),
        )

    return _build
