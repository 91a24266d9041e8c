"""Exception -> JSON response mapping for the HTTP surface."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .agents.registry import UnknownAgentTypeError
from .integrations.base import CRMAPIError, CRMAuthError
from .integrations.llm import LLMError
from .oauth.client import OAuthError
from .oauth.lifecycle import TokenInvalidError
from .services.agent_svc import AgentNotFoundError

logger = logging.getLogger(__name__)


async def token_invalid_handler(request: Request, exc: TokenInvalidError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"success": False, "error": exc.reason, "requiresAuth": True, "platform": exc.platform},
    )


async def crm_error_handler(request: Request, exc: CRMAPIError) -> JSONResponse:
    if isinstance(exc, CRMAuthError):
        return JSONResponse(
            status_code=401,
            content={"success": False, "error": exc.message, "requiresAuth": True, "platform": exc.platform},
        )
    logger.error("%s API error on %s: %s", exc.platform, request.url.path, exc.message)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": exc.message,
            "details": {"statusCode": exc.status_code, "response": exc.response},
        },
    )


async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    logger.error("LLM error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": exc.message,
            "details": {"statusCode": exc.status_code, "response": exc.response},
        },
    )


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    status_code = 503 if exc.error_code == "not_configured" else 400
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(exc), "errorCode": exc.error_code, "details": exc.details},
    )


async def agent_not_found_handler(request: Request, exc: AgentNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})


async def unknown_agent_type_handler(request: Request, exc: UnknownAgentTypeError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"success": False, "error": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TokenInvalidError, token_invalid_handler)
    app.add_exception_handler(CRMAPIError, crm_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(OAuthError, oauth_error_handler)
    app.add_exception_handler(AgentNotFoundError, agent_not_found_handler)
    app.add_exception_handler(UnknownAgentTypeError, unknown_agent_type_handler)
