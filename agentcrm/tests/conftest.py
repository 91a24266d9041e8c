"""Async test fixtures for AgentCRM tests using SQLite."""

from __future__ import annotations

import json
from urllib.parse import parse_qsl

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agentcrm.agents.prompts import SYSTEM_PROMPTS
from agentcrm.database import get_db
from agentcrm.integrations.llm import LLMError
from agentcrm.integrations.salesforce import SalesforceError
from agentcrm.models.base import Base
from agentcrm.models.company import Company
from agentcrm.models.contact import Contact
from agentcrm.oauth.client import HubSpotOAuthClient, SalesforceOAuthClient

# ============================================================================
# Canned LLM replies, one per agent type
# ============================================================================

LLM_REPLIES: dict[str, dict] = {
    "lead-intelligence": {
        "newScore": 85,
        "priority": "High",
        "reasoning": "Senior engineering buyer at a large technology account",
        "recommendedActions": ["Book a technical demo", "Share the security whitepaper"],
        "emailSubject": "Jane, a faster path to your data platform",
        "nextSteps": "Call within 24 hours",
    },
    "customer-sentiment": {
        "sentimentScore": 0.6,
        "classification": "positive",
        "confidence": 0.8,
        "reasoning": "Engaged and responsive",
        "keyFactors": ["Recent demo request"],
        "recommendations": ["Send case study"],
        "communicationTone": "friendly",
    },
    "customer-segmentation": {
        "segment": "Enterprise",
        "reasoning": "Revenue above $10M",
        "characteristics": ["Large engineering org"],
        "recommendedApproach": "Account-based selling",
    },
    "pipeline-analysis": {
        "riskScore": 72,
        "riskLevel": "High",
        "reasoning": "Close date slipped twice",
        "recommendedActions": ["Escalate to sales manager"],
        "nextSteps": "Confirm budget owner",
        "probabilityAdjustment": 40,
    },
    "opportunity-scoring": {
        "score": 80,
        "priority": "high",
        "winProbability": 65,
        "reasoning": "Strong champion",
        "recommendedActions": ["Prepare proposal"],
    },
    "churn-prediction": {
        "churnRisk": 75,
        "riskLevel": "high",
        "reasoning": "Usage dropping",
        "interventions": ["Executive business review"],
    },
    "communication-ai": {
        "engagementScore": 70,
        "bestTime": "10:00 AM",
        "preferredChannel": "phone",
        "reasoning": "Answers calls in the morning",
    },
    "sales-coaching": {
        "recommendation": "Tighten qualification",
        "strengths": ["Discovery"],
        "improvementAreas": ["Multi-threading"],
        "reasoning": "Several deals stuck in qualification",
    },
}

AGENT_FOR_SYSTEM_PROMPT = {prompt: agent_type for agent_type, prompt in SYSTEM_PROMPTS.items()}


def fenced(payload: dict) -> str:
    return f"Here is the analysis:\n```json\n{json.dumps(payload)}\n```"


class FakeLLM:
    """Scripted stand-in for LLMClient.

    ``replies`` maps agent type to a dict (sent as a fenced JSON block), a raw
    string, an exception to raise, or a callable taking the user prompt.
    """

    def __init__(self, replies: dict | None = None):
        self.replies = {**LLM_REPLIES, **(replies or {})}
        self.calls: list[tuple[str, str]] = []
        self.entered = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, *args):
        return None

    async def complete(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        reply = self.replies[AGENT_FOR_SYSTEM_PROMPT[system]]
        if callable(reply):
            reply = reply(user)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return fenced(reply)
        return reply


class FakeSalesforce:
    """In-memory Salesforce client recording every write."""

    def __init__(self, accounts=(), contacts=(), opportunities=(), *, fail_updates=False, fail_tasks=False):
        self.accounts = list(accounts)
        self.contacts = list(contacts)
        self.opportunities = list(opportunities)
        self.fail_updates = fail_updates
        self.fail_tasks = fail_tasks
        self.updates: list[tuple[str, str, dict]] = []
        self.tasks: list[dict] = []
        self.events: list[dict] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        self.closed = True

    async def list_accounts(self, limit: int = 50):
        return self.accounts[:limit]

    async def list_contacts(self, limit: int = 50, ids=None):
        return [c for c in self.contacts if not ids or c["Id"] in ids][:limit]

    async def list_opportunities(self, limit: int = 20, ids=None):
        return [o for o in self.opportunities if not ids or o["Id"] in ids][:limit]

    async def update(self, sobject: str, record_id: str, fields: dict):
        if self.fail_updates:
            raise SalesforceError("salesforce API error: 400", 400, [{"errorCode": "INVALID_FIELD"}])
        self.updates.append((sobject, record_id, fields))
        return {}

    async def create_task(self, fields: dict):
        if self.fail_tasks:
            raise SalesforceError("salesforce API error: 400", 400, [{"errorCode": "REQUIRED_FIELD_MISSING"}])
        self.tasks.append(fields)
        return {"id": f"00T{len(self.tasks):03d}", "success": True}

    async def create_event(self, fields: dict):
        self.events.append(fields)
        return {"id": f"00U{len(self.events):03d}", "success": True}


def sf_contact(record_id: str, first: str = "Jane", last: str = "Doe", **extra) -> dict:
    return {
        "Id": record_id,
        "FirstName": first,
        "LastName": last,
        "Email": f"{first.lower()}.{last.lower()}@acme.example.com",
        "Title": "VP Engineering",
        "Account": {"Name": "Acme Corp", "Industry": "Technology", "AnnualRevenue": 25_000_000},
        **extra,
    }


def _token_endpoint(request: httpx.Request) -> httpx.Response:
    form = dict(parse_qsl(request.content.decode()))
    if form.get("code") == "bad-code":
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "expired code"})
    body = {
        "access_token": f"access-{form['grant_type']}",
        "refresh_token": "refresh-1",
        "token_type": "Bearer",
        "scope": "api refresh_token",
    }
    if "salesforce" in request.url.host:
        body["instance_url"] = "https://acme.my.salesforce.com"
    else:
        body["expires_in"] = 1800
        body["hub_id"] = 4242
    return httpx.Response(200, json=body)


# ============================================================================
# Database and app fixtures
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest_asyncio.fixture
async def oauth_factory():
    """OAuth clients with test credentials whose token endpoint is mocked."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(_token_endpoint)) as http:
        def _factory(platform: str):
            if platform == "salesforce":
                return SalesforceOAuthClient(
                    "sf-client-id", "sf-secret", "http://localhost:8030/oauth/salesforce/callback",
                    http_client=http,
                )
            return HubSpotOAuthClient(
                "hs-client-id", "hs-secret", "http://localhost:8030/oauth/hubspot/callback",
                http_client=http,
            )

        yield _factory


@pytest_asyncio.fixture
async def acme(db: AsyncSession):
    company = Company(name="Acme Corp", industry="Technology", size="Large", revenue=25_000_000)
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


@pytest_asyncio.fixture
async def jane(db: AsyncSession, acme: Company):
    contact = Contact(
        first_name="Jane",
        last_name="Doe",
        email="jane.doe@acme.example.com",
        title="VP Engineering",
        department="Engineering",
        lead_source="Website",
        lead_score=40,
        owner_id="rep-001",
        company_id=acme.id,
    )
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


@pytest_asyncio.fixture
async def client(engine, fake_llm, oauth_factory):
    """HTTPX async test client against the AgentCRM app."""
    from agentcrm.agents.cache import AnalysisCache
    from agentcrm.app import app
    from agentcrm.deps import get_llm_factory, get_oauth_client_factory

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_factory] = lambda: (lambda: fake_llm)
    app.dependency_overrides[get_oauth_client_factory] = lambda: oauth_factory
    app.state.analysis_cache = AnalysisCache(ttl_seconds=300)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


def failing_llm_factory():
    raise LLMError("OpenAI API key not configured (set AGENTCRM_OPENAI_API_KEY)")
