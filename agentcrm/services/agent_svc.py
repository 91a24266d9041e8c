"""Stored AI agents and their execution audit trail."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.agent import AIAgent, AgentExecution


class AgentNotFoundError(Exception):
    def __init__(self, agent_id: uuid.UUID | str):
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id} not found")


async def list_agents(db: AsyncSession, *, status: str | None = None) -> list[AIAgent]:
    stmt = select(AIAgent)
    if status:
        stmt = stmt.where(AIAgent.status == status)
    stmt = stmt.order_by(AIAgent.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_agent(db: AsyncSession, agent_id: uuid.UUID) -> AIAgent | None:
    result = await db.execute(select(AIAgent).where(AIAgent.id == agent_id))
    return result.scalar_one_or_none()


async def get_active_agent(db: AsyncSession, agent_id: uuid.UUID) -> AIAgent:
    """Agent row that may be executed; inactive agents count as missing."""
    agent = await get_agent(db, agent_id)
    if agent is None or agent.status != "active":
        raise AgentNotFoundError(agent_id)
    return agent


async def create_agent(db: AsyncSession, **kwargs) -> AIAgent:
    agent = AIAgent(**kwargs)
    db.add(agent)
    await db.commit()
    await db.refresh(agent)
    return agent


async def list_executions(
    db: AsyncSession,
    *,
    limit: int = 20,
    agent_type: str | None = None,
    status: str | None = None,
) -> list[AgentExecution]:
    """Most recent executions first."""
    stmt = select(AgentExecution)
    if agent_type:
        stmt = stmt.where(AgentExecution.agent_type == agent_type)
    if status:
        stmt = stmt.where(AgentExecution.status == status)
    stmt = stmt.order_by(AgentExecution.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_execution(db: AsyncSession, execution_id: uuid.UUID) -> AgentExecution | None:
    result = await db.execute(select(AgentExecution).where(AgentExecution.id == execution_id))
    return result.scalar_one_or_none()
