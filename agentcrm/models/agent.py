"""AI agent and execution audit models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin


class AIAgent(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "ai_agent"

    name: Mapped[str] = mapped_column(String(200))
    type: Mapped[str] = mapped_column(String(50), index=True)  # lead-intelligence, pipeline-analysis, ...
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(String(20), default="active")  # active, inactive
    configuration: Mapped[dict | None] = mapped_column(JSON, default=None)

    executions: Mapped[list["AgentExecution"]] = relationship(
        back_populates="agent", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<AIAgent {self.name!r} ({self.type})>"


class AgentExecution(UUIDMixin, TimestampMixin, Base):
    """One row per pipeline invocation.

    Status moves from ``running`` to exactly one of ``completed`` or
    ``failed``; terminal rows are never updated again.
    """

    __tablename__ = "ai_agent_execution"

    agent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ai_agent.id", ondelete="SET NULL"), default=None, index=True
    )
    agent_type: Mapped[str] = mapped_column(String(50), index=True)
    platform: Mapped[str] = mapped_column(String(20), default="native")
    execution_type: Mapped[str] = mapped_column(String(50), default="analysis")  # analysis, autonomous_action
    status: Mapped[str] = mapped_column(String(20), default="running")  # running, completed, failed
    input: Mapped[dict | None] = mapped_column(JSON, default=None)
    output: Mapped[dict | None] = mapped_column(JSON, default=None)
    confidence_score: Mapped[float | None] = mapped_column(Float, default=None)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, default=None)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    agent: Mapped["AIAgent | None"] = relationship(back_populates="executions")

    @property
    def is_terminal(self) -> bool:
        return self.status in {"completed", "failed"}

    def __repr__(self) -> str:
        return f"<AgentExecution {self.agent_type} {self.status}>"
