"""Request/response schemas for the agent pipeline API."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .analysis import AgentAnalysis

AgentType = Literal[
    "lead-intelligence",
    "customer-sentiment",
    "customer-segmentation",
    "pipeline-analysis",
    "opportunity-scoring",
    "churn-prediction",
    "communication-ai",
    "sales-coaching",
]
Platform = Literal["native", "salesforce", "hubspot"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentRunRequest(CamelModel):
    agent_type: AgentType
    platform: Platform = "native"
    enable_actions: bool = False
    record_ids: list[str] | None = None
    limit: int | None = Field(default=None, ge=1, le=50)
    user_id: str | None = None
    simulate: bool = False


class AgentExecuteRequest(CamelModel):
    """Run a stored agent; its type comes from the ``ai_agent`` row."""

    platform: Platform = "native"
    enable_actions: bool = False
    record_ids: list[str] | None = None
    limit: int | None = Field(default=None, ge=1, le=50)
    user_id: str | None = None
    simulate: bool = False


class AnalysisItem(CamelModel):
    record_id: str | None = None
    name: str = ""
    status: Literal["ok", "degraded", "failed"] = "ok"
    confidence: float = 0.0
    analysis: AgentAnalysis
    actions: list[str] = []
    actions_executed: int = 0
    error: str | None = None
    details: dict[str, Any] = {}


class AgentRunResponse(CamelModel):
    success: bool = True
    status: Literal["completed", "degraded", "empty"] = "completed"
    agent_type: str
    platform: str
    analysis: list[AnalysisItem] = []
    confidence: float = 0.0
    actions_executed: int = 0
    records_analyzed: int = 0
    actions: list[str] = []
    message: str | None = None
    summary: dict[str, Any] | None = None
    execution_time_ms: int = 0
    execution_id: str | None = None
    cached: bool = False
    simulated: bool = False


class AgentResponse(BaseModel):
    id: uuid.UUID
    name: str
    type: str
    description: str | None = None
    status: str
    configuration: dict | None = None

    model_config = {"from_attributes": True}


class AgentCreate(CamelModel):
    name: str
    type: AgentType
    description: str | None = None
    status: Literal["active", "inactive"] = "active"
    configuration: dict | None = None


class ExecutionResponse(BaseModel):
    id: uuid.UUID
    agent_id: uuid.UUID | None = None
    agent_type: str
    platform: str
    execution_type: str
    status: str
    confidence_score: float | None = None
    execution_time_ms: int | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ExecutionDetailResponse(ExecutionResponse):
    input: dict | None = None
    output: dict | None = None
