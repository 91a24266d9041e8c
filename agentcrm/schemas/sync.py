"""Sync, export, test-data and test-run schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from .agent import AgentType, CamelModel, Platform
from .analysis import LeadAnalysis


class SyncResult(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = []

    @property
    def processed(self) -> int:
        return self.created + self.updated


class SyncRequest(CamelModel):
    user_id: str | None = None
    limit: int = Field(default=50, ge=1, le=200)
    objects: list[Literal["account", "contact", "opportunity"]] = ["account", "contact", "opportunity"]


class SyncResponse(BaseModel):
    success: bool = True
    results: dict[str, SyncResult] = {}


class SyncLogResponse(BaseModel):
    id: uuid.UUID
    platform: str
    object_type: str
    direction: str
    status: str
    records_processed: int
    records_failed: int
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ExportItem(CamelModel):
    contact_id: str
    analysis: LeadAnalysis


class ExportRequest(CamelModel):
    """Push lead analyses for local contacts into Salesforce."""

    items: list[ExportItem] = Field(min_length=1)
    user_id: str | None = None


class ExportItemResult(CamelModel):
    contact_id: str
    salesforce_id: str | None = None
    success: bool = False
    task_id: str | None = None
    error: str | None = None


class ExportResponse(CamelModel):
    success: bool = True
    exported: int = 0
    failed: int = 0
    results: list[ExportItemResult] = []


class GenerateDataRequest(CamelModel):
    companies: int = Field(default=5, ge=1, le=100)
    contacts: int = Field(default=10, ge=0, le=500)
    opportunities: int = Field(default=8, ge=0, le=500)
    seed: int | None = None


class AgentTestRunRequest(CamelModel):
    agent_types: list[AgentType] = ["lead-intelligence", "pipeline-analysis"]
    platform: Platform = "native"
    user_id: str | None = None
    simulate: bool = True


class AgentTestRunResponse(BaseModel):
    id: uuid.UUID
    agent_type: str
    platform: str
    status: str
    results: dict | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}
