"""AgentCRM models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin, ExternalIdMixin, GeneratedDataMixin
from .company import Company
from .contact import Contact
from .opportunity import Opportunity
from .activity import Activity
from .task import Task
from .agent import AIAgent, AgentExecution
from .oauth import SalesforceToken, HubSpotToken, OAuthState
from .sync_log import SyncLog
from .test_run import AITestRun

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "ExternalIdMixin",
    "GeneratedDataMixin",
    "Company",
    "Contact",
    "Opportunity",
    "Activity",
    "Task",
    "AIAgent",
    "AgentExecution",
    "SalesforceToken",
    "HubSpotToken",
    "OAuthState",
    "SyncLog",
    "AITestRun",
]
