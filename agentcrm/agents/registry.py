"""Agent definitions: what each agent reads and how its records become LLM units."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable


class UnknownAgentTypeError(ValueError):
    pass


def per_record(records: list[dict]) -> list[dict]:
    return list(records)


def by_owner(records: list[dict]) -> list[dict]:
    """Group opportunities by owner, preserving first-seen owner order."""
    groups: OrderedDict[str, list[dict]] = OrderedDict()
    for record in records:
        groups.setdefault(record.get("owner_id") or "unknown", []).append(record)
    units = []
    for owner_id, opps in groups.items():
        total = sum(float(o.get("amount") or 0) for o in opps)
        avg_probability = sum(float(o.get("probability") or 0) for o in opps) / len(opps)
        units.append({
            "owner_id": owner_id,
            "opportunities": opps,
            "opportunity_count": len(opps),
            "total_value": total,
            "avg_probability": avg_probability,
        })
    return units


def contact_name(unit: dict) -> str:
    parts = [p for p in (unit.get("first_name"), unit.get("last_name")) if p]
    return " ".join(parts) or "Unknown"


def opportunity_name(unit: dict) -> str:
    return unit.get("name") or "Unknown Deal"


def owner_name(unit: dict) -> str:
    return f"Owner {unit.get('owner_id')}"


@dataclass(frozen=True)
class AgentDefinition:
    agent_type: str
    label: str
    record_kind: str  # contact, opportunity
    default_limit: int
    confidence: float
    build_units: Callable[[list[dict]], list[dict]] = per_record
    unit_name: Callable[[dict], str] = contact_name
    model_reports_confidence: bool = False


AGENTS: dict[str, AgentDefinition] = {
    a.agent_type: a
    for a in (
        AgentDefinition("lead-intelligence", "Lead Intelligence", "contact", 50, 0.92),
        AgentDefinition(
            "customer-sentiment", "Customer Sentiment", "contact", 10, 0.85,
            model_reports_confidence=True,
        ),
        AgentDefinition("customer-segmentation", "Customer Segmentation", "contact", 10, 0.88),
        AgentDefinition("communication-ai", "Communication AI", "contact", 10, 0.82),
        AgentDefinition(
            "pipeline-analysis", "Pipeline Analysis", "opportunity", 10, 0.88,
            unit_name=opportunity_name,
        ),
        AgentDefinition(
            "opportunity-scoring", "Opportunity Scoring", "opportunity", 10, 0.85,
            unit_name=opportunity_name,
        ),
        AgentDefinition(
            "churn-prediction", "Churn Prediction", "opportunity", 10, 0.82,
            unit_name=opportunity_name,
        ),
        AgentDefinition(
            "sales-coaching", "Sales Coaching", "opportunity", 10, 0.78,
            build_units=by_owner, unit_name=owner_name,
        ),
    )
}

DEGRADED_CONFIDENCE = 0.6


def get_agent(agent_type: str) -> AgentDefinition:
    try:
        return AGENTS[agent_type]
    except KeyError:
        raise UnknownAgentTypeError(f"Unsupported agent type: {agent_type}") from None
