"""LLM response parsing with schema validation and degraded fallbacks."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from ..schemas.analysis import AnalysisBase, analysis_adapter

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL)
STRAY_FENCE = re.compile(r"```(?:json)?\n?|\n?```")


def segment_for_revenue(revenue: Any) -> str:
    try:
        value = float(revenue or 0)
    except (TypeError, ValueError):
        value = 0.0
    if value > 10_000_000:
        return "Enterprise"
    if value > 1_000_000:
        return "Mid-Market"
    return "SMB"


def coaching_recommendation(avg_probability: float) -> str:
    if avg_probability > 60:
        return "Focus on closing techniques"
    return "Improve qualification process"


def _clamp_pct(value: Any) -> float:
    try:
        return max(0.0, min(100.0, float(value or 0)))
    except (TypeError, ValueError):
        return 0.0


def _lead_fallback(unit: dict) -> dict:
    return {
        "newScore": 65,
        "priority": "Medium",
        "reasoning": "AI analysis unavailable, using fallback scoring",
        "recommendedActions": ["Follow up within 24 hours"],
        "emailSubject": f"Following up on your interest, {unit.get('first_name') or 'there'}",
        "nextSteps": "Schedule discovery call",
    }


def _sentiment_fallback(unit: dict) -> dict:
    return {
        "sentimentScore": 0.5,
        "classification": "neutral",
        "confidence": 0.7,
        "reasoning": "AI analysis unavailable",
        "keyFactors": ["Limited data available"],
        "recommendations": ["Gather more interaction data"],
        "communicationTone": "professional",
    }


def _segmentation_fallback(unit: dict) -> dict:
    revenue = (unit.get("company") or {}).get("revenue")
    return {
        "segment": segment_for_revenue(revenue),
        "reasoning": "Segment assigned from annual revenue",
        "characteristics": [],
        "recommendedApproach": "",
    }


def _pipeline_fallback(unit: dict) -> dict:
    return {
        "riskScore": 50,
        "riskLevel": "Medium",
        "reasoning": "AI analysis unavailable",
        "recommendedActions": ["Schedule review meeting"],
        "nextSteps": "Update opportunity status",
        "probabilityAdjustment": _clamp_pct(unit.get("probability")),
    }


def _opportunity_fallback(unit: dict) -> dict:
    return {
        "score": 50,
        "priority": "medium",
        "winProbability": _clamp_pct(unit.get("probability")),
        "reasoning": "AI analysis unavailable",
        "recommendedActions": ["Review opportunity details"],
    }


def _churn_fallback(unit: dict) -> dict:
    return {
        "churnRisk": 50,
        "riskLevel": "medium",
        "reasoning": "AI analysis unavailable",
        "interventions": ["Schedule account health check"],
    }


def _communication_fallback(unit: dict) -> dict:
    return {
        "engagementScore": 50,
        "bestTime": "9:00 AM",
        "preferredChannel": "email",
        "reasoning": "AI analysis unavailable",
    }


def _coaching_fallback(unit: dict) -> dict:
    return {
        "recommendation": coaching_recommendation(float(unit.get("avg_probability") or 0)),
        "strengths": [],
        "improvementAreas": [],
        "reasoning": f"Performance review for {unit.get('opportunity_count', 0)} opportunities",
    }


FALLBACKS: dict[str, Callable[[dict], dict]] = {
    "lead-intelligence": _lead_fallback,
    "customer-sentiment": _sentiment_fallback,
    "customer-segmentation": _segmentation_fallback,
    "pipeline-analysis": _pipeline_fallback,
    "opportunity-scoring": _opportunity_fallback,
    "churn-prediction": _churn_fallback,
    "communication-ai": _communication_fallback,
    "sales-coaching": _coaching_fallback,
}


def fallback_analysis(agent_type: str, unit: dict) -> AnalysisBase:
    """Deterministic default analysis for ``unit``."""
    data = {**FALLBACKS[agent_type](unit), "kind": agent_type}
    return analysis_adapter.validate_python(data)


def extract_json(text: str) -> Any:
    """Decode the JSON payload of an LLM reply.

    A fenced ```json block wins; otherwise stray fences are stripped and the
    remaining text is decoded. Raises ValueError when nothing decodes.
    """
    match = FENCED_JSON.search(text)
    if match:
        return json.loads(match.group(1))
    return json.loads(STRAY_FENCE.sub("", text).strip())


@dataclass
class ParseOutcome:
    analysis: AnalysisBase
    degraded: bool = False
    error: str | None = None


def parse_analysis(text: str | None, agent_type: str, unit: dict) -> ParseOutcome:
    """Validate an LLM reply for ``agent_type``; never raises.

    Anything that is not a JSON object matching the agent's schema yields the
    fallback analysis with ``degraded=True``.
    """
    try:
        data = extract_json(text or "")
        if isinstance(data, list) and data and isinstance(data[0], dict):
            data = data[0]
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        analysis = analysis_adapter.validate_python({**data, "kind": agent_type})
        return ParseOutcome(analysis=analysis)
    except (ValueError, TypeError, RecursionError) as e:
        logger.warning(
            "Unparseable %s response, using fallback: %s (raw: %.200r)", agent_type, e, text
        )
        return ParseOutcome(
            analysis=fallback_analysis(agent_type, unit),
            degraded=True,
            error=str(e),
        )
