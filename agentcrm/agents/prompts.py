"""Prompt templates for each agent type.

``build_prompt`` is pure: the same record always renders the same prompt.
Record values are interpolated as-is; nested values go through ``json.dumps``.
"""

from __future__ import annotations

import json
from typing import Any, Callable

SYSTEM_PROMPTS: dict[str, str] = {
    "lead-intelligence": (
        "You are an expert sales intelligence AI that provides actionable insights for lead qualification."
    ),
    "customer-sentiment": (
        "You are an expert in customer sentiment analysis. Analyze contact data and provide actionable insights."
    ),
    "customer-segmentation": (
        "You are a B2B customer segmentation analyst. Assign accounts to segments using firmographic data."
    ),
    "pipeline-analysis": (
        "You are an expert sales pipeline analyst that identifies risks and recommends actions."
    ),
    "opportunity-scoring": (
        "You are a sales operations AI that scores opportunities for prioritization."
    ),
    "churn-prediction": (
        "You are a customer success AI that predicts churn risk and recommends interventions."
    ),
    "communication-ai": (
        "You are a sales communication strategist that optimizes outreach timing and channel."
    ),
    "sales-coaching": (
        "You are a sales coach reviewing a rep's open pipeline and recommending improvements."
    ),
}

JSON_ONLY = "Respond only with valid JSON in exactly this format:"


def _val(value: Any, default: str = "Unknown") -> str:
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _company(record: dict, key: str) -> str:
    return _val((record.get("company") or {}).get(key))


def _money(value: Any) -> str:
    try:
        return f"${float(value):,.0f}"
    except (TypeError, ValueError):
        return "Unknown"


def lead_prompt(record: dict) -> str:
    return f"""You are an enterprise lead intelligence AI. Analyze this lead and provide scoring, recommendations, and actions.

Lead Data:
- Name: {_val(record.get("first_name"), "")} {_val(record.get("last_name"), "")}
- Email: {_val(record.get("email"))}
- Title: {_val(record.get("title"))}
- Department: {_val(record.get("department"))}
- Company: {_company(record, "name")}
- Industry: {_company(record, "industry")}
- Lead Source: {_val(record.get("lead_source"))}
- Current Score: {record.get("lead_score") or 0}

Analyze and provide:
1. New Lead Score (0-100)
2. Priority Level (High/Medium/Low)
3. Recommended Actions
4. Personalized Email Subject Line
5. Next Steps

{JSON_ONLY}
{{
  "newScore": number,
  "priority": "High|Medium|Low",
  "reasoning": "explanation",
  "recommendedActions": ["action1", "action2"],
  "emailSubject": "personalized subject",
  "nextSteps": "specific next steps"
}}"""


def sentiment_prompt(record: dict) -> str:
    return f"""Analyze customer sentiment for this contact and provide actionable insights:

Contact Data:
- Name: {_val(record.get("first_name"), "")} {_val(record.get("last_name"), "")}
- Title: {_val(record.get("title"))}
- Department: {_val(record.get("department"))}
- Company: {_company(record, "name")}
- Industry: {_company(record, "industry")}
- Lead Source: {_val(record.get("lead_source"))}
- Status: {_val(record.get("status"))}

Provide:
1. Sentiment Score (-1 to 1)
2. Sentiment Classification (positive/neutral/negative)
3. Key sentiment factors
4. Engagement recommendations
5. Communication tone suggestions

{JSON_ONLY}
{{
  "sentimentScore": number,
  "classification": "positive|neutral|negative",
  "confidence": number,
  "reasoning": "explanation",
  "keyFactors": ["factor1", "factor2"],
  "recommendations": ["action1", "action2"],
  "communicationTone": "professional|friendly|formal"
}}"""


def segmentation_prompt(record: dict) -> str:
    return f"""Assign this contact's account to a customer segment.

Contact Data:
- Name: {_val(record.get("first_name"), "")} {_val(record.get("last_name"), "")}
- Title: {_val(record.get("title"))}
- Department: {_val(record.get("department"))}
- Company: {_company(record, "name")}
- Industry: {_company(record, "industry")}
- Company Size: {_company(record, "size")}
- Annual Revenue: {_money((record.get("company") or {}).get("revenue"))}

Segments: Enterprise (revenue above $10M), Mid-Market (above $1M), SMB (everything else).

{JSON_ONLY}
{{
  "segment": "Enterprise|Mid-Market|SMB",
  "reasoning": "explanation",
  "characteristics": ["trait1", "trait2"],
  "recommendedApproach": "how to sell to this segment"
}}"""


def communication_prompt(record: dict) -> str:
    return f"""Recommend the best outreach timing and channel for this contact.

Contact Data:
- Name: {_val(record.get("first_name"), "")} {_val(record.get("last_name"), "")}
- Email: {_val(record.get("email"))}
- Title: {_val(record.get("title"))}
- Status: {_val(record.get("status"))}
- Company: {_company(record, "name")}
- Industry: {_company(record, "industry")}

{JSON_ONLY}
{{
  "engagementScore": number,
  "bestTime": "e.g. 9:00 AM",
  "preferredChannel": "email|phone|linkedin",
  "reasoning": "explanation"
}}"""


def _opportunity_block(record: dict) -> str:
    contact = record.get("contact_name") or "Unknown"
    return f"""- Name: {_val(record.get("name"))}
- Stage: {_val(record.get("stage"))}
- Amount: {_money(record.get("amount"))}
- Probability: {record.get("probability") or 0}%
- Expected Close: {_val(record.get("expected_close_date"))}
- Company: {_company(record, "name")}
- Industry: {_company(record, "industry")}
- Contact: {contact}
- Days in Pipeline: {_val(record.get("days_in_pipeline"))}"""


def pipeline_prompt(record: dict) -> str:
    return f"""You are an enterprise sales pipeline AI. Analyze this opportunity and provide insights and actions.

Opportunity Data:
{_opportunity_block(record)}

Analyze and provide:
1. Risk Score (0-100, higher = more risk)
2. Risk Level (Low/Medium/High/Critical)
3. Recommended Actions
4. Next Steps
5. Probability Adjustment Recommendation

{JSON_ONLY}
{{
  "riskScore": number,
  "riskLevel": "Low|Medium|High|Critical",
  "reasoning": "explanation",
  "recommendedActions": ["action1", "action2"],
  "nextSteps": "specific next steps",
  "probabilityAdjustment": number
}}"""


def opportunity_prompt(record: dict) -> str:
    return f"""Score this opportunity for prioritization.

Opportunity Data:
{_opportunity_block(record)}

{JSON_ONLY}
{{
  "score": number,
  "priority": "high|medium|low",
  "winProbability": number,
  "reasoning": "explanation",
  "recommendedActions": ["action1", "action2"]
}}"""


def churn_prompt(record: dict) -> str:
    return f"""Estimate the churn risk of the customer behind this opportunity.

Opportunity Data:
{_opportunity_block(record)}

{JSON_ONLY}
{{
  "churnRisk": number,
  "riskLevel": "high|medium|low",
  "reasoning": "explanation",
  "interventions": ["intervention1", "intervention2"]
}}"""


def coaching_prompt(unit: dict) -> str:
    lines = "\n".join(
        f"- {_val(o.get('name'))}: {_money(o.get('amount'))}, stage {_val(o.get('stage'))}, "
        f"probability {o.get('probability') or 0}%"
        for o in unit.get("opportunities", [])
    )
    return f"""Review this sales rep's pipeline and give coaching advice.

Owner: {_val(unit.get("owner_id"))}
Open Opportunities: {unit.get("opportunity_count", 0)}
Total Value: {_money(unit.get("total_value"))}
Average Probability: {unit.get("avg_probability", 0):.1f}%

Opportunities:
{lines or "- none"}

{JSON_ONLY}
{{
  "recommendation": "single most important coaching focus",
  "strengths": ["strength1"],
  "improvementAreas": ["area1"],
  "reasoning": "explanation"
}}"""


PROMPT_BUILDERS: dict[str, Callable[[dict], str]] = {
    "lead-intelligence": lead_prompt,
    "customer-sentiment": sentiment_prompt,
    "customer-segmentation": segmentation_prompt,
    "communication-ai": communication_prompt,
    "pipeline-analysis": pipeline_prompt,
    "opportunity-scoring": opportunity_prompt,
    "churn-prediction": churn_prompt,
    "sales-coaching": coaching_prompt,
}


def build_prompt(record: dict, agent_type: str) -> str:
    """Render the user prompt for one record (or owner group) and agent type."""
    try:
        builder = PROMPT_BUILDERS[agent_type]
    except KeyError:
        raise ValueError(f"Unknown agent type: {agent_type}") from None
    return builder(record)


def system_prompt(agent_type: str) -> str:
    return SYSTEM_PROMPTS[agent_type]
