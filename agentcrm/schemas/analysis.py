"""Typed analysis results, one model per agent type.

LLM output is validated against these models; the ``kind`` discriminator is
supplied by the parser from the agent type, never trusted from the model.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


def _match_choice(*choices: str):
    """Case-insensitive match of free-form LLM text onto a fixed vocabulary."""
    lookup = {c.lower(): c for c in choices}

    def _validate(value: Any) -> Any:
        if isinstance(value, str):
            return lookup.get(value.strip().lower(), value)
        return value

    return BeforeValidator(_validate)


Priority = Annotated[Literal["High", "Medium", "Low"], _match_choice("High", "Medium", "Low")]
RiskLevel = Annotated[
    Literal["Low", "Medium", "High", "Critical"],
    _match_choice("Low", "Medium", "High", "Critical"),
]
LowerPriority = Annotated[Literal["high", "medium", "low"], _match_choice("high", "medium", "low")]
Sentiment = Annotated[
    Literal["positive", "neutral", "negative"],
    _match_choice("positive", "neutral", "negative"),
]
Segment = Annotated[
    Literal["Enterprise", "Mid-Market", "SMB"],
    _match_choice("Enterprise", "Mid-Market", "SMB"),
]
Channel = Annotated[Literal["email", "phone", "linkedin"], _match_choice("email", "phone", "linkedin")]
Score = Annotated[float, Field(ge=0, le=100)]


class AnalysisBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    reasoning: str = ""


class LeadAnalysis(AnalysisBase):
    kind: Literal["lead-intelligence"] = "lead-intelligence"
    new_score: Score
    priority: Priority
    recommended_actions: list[str] = []
    email_subject: str = ""
    next_steps: str = ""


class SentimentAnalysis(AnalysisBase):
    kind: Literal["customer-sentiment"] = "customer-sentiment"
    sentiment_score: float = Field(ge=-1, le=1)
    classification: Sentiment
    confidence: float | None = Field(default=None, ge=0, le=1)
    key_factors: list[str] = []
    recommendations: list[str] = []
    communication_tone: str = "professional"


class SegmentationAnalysis(AnalysisBase):
    kind: Literal["customer-segmentation"] = "customer-segmentation"
    segment: Segment
    characteristics: list[str] = []
    recommended_approach: str = ""


class PipelineAnalysis(AnalysisBase):
    kind: Literal["pipeline-analysis"] = "pipeline-analysis"
    risk_score: Score
    risk_level: RiskLevel
    recommended_actions: list[str] = []
    next_steps: str = ""
    probability_adjustment: Score


class OpportunityScore(AnalysisBase):
    kind: Literal["opportunity-scoring"] = "opportunity-scoring"
    score: Score
    priority: LowerPriority
    win_probability: Score | None = None
    recommended_actions: list[str] = []


class ChurnPrediction(AnalysisBase):
    kind: Literal["churn-prediction"] = "churn-prediction"
    churn_risk: Score
    risk_level: LowerPriority
    interventions: list[str] = []


class CommunicationAnalysis(AnalysisBase):
    kind: Literal["communication-ai"] = "communication-ai"
    engagement_score: Score
    best_time: str
    preferred_channel: Channel


class CoachingAnalysis(AnalysisBase):
    kind: Literal["sales-coaching"] = "sales-coaching"
    recommendation: str
    strengths: list[str] = []
    improvement_areas: list[str] = []


AgentAnalysis = Annotated[
    Union[
        LeadAnalysis,
        SentimentAnalysis,
        SegmentationAnalysis,
        PipelineAnalysis,
        OpportunityScore,
        ChurnPrediction,
        CommunicationAnalysis,
        CoachingAnalysis,
    ],
    Field(discriminator="kind"),
]

analysis_adapter: TypeAdapter[AgentAnalysis] = TypeAdapter(AgentAnalysis)

ANALYSIS_MODELS: dict[str, type[AnalysisBase]] = {
    "lead-intelligence": LeadAnalysis,
    "customer-sentiment": SentimentAnalysis,
    "customer-segmentation": SegmentationAnalysis,
    "pipeline-analysis": PipelineAnalysis,
    "opportunity-scoring": OpportunityScore,
    "churn-prediction": ChurnPrediction,
    "communication-ai": CommunicationAnalysis,
    "sales-coaching": CoachingAnalysis,
}
