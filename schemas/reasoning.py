"""Reasoning schemas.

Output types for the five deliberation agents, the source-diversity scoring
result, and the final ReasoningResult that crosses the orchestrator boundary.
Agent outputs are validated with these models straight from the LLM's JSON,
so every field an LLM might omit has a default.
"""

from enum import Enum

from pydantic import BaseModel, Field

from schemas.incident import Severity


class Observation(BaseModel):
    """Observer output: objective facts only, no speculation."""

    observation_summary: str
    key_facts: list[str] = []
    timeline: list[str] = []


class EventHypothesis(BaseModel):
    """One candidate explanation proposed by the Classifier.

    Attributes:
        event_type: Proposed event type (flood, fire, earthquake, ...).
        description: What the Classifier thinks is happening.
        likelihood: Classifier's own estimate on a 0.0-1.0 scale.
        supporting_evidence: Facts from the Observation that back it.
    """

    event_type: str
    description: str = ""
    likelihood: float = Field(default=0.0, ge=0.0, le=1.0)
    supporting_evidence: list[str] = []


class Hypotheses(BaseModel):
    """Classifier output: hypotheses ranked by likelihood."""

    hypotheses: list[EventHypothesis] = []

    def ranked(self) -> list[EventHypothesis]:
        return sorted(self.hypotheses, key=lambda h: h.likelihood, reverse=True)


class Critique(BaseModel):
    """Skeptic output.

    confidence_adjustment is the Skeptic's own suggestion (-0.3 to +0.2). It is
    recorded in the trace for auditability; the numeric diversity adjustment
    applied to the final confidence comes from core.diversity.
    """

    concerns: list[str] = []
    contradictions: list[str] = []
    alternative_explanations: list[str] = []
    assessment: str = ""
    source_diversity_assessment: str = ""
    confidence_adjustment: float = 0.0
    multi_vector_flags: list[str] = []


class Conclusion(BaseModel):
    """Synthesizer output: the final judgment.

    confidence_score is the raw estimate from the model until the
    orchestrator overwrites it with the diversity-adjusted value.
    """

    final_classification: str
    confidence_score: float = Field(ge=0.0, le=1.0)
    severity: Severity = "low"
    title: str = ""
    description: str = ""
    reasoning_trace: str = ""


class ActionType(str, Enum):
    """Decisions the Action agent can take."""

    CREATE_INCIDENT = "CREATE_INCIDENT"
    MERGE_INCIDENT = "MERGE_INCIDENT"
    WAIT_FOR_MORE_DATA = "WAIT_FOR_MORE_DATA"
    DISMISS = "DISMISS"


class ActionDecision(BaseModel):
    """Action agent output.

    Attributes:
        action: The decision. See ActionType.
        target_incident_id: Incident to merge into. Only meaningful for
            MERGE_INCIDENT.
        reason: Short justification.
    """

    action: ActionType
    target_incident_id: str | None = None
    reason: str = ""


class SourceBreakdown(BaseModel):
    """Signal counts per provenance category.

    total always equals the sum of the four category counts: unknown sources
    are counted as user_report rather than dropped.
    """

    official: int = 0
    user_report: int = 0
    social_media: int = 0
    news: int = 0
    total: int = 0
    unique_sources: list[str] = []


class MultiVectorResult(BaseModel):
    """Diversity score derived from a SourceBreakdown.

    Attributes:
        source_breakdown: The breakdown this result was computed from.
        diversity_bonus: Signed adjustment in [-0.05, +0.20] added to the
            Synthesizer's confidence.
        category_count: Number of categories with at least one signal (0-4).
        has_official_source: True if any official signal is present.
    """

    source_breakdown: SourceBreakdown
    diversity_bonus: float
    category_count: int = Field(ge=0, le=4)
    has_official_source: bool


class ReasoningResult(BaseModel):
    """Final output of one ReasoningOrchestrator.run_reasoning_loop() call.

    Attributes:
        conclusion: Synthesizer judgment with the diversity-adjusted
            confidence already applied.
        decision: Action decision taken on the adjusted conclusion.
        session_id: UUID shared by every trace of the session. For a cache
            hit this is the session that originally produced the result.
        multi_vector: Source-diversity score for the signal set.
        raw_confidence: Synthesizer confidence before the diversity bonus.
        from_cache: True if no agent ran because the cache had the answer.
    """

    conclusion: Conclusion
    decision: ActionDecision
    session_id: str
    multi_vector: MultiVectorResult
    raw_confidence: float
    from_cache: bool = False
