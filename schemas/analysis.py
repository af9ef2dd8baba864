"""Auxiliary analysis schemas.

Outputs of the single-item agents that run outside a reasoning session:
source connectors call them to vet a video, an article or a user report
before it becomes a Signal, and the incident service calls the resolution
agent. Every field a model might omit has a default.
"""

from typing import Literal

from pydantic import BaseModel, Field

from schemas.incident import Severity


class VideoAnalysis(BaseModel):
    event_type: str = "other"
    summary: str = ""
    reason: str = ""
    location_inference: str | None = None
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    severity_level: Severity = "low"
    is_real_event: bool = False
    happened_at: str | None = None


class NewsAnalysis(BaseModel):
    """News analysis verdict.

    An article becomes a signal only when it is disaster related, current
    and real. See is_actionable.
    """

    is_disaster_related: bool = False
    is_current_event: bool = False
    is_real_event: bool = False
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    event_type: str | None = None
    location_inference: str | None = None
    summary: str | None = None
    happened_at: str | None = None
    reason: str = ""

    @property
    def is_actionable(self) -> bool:
        return self.is_disaster_related and self.is_current_event and self.is_real_event


class Authenticity(BaseModel):
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    is_likely_authentic: bool = False
    concerns: list[str] = []
    reasoning: str = ""


class UserReportAnalysis(BaseModel):
    """User report verdict.

    Attributes:
        verified_event_type: Event type after the agent's correction.
        authenticity: Media and description authenticity assessment.
        use_exif_location: True if the media GPS should replace the user's
            reported location.
        recommended_action: "accept" or "reject".
    """

    verified_event_type: str = "other"
    summary: str = ""
    severity_level: Severity = "low"
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    authenticity: Authenticity = Authenticity()
    location_inference: str | None = None
    use_exif_location: bool = False
    happened_at: str | None = None
    visual_description: str | None = None
    recommended_action: Literal["accept", "reject"] = "reject"


class LocationMatch(BaseModel):
    same_location: bool
    reason: str = ""


class GuideSource(BaseModel):
    id: str
    title: str = ""


class GuideAnswer(BaseModel):
    answer: str
    sources: list[GuideSource] = []
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    suggested_action: str | None = None


class ResolutionAssessment(BaseModel):
    """Resolution agent output. 1.0 means the event is definitely over."""

    resolution_confidence: float = Field(ge=0.0, le=1.0)
    reason: str = ""
