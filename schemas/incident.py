"""Incident schemas.

An Incident is the durable output of the reasoning pipeline: one real-world
event with a status, a severity and a calibrated confidence. It is created by
a CREATE_INCIDENT decision, updated by later MERGE_INCIDENT decisions or a
resolution check, and never hard-deleted.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from schemas.signal import utc_now_iso

Severity = Literal["low", "medium", "high"]


class IncidentStatus(str, Enum):
    """Incident state machine.

    monitor → alert → confirm are escalation levels chosen by
    core.status.determine_status. resolved is terminal and only reached via
    the incident service (silence period, resolution agent, or manual).
    """

    MONITOR = "monitor"
    ALERT = "alert"
    CONFIRM = "confirm"
    RESOLVED = "resolved"


# Escalation order used to avoid downgrading an incident on merge.
STATUS_RANK = {
    IncidentStatus.MONITOR: 0,
    IncidentStatus.ALERT: 1,
    IncidentStatus.CONFIRM: 2,
    IncidentStatus.RESOLVED: 3,
}


class Incident(BaseModel):
    """A durable incident record.

    Attributes:
        id: Datastore identifier. Empty until persisted.
        event_type: Final classification from the Synthesizer.
        city: "City, Province" of the originating bucket, or "Unknown City".
        status: Current state. See IncidentStatus.
        severity: "low", "medium" or "high".
        confidence_score: Diversity-adjusted confidence. Always clamped to
            [0, 1] on construction so a bad caller can't persist 1.2.
        title: Short map label from the Synthesizer.
        summary: User-facing description from the Synthesizer.
        lat: Centroid latitude of the linked signals.
        lng: Centroid longitude of the linked signals.
        signal_count: Number of linked signals.
        session_id: Reasoning session that created or last updated it.
    """

    id: str = ""
    event_type: str
    city: str
    status: IncidentStatus = IncidentStatus.MONITOR
    severity: Severity = "low"
    confidence_score: float = 0.0
    title: str = ""
    summary: str = ""
    lat: float | None = None
    lng: float | None = None
    signal_count: int = 0
    session_id: str | None = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        return max(0.0, min(1.0, float(value)))

    @property
    def is_open(self) -> bool:
        return self.status != IncidentStatus.RESOLVED


class NearbyIncident(BaseModel):
    """The slim view of an existing incident handed to the Action agent.

    Attributes:
        id: Incident identifier the Action agent may name as merge target.
        type: Incident event type.
        city: Incident city.
    """

    id: str
    type: str
    city: str


class LifecycleEvent(BaseModel):
    """One status transition in an incident's audit log.

    Attributes:
        incident_id: The incident that changed.
        from_status: Previous status, None on creation.
        to_status: New status.
        changed_by: "system", "ai" or "user".
        reason: Human-readable reason for the change.
    """

    incident_id: str
    from_status: str | None
    to_status: str
    changed_by: str = "system"
    reason: str = ""
    created_at: str = Field(default_factory=utc_now_iso)
