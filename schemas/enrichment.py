"""Signal enrichment schemas.

Connectors call the ingestion service before persisting a signal. The
enrichment agent rates severity and urgency and fills in event type and
location; the result travels with the signal into the datastore.
"""

from pydantic import BaseModel, Field, field_validator

from schemas.incident import Severity
from schemas.signal import Signal

BATCH_FAILURE_REASON = "Batch Analysis Failed - requires manual review"


class EnrichmentInput(BaseModel):
    """What the enrichment agent sees for one signal."""

    text: str
    source: str
    lat: float | None = None
    lng: float | None = None
    city_hint: str | None = None


class EnrichmentResult(BaseModel):
    """Enrichment agent output for one signal.

    Attributes:
        severity: "low", "medium" or "high".
        urgency_score: 0.0-1.0 triage priority.
        reason: Short justification (the prompt asks for five words max).
        location: "City, Province", or None if the model couldn't tell.
        event_type: Disaster type. "noise" marks a fallback result that
            must be kept out of clustering.
        lat: Latitude, inferred or passed through from the input hint.
        lng: Longitude, inferred or passed through from the input hint.
    """

    severity: Severity = "low"
    urgency_score: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = ""
    location: str | None = None
    event_type: str = "other"
    lat: float | None = None
    lng: float | None = None

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value):
        # Models return "null", "" or "unknown" as strings as often as null.
        if value is None or isinstance(value, (int, float)):
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @classmethod
    def fallback(cls, source: EnrichmentInput, reason: str = BATCH_FAILURE_REASON) -> "EnrichmentResult":
        """Conservative result used when the model call fails.

        Low severity, zero urgency and event_type "noise" so the signal is
        persisted for review but never clustered. Location hints pass through.
        """
        return cls(
            severity="low",
            urgency_score=0.0,
            reason=reason,
            location=source.city_hint,
            event_type="noise",
            lat=source.lat,
            lng=source.lng,
        )


class QueueHint(BaseModel):
    """Scheduling hint for connectors that queue signals for processing.

    Lower priority values run first; delay_seconds holds the job back.
    """

    priority: int
    delay_seconds: int


class IngestionResult(BaseModel):
    """What ingest() hands back: the stored signal, its enrichment and queue hint."""

    signal: Signal
    enrichment: EnrichmentResult
    hint: QueueHint
