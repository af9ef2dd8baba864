"""Signal schema.

Signals are the atomic observations that enter the system: a BMKG quake
bulletin, an RSS headline, a TikTok caption, a user report. Connectors
normalize whatever they scraped into a Signal and hand it to the ingestion
service. After persistence a signal is immutable except for its status.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Event types that never participate in clustering.
NOISE_EVENT_TYPES = frozenset({"other", "noise"})


class SignalSource(str, Enum):
    """Canonical provenance categories.

    Connectors often send the raw feed name instead ("bmkg", "tiktok", "rss"),
    so Signal.source is stored as a plain string and mapped onto these
    categories by core.diversity.
    """

    OFFICIAL = "official"
    USER_REPORT = "user_report"
    SOCIAL_MEDIA = "social_media"
    NEWS = "news"
    SENSOR = "sensor"


class SignalStatus(str, Enum):
    """Processing state of a persisted signal.

    Values:
        PENDING: Stored, not yet attached to an incident. Eligible for the
            next clustering pass.
        PROCESSED: Linked to an incident.
        REJECTED: Dropped by an analysis agent or manual review.
    """

    PENDING = "pending"
    PROCESSED = "processed"
    REJECTED = "rejected"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Signal(BaseModel):
    """A single normalized observation from any source.

    Attributes:
        id: Datastore identifier. Empty until the signal is persisted.
        source: Provenance string as sent by the connector ("bmkg",
            "user_report", "tiktok", "rss", ...).
        text: Free text of the observation. May be empty for media-only
            user reports.
        lat: Latitude, or None when the connector could not locate it.
        lng: Longitude, or None when the connector could not locate it.
        event_type: Event-type hint ("earthquake", "flood", ...). "other"
            and "noise" mark signals that must never be clustered.
        city_hint: Human-readable "City, Province" if known.
        created_at: ISO-8601 ingestion time.
        happened_at: ISO-8601 time the event itself occurred, if the
            connector or an analysis agent could infer it.
        status: Processing state. See SignalStatus.
    """

    id: str = ""
    source: str
    text: str = ""
    lat: float | None = None
    lng: float | None = None
    event_type: str = "other"
    city_hint: str | None = None
    created_at: str = Field(default_factory=utc_now_iso)
    happened_at: str | None = None
    status: SignalStatus = SignalStatus.PENDING

    @property
    def is_noise(self) -> bool:
        """True when the event type excludes this signal from clustering."""
        return (self.event_type or "other").strip().lower() in NOISE_EVENT_TYPES

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def event_time(self) -> str:
        """happened_at when known, otherwise created_at."""
        return self.happened_at or self.created_at

    @field_validator("created_at", "happened_at")
    @classmethod
    def _require_iso_timestamp(cls, value):
        if value is None:
            return value
        try:
            parse_timestamp(value)
        except ValueError:
            raise ValueError(f"not an ISO-8601 timestamp: {value!r}") from None
        return value
