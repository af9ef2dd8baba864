"""Event schemas.

Two kinds of events leave the core on asyncio queues:

- AgentEvent: emitted by the reasoning orchestrator as each deliberation
  stage starts and finishes, so the CLI can render live panels.
- IncidentEvent: emitted by the incident service when an incident is
  created, updated or resolved, for the notification fan-out collaborator.

The core works correctly whether or not anything is listening to either
queue.
"""

from enum import Enum

from pydantic import BaseModel, Field

from schemas.signal import utc_now_iso


class EventType(str, Enum):
    """The lifecycle stages an agent can emit events for.

    Extends str so values serialize to plain strings ("started", "complete")
    rather than "EventType.STARTED".

    Values:
        STARTED: Agent has begun execution.
        COMPLETE: Agent finished and returned a parsed result.
        CACHE_HIT: The session was answered from the reasoning cache.
        ERROR: Agent raised and the session was aborted.
    """

    STARTED = "started"
    COMPLETE = "complete"
    CACHE_HIT = "cache_hit"
    ERROR = "error"


class AgentEvent(BaseModel):
    """A single event emitted during a reasoning session.

    Attributes:
        agent_name: Role of the agent that emitted this event. Maps to
            the panel heading in the Rich display layout.
        event_type: Lifecycle stage this event represents.
        message: Human-readable description (e.g. "confidence 0.95").
        timestamp_ms: Milliseconds since the start of the session.
    """

    agent_name: str
    event_type: EventType
    message: str
    timestamp_ms: float


class IncidentEventType(str, Enum):
    CREATED = "incident_created"
    UPDATED = "incident_updated"
    RESOLVED = "incident_resolved"


class IncidentEvent(BaseModel):
    """Payload consumed by the notification fan-out.

    Carries exactly what geofenced delivery needs: where, what, how bad.
    """

    type: IncidentEventType
    incident_id: str
    event_type: str
    status: str
    severity: str
    confidence_score: float
    city: str
    lat: float | None = None
    lng: float | None = None
    summary: str = ""
    emitted_at: str = Field(default_factory=utc_now_iso)
