"""Agent trace schema.

Every agent invocation produces exactly one AgentTrace. Traces are the
provenance trail behind an incident: given an incident ID, the traces show
what each agent saw and what it concluded.
"""

from typing import Any

from pydantic import BaseModel, Field

from schemas.signal import utc_now_iso


class AgentTrace(BaseModel):
    """Append-only audit record of one agent call.

    The only field ever written after creation is incident_id, backfilled in
    bulk by session_id once the session's decision produced an incident.

    Attributes:
        session_id: Reasoning session this call belonged to. Empty for
            auxiliary agents that run outside a session.
        step: Agent role name ("Observer", "Skeptic", ...).
        input: JSON-serializable input the agent received.
        output: JSON-serializable output the agent produced.
        model: Model identifier used for the call.
        timestamp: ISO-8601 time the call completed.
        incident_id: Incident the session produced, if any.
    """

    session_id: str = ""
    step: str
    input: Any
    output: Any
    model: str
    timestamp: str = Field(default_factory=utc_now_iso)
    incident_id: str | None = None
