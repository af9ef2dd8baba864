"""Incident resolution agent: is the event over?"""

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.analysis import ResolutionAssessment
from schemas.signal import Signal


class ResolutionInput(BaseModel):
    severity: str
    signals: list[Signal]


def build_prompt(payload: ResolutionInput) -> str:
    lines = [f"- [{s.source}] {s.text} ({s.created_at})" for s in payload.signals]
    return (
        f"Recent signals for an incident (severity: {payload.severity}):\n"
        + "\n".join(lines)
    )


INCIDENT_RESOLUTION = AgentSpec(
    role="IncidentResolution",
    model=REASONING_MODEL,
    system_prompt=load_prompt("incident_resolution"),
    build_prompt=build_prompt,
    output_schema=ResolutionAssessment,
)
