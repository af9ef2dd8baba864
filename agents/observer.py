"""Observer agent: turns raw signals into objective facts."""

from pydantic import BaseModel

from agents.base import FAST_MODEL, AgentSpec, load_prompt
from schemas.reasoning import Observation
from schemas.signal import Signal


class ObserverInput(BaseModel):
    signals: list[Signal]


def build_prompt(payload: ObserverInput) -> str:
    lines = [
        f"- [{s.source} @ {s.event_time}]: {s.text}" + (f" (near {s.city_hint})" if s.city_hint else "")
        for s in payload.signals
    ]
    return "Signals:\n" + "\n".join(lines)


# Fast model: the Observer only summarizes, it does not judge.
OBSERVER = AgentSpec(
    role="Observer",
    model=FAST_MODEL,
    system_prompt=load_prompt("observer"),
    build_prompt=build_prompt,
    output_schema=Observation,
)
