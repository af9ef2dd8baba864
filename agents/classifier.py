"""Classifier agent: proposes candidate explanations for the observed facts."""

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.reasoning import Hypotheses, Observation


class ClassifierInput(BaseModel):
    observation: Observation


def build_prompt(payload: ClassifierInput) -> str:
    obs = payload.observation
    return (
        f"Observation summary: {obs.observation_summary}\n"
        f"Key facts:\n{_bullets(obs.key_facts)}\n"
        f"Timeline:\n{_bullets(obs.timeline)}"
    )


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items) or "- (none)"


CLASSIFIER = AgentSpec(
    role="Classifier",
    model=REASONING_MODEL,
    system_prompt=load_prompt("classifier"),
    build_prompt=build_prompt,
    output_schema=Hypotheses,
)
