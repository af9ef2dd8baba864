"""Synthesizer agent: weighs hypotheses against the critique."""

import json

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.reasoning import Conclusion, Critique, Hypotheses, Observation


class SynthesizerInput(BaseModel):
    observation: Observation
    hypotheses: Hypotheses
    critique: Critique


def build_prompt(payload: SynthesizerInput) -> str:
    return (
        f"Observation:\n{payload.observation.model_dump_json(indent=2)}\n\n"
        f"Hypotheses:\n{json.dumps([h.model_dump() for h in payload.hypotheses.ranked()], indent=2)}\n\n"
        f"Critique:\n{payload.critique.model_dump_json(indent=2)}"
    )


SYNTHESIZER = AgentSpec(
    role="Synthesizer",
    model=REASONING_MODEL,
    system_prompt=load_prompt("synthesizer"),
    build_prompt=build_prompt,
    output_schema=Conclusion,
)
