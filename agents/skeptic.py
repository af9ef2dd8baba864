"""Skeptic agent: attacks the Classifier's hypotheses.

When the orchestrator passes a SourceBreakdown, the prompt gains a source
diversity section so the critique can reason about independent corroboration
(one viral clip reposted ten times is not ten witnesses).
"""

import json

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.reasoning import Critique, Hypotheses, Observation, SourceBreakdown


class SkepticInput(BaseModel):
    observation: Observation
    hypotheses: Hypotheses
    source_breakdown: SourceBreakdown | None = None


def build_prompt(payload: SkepticInput) -> str:
    prompt = (
        f"Observation:\n{payload.observation.model_dump_json(indent=2)}\n\n"
        f"Hypotheses:\n{json.dumps([h.model_dump() for h in payload.hypotheses.ranked()], indent=2)}"
    )
    if payload.source_breakdown is not None:
        prompt += "\n\n" + _breakdown_section(payload.source_breakdown)
    return prompt


def _breakdown_section(breakdown: SourceBreakdown) -> str:
    return (
        "Source diversity:\n"
        f"- Official (BMKG/BNPB): {breakdown.official}\n"
        f"- User reports: {breakdown.user_report}\n"
        f"- Social media: {breakdown.social_media}\n"
        f"- News: {breakdown.news}\n"
        f"- Total signals: {breakdown.total}\n"
        f"- Unique sources: {', '.join(breakdown.unique_sources) or '(none)'}"
    )


SKEPTIC = AgentSpec(
    role="Skeptic",
    model=REASONING_MODEL,
    system_prompt=load_prompt("skeptic"),
    build_prompt=build_prompt,
    output_schema=Critique,
)
