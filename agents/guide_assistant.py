"""Guide assistant agent: answers safety questions from retrieved guide text."""

from typing import Literal

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.analysis import GuideAnswer

_LANGUAGE = {
    "en": "Respond in English. Use clear, simple language suitable for emergency situations.",
    "id": "Respond in Bahasa Indonesia. Use clear, simple language suitable for emergency situations.",
}


class GuideQuestion(BaseModel):
    query: str
    context: str
    lang: Literal["en", "id"] = "en"


def build_prompt(payload: GuideQuestion) -> str:
    return (
        f"{_LANGUAGE[payload.lang]}\n\n"
        f"CONTEXT (guide content):\n{payload.context}\n\n"
        f"USER QUESTION:\n{payload.query}"
    )


GUIDE_ASSISTANT = AgentSpec(
    role="GuideAssistant",
    model=REASONING_MODEL,
    system_prompt=load_prompt("guide_assistant"),
    build_prompt=build_prompt,
    output_schema=GuideAnswer,
)
