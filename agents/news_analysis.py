"""News analysis agent: decides whether an RSS article reports a live event."""

from pydantic import BaseModel

from agents.base import FAST_MODEL, AgentSpec, load_prompt
from schemas.analysis import NewsAnalysis

# Article bodies are truncated before they reach the prompt.
_MAX_CONTENT_CHARS = 2000


class NewsArticle(BaseModel):
    title: str
    description: str = ""
    content: str | None = None
    pub_date: str = ""
    source: str = ""
    link: str = ""


def build_prompt(payload: NewsArticle) -> str:
    lines = [
        "Analyze this news article:",
        f"Title: {payload.title}",
        f"Description: {payload.description}",
    ]
    if payload.content:
        lines.append(f"Content: {payload.content[:_MAX_CONTENT_CHARS]}")
    lines += [
        f"Published: {payload.pub_date}",
        f"Source: {payload.source}",
        f"Link: {payload.link}",
    ]
    return "\n".join(lines)


NEWS_ANALYSIS = AgentSpec(
    role="NewsAnalysis",
    model=FAST_MODEL,
    system_prompt=load_prompt("news_analysis"),
    build_prompt=build_prompt,
    output_schema=NewsAnalysis,
)
