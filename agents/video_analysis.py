"""Video analysis agent: vets a social video post before it becomes a signal.

The client is text-only, so the video URL is passed in the message rather
than as a media part.
"""

from pydantic import BaseModel

from agents.base import FAST_MODEL, AgentSpec, load_prompt
from core.status import MAX_SIGNAL_AGE_HOURS
from schemas.analysis import VideoAnalysis


class VideoAnalysisInput(BaseModel):
    """A scraped video post.

    Attributes:
        now: ISO-8601 reference time for the freshness check. Passed in so
            the prompt is a pure function of the input.
    """

    text: str
    author: str = ""
    likes: int = 0
    video_url: str
    created_at: str
    now: str


def build_prompt(payload: VideoAnalysisInput) -> str:
    rules = "\n".join(f"- {event}: {hours} hours" for event, hours in MAX_SIGNAL_AGE_HOURS.items())
    return (
        "Metadata:\n"
        f'- Caption: "{payload.text}"\n'
        f"- Author: {payload.author}\n"
        f"- Likes: {payload.likes}\n"
        f"- Video URL: {payload.video_url}\n\n"
        "Time context:\n"
        f"- Current time: {payload.now}\n"
        f"- Video created: {payload.created_at}\n\n"
        f"Freshness rules (max signal age):\n{rules}"
    )


VIDEO_ANALYSIS = AgentSpec(
    role="VideoAnalysis",
    model=FAST_MODEL,
    system_prompt=load_prompt("video_analysis"),
    build_prompt=build_prompt,
    output_schema=VideoAnalysis,
)
