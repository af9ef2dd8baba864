"""User report analysis agent: authenticity check for citizen reports.

Metadata extraction (EXIF and friends) happens in the upload connector; this
agent only reasons over what it is given.
"""

from typing import Literal

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.analysis import UserReportAnalysis


class MediaMetadata(BaseModel):
    make: str | None = None
    model: str | None = None
    software: str | None = None
    date_time_original: str | None = None
    create_date: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    width: int | None = None
    height: int | None = None
    duration: float | None = None
    mime_type: str | None = None


class UserReportInput(BaseModel):
    """A user-submitted report.

    Attributes:
        confidence: What the user said about their own report.
        now: ISO-8601 reference time, for judging whether media is recent.
    """

    description: str
    event_type: str
    confidence: Literal["direct_observation", "uncertain", "hearsay"] = "uncertain"
    media_url: str | None = None
    media_type: Literal["image", "video"] | None = None
    user_lat: float | None = None
    user_lng: float | None = None
    media_metadata: MediaMetadata | None = None
    now: str


def build_prompt(payload: UserReportInput) -> str:
    lines = [
        f"Current time: {payload.now}",
        "",
        "User report:",
        f"- Reported event type: {payload.event_type}",
        f'- Description: "{payload.description}"',
        f"- User confidence level: {payload.confidence}",
        f"- Media type: {payload.media_type or 'None'}",
    ]
    if payload.media_url:
        lines.append(f"- Media URL: {payload.media_url}")
    if payload.user_lat is not None and payload.user_lng is not None:
        lines.append(f"- User GPS location: {payload.user_lat}, {payload.user_lng}")
    lines.append("")
    lines.append(_metadata_section(payload))
    return "\n".join(lines)


def _metadata_section(payload: UserReportInput) -> str:
    m = payload.media_metadata
    if m is None:
        return "No media metadata available."
    is_video = payload.media_type == "video" or (m.mime_type or "").startswith("video")
    gps = f"{m.latitude}, {m.longitude}" if m.latitude is not None and m.longitude is not None else "Not available"
    dims = f"{m.width}x{m.height}" if m.width and m.height else "Unknown"
    lines = [
        f"{'VIDEO' if is_video else 'IMAGE'} METADATA:",
        f"- Device: {m.make or 'Unknown'} {m.model or ''}".rstrip(),
        f"- Software: {m.software or 'Unknown'}",
        f"- Original DateTime: {m.date_time_original or 'Not available'}",
        f"- Create Date: {m.create_date or 'Not available'}",
        f"- GPS Coordinates: {gps}",
        f"- Dimensions: {dims}",
    ]
    if m.duration:
        lines.append(f"- Duration: {m.duration}s")
    if m.mime_type:
        lines.append(f"- Type: {m.mime_type}")
    return "\n".join(lines)


USER_REPORT_ANALYSIS = AgentSpec(
    role="UserReportAnalysis",
    model=REASONING_MODEL,
    system_prompt=load_prompt("user_report_analysis"),
    build_prompt=build_prompt,
    output_schema=UserReportAnalysis,
)
