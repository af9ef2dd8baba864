"""Location matcher agent: are two place names the same city?"""

from pydantic import BaseModel

from agents.base import FAST_MODEL, AgentSpec, load_prompt
from schemas.analysis import LocationMatch


class LocationPair(BaseModel):
    location1: str
    location2: str


def build_prompt(payload: LocationPair) -> str:
    return f'Location 1: "{payload.location1}"\nLocation 2: "{payload.location2}"'


LOCATION_MATCHER = AgentSpec(
    role="LocationMatcher",
    model=FAST_MODEL,
    system_prompt=load_prompt("location_matcher"),
    build_prompt=build_prompt,
    output_schema=LocationMatch,
)
