"""Shared stubs for the e2e tests.

ChainLLM answers each agent with canned JSON, picking the agent by its
system prompt, and records which agents were called in order.
"""

import json

import httpx

from agents import (
    ACTION,
    CLASSIFIER,
    GUIDE_ASSISTANT,
    INCIDENT_RESOLUTION,
    LOCATION_MATCHER,
    NEWS_ANALYSIS,
    OBSERVER,
    SIGNAL_ENRICHMENT,
    SIGNAL_ENRICHMENT_BATCH,
    SKEPTIC,
    SYNTHESIZER,
    USER_REPORT_ANALYSIS,
    VIDEO_ANALYSIS,
)
from integrations.geocoding import ReverseGeocoder
from llm.base import LLMClient
from schemas.signal import Signal

_ROLE_BY_PROMPT = {
    spec.system_prompt: spec.role
    for spec in (
        OBSERVER, CLASSIFIER, SKEPTIC, SYNTHESIZER, ACTION,
        SIGNAL_ENRICHMENT, SIGNAL_ENRICHMENT_BATCH, VIDEO_ANALYSIS, NEWS_ANALYSIS,
        USER_REPORT_ANALYSIS, LOCATION_MATCHER, GUIDE_ASSISTANT, INCIDENT_RESOLUTION,
    )
}


class ChainLLM(LLMClient):
    """Returns responses[role] for each call. An Exception value is raised instead."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[str] = []
        self.prompts: dict[str, str] = {}
        self.models: dict[str, str | None] = {}

    async def complete(self, system: str, user: str, *, model: str | None = None, json_mode: bool = False) -> str:
        role = _ROLE_BY_PROMPT[system]
        self.calls.append(role)
        self.prompts[role] = user
        self.models[role] = model
        response = self.responses[role]
        if isinstance(response, Exception):
            raise response
        return response


def chain_responses(
    classification: str = "earthquake",
    confidence: float = 0.75,
    severity: str = "high",
    action: str = "CREATE_INCIDENT",
    target: str | None = None,
) -> dict:
    """Canned replies for the five deliberation agents."""
    return {
        "Observer": json.dumps({
            "observation_summary": "Multiple reports of strong shaking in Cianjur.",
            "key_facts": ["BMKG reports M5.6", "Buildings damaged"],
            "timeline": ["13:21 WIB shaking felt"],
        }),
        "Classifier": json.dumps({
            "hypotheses": [
                {"event_type": "earthquake", "description": "Shallow quake", "likelihood": 0.9,
                 "supporting_evidence": ["BMKG reports M5.6"]},
                {"event_type": "other", "description": "Construction noise", "likelihood": 0.05,
                 "supporting_evidence": []},
            ],
        }),
        "Skeptic": json.dumps({
            "concerns": ["Casualty numbers unverified"],
            "contradictions": [],
            "alternative_explanations": [],
            "assessment": "Official and social sources agree.",
            "source_diversity_assessment": "strong_corroboration",
            "confidence_adjustment": 0.1,
            "multi_vector_flags": ["official_source_present", "cross_platform_agreement"],
        }),
        "Synthesizer": json.dumps({
            "final_classification": classification,
            "confidence_score": confidence,
            "severity": severity,
            "title": "Earthquake in Cianjur",
            "description": "M5.6 earthquake with building damage.",
            "reasoning_trace": "Official bulletin corroborated by witnesses.",
        }),
        "Action": json.dumps({
            "action": action,
            "target_incident_id": target,
            "reason": "model reason",
        }),
    }


def make_signal(
    source: str = "user_report",
    text: str = "Gempa terasa kuat",
    lat: float | None = -6.84,
    lng: float | None = 107.05,
    event_type: str = "earthquake",
    city_hint: str | None = None,
    created_at: str = "2022-11-21T06:30:00+00:00",
    id: str = "",
) -> Signal:
    return Signal(
        id=id,
        source=source,
        text=text,
        lat=lat,
        lng=lng,
        event_type=event_type,
        city_hint=city_hint,
        created_at=created_at,
    )


def scenario_one_signals() -> list[Signal]:
    """One official, two social media and one news signal near Cianjur."""
    return [
        make_signal("bmkg", "Gempa Mag:5.6 Cianjur", -6.84, 107.05, city_hint="Cianjur, Jawa Barat", id="s1"),
        make_signal("tiktok", "gempa kenceng di cianjur", -6.82, 107.03, id="s2"),
        make_signal("twitter", "strong shaking in Cianjur", -6.81, 107.02, id="s3"),
        make_signal("rss", "Gempa M5,6 guncang Cianjur", -6.83, 107.04, id="s4"),
    ]


class StubGeocoder(ReverseGeocoder):
    """Answers every lookup with one city, or raises when city is None."""

    def __init__(self, city: str | None = "Cianjur, Jawa Barat"):
        super().__init__()
        self.city = city
        self.lookups: list[tuple[float, float]] = []

    async def reverse_geocode(self, lat: float, lng: float) -> str | None:
        self.lookups.append((lat, lng))
        if self.city is None:
            raise httpx.ConnectError("no network")
        return self.city
