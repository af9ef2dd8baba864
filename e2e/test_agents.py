"""Agent tests: run_agent, the action policy, batch enrichment and the
auxiliary prompt builders. No API keys required."""

import json

import pytest

from agents import (
    INCIDENT_RESOLUTION,
    LOCATION_MATCHER,
    NEWS_ANALYSIS,
    OBSERVER,
    SIGNAL_ENRICHMENT_BATCH,
    USER_REPORT_ANALYSIS,
    VIDEO_ANALYSIS,
    AgentExecutionError,
    decide_action,
    enforce_policy,
    enrich_batch,
    run_agent,
)
from agents.guide_assistant import GuideQuestion
from agents.guide_assistant import build_prompt as build_guide_prompt
from agents.incident_resolution import ResolutionInput
from agents.location_matcher import LocationPair
from agents.news_analysis import NewsArticle
from agents.observer import ObserverInput
from agents.user_report_analysis import MediaMetadata, UserReportInput
from agents.video_analysis import VideoAnalysisInput
from e2e.helpers import make_signal
from llm.base import LLMClient
from schemas.enrichment import BATCH_FAILURE_REASON, EnrichmentInput
from schemas.incident import NearbyIncident
from schemas.reasoning import ActionDecision, ActionType, Conclusion


class StubLLM(LLMClient):
    def __init__(self, response="", error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def complete(self, system: str, user: str, *, model=None, json_mode=False) -> str:
        self.calls.append({"system": system, "user": user, "model": model, "json_mode": json_mode})
        if self.error:
            raise self.error
        return self.response


def conclusion(classification="earthquake", confidence=0.8):
    return Conclusion(final_classification=classification, confidence_score=confidence, severity="high")


# ── run_agent ─────────────────────────────────────────────────────────────────

class TestRunAgent:
    async def test_parses_result_and_builds_trace(self):
        llm = StubLLM(json.dumps({"observation_summary": "Shaking felt", "key_facts": ["M5.6"]}))
        payload = ObserverInput(signals=[make_signal("bmkg", "Gempa Mag:5.6")])

        run = await run_agent(OBSERVER, llm, payload, session_id="sess-1")

        assert run.result.key_facts == ["M5.6"]
        assert run.trace.step == "Observer"
        assert run.trace.session_id == "sess-1"
        assert run.trace.model == OBSERVER.model
        assert run.trace.input["signals"][0]["source"] == "bmkg"
        assert run.trace.output["observation_summary"] == "Shaking felt"
        assert run.trace.incident_id is None

    async def test_requests_json_mode_with_spec_model(self):
        llm = StubLLM(json.dumps({"same_location": True}))
        await run_agent(LOCATION_MATCHER.with_model("custom/model"), llm, _location_pair())
        assert llm.calls[0]["json_mode"] is True
        assert llm.calls[0]["model"] == "custom/model"

    async def test_fenced_json_is_accepted(self):
        llm = StubLLM('Sure!\n```json\n{"same_location": false, "reason": "different regencies"}\n```')
        run = await run_agent(LOCATION_MATCHER, llm, _location_pair())
        assert run.result.same_location is False

    async def test_schema_mismatch_raises_with_raw(self):
        llm = StubLLM(json.dumps({"reason": "missing the verdict"}))
        with pytest.raises(AgentExecutionError) as exc_info:
            await run_agent(LOCATION_MATCHER, llm, _location_pair())
        assert exc_info.value.role == "LocationMatcher"
        assert "missing the verdict" in exc_info.value.raw

    async def test_empty_response_raises(self):
        with pytest.raises(AgentExecutionError, match="Empty"):
            await run_agent(LOCATION_MATCHER, StubLLM("   "), _location_pair())

    async def test_transport_error_raises_without_raw(self):
        with pytest.raises(AgentExecutionError) as exc_info:
            await run_agent(LOCATION_MATCHER, StubLLM(error=ConnectionError("refused")), _location_pair())
        assert exc_info.value.raw is None

    async def test_out_of_range_resolution_confidence_is_clamped(self):
        llm = StubLLM(json.dumps({"resolution_confidence": 1.3, "reason": "quiet for days"}))
        run = await run_agent(INCIDENT_RESOLUTION, llm, _resolution_input())
        assert run.result.resolution_confidence == 1.0


def _location_pair():
    return LocationPair(location1="Kota Bandung", location2="Bandung, Jawa Barat")


def _resolution_input():
    return ResolutionInput(severity="high", signals=[make_signal()])


# ── Action policy ─────────────────────────────────────────────────────────────

class TestDecideAction:
    def test_benign_classification_dismissed_even_when_confident(self):
        decision = decide_action(conclusion("noise", 0.95), [])
        assert decision.action == ActionType.DISMISS

    def test_low_confidence_waits(self):
        assert decide_action(conclusion(confidence=0.59), []).action == ActionType.WAIT_FOR_MORE_DATA

    def test_threshold_is_inclusive(self):
        assert decide_action(conclusion(confidence=0.6), []).action == ActionType.CREATE_INCIDENT

    def test_merges_into_same_type(self):
        nearby = [
            NearbyIncident(id="inc-flood", type="flood", city="Bandung"),
            NearbyIncident(id="inc-quake", type="Earthquake", city="Bandung"),
        ]
        decision = decide_action(conclusion(), nearby)
        assert decision.action == ActionType.MERGE_INCIDENT
        assert decision.target_incident_id == "inc-quake"

    def test_creates_when_only_other_types_nearby(self):
        nearby = [NearbyIncident(id="inc-flood", type="flood", city="Bandung")]
        assert decide_action(conclusion(), nearby).action == ActionType.CREATE_INCIDENT

    def test_merge_into_unknown_target_is_replaced(self):
        proposed = ActionDecision(action=ActionType.MERGE_INCIDENT, target_incident_id="ghost")
        decision = decide_action(conclusion(), [], proposed)
        assert decision.action == ActionType.CREATE_INCIDENT
        assert decision.target_incident_id is None


class TestEnforcePolicy:
    def test_agreeing_proposal_is_returned_unchanged(self):
        proposed = ActionDecision(action=ActionType.CREATE_INCIDENT, reason="new quake")
        assert enforce_policy(proposed, conclusion(), []) is proposed

    def test_override_is_logged(self, caplog):
        proposed = ActionDecision(action=ActionType.CREATE_INCIDENT, reason="looks bad")
        with caplog.at_level("WARNING"):
            decision = enforce_policy(proposed, conclusion(confidence=0.3), [])
        assert decision.action == ActionType.WAIT_FOR_MORE_DATA
        assert "Action override" in caplog.text


# ── Batch enrichment ──────────────────────────────────────────────────────────

def enrichment_inputs(n):
    return [EnrichmentInput(text=f"signal {i}", source="rss", lat=-6.9, lng=107.6, city_hint="Bandung") for i in range(n)]


class TestEnrichBatch:
    async def test_empty_input_makes_no_call(self):
        llm = StubLLM()
        assert await enrich_batch(llm, []) == []
        assert llm.calls == []

    async def test_results_follow_echoed_ids(self):
        llm = StubLLM(json.dumps({"results": [
            {"id": 1, "severity": "high", "urgency_score": 0.9, "event_type": "flood"},
            {"id": 0, "severity": "low", "urgency_score": 0.1, "event_type": "other"},
        ]}))

        results = await enrich_batch(llm, enrichment_inputs(2))

        assert [r.severity for r in results] == ["low", "high"]
        assert results[1].event_type == "flood"

    async def test_short_reply_is_padded_with_fallbacks(self):
        llm = StubLLM(json.dumps({"results": [{"severity": "medium", "urgency_score": 0.5, "event_type": "fire"}]}))

        results = await enrich_batch(llm, enrichment_inputs(3))

        assert len(results) == 3
        assert results[0].event_type == "fire"
        assert [r.event_type for r in results[1:]] == ["noise", "noise"]
        assert results[2].location == "Bandung"

    async def test_extra_results_are_dropped(self):
        items = [{"severity": "low", "urgency_score": 0.2, "event_type": "flood"} for _ in range(4)]
        results = await enrich_batch(StubLLM(json.dumps({"results": items})), enrichment_inputs(2))
        assert len(results) == 2

    async def test_failed_call_falls_back_for_every_signal(self):
        results = await enrich_batch(StubLLM(error=TimeoutError("slow")), enrichment_inputs(3))

        assert len(results) == 3
        for result in results:
            assert result.event_type == "noise"
            assert result.severity == "low"
            assert result.urgency_score == 0.0
            assert result.reason == BATCH_FAILURE_REASON
            assert result.lat == -6.9

    async def test_unparseable_reply_falls_back(self):
        results = await enrich_batch(StubLLM("the model rambled"), enrichment_inputs(2))
        assert all(r.event_type == "noise" for r in results)

    async def test_prompt_labels_each_signal(self):
        llm = StubLLM(json.dumps({"results": []}))
        await enrich_batch(llm, enrichment_inputs(2), SIGNAL_ENRICHMENT_BATCH)
        assert "--- SIGNAL ID: 0 ---" in llm.calls[0]["user"]
        assert "--- SIGNAL ID: 1 ---" in llm.calls[0]["user"]


# ── Auxiliary prompts ─────────────────────────────────────────────────────────

class TestAuxiliaryPrompts:
    def test_video_prompt_is_pure_and_lists_freshness_rules(self):
        payload = VideoAnalysisInput(
            text="banjir bandang garut",
            author="@warga",
            likes=1200,
            video_url="https://www.tiktok.com/@warga/video/1",
            created_at="2026-01-10T08:00:00+07:00",
            now="2026-01-10T10:00:00+07:00",
        )
        prompt = VIDEO_ANALYSIS.build_prompt(payload)
        assert prompt == VIDEO_ANALYSIS.build_prompt(payload)
        assert "- flood: 48 hours" in prompt
        assert "Current time: 2026-01-10T10:00:00+07:00" in prompt

    def test_news_prompt_truncates_content(self):
        article = NewsArticle(title="Banjir Jakarta", content="x" * 5000, source="antaranews")
        prompt = NEWS_ANALYSIS.build_prompt(article)
        content_line = next(line for line in prompt.splitlines() if line.startswith("Content: "))
        assert len(content_line) == len("Content: ") + 2000

    def test_user_report_prompt_includes_metadata(self):
        payload = UserReportInput(
            description="Air setinggi lutut",
            event_type="flood",
            confidence="direct_observation",
            media_type="image",
            media_url="https://example.org/report.jpg",
            media_metadata=MediaMetadata(make="Samsung", model="A52", latitude=-6.2, longitude=106.8),
            now="2026-01-10T10:00:00+07:00",
        )
        prompt = USER_REPORT_ANALYSIS.build_prompt(payload)
        assert "IMAGE METADATA:" in prompt
        assert "- GPS Coordinates: -6.2, 106.8" in prompt
        assert "- Media URL: https://example.org/report.jpg" in prompt

    def test_user_report_prompt_without_metadata(self):
        payload = UserReportInput(description="Pohon tumbang", event_type="whirlwind", now="2026-01-10T10:00:00Z")
        assert "No media metadata available." in USER_REPORT_ANALYSIS.build_prompt(payload)

    def test_guide_prompt_language(self):
        question = GuideQuestion(query="Apa yang harus dilakukan saat gempa?", context="Drop, cover, hold on.", lang="id")
        assert build_guide_prompt(question).startswith("Respond in Bahasa Indonesia")
