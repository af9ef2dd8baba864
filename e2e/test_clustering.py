"""Clustering engine tests.

Each test seeds an InMemoryStore with pending signals, runs one clustering
pass with ChainLLM and a stub geocoder, and checks the resulting incidents,
links, traces and events.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from clustering.engine import Bucket, ClusteringEngine, bucket_signals, nearby_incidents
from core.orchestrator import ReasoningOrchestrator
from e2e.helpers import ChainLLM, StubGeocoder, chain_responses, make_signal, scenario_one_signals
from integrations.geocoding import UNKNOWN_CITY
from schemas.events import IncidentEventType
from schemas.incident import Incident, IncidentStatus
from schemas.signal import SignalStatus
from services.incidents import IncidentService
from store.memory import InMemoryStore

NOW = datetime(2026, 1, 10, 10, 0, tzinfo=timezone.utc)
RECENT = "2026-01-10T09:50:00+00:00"


class FailOnTextLLM(ChainLLM):
    """ChainLLM that fails the Observer for any bucket mentioning `marker`."""

    def __init__(self, responses, marker):
        super().__init__(responses)
        self.marker = marker

    async def complete(self, system, user, *, model=None, json_mode=False):
        if self.marker in user:
            raise ConnectionError("gateway reset")
        return await super().complete(system, user, model=model, json_mode=json_mode)


async def seed(store, signals, created_at=RECENT):
    for signal in signals:
        row = signal.model_copy(update={"created_at": created_at}).model_dump(mode="json")
        await store.insert("signals", row)


def build_engine(llm, store, geocoder=None, queue=None):
    orchestrator = ReasoningOrchestrator(llm=llm, store=store)
    incidents = IncidentService(store, llm=llm, event_queue=queue)
    return ClusteringEngine(store, orchestrator, incidents, geocoder or StubGeocoder())


# ── Bucketing ─────────────────────────────────────────────────────────────────

class TestBucketSignals:
    def test_nearby_signals_share_a_bucket(self):
        buckets = bucket_signals(scenario_one_signals())
        assert len(buckets) == 1
        assert len(buckets[0].signals) == 4
        assert buckets[0].key == "-6.8400,107.0500"

    def test_bucket_is_keyed_by_seed_not_centroid(self):
        signals = [
            make_signal(lat=0.0, lng=0.0),
            make_signal(lat=0.05, lng=0.0),
            make_signal(lat=0.09, lng=0.0),
        ]
        buckets = bucket_signals(signals, min_signals=1)
        assert [len(b.signals) for b in buckets] == [2, 1]

    def test_noise_and_unlocated_signals_skipped(self):
        signals = [
            make_signal(event_type="noise"),
            make_signal(event_type="other"),
            make_signal(lat=None, lng=None),
            make_signal(),
        ]
        assert bucket_signals(signals) == []
        assert len(bucket_signals(signals, min_signals=1)[0].signals) == 1

    def test_centroid(self):
        bucket = Bucket(lat=0.0, lng=0.0, signals=[make_signal(lat=0.0, lng=1.0), make_signal(lat=0.04, lng=1.02)])
        lat, lng = bucket.centroid()
        assert lat == pytest.approx(0.02)
        assert lng == pytest.approx(1.01)

    def test_nearby_incidents_excludes_resolved_and_far(self):
        bucket = Bucket(lat=-6.84, lng=107.05)
        incidents = [
            Incident(id="near", event_type="earthquake", city="Cianjur", lat=-6.82, lng=107.04),
            Incident(id="far", event_type="earthquake", city="Bandung", lat=-6.91, lng=107.61),
            Incident(id="done", event_type="earthquake", city="Cianjur", lat=-6.84, lng=107.05,
                     status=IncidentStatus.RESOLVED),
        ]
        assert [i.id for i in nearby_incidents(bucket, incidents, 0.05)] == ["near"]


# ── Clustering passes ─────────────────────────────────────────────────────────

class TestClusteringPass:
    async def test_creates_confirmed_incident(self):
        store = InMemoryStore()
        queue = asyncio.Queue()
        await seed(store, scenario_one_signals())
        engine = build_engine(ChainLLM(chain_responses(confidence=0.75)), store, queue=queue)

        report = await engine.run_clustering_pass(now=NOW)

        assert report.signals == 4
        assert report.buckets == 1
        assert len(report.created) == 1
        incident = Incident.model_validate((await store.select("incidents", id=report.created[0]))[0])
        assert incident.status == IncidentStatus.CONFIRM
        assert incident.city == "Cianjur, Jawa Barat"
        assert incident.confidence_score == pytest.approx(0.95)
        assert incident.signal_count == 4
        assert incident.lat == pytest.approx(-6.825)

        links = await store.select("incident_signals", incident_id=incident.id)
        assert {link["signal_id"] for link in links} == {"s1", "s2", "s3", "s4"}
        assert await store.select("signals", status=SignalStatus.PENDING.value) == []

        assert len(await store.select("agent_traces", incident_id=incident.id)) == 5
        lifecycle = await store.select("incident_lifecycle", incident_id=incident.id)
        assert lifecycle[0]["from_status"] is None
        assert lifecycle[0]["to_status"] == "confirm"
        assert queue.get_nowait().type == IncidentEventType.CREATED

    async def test_merges_into_nearby_incident(self):
        store = InMemoryStore()
        queue = asyncio.Queue()
        existing = await store.insert("incidents", Incident(
            event_type="earthquake",
            city="Cianjur, Jawa Barat",
            status=IncidentStatus.ALERT,
            severity="high",
            confidence_score=0.6,
            lat=-6.83,
            lng=107.04,
        ).model_dump(mode="json", exclude={"id"}))
        await seed(store, scenario_one_signals())
        engine = build_engine(ChainLLM(chain_responses(action="CREATE_INCIDENT")), store, queue=queue)

        report = await engine.run_clustering_pass(now=NOW)

        assert report.merged == [existing["id"]]
        assert report.created == []
        incident = Incident.model_validate((await store.select("incidents", id=existing["id"]))[0])
        assert incident.signal_count == 4
        assert incident.confidence_score == pytest.approx(0.95)
        assert incident.status == IncidentStatus.CONFIRM
        transitions = await store.select("incident_lifecycle", incident_id=existing["id"])
        assert (transitions[-1]["from_status"], transitions[-1]["to_status"]) == ("alert", "confirm")
        assert queue.get_nowait().type == IncidentEventType.UPDATED

    async def test_merge_never_downgrades(self):
        store = InMemoryStore()
        existing = await store.insert("incidents", Incident(
            event_type="earthquake",
            city="Cianjur, Jawa Barat",
            status=IncidentStatus.CONFIRM,
            severity="high",
            confidence_score=0.9,
            lat=-6.83,
            lng=107.04,
        ).model_dump(mode="json", exclude={"id"}))
        await seed(store, scenario_one_signals()[1:3])
        engine = build_engine(ChainLLM(chain_responses(confidence=0.75)), store)

        report = await engine.run_clustering_pass(now=NOW)

        assert report.merged == [existing["id"]]
        incident = (await store.select("incidents", id=existing["id"]))[0]
        assert incident["status"] == "confirm"

    async def test_deferred_bucket_stays_pending(self):
        store = InMemoryStore()
        await seed(store, [make_signal("tiktok", "banjir?", id="a"), make_signal("tiktok", "air naik", id="b")])
        engine = build_engine(ChainLLM(chain_responses(confidence=0.4)), store)

        report = await engine.run_clustering_pass(now=NOW)

        assert len(report.deferred) == 1
        assert len(await store.select("signals", status=SignalStatus.PENDING.value)) == 2
        assert await store.select("incidents") == []

    async def test_dismissed_bucket_creates_nothing(self):
        store = InMemoryStore()
        await seed(store, scenario_one_signals())
        engine = build_engine(ChainLLM(chain_responses(classification="other")), store)

        report = await engine.run_clustering_pass(now=NOW)

        assert report.deferred and not report.created

    async def test_noise_signals_never_reach_the_chain(self):
        store = InMemoryStore()
        await seed(store, [make_signal(event_type="noise", id=f"n{i}") for i in range(3)])
        llm = ChainLLM(chain_responses())

        report = await build_engine(llm, store).run_clustering_pass(now=NOW)

        assert report.buckets == 0
        assert llm.calls == []

    async def test_signals_outside_window_ignored(self):
        store = InMemoryStore()
        await seed(store, scenario_one_signals(), created_at="2026-01-10T08:30:00+00:00")
        llm = ChainLLM(chain_responses())

        report = await build_engine(llm, store).run_clustering_pass(window_minutes=60, now=NOW)

        assert report.signals == 0
        assert llm.calls == []

    async def test_failed_bucket_does_not_block_others(self):
        store = InMemoryStore()
        await seed(store, scenario_one_signals())
        await seed(store, [
            make_signal("twitter", "gempa Medan", lat=3.59, lng=98.67, id="m1"),
            make_signal("rss", "gempa guncang Medan", lat=3.60, lng=98.68, id="m2"),
        ])
        engine = build_engine(FailOnTextLLM(chain_responses(), marker="Medan"), store)

        report = await engine.run_clustering_pass(now=NOW)

        assert report.buckets == 2
        assert len(report.created) == 1
        assert report.failed == ["3.5900,98.6700"]
        pending = await store.select("signals", status=SignalStatus.PENDING.value)
        assert {s["id"] for s in pending} == {"m1", "m2"}

    async def test_cached_session_keeps_traces_on_first_incident(self):
        store = InMemoryStore()
        llm = ChainLLM(chain_responses())
        engine = build_engine(llm, store)
        await seed(store, scenario_one_signals())
        first = (await engine.run_clustering_pass(now=NOW)).created[0]

        elsewhere = [
            s.model_copy(update={"id": f"far-{s.id}", "lat": s.lat - 3.0, "lng": s.lng})
            for s in scenario_one_signals()
        ]
        await seed(store, elsewhere)
        second = (await engine.run_clustering_pass(now=NOW)).created[0]

        assert second != first
        assert llm.calls == ["Observer", "Classifier", "Skeptic", "Synthesizer", "Action"]
        assert len(await store.select("agent_traces", incident_id=first)) == 5
        assert await store.select("agent_traces", incident_id=second) == []

    async def test_malformed_row_is_skipped(self):
        store = InMemoryStore()
        await seed(store, scenario_one_signals())
        bad = make_signal("twitter", "gempa", id="bad").model_dump(mode="json")
        await store.insert("signals", {**bad, "created_at": "yesterday"})
        engine = build_engine(ChainLLM(chain_responses()), store)

        report = await engine.run_clustering_pass(now=NOW)

        assert report.signals == 4
        assert len(report.created) == 1
        pending = await store.select("signals", status=SignalStatus.PENDING.value)
        assert [s["id"] for s in pending] == ["bad"]

    async def test_geocoding_failure_uses_unknown_city(self):
        store = InMemoryStore()
        await seed(store, scenario_one_signals())
        engine = build_engine(ChainLLM(chain_responses()), store, geocoder=StubGeocoder(city=None))

        report = await engine.run_clustering_pass(now=NOW)

        incident = (await store.select("incidents", id=report.created[0]))[0]
        assert incident["city"] == UNKNOWN_CITY
