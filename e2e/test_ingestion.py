"""Ingestion service tests: enrichment, fallbacks, queue hints, persistence."""

import json

import pytest

from e2e.helpers import ChainLLM, make_signal
from schemas.enrichment import BATCH_FAILURE_REASON, EnrichmentResult
from services.ingestion import IngestionService, apply_enrichment, priority_for
from store.base import DataStoreError
from store.memory import InMemoryStore


def enrichment_reply(**overrides):
    data = {
        "severity": "high",
        "urgency_score": 0.9,
        "reason": "Bridge collapsed by flood",
        "location": "Garut, Jawa Barat",
        "event_type": "flood",
        "lat": -7.21,
        "lng": 107.9,
    }
    return json.dumps({**data, **overrides})


class BrokenStore(InMemoryStore):
    async def insert(self, table, row):
        raise DataStoreError(table, "connection refused")


# ── Pure helpers ──────────────────────────────────────────────────────────────

class TestPriorityFor:
    @pytest.mark.parametrize("severity,priority,delay", [
        ("high", 1, 0),
        ("medium", 5, 30),
        ("low", 10, 120),
    ])
    def test_severity_mapping(self, severity, priority, delay):
        hint = priority_for(EnrichmentResult(severity=severity))
        assert (hint.priority, hint.delay_seconds) == (priority, delay)


class TestApplyEnrichment:
    def test_fills_missing_hints(self):
        signal = make_signal("rss", "Banjir bandang", lat=None, lng=None, event_type="other")
        enriched = apply_enrichment(signal, EnrichmentResult.model_validate_json(enrichment_reply()))
        assert enriched.event_type == "flood"
        assert enriched.city_hint == "Garut, Jawa Barat"
        assert (enriched.lat, enriched.lng) == (-7.21, 107.9)

    def test_connector_hints_win(self):
        signal = make_signal("bmkg", "Gempa", event_type="earthquake", city_hint="Cianjur, Jawa Barat")
        enriched = apply_enrichment(signal, EnrichmentResult.model_validate_json(enrichment_reply()))
        assert enriched.event_type == "earthquake"
        assert enriched.city_hint == "Cianjur, Jawa Barat"
        assert enriched.lat == -6.84

    def test_fallback_always_marks_noise(self):
        signal = make_signal("bmkg", "Gempa", event_type="earthquake")
        enriched = apply_enrichment(signal, EnrichmentResult(event_type="noise"))
        assert enriched.is_noise


# ── Service ───────────────────────────────────────────────────────────────────

class TestIngestionService:
    async def test_ingest_stores_enriched_pending_signal(self):
        store = InMemoryStore()
        service = IngestionService(store, ChainLLM({"SignalEnrichment": enrichment_reply()}))

        result = await service.ingest(make_signal("rss", "Banjir bandang di Garut", lat=None, lng=None, event_type="other"))

        assert result.signal.id
        assert result.signal.event_type == "flood"
        assert result.hint.priority == 1
        rows = await store.select("signals", id=result.signal.id)
        assert rows[0]["status"] == "pending"
        assert rows[0]["city_hint"] == "Garut, Jawa Barat"

    async def test_enrichment_failure_stores_noise(self):
        store = InMemoryStore()
        service = IngestionService(store, ChainLLM({"SignalEnrichment": TimeoutError("slow")}))

        result = await service.ingest(make_signal("tiktok", "??", city_hint="Bogor, Jawa Barat"))

        assert result.enrichment.reason == BATCH_FAILURE_REASON
        assert result.signal.is_noise
        assert result.hint.priority == 10
        assert len(await store.select("signals")) == 1

    async def test_batch_ingest_keeps_order(self):
        reply = json.dumps({"results": [
            {"id": 0, "severity": "low", "urgency_score": 0.1, "event_type": "other"},
            {"id": 1, "severity": "high", "urgency_score": 0.95, "event_type": "fire"},
        ]})
        store = InMemoryStore()
        service = IngestionService(store, ChainLLM({"SignalEnrichmentBatch": reply}))

        results = await service.ingest_batch([
            make_signal("rss", "Harga cabai naik", event_type="other"),
            make_signal("rss", "Kebakaran pasar", event_type="other"),
        ])

        assert [r.signal.event_type for r in results] == ["other", "fire"]
        assert [r.hint.priority for r in results] == [10, 1]
        assert len(await store.select("signals")) == 2

    async def test_process_batch_empty(self):
        llm = ChainLLM({})
        assert await IngestionService(InMemoryStore(), llm).process_batch([]) == []
        assert llm.calls == []

    async def test_storage_failure_propagates(self):
        service = IngestionService(BrokenStore(), ChainLLM({"SignalEnrichment": enrichment_reply()}))
        with pytest.raises(DataStoreError):
            await service.ingest(make_signal())
