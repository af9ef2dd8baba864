"""API endpoint tests.

The app is built with create_app() around ChainLLM, an InMemoryStore and a
stub geocoder, with the background clustering loop disabled. Clustering is
driven through POST /api/cluster/run instead.
"""

import json

import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from e2e.helpers import ChainLLM, StubGeocoder, chain_responses, scenario_one_signals
from main import create_app
from store.memory import InMemoryStore

ENRICHMENT = json.dumps({
    "severity": "high",
    "urgency_score": 0.9,
    "reason": "Strong quake, damage reported",
    "location": "Cianjur, Jawa Barat",
    "event_type": "earthquake",
})


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def client(store):
    responses = {
        **chain_responses(),
        "SignalEnrichment": ENRICHMENT,
        "SignalEnrichmentBatch": json.dumps({"results": []}),
    }
    app = create_app(
        settings=Settings(cluster_interval_seconds=0),
        llm=ChainLLM(responses),
        store=store,
        geocoder=StubGeocoder(),
    )
    with TestClient(app) as test_client:
        yield test_client


def signal_payloads():
    return [s.model_dump(mode="json", exclude={"id", "created_at", "status"}) for s in scenario_one_signals()]


def test_health(client):
    res = client.get("/health")
    assert res.json()["status"] == "ok"


class TestSignalIntake:
    def test_ingest_signal(self, client):
        res = client.post("/api/signals", json=signal_payloads()[0])
        assert res.status_code == 200
        body = res.json()
        assert body["signal"]["id"]
        assert body["signal"]["status"] == "pending"
        assert body["hint"] == {"priority": 1, "delay_seconds": 0}

    def test_bad_payload(self, client):
        res = client.post("/api/signals", json={"text": "no source"})
        assert res.status_code == 422

    def test_bad_timestamp_rejected(self, client):
        payload = {**signal_payloads()[0], "created_at": "yesterday"}
        assert client.post("/api/signals", json=payload).status_code == 422

    def test_batch_falls_back_for_missing_results(self, client):
        res = client.post("/api/signals/batch", json=signal_payloads()[:2])
        assert res.status_code == 200
        body = res.json()
        assert len(body) == 2
        assert all(item["signal"]["event_type"] == "noise" for item in body)


class TestIncidentFlow:
    def ingest_and_cluster(self, client):
        for payload in signal_payloads():
            assert client.post("/api/signals", json=payload).status_code == 200
        res = client.post("/api/cluster/run", params={"window_minutes": 30})
        assert res.status_code == 200
        return res.json()

    def test_cluster_run_creates_incident(self, client):
        report = self.ingest_and_cluster(client)
        assert report["buckets"] == 1
        assert len(report["created"]) == 1

        incident = client.get(f"/incidents/{report['created'][0]}").json()
        assert incident["status"] == "confirm"
        assert incident["city"] == "Cianjur, Jawa Barat"
        assert incident["signal_count"] == 4

    def test_traces_and_lifecycle(self, client):
        incident_id = self.ingest_and_cluster(client)["created"][0]

        traces = client.get(f"/incidents/{incident_id}/traces").json()
        assert sorted(t["step"] for t in traces) == ["Action", "Classifier", "Observer", "Skeptic", "Synthesizer"]
        assert len({t["session_id"] for t in traces}) == 1

        lifecycle = client.get(f"/incidents/{incident_id}/lifecycle").json()
        assert lifecycle[0]["to_status"] == "confirm"

    def test_manual_resolve(self, client):
        incident_id = self.ingest_and_cluster(client)["created"][0]

        res = client.post(f"/incidents/{incident_id}/resolve", json={"reason": "All clear from BPBD"})

        assert res.status_code == 200
        assert res.json()["status"] == "resolved"
        lifecycle = client.get(f"/incidents/{incident_id}/lifecycle").json()
        assert (lifecycle[-1]["changed_by"], lifecycle[-1]["reason"]) == ("user", "All clear from BPBD")

    def test_resolution_run_leaves_fresh_incident_open(self, client):
        self.ingest_and_cluster(client)
        assert client.post("/api/resolutions/run").json() == {"resolved": []}

    def test_unknown_incident(self, client):
        assert client.get("/incidents/missing").status_code == 404
        assert client.post("/incidents/missing/resolve").status_code == 404
