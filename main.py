"""Disaster Pulse: signal intake and incident API.

This file is the composition root. It wires the datastore, LLM client,
reasoning cache, orchestrator and services together and exposes a thin
operational HTTP surface:

    GET  /health
    POST /api/signals                  enrich + store one signal
    POST /api/signals/batch            enrich + store a connector's poll
    POST /api/cluster/run              run one clustering pass now
    POST /api/resolutions/run          run one resolution pass now
    GET  /incidents/{id}               incident record
    GET  /incidents/{id}/traces        agent traces behind an incident
    GET  /incidents/{id}/lifecycle     status transitions
    POST /incidents/{id}/resolve       manual resolution

When CLUSTER_INTERVAL_SECONDS > 0 the lifespan starts a background loop that
runs a clustering pass, then a resolution pass, every interval.

Run locally:
    uv run uvicorn main:app --reload
    uv run python main.py
"""

import asyncio
import logging
import logging.handlers
from contextlib import asynccontextmanager
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from clustering.engine import ClusteringEngine, ClusteringReport
from core.cache import ReasoningCache
from core.config import Settings
from core.orchestrator import ReasoningChain, ReasoningOrchestrator
from integrations.geocoding import ReverseGeocoder
from llm import PROVIDER_MODELS, create_client
from llm.base import LLMClient
from schemas.enrichment import IngestionResult
from schemas.incident import Incident, LifecycleEvent
from schemas.signal import Signal
from schemas.trace import AgentTrace
from services.incidents import IncidentService
from services.ingestion import IngestionService
from store.base import DataStore, DataStoreError
from store.memory import InMemoryStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_handler = logging.handlers.RotatingFileHandler(
    Settings.from_env().log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

@dataclass
class Services:
    """Everything a request handler or the background loop needs."""

    settings: Settings
    store: DataStore
    orchestrator: ReasoningOrchestrator
    incidents: IncidentService
    ingestion: IngestionService
    clustering: ClusteringEngine
    incident_events: asyncio.Queue


def build_services(
    settings: Settings,
    llm: LLMClient | None = None,
    store: DataStore | None = None,
    geocoder: ReverseGeocoder | None = None,
) -> Services:
    """Wire the core together.

    Args:
        settings: Process configuration.
        llm: LLM client. Built from settings.llm_provider when None, which
            raises KeyError if the provider's API key is missing.
        store: Datastore. An InMemoryStore when None.
        geocoder: Reverse geocoder. Built from settings when None.
    """
    llm = llm or create_client(settings.llm_provider)
    store = store if store is not None else InMemoryStore()
    geocoder = geocoder or ReverseGeocoder(api_key=settings.google_maps_api_key)
    fast, reasoning = PROVIDER_MODELS.get(settings.llm_provider, PROVIDER_MODELS["openrouter"])

    incident_events: asyncio.Queue = asyncio.Queue()
    orchestrator = ReasoningOrchestrator(
        llm=llm,
        store=store,
        cache=ReasoningCache(ttl_seconds=settings.reasoning_cache_ttl_seconds),
        chain=ReasoningChain().with_models(fast, reasoning),
    )
    incidents = IncidentService(store, llm=llm, event_queue=incident_events)
    return Services(
        settings=settings,
        store=store,
        orchestrator=orchestrator,
        incidents=incidents,
        ingestion=IngestionService(store, llm),
        clustering=ClusteringEngine(
            store,
            orchestrator,
            incidents,
            geocoder,
            proximity_deg=settings.cluster_proximity_deg,
            min_signals=settings.cluster_min_signals,
        ),
        incident_events=incident_events,
    )


# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------

async def _clustering_loop(services: Services) -> None:
    """Cluster, then check resolutions, every CLUSTER_INTERVAL_SECONDS.

    A failed pass is logged and the loop carries on with the next one.
    """
    interval = services.settings.cluster_interval_seconds
    logger.info("Clustering loop started (every %.0fs).", interval)
    while True:
        await asyncio.sleep(interval)
        try:
            await services.clustering.run_clustering_pass(services.settings.cluster_window_minutes)
            await services.incidents.process_resolutions()
            services.orchestrator.cache.cleanup()
        except Exception as exc:
            logger.error("Scheduled clustering pass failed: %s", exc)


async def _publish_incident_events(queue: asyncio.Queue) -> None:
    """Hand incident events to the notification fan-out.

    Delivery and geofencing live outside this service; here each event is
    logged so the queue never backs up.
    """
    while True:
        event = await queue.get()
        logger.info(
            "Incident event %s: %s %s in %s (%s, %s)",
            event.type.value,
            event.incident_id,
            event.event_type,
            event.city,
            event.status,
            event.severity,
        )


def create_app(
    settings: Settings | None = None,
    llm: LLMClient | None = None,
    store: DataStore | None = None,
    geocoder: ReverseGeocoder | None = None,
) -> FastAPI:
    """Build the FastAPI app. Services are wired when the lifespan starts."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = build_services(settings, llm=llm, store=store, geocoder=geocoder)
        app.state.services = services
        background = [asyncio.create_task(_publish_incident_events(services.incident_events))]
        if settings.cluster_interval_seconds > 0:
            background.append(asyncio.create_task(_clustering_loop(services)))
        try:
            yield
        finally:
            for task in background:
                task.cancel()
            await asyncio.gather(*background, return_exceptions=True)
            await services.orchestrator.drain_traces()

    app = FastAPI(title="Disaster Pulse", lifespan=lifespan)

    # Allow the dashboard to call these endpoints from a different origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class ResolveRequest(BaseModel):
    reason: str = "Resolved manually"


def _register_routes(app: FastAPI) -> None:

    def services() -> Services:
        return app.state.services

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/api/signals", response_model=IngestionResult)
    async def ingest_signal(signal: Signal):
        """Enrich and store one signal. Returns the stored signal and its queue hint."""
        try:
            return await services().ingestion.ingest(signal)
        except DataStoreError as exc:
            logger.error("Signal ingestion failed: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to ingest signal.")

    @app.post("/api/signals/batch", response_model=list[IngestionResult])
    async def ingest_signals(signals: list[Signal]):
        try:
            return await services().ingestion.ingest_batch(signals)
        except DataStoreError as exc:
            logger.error("Batch ingestion failed: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to ingest signals.")

    @app.post("/api/cluster/run", response_model=ClusteringReport)
    async def run_cluster(window_minutes: int | None = None):
        """Run one clustering pass now, outside the background schedule."""
        svc = services()
        return await svc.clustering.run_clustering_pass(window_minutes or svc.settings.cluster_window_minutes)

    @app.post("/api/resolutions/run")
    async def run_resolutions():
        resolved = await services().incidents.process_resolutions()
        return {"resolved": resolved}

    @app.get("/incidents/{incident_id}", response_model=Incident)
    async def get_incident(incident_id: str):
        incident = await services().incidents.get_incident(incident_id)
        if incident is None:
            raise HTTPException(status_code=404, detail=f"Incident '{incident_id}' not found.")
        return incident

    @app.get("/incidents/{incident_id}/traces", response_model=list[AgentTrace])
    async def get_incident_traces(incident_id: str):
        """Every agent trace of the sessions that created or updated the incident."""
        await services().orchestrator.drain_traces()
        return await services().incidents.get_traces(incident_id)

    @app.get("/incidents/{incident_id}/lifecycle", response_model=list[LifecycleEvent])
    async def get_incident_lifecycle(incident_id: str):
        return await services().incidents.get_lifecycle(incident_id)

    @app.post("/incidents/{incident_id}/resolve", response_model=Incident)
    async def resolve_incident(incident_id: str, body: ResolveRequest | None = None):
        reason = body.reason if body else ResolveRequest().reason
        try:
            return await services().incidents.resolve_incident(incident_id, reason, changed_by="user")
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Incident '{incident_id}' not found.")


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
