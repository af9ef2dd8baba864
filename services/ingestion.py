"""Ingestion service: the entry point for source connectors.

Connectors (BMKG poller, RSS poller, TikTok scraper, report upload) hand
normalized Signals to this service. Each signal is enriched by the fast
triage agent, its missing hints are filled from the enrichment, and it is
persisted as pending for the next clustering pass.

Enrichment never blocks ingestion: when the model fails, the signal gets the
conservative fallback (event_type "noise") and is stored for manual review
without ever being clustered. Persistence failures do propagate, since a
signal that isn't stored is lost.
"""

import logging

from agents.base import AgentExecutionError, AgentSpec, run_agent
from agents.signal_enrichment import SIGNAL_ENRICHMENT, SIGNAL_ENRICHMENT_BATCH, enrich_batch
from llm.base import LLMClient
from schemas.enrichment import EnrichmentInput, EnrichmentResult, IngestionResult, QueueHint
from schemas.signal import NOISE_EVENT_TYPES, Signal, SignalStatus
from store.base import DataStore

logger = logging.getLogger(__name__)

# severity -> (queue priority, delay in seconds)
_QUEUE_HINTS: dict[str, tuple[int, int]] = {
    "high": (1, 0),
    "medium": (5, 30),
    "low": (10, 120),
}


def priority_for(result: EnrichmentResult) -> QueueHint:
    """Map an enrichment's severity to a queue priority and delay.

    High severity runs immediately, low severity waits two minutes so a burst
    of chatter doesn't starve real emergencies.
    """
    priority, delay = _QUEUE_HINTS.get(result.severity, _QUEUE_HINTS["low"])
    return QueueHint(priority=priority, delay_seconds=delay)


def to_enrichment_input(signal: Signal) -> EnrichmentInput:
    return EnrichmentInput(
        text=signal.text,
        source=signal.source,
        lat=signal.lat,
        lng=signal.lng,
        city_hint=signal.city_hint,
    )


def apply_enrichment(signal: Signal, result: EnrichmentResult) -> Signal:
    """Fill a signal's missing hints from its enrichment.

    A fallback result (event_type "noise") always marks the signal as noise.
    Otherwise a specific event type from the connector wins over the
    model's, and the model's location and coordinates only fill gaps.
    """
    updates = {}
    if result.event_type == "noise":
        updates["event_type"] = "noise"
    elif (signal.event_type or "other").strip().lower() in NOISE_EVENT_TYPES and result.event_type:
        updates["event_type"] = result.event_type.strip().lower()
    if not signal.city_hint and result.location:
        updates["city_hint"] = result.location
    if not signal.has_coordinates and result.lat is not None and result.lng is not None:
        updates["lat"] = result.lat
        updates["lng"] = result.lng
    return signal.model_copy(update=updates)


class IngestionService:
    """Enriches and stores incoming signals.

    Attributes:
        _store: Datastore the signals are written to.
        _llm: Client for the enrichment agents.
        _single_spec: Agent used by process_signal().
        _batch_spec: Agent used by process_batch().
    """

    def __init__(
        self,
        store: DataStore,
        llm: LLMClient,
        single_spec: AgentSpec = SIGNAL_ENRICHMENT,
        batch_spec: AgentSpec = SIGNAL_ENRICHMENT_BATCH,
    ) -> None:
        self._store = store
        self._llm = llm
        self._single_spec = single_spec
        self._batch_spec = batch_spec

    async def process_signal(self, signal: Signal) -> EnrichmentResult:
        """Enrich one signal. Returns the fallback result if the agent fails."""
        payload = to_enrichment_input(signal)
        try:
            run = await run_agent(self._single_spec, self._llm, payload)
        except AgentExecutionError as exc:
            logger.error("Enrichment failed for %s signal: %s", signal.source, exc)
            return EnrichmentResult.fallback(payload)
        return run.result

    async def process_batch(self, signals: list[Signal]) -> list[EnrichmentResult]:
        """Enrich several signals in one model call. Always one result per signal."""
        return await enrich_batch(self._llm, [to_enrichment_input(s) for s in signals], self._batch_spec)

    async def ingest(self, signal: Signal) -> IngestionResult:
        """Enrich a signal and persist it as pending.

        Raises:
            DataStoreError: If the signal can't be stored.
        """
        enrichment = await self.process_signal(signal)
        return await self._store_signal(signal, enrichment)

    async def ingest_batch(self, signals: list[Signal]) -> list[IngestionResult]:
        """Enrich a connector's poll in one call and persist every signal."""
        enrichments = await self.process_batch(signals)
        return [await self._store_signal(s, e) for s, e in zip(signals, enrichments)]

    # ── Private helpers ─────────────────────────────────────────────────────

    async def _store_signal(self, signal: Signal, enrichment: EnrichmentResult) -> IngestionResult:
        enriched = apply_enrichment(signal, enrichment).model_copy(update={"status": SignalStatus.PENDING})
        row = await self._store.insert("signals", enriched.model_dump(mode="json", exclude={"id"}))
        stored = Signal.model_validate(row)
        hint = priority_for(enrichment)
        logger.info(
            "Ingested %s signal %s: %s / %s (urgency %.2f, priority %d)",
            stored.source,
            stored.id,
            stored.event_type,
            enrichment.severity,
            enrichment.urgency_score,
            hint.priority,
        )
        return IngestionResult(signal=stored, enrichment=enrichment, hint=hint)
