"""Reasoning orchestrator: the signal-to-decision pipeline.

ReasoningOrchestrator is the single entry point for turning a bucket of
signals into a decision. Each call to run_reasoning_loop() is one session
with its own session ID; sessions share nothing except the cache.

Pipeline order inside run_reasoning_loop():
    1. Check the reasoning cache; on a hit, return without calling any agent
    2. Observer     - objective facts
    3. Classifier   - ranked hypotheses
    4. Skeptic      - critique, with the source breakdown of the signal set
    5. Synthesizer  - raw judgment
    6. Apply the source-diversity bonus to the Synthesizer's confidence
    7. Action       - decision, checked against the action policy
    8. Cache the result and return it

The agents run strictly in sequence because each consumes the previous
output. Every agent trace is written to the datastore in a detached task: a
failed write is logged and never reaches the caller.

The orchestrator never creates or modifies incidents. The clustering engine
applies the decision and calls update_traces_incident_id() when a session
produced one.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace

from agents.action import ACTION, ActionInput, enforce_policy
from agents.base import AgentExecutionError, AgentSpec, run_agent
from agents.classifier import CLASSIFIER, ClassifierInput
from agents.observer import OBSERVER, ObserverInput
from agents.skeptic import SKEPTIC, SkepticInput
from agents.synthesizer import SYNTHESIZER, SynthesizerInput
from core.cache import ReasoningCache, make_cache_key
from core.diversity import calculate_source_breakdown, get_source_diversity_bonus
from llm.base import LLMClient
from schemas.events import AgentEvent, EventType
from schemas.incident import NearbyIncident
from schemas.reasoning import ReasoningResult
from schemas.signal import Signal
from schemas.trace import AgentTrace
from store.base import DataStore

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReasoningChain:
    """The five agent specs the orchestrator runs, in order."""

    observer: AgentSpec = OBSERVER
    classifier: AgentSpec = CLASSIFIER
    skeptic: AgentSpec = SKEPTIC
    synthesizer: AgentSpec = SYNTHESIZER
    action: AgentSpec = ACTION

    def with_models(self, fast: str, reasoning: str) -> "ReasoningChain":
        """Point the Observer at the fast model and the other four at the reasoning model."""
        return replace(
            self,
            observer=self.observer.with_model(fast),
            classifier=self.classifier.with_model(reasoning),
            skeptic=self.skeptic.with_model(reasoning),
            synthesizer=self.synthesizer.with_model(reasoning),
            action=self.action.with_model(reasoning),
        )


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, value))


def representative_city(signals: list[Signal]) -> str:
    return next((s.city_hint for s in signals if s.city_hint), UNKNOWN)


def representative_event_type(signals: list[Signal]) -> str:
    return next((s.event_type for s in signals if s.event_type), UNKNOWN)


class ReasoningOrchestrator:
    """Runs reasoning sessions over signal sets.

    Attributes:
        _llm: Client every agent call goes through.
        _store: Datastore the agent traces are written to.
        _cache: Reasoning cache shared by all sessions of this orchestrator.
        _chain: Agent specs to run.
        _pending_traces: Trace writes still in flight. Held here so the
            event loop doesn't garbage-collect them before they finish.
    """

    def __init__(
        self,
        llm: LLMClient,
        store: DataStore,
        cache: ReasoningCache | None = None,
        chain: ReasoningChain | None = None,
    ) -> None:
        self._llm = llm
        self._store = store
        self._cache = cache if cache is not None else ReasoningCache()
        self._chain = chain or ReasoningChain()
        self._pending_traces: set[asyncio.Task] = set()

    @property
    def cache(self) -> ReasoningCache:
        return self._cache

    async def run_reasoning_loop(
        self,
        signals: list[Signal],
        existing_incidents: list[NearbyIncident],
        incident_id: str | None = None,
        event_queue: asyncio.Queue | None = None,
    ) -> ReasoningResult:
        """Reason over one signal set and decide what to do with it.

        Args:
            signals: The signals to reason over, typically one cluster bucket.
            existing_incidents: Open incidents near the signals. The Action
                agent may merge into one of these.
            incident_id: Incident being re-evaluated, if any. Written onto
                every trace of the session up front.
            event_queue: Optional queue to emit AgentEvents into for the live
                display. The session runs the same whether or not anything
                reads it.

        Returns:
            The ReasoningResult. from_cache is True when no agent ran.

        Raises:
            AgentExecutionError: If any agent in the chain fails. The session
                is aborted, nothing is cached, and the caller should retry
                the signals on a later pass.
        """
        start = time.perf_counter()

        async def emit(agent_name: str, event_type: EventType, message: str) -> None:
            if event_queue is not None:
                await event_queue.put(AgentEvent(
                    agent_name=agent_name,
                    event_type=event_type,
                    message=message,
                    timestamp_ms=(time.perf_counter() - start) * 1000,
                ))

        cache_key = make_cache_key(
            representative_city(signals),
            representative_event_type(signals),
            signals,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("Cache hit for %s (session %s)", cache_key, cached.session_id)
            await emit("Cache", EventType.CACHE_HIT, f"reused session {cached.session_id[:8]}")
            return cached.model_copy(update={"from_cache": True})

        session_id = str(uuid.uuid4())
        logger.info("Starting reasoning session %s for %d signals", session_id, len(signals))

        async def step(spec: AgentSpec, payload):
            await emit(spec.role, EventType.STARTED, "analyzing...")
            try:
                run = await run_agent(spec, self._llm, payload, session_id=session_id)
            except AgentExecutionError as exc:
                await emit(spec.role, EventType.ERROR, str(exc))
                logger.error("Reasoning session %s aborted at %s: %s", session_id, spec.role, exc)
                raise
            self._save_trace(run.trace.model_copy(update={"incident_id": incident_id}))
            return run.result

        chain = self._chain

        observation = await step(chain.observer, ObserverInput(signals=signals))
        await emit(chain.observer.role, EventType.COMPLETE, f"{len(observation.key_facts)} key facts")

        hypotheses = await step(chain.classifier, ClassifierInput(observation=observation))
        top = hypotheses.ranked()[0].event_type if hypotheses.hypotheses else "none"
        await emit(chain.classifier.role, EventType.COMPLETE, f"{len(hypotheses.hypotheses)} hypotheses, top: {top}")

        breakdown = calculate_source_breakdown(signals)
        multi_vector = get_source_diversity_bonus(breakdown)

        critique = await step(chain.skeptic, SkepticInput(
            observation=observation,
            hypotheses=hypotheses,
            source_breakdown=breakdown,
        ))
        await emit(chain.skeptic.role, EventType.COMPLETE, f"{len(critique.concerns)} concerns")

        conclusion = await step(chain.synthesizer, SynthesizerInput(
            observation=observation,
            hypotheses=hypotheses,
            critique=critique,
        ))
        raw_confidence = conclusion.confidence_score
        adjusted = clamp_confidence(raw_confidence + multi_vector.diversity_bonus)
        conclusion = conclusion.model_copy(update={"confidence_score": adjusted})
        logger.info(
            "Session %s: %s confidence %.2f -> %.2f (diversity bonus %+.2f, %d categories)",
            session_id,
            conclusion.final_classification,
            raw_confidence,
            adjusted,
            multi_vector.diversity_bonus,
            multi_vector.category_count,
        )
        await emit(
            chain.synthesizer.role,
            EventType.COMPLETE,
            f"{conclusion.final_classification} / {conclusion.severity}, confidence {raw_confidence:.2f} -> {adjusted:.2f}",
        )

        proposed = await step(chain.action, ActionInput(
            conclusion=conclusion,
            nearby_incidents=existing_incidents,
        ))
        decision = enforce_policy(proposed, conclusion, existing_incidents)
        await emit(chain.action.role, EventType.COMPLETE, decision.action.value)

        result = ReasoningResult(
            conclusion=conclusion,
            decision=decision,
            session_id=session_id,
            multi_vector=multi_vector,
            raw_confidence=raw_confidence,
        )
        self._cache.set(cache_key, result)
        logger.info(
            "Reasoning session %s complete in %.0fms: %s",
            session_id,
            (time.perf_counter() - start) * 1000,
            decision.action.value,
        )
        return result

    async def update_traces_incident_id(self, session_id: str, incident_id: str) -> int:
        """Attach an incident to every trace of a session.

        Waits for the session's in-flight trace writes first so none of them
        lands after the backfill without an incident_id. Traces already bound
        to an incident keep it: a cached result replays an earlier session
        whose traces belong to the incident that session produced.

        Returns:
            Number of traces updated.
        """
        await self.drain_traces()
        updated = await self._store.update(
            "agent_traces",
            {"incident_id": incident_id},
            session_id=session_id,
            incident_id=None,
        )
        logger.debug("Linked %d traces of session %s to incident %s", updated, session_id, incident_id)
        return updated

    async def drain_traces(self) -> None:
        """Wait for every in-flight trace write to finish."""
        while self._pending_traces:
            await asyncio.gather(*list(self._pending_traces), return_exceptions=True)

    # ── Private helpers ─────────────────────────────────────────────────────

    def _save_trace(self, trace: AgentTrace) -> None:
        task = asyncio.create_task(self._write_trace(trace), name=f"trace:{trace.step}")
        self._pending_traces.add(task)
        task.add_done_callback(self._pending_traces.discard)

    async def _write_trace(self, trace: AgentTrace) -> None:
        try:
            await self._store.insert("agent_traces", trace.model_dump(mode="json"))
        except Exception as exc:
            logger.warning("Failed to save %s trace for session %s: %s", trace.step, trace.session_id, exc)
