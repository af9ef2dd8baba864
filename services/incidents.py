"""Incident service: the only code that writes incidents.

Owns the incident lifecycle: creation from a CREATE_INCIDENT decision,
signal linking, reassessment on merge, status transitions with an audit
log, and the periodic resolution check.

Write policy:
    - Incident rows and signal links are critical. DataStoreError propagates.
    - Lifecycle log entries and resolution traces are best-effort. Failures
      are logged and swallowed.

Every create, update and resolve emits an IncidentEvent on the optional
event queue for the notification fan-out.
"""

import asyncio
import logging
from datetime import datetime, timezone

from agents.base import AgentExecutionError, AgentSpec, run_agent
from agents.incident_resolution import INCIDENT_RESOLUTION, ResolutionInput
from core.status import silence_period
from llm.base import LLMClient
from schemas.events import IncidentEvent, IncidentEventType
from schemas.incident import Incident, IncidentStatus, LifecycleEvent, Severity
from schemas.signal import Signal, SignalStatus, parse_timestamp, utc_now_iso
from schemas.trace import AgentTrace
from store.base import DataStore

logger = logging.getLogger(__name__)

RESOLUTION_CONFIDENCE_THRESHOLD = 0.8
# Most recent linked signals shown to the resolution agent.
RESOLUTION_SIGNAL_LIMIT = 10


class IncidentService:
    """Reads and writes incidents, their signal links and lifecycle.

    Attributes:
        _store: Datastore holding incidents, links and lifecycle events.
        _llm: Client for the resolution agent. Without one, resolution
            checks only resolve incidents that have no signals.
        _event_queue: Where IncidentEvents go, if anywhere.
        _resolution_spec: Resolution agent spec.
    """

    def __init__(
        self,
        store: DataStore,
        llm: LLMClient | None = None,
        event_queue: asyncio.Queue | None = None,
        resolution_spec: AgentSpec = INCIDENT_RESOLUTION,
    ) -> None:
        self._store = store
        self._llm = llm
        self._event_queue = event_queue
        self._resolution_spec = resolution_spec

    # ── Reads ───────────────────────────────────────────────────────────────

    async def get_incident(self, incident_id: str) -> Incident | None:
        rows = await self._store.select("incidents", id=incident_id)
        return Incident.model_validate(rows[0]) if rows else None

    async def list_open_incidents(self) -> list[Incident]:
        rows = await self._store.select("incidents")
        return [i for i in (Incident.model_validate(r) for r in rows) if i.is_open]

    async def get_signals(self, incident_id: str) -> list[Signal]:
        """Signals linked to an incident, newest first."""
        links = await self._store.select("incident_signals", incident_id=incident_id)
        signals = []
        for link in links:
            rows = await self._store.select("signals", id=link["signal_id"])
            signals.extend(Signal.model_validate(r) for r in rows)
        return sorted(signals, key=lambda s: parse_timestamp(s.created_at), reverse=True)

    async def get_lifecycle(self, incident_id: str) -> list[LifecycleEvent]:
        rows = await self._store.select("incident_lifecycle", incident_id=incident_id)
        return [LifecycleEvent.model_validate(r) for r in rows]

    async def get_traces(self, incident_id: str) -> list[AgentTrace]:
        rows = await self._store.select("agent_traces", incident_id=incident_id)
        return [AgentTrace.model_validate(r) for r in rows]

    # ── Writes ──────────────────────────────────────────────────────────────

    async def create_incident(self, incident: Incident, signals: list[Signal], reason: str = "") -> Incident:
        """Persist a new incident, link its signals and announce it.

        Args:
            incident: The incident to insert. Its id is assigned by the store.
            signals: Signals that produced it. Linked and marked processed.
            reason: Recorded on the creation lifecycle entry.

        Returns:
            The stored incident, with its id.

        Raises:
            DataStoreError: If the incident or its signal links can't be written.
        """
        row = await self._store.insert("incidents", incident.model_dump(mode="json", exclude={"id"}))
        created = Incident.model_validate(row)
        await self.attach_signals(created.id, signals)
        await self.log_lifecycle(created.id, None, created.status, "ai", reason or "Incident created")
        logger.info(
            "Created incident %s: %s in %s (%s, %s, confidence %.2f)",
            created.id,
            created.event_type,
            created.city,
            created.status.value,
            created.severity,
            created.confidence_score,
        )
        await self._emit(IncidentEventType.CREATED, created)
        return created

    async def attach_signals(self, incident_id: str, signals: list[Signal]) -> int:
        """Link signals to an incident and mark them processed.

        Signals already linked to this incident are skipped. The incident's
        signal_count is kept in step with its links.

        Returns:
            Number of newly linked signals.
        """
        existing = {link["signal_id"] for link in await self._store.select("incident_signals", incident_id=incident_id)}
        new = [s for s in signals if s.id and s.id not in existing]
        if new:
            await self._store.insert_many(
                "incident_signals",
                [{"incident_id": incident_id, "signal_id": s.id, "created_at": utc_now_iso()} for s in new],
            )
            for signal in new:
                await self._store.update("signals", {"status": SignalStatus.PROCESSED.value}, id=signal.id)
        # Recount after writing: concurrent merges into one incident each insert links.
        linked = {link["signal_id"] for link in await self._store.select("incident_signals", incident_id=incident_id)}
        await self._store.update(
            "incidents",
            {"signal_count": len(linked), "updated_at": utc_now_iso()},
            id=incident_id,
        )
        logger.debug("Linked %d signals to incident %s", len(new), incident_id)
        return len(new)

    async def update_assessment(
        self,
        incident: Incident,
        severity: Severity,
        confidence: float,
        session_id: str | None = None,
        title: str | None = None,
        summary: str | None = None,
    ) -> Incident:
        """Overwrite an incident's severity and confidence after a new session."""
        values = {
            "severity": severity,
            "confidence_score": max(0.0, min(1.0, confidence)),
            "updated_at": utc_now_iso(),
        }
        if session_id:
            values["session_id"] = session_id
        if title:
            values["title"] = title
        if summary:
            values["summary"] = summary
        await self._store.update("incidents", values, id=incident.id)
        logger.info(
            "Updated incident %s assessment: %s -> %s, confidence %.2f -> %.2f",
            incident.id,
            incident.severity,
            severity,
            incident.confidence_score,
            values["confidence_score"],
        )
        return incident.model_copy(update=values)

    async def transition_status(
        self,
        incident: Incident,
        to_status: IncidentStatus,
        changed_by: str = "system",
        reason: str = "",
    ) -> Incident:
        """Move an incident to a new status and log the transition.

        A transition to the current status is a no-op.
        """
        if incident.status == to_status:
            return incident
        await self._store.update(
            "incidents",
            {"status": to_status.value, "updated_at": utc_now_iso()},
            id=incident.id,
        )
        await self.log_lifecycle(incident.id, incident.status, to_status, changed_by, reason)
        logger.info("Incident %s: %s -> %s (%s)", incident.id, incident.status.value, to_status.value, reason)
        return incident.model_copy(update={"status": to_status})

    async def resolve_incident(self, incident_id: str, reason: str, changed_by: str = "system") -> Incident:
        """Mark an incident resolved and announce it.

        Raises:
            KeyError: If no incident has this id.
        """
        incident = await self.get_incident(incident_id)
        if incident is None:
            raise KeyError(f"Incident '{incident_id}' not found.")
        resolved = await self.transition_status(incident, IncidentStatus.RESOLVED, changed_by, reason)
        logger.info("Resolved incident %s: %s", incident_id, reason)
        await self._emit(IncidentEventType.RESOLVED, resolved)
        return resolved

    async def announce_update(self, incident: Incident) -> None:
        await self._emit(IncidentEventType.UPDATED, incident)

    async def log_lifecycle(
        self,
        incident_id: str,
        from_status: IncidentStatus | None,
        to_status: IncidentStatus,
        changed_by: str,
        reason: str,
    ) -> None:
        """Append to the lifecycle log. Never raises."""
        event = LifecycleEvent(
            incident_id=incident_id,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            changed_by=changed_by,
            reason=reason,
        )
        try:
            await self._store.insert("incident_lifecycle", event.model_dump(mode="json"))
        except Exception as exc:
            logger.warning("Failed to log lifecycle event for incident %s: %s", incident_id, exc)

    # ── Resolution ──────────────────────────────────────────────────────────

    async def check_resolution(self, incident: Incident, now: datetime | None = None) -> bool:
        """Resolve an incident whose signals have gone quiet.

        An incident is only considered once its silence period (1h for low,
        4h for medium, the event type's max signal age for high severity)
        has passed since its last update. With no linked signals it is
        resolved outright; otherwise the resolution agent decides, and the
        incident is resolved at confidence >= 0.8. An agent failure leaves
        the incident open.

        Returns:
            True if the incident was resolved.
        """
        if not incident.is_open:
            return False
        now = now or datetime.now(timezone.utc)
        required = silence_period(incident.severity, incident.event_type)
        last_activity = parse_timestamp(incident.updated_at or incident.created_at)
        if now - last_activity < required:
            return False

        hours = required.total_seconds() / 3600
        signals = (await self.get_signals(incident.id))[:RESOLUTION_SIGNAL_LIMIT]
        if not signals:
            await self.resolve_incident(incident.id, f"Silence > {hours:g}h (No signals)", changed_by="system")
            return True

        if self._llm is None:
            logger.debug("No LLM configured; leaving incident %s open", incident.id)
            return False

        try:
            run = await run_agent(
                self._resolution_spec,
                self._llm,
                ResolutionInput(severity=incident.severity, signals=signals),
            )
        except AgentExecutionError as exc:
            logger.error("Resolution analysis failed for %s: %s", incident.id, exc)
            return False

        await self._save_trace(run.trace.model_copy(update={"incident_id": incident.id}))
        assessment = run.result
        if assessment.resolution_confidence >= RESOLUTION_CONFIDENCE_THRESHOLD:
            await self.resolve_incident(
                incident.id,
                f"AI Confidence {assessment.resolution_confidence}: {assessment.reason}",
                changed_by="ai",
            )
            return True
        logger.debug(
            "Incident %s still ongoing (resolution confidence %.2f)",
            incident.id,
            assessment.resolution_confidence,
        )
        return False

    async def process_resolutions(self, now: datetime | None = None) -> list[str]:
        """Run check_resolution over every open incident.

        Returns:
            IDs of the incidents that were resolved.
        """
        resolved = []
        for incident in await self.list_open_incidents():
            if await self.check_resolution(incident, now):
                resolved.append(incident.id)
        if resolved:
            logger.info("Resolution pass resolved %d incidents", len(resolved))
        return resolved

    # ── Private helpers ─────────────────────────────────────────────────────

    async def _emit(self, event_type: IncidentEventType, incident: Incident) -> None:
        if self._event_queue is None:
            return
        await self._event_queue.put(IncidentEvent(
            type=event_type,
            incident_id=incident.id,
            event_type=incident.event_type,
            status=incident.status.value,
            severity=incident.severity,
            confidence_score=incident.confidence_score,
            city=incident.city,
            lat=incident.lat,
            lng=incident.lng,
            summary=incident.summary,
        ))

    async def _save_trace(self, trace: AgentTrace) -> None:
        try:
            await self._store.insert("agent_traces", trace.model_dump(mode="json"))
        except Exception as exc:
            logger.warning("Failed to save %s trace for incident %s: %s", trace.step, trace.incident_id, exc)
