"""Clustering engine: pending signals in, incidents out.

A clustering pass loads the pending signals of the recent window, groups
them into spatial buckets, runs one reasoning session per bucket and applies
each decision through the incident service.

Bucket formation is a single sequential pass so the same signals always form
the same buckets. Buckets are then processed concurrently, each in its own
task with its own exception boundary: one bucket failing never stops the
others, and its signals simply stay pending for the next pass.

Proximity is an absolute difference in degrees on each axis, not a true
distance. At Indonesian latitudes 0.05 degrees is roughly 5.5 km.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ValidationError

from core.orchestrator import ReasoningOrchestrator
from core.status import determine_status
from integrations.geocoding import ReverseGeocoder
from schemas.incident import STATUS_RANK, Incident, NearbyIncident
from schemas.reasoning import ActionType, ReasoningResult
from schemas.signal import Signal, SignalStatus, parse_timestamp
from services.incidents import IncidentService
from store.base import DataStore

logger = logging.getLogger(__name__)

DEFAULT_PROXIMITY_DEG = 0.05
DEFAULT_MIN_SIGNALS = 2
DEFAULT_WINDOW_MINUTES = 60

# A merge only rewrites the incident's confidence when it moves by more than this.
CONFIDENCE_UPDATE_DELTA = 0.1


@dataclass
class Bucket:
    """Signals grouped around the coordinates of the signal that opened it."""

    lat: float
    lng: float
    signals: list[Signal] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.lat:.4f},{self.lng:.4f}"

    def centroid(self) -> tuple[float, float]:
        n = len(self.signals)
        return (
            sum(s.lat for s in self.signals) / n,
            sum(s.lng for s in self.signals) / n,
        )


class ClusteringReport(BaseModel):
    """What one clustering pass did.

    Attributes:
        signals: Pending signals considered.
        buckets: Buckets that met the minimum size and were reasoned over.
        created: IDs of incidents created.
        merged: IDs of incidents that received signals.
        deferred: Keys of buckets whose decision was to wait or dismiss.
        failed: Keys of buckets whose processing raised.
    """

    signals: int = 0
    buckets: int = 0
    created: list[str] = []
    merged: list[str] = []
    deferred: list[str] = []
    failed: list[str] = []


def bucket_signals(
    signals: list[Signal],
    proximity_deg: float = DEFAULT_PROXIMITY_DEG,
    min_signals: int = DEFAULT_MIN_SIGNALS,
) -> list[Bucket]:
    """Group signals greedily by proximity to each bucket's seed coordinates.

    Signals are taken in the given order. Noise signals and signals without
    coordinates are skipped. A signal joins the first bucket whose key is
    within proximity_deg on both axes, or opens a new bucket keyed by its own
    coordinates. Buckets with fewer than min_signals signals are dropped.
    """
    buckets: list[Bucket] = []
    for signal in signals:
        if signal.is_noise or not signal.has_coordinates:
            continue
        home = next(
            (
                b for b in buckets
                if abs(b.lat - signal.lat) <= proximity_deg and abs(b.lng - signal.lng) <= proximity_deg
            ),
            None,
        )
        if home is None:
            home = Bucket(lat=signal.lat, lng=signal.lng)
            buckets.append(home)
        home.signals.append(signal)
    return [b for b in buckets if len(b.signals) >= min_signals]


def nearby_incidents(bucket: Bucket, incidents: list[Incident], proximity_deg: float) -> list[Incident]:
    """Open incidents whose centroid lies within proximity_deg of the bucket key."""
    return [
        i for i in incidents
        if i.is_open
        and i.lat is not None
        and i.lng is not None
        and abs(i.lat - bucket.lat) <= proximity_deg
        and abs(i.lng - bucket.lng) <= proximity_deg
    ]


class ClusteringEngine:
    """Runs clustering passes.

    Attributes:
        proximity_deg: Bucket and nearby-incident radius in degrees.
        min_signals: Smallest bucket that is reasoned over.
    """

    def __init__(
        self,
        store: DataStore,
        orchestrator: ReasoningOrchestrator,
        incidents: IncidentService,
        geocoder: ReverseGeocoder,
        proximity_deg: float = DEFAULT_PROXIMITY_DEG,
        min_signals: int = DEFAULT_MIN_SIGNALS,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._incidents = incidents
        self._geocoder = geocoder
        self.proximity_deg = proximity_deg
        self.min_signals = min_signals

    async def run_clustering_pass(
        self,
        window_minutes: int = DEFAULT_WINDOW_MINUTES,
        now: datetime | None = None,
    ) -> ClusteringReport:
        """Cluster the pending signals of the last window_minutes.

        Args:
            window_minutes: How far back to look, by signal created_at.
            now: Reference time. Defaults to the current UTC time.

        Returns:
            A ClusteringReport. Failed buckets appear in report.failed;
            this method does not raise for them.

        Raises:
            DataStoreError: If the pending signals can't be loaded.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=window_minutes)
        rows = await self._store.select("signals", status=SignalStatus.PENDING.value)
        signals = [s for s in self._load_signals(rows) if parse_timestamp(s.created_at) >= cutoff]

        buckets = bucket_signals(signals, self.proximity_deg, self.min_signals)
        report = ClusteringReport(signals=len(signals), buckets=len(buckets))
        logger.info(
            "Clustering pass: %d pending signals in the last %d minutes, %d buckets",
            len(signals),
            window_minutes,
            len(buckets),
        )
        if not buckets:
            return report

        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(self._process_bucket_safely(bucket), name=f"bucket:{bucket.key}")
                for bucket in buckets
            ]

        for task in tasks:
            outcome, ref = task.result()
            getattr(report, outcome).append(ref)

        logger.info(
            "Clustering pass complete: %d created, %d merged, %d deferred, %d failed",
            len(report.created),
            len(report.merged),
            len(report.deferred),
            len(report.failed),
        )
        return report

    # ── Private helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _load_signals(rows: list[dict]) -> list[Signal]:
        """Validate stored rows, skipping any that no longer parse."""
        signals = []
        for row in rows:
            try:
                signals.append(Signal.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed signal %s: %s", row.get("id"), exc.errors()[0]["msg"])
        return signals

    async def _process_bucket_safely(self, bucket: Bucket) -> tuple[str, str]:
        """Process one bucket. Never raises.

        Returns:
            (report field, reference): ("created", incident id),
            ("merged", incident id), ("deferred", bucket key) or
            ("failed", bucket key).
        """
        try:
            return await self._process_bucket(bucket)
        except Exception as exc:
            logger.error(
                "Bucket %s (%d signals) failed, deferring to next pass: %s",
                bucket.key,
                len(bucket.signals),
                exc,
            )
            return "failed", bucket.key

    async def _process_bucket(self, bucket: Bucket) -> tuple[str, str]:
        city = await self._geocoder.city_for(bucket.lat, bucket.lng)
        candidates = nearby_incidents(bucket, await self._incidents.list_open_incidents(), self.proximity_deg)
        nearby = [NearbyIncident(id=i.id, type=i.event_type, city=i.city) for i in candidates]

        result = await self._orchestrator.run_reasoning_loop(bucket.signals, nearby)
        action = result.decision.action
        logger.info(
            "Bucket %s in %s: %s (%s, confidence %.2f%s)",
            bucket.key,
            city,
            action.value,
            result.conclusion.final_classification,
            result.conclusion.confidence_score,
            ", cached" if result.from_cache else "",
        )

        if action == ActionType.MERGE_INCIDENT and candidates:
            return "merged", await self._merge(bucket, result, candidates)
        if action == ActionType.MERGE_INCIDENT:
            logger.warning("Merge target %s no longer nearby; creating instead", result.decision.target_incident_id)
            return "created", await self._create(bucket, result, city)
        if action == ActionType.CREATE_INCIDENT:
            return "created", await self._create(bucket, result, city)
        return "deferred", bucket.key

    async def _create(self, bucket: Bucket, result: ReasoningResult, city: str) -> str:
        conclusion = result.conclusion
        lat, lng = bucket.centroid()
        incident = Incident(
            event_type=conclusion.final_classification,
            city=city,
            status=determine_status(len(bucket.signals), conclusion.confidence_score, conclusion.severity),
            severity=conclusion.severity,
            confidence_score=conclusion.confidence_score,
            title=conclusion.title,
            summary=conclusion.description,
            lat=lat,
            lng=lng,
            signal_count=len(bucket.signals),
            session_id=result.session_id,
        )
        created = await self._incidents.create_incident(incident, bucket.signals, reason=result.decision.reason)
        await self._orchestrator.update_traces_incident_id(result.session_id, created.id)
        return created.id

    async def _merge(self, bucket: Bucket, result: ReasoningResult, candidates: list[Incident]) -> str:
        target = next((i for i in candidates if i.id == result.decision.target_incident_id), None)
        if target is None:
            target = min(candidates, key=lambda i: abs(i.lat - bucket.lat) + abs(i.lng - bucket.lng))
            logger.warning(
                "Unknown merge target %s; merging into nearest incident %s",
                result.decision.target_incident_id,
                target.id,
            )

        conclusion = result.conclusion
        linked = await self._incidents.attach_signals(target.id, bucket.signals)
        incident = await self._incidents.get_incident(target.id) or target

        if (
            conclusion.severity != incident.severity
            or abs(conclusion.confidence_score - incident.confidence_score) > CONFIDENCE_UPDATE_DELTA
        ):
            incident = await self._incidents.update_assessment(
                incident,
                severity=conclusion.severity,
                confidence=conclusion.confidence_score,
                session_id=result.session_id,
            )

        new_status = determine_status(incident.signal_count, incident.confidence_score, incident.severity)
        if STATUS_RANK[new_status] > STATUS_RANK[incident.status]:
            incident = await self._incidents.transition_status(
                incident,
                new_status,
                changed_by="ai",
                reason=f"Merged {linked} signals: {result.decision.reason}",
            )

        await self._orchestrator.update_traces_incident_id(result.session_id, incident.id)
        await self._incidents.announce_update(incident)
        return incident.id
