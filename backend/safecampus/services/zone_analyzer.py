"""Risk zone analysis over the active incident snapshot.

ZoneRiskAnalyzer only owns the invocation policy: every new snapshot starts a
fresh run and cancels the one in flight, and a run's result is applied only if
no newer snapshot arrived meanwhile. The analysis itself is pluggable.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from safecampus.core.sos_policies import SOS_INCIDENT_TYPE
from safecampus.schemas.incident import IncidentRead
from safecampus.schemas.session import RiskAnnotation
from safecampus.services.geo_service import haversine_km

logger = logging.getLogger(__name__)

AnalyzeFn = Callable[[Sequence[IncidentRead]], Awaitable[list[RiskAnnotation]]]

MIN_CLUSTER_SIZE = 2
MEDIUM_RISK_WEIGHT = 3
HIGH_RISK_WEIGHT = 5


def _risk_level(weight: int) -> str:
    if weight >= HIGH_RISK_WEIGHT:
        return "high"
    if weight >= MEDIUM_RISK_WEIGHT:
        return "medium"
    return "low"


def cluster_risk_zones(incidents: Sequence[IncidentRead], radius_km: float = 0.5) -> list[RiskAnnotation]:
    """Group incidents lying within radius_km of a cluster's first incident.

    SOS incidents weigh double. Clusters smaller than MIN_CLUSTER_SIZE are not
    reported. Output is sorted by weight, heaviest first.
    """
    clusters: list[list[IncidentRead]] = []
    for incident in sorted(incidents, key=lambda i: i.id):
        for cluster in clusters:
            anchor = cluster[0]
            if haversine_km(anchor.latitude, anchor.longitude, incident.latitude, incident.longitude) <= radius_km:
                cluster.append(incident)
                break
        else:
            clusters.append([incident])

    scored = []
    for cluster in clusters:
        if len(cluster) < MIN_CLUSTER_SIZE:
            continue
        sos_count = sum(1 for i in cluster if i.type == SOS_INCIDENT_TYPE)
        weight = len(cluster) + sos_count
        lat = sum(i.latitude for i in cluster) / len(cluster)
        lng = sum(i.longitude for i in cluster) / len(cluster)
        reason = f"{len(cluster)} active incidents within {int(radius_km * 1000)} m"
        if sos_count:
            reason += f" ({sos_count} SOS)"
        scored.append(
            (
                weight,
                RiskAnnotation(
                    area=f"Zone near {lat:.4f}, {lng:.4f}",
                    risk_level=_risk_level(weight),
                    reason=reason,
                    lat=round(lat, 6),
                    lng=round(lng, 6),
                    incident_count=len(cluster),
                ),
            )
        )
    scored.sort(key=lambda item: item[0], reverse=True)
    return [annotation for _, annotation in scored]


def make_cluster_analyzer(radius_km: float = 0.5) -> AnalyzeFn:
    async def analyze(incidents: Sequence[IncidentRead]) -> list[RiskAnnotation]:
        return cluster_risk_zones(incidents, radius_km=radius_km)

    return analyze


class ZoneRiskAnalyzer:
    def __init__(self, analyze: AnalyzeFn | None = None) -> None:
        self._analyze = analyze or make_cluster_analyzer()
        self._generation = 0
        self._applied_generation = 0
        self._task: asyncio.Task | None = None
        self._annotations: list[RiskAnnotation] = []
        self._listeners: list[Callable[[list[RiskAnnotation]], None]] = []

    @property
    def annotations(self) -> list[RiskAnnotation]:
        return list(self._annotations)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def applied_generation(self) -> int:
        return self._applied_generation

    def add_listener(self, listener: Callable[[list[RiskAnnotation]], None]) -> None:
        self._listeners.append(listener)

    def submit(self, snapshot: Sequence[IncidentRead]) -> asyncio.Task | None:
        """Start analysis of snapshot, superseding any run in flight."""
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if not snapshot:
            self._apply(generation, [])
            return None
        self._task = asyncio.get_running_loop().create_task(self._run(generation, tuple(snapshot)))
        return self._task

    async def wait_idle(self) -> None:
        while self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self, generation: int, snapshot: tuple[IncidentRead, ...]) -> None:
        try:
            result = await self._analyze(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Zone analysis failed for generation %s", generation)
            return
        if generation != self._generation:
            logger.debug("Discarding zone analysis %s, latest is %s", generation, self._generation)
            return
        self._apply(generation, list(result))

    def _apply(self, generation: int, annotations: list[RiskAnnotation]) -> None:
        self._applied_generation = generation
        self._annotations = annotations
        for listener in list(self._listeners):
            listener(list(annotations))
