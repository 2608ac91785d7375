"""
BasePlanner — one full planning pass over a site.

Fixed order, every step appending to the same Plan:

    1. Terrain Analyzer     distance matrix + anchor
    2. Core cluster         CORE_STAMP at the anchor
    3. Source containers    one per resource node, next to it
    4. Controller container 2–3 tiles from the controller
    5. Peripheral clusters  extension fields, then the tower cluster
    6. Road network         spawn → nodes / controller / core / clusters
    7. Entrance seal        border fortifications (anchor-independent)

No anchor → steps 2–6 are skipped, a NO_ANCHOR warning is recorded and the
caller retries on a later tick. The seal still runs when
``PlannerConfig.seal_without_anchor`` is set.

The spawn, the controller and the resource nodes are fixed objects: no plan
entry lands on them, roads route around them and the anchor never sits on
one. The spawn counts as one built spawn against the tier limit.

The Plan is loaded from the injected PlanStore at the start of the pass and
saved back at the end. A pass over an already-planned site adds nothing:
every stamp, route and seal tile folds in as a duplicate.

Usage
-----
    planner = BasePlanner(store, GridPathfinder())
    summary = planner.run_planning_pass(site)
    summary.structures_added, summary.warnings, summary.anchor
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from ColonyPlanner.analysis.terrain_analyzer import AnchorConfig, find_anchor
from ColonyPlanner.construction.entrance_sealer import EntranceSealer, SealConfig
from ColonyPlanner.construction.road_network import RoadConfig, RoadNetworkPlanner
from ColonyPlanner.construction.stamp_placer import (
    PlacementConfig,
    PlacementReport,
    StampPlacer,
    Verdict,
)
from ColonyPlanner.construction.stamps import (
    CONTROLLER_CONTAINER_STAMP,
    CORE_STAMP,
    EXTENSION_FIELD_STAMP,
    SOURCE_CONTAINER_STAMP,
    TOWER_CLUSTER_STAMP,
    Stamp,
)
from ColonyPlanner.construction.structures import BuildingKind, Plan, tier_limit
from ColonyPlanner.logger import get_logger
from ColonyPlanner.site import PathfindingService, PlanStore, Site, Tile

log = get_logger()

_SEAL_KINDS = frozenset({BuildingKind.WALL, BuildingKind.GATE})


# ---------------------------------------------------------------------------
# Warnings and summary
# ---------------------------------------------------------------------------

class WarningKind(Enum):
    NO_ANCHOR           = "no_anchor"
    PATH_UNREACHABLE    = "path_unreachable"
    UNSEALABLE_ENTRANCE = "unsealable_entrance"


@dataclass(frozen=True)
class PlanningWarning:
    kind: WarningKind
    detail: str

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.detail}"


@dataclass
class PlanningSummary:
    structures_added: int = 0
    warnings: List[PlanningWarning] = field(default_factory=list)
    anchor: Optional[Tile] = None
    reports: List[PlacementReport] = field(default_factory=list)

    def warnings_of(self, kind: WarningKind) -> List[PlanningWarning]:
        return [w for w in self.warnings if w.kind == kind]


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class PlannerConfig:
    """Aggregated configuration for a planning pass."""

    anchor: AnchorConfig = field(default_factory=AnchorConfig)
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    road: RoadConfig = field(default_factory=RoadConfig)
    seal: SealConfig = field(default_factory=SealConfig)

    seal_enabled: bool = True
    seal_without_anchor: bool = False

    # Peripheral cluster hubs sit on a lattice of this step around the
    # anchor, searched ring by ring out to the last radius.
    cluster_step: int = 5
    cluster_radii: Tuple[int, ...] = (5, 10)

    # The tower cluster is only worth a hub once the tier allows more
    # towers than the core cluster holds.
    core_towers: int = 2

    # Containers may sit closer to the border than clusters.
    container_margin: int = 1
    controller_container_range: Tuple[int, int] = (2, 3)


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

class BasePlanner:
    """Runs planning passes against an injected PlanStore and pathfinder."""

    def __init__(
        self,
        store: PlanStore,
        pathfinder: PathfindingService,
        config: Optional[PlannerConfig] = None,
    ) -> None:
        self.store = store
        self.pathfinder = pathfinder
        self.cfg = config or PlannerConfig()
        self.roads = RoadNetworkPlanner(pathfinder, self.cfg.road)
        self.sealer = EntranceSealer(self.cfg.seal)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_planning_pass(self, site: Site) -> PlanningSummary:
        tick = site.tick
        plan = self.store.load(site.name)
        before = len(plan)
        summary = PlanningSummary()
        fixed = site.fixed_objects()
        placer = StampPlacer(
            site.terrain,
            plan,
            site.inventory,
            tier=site.tier,
            config=self.cfg.placement,
            tick=tick,
            fixed=fixed,
        )
        log.plan_event("PASS_START", f"{site.name} tier={site.tier} plan={len(plan)}", tick=tick)

        result = find_anchor(
            site.terrain, site.controller, site.spawn, self.cfg.anchor, tick=tick, reserved=fixed
        )
        summary.anchor = result.anchor

        if result.anchor is None:
            summary.warnings.append(PlanningWarning(
                WarningKind.NO_ANCHOR,
                f"no tile with wall distance >= {self.cfg.anchor.min_wall_distance}",
            ))
        else:
            self._plan_layout(site, result.anchor, placer, summary)

        if self.cfg.seal_enabled and (result.anchor is not None or self.cfg.seal_without_anchor):
            self._seal(site, placer, summary)

        self.store.save(site.name, plan)
        summary.structures_added = len(plan) - before
        log.plan_event(
            "PASS_DONE",
            f"{site.name} +{summary.structures_added} structures, "
            f"{len(summary.warnings)} warnings | {plan.summary()}",
            tick=tick,
        )
        return summary

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _plan_layout(
        self,
        site: Site,
        anchor: Tile,
        placer: StampPlacer,
        summary: PlanningSummary,
    ) -> None:
        summary.reports.append(placer.place(CORE_STAMP, anchor))

        for source in site.sources:
            tile = self._container_tile(placer, source, anchor, 1, 1)
            if tile is None:
                log.debug("BasePlanner: no container tile next to %s", source, tick=site.tick)
                continue
            summary.reports.append(
                placer.place(SOURCE_CONTAINER_STAMP, tile, margin=self.cfg.container_margin)
            )

        lo, hi = self.cfg.controller_container_range
        tile = self._container_tile(placer, site.controller, anchor, lo, hi)
        if tile is not None:
            summary.reports.append(
                placer.place(CONTROLLER_CONTAINER_STAMP, tile, margin=self.cfg.container_margin)
            )

        clusters = self._place_clusters(site, anchor, placer, summary)

        pairs = self.roads.standard_pairs(site, anchor, clusters)
        network = self.roads.plan_roads(pairs, placer)
        summary.reports.extend(r.report for r in network.routes)
        for pair in network.unreachable:
            summary.warnings.append(PlanningWarning(
                WarningKind.PATH_UNREACHABLE,
                f"{pair.label}: {pair.origin} → {pair.goal} (range {pair.approach_range})",
            ))

    def _place_clusters(
        self,
        site: Site,
        anchor: Tile,
        placer: StampPlacer,
        summary: PlanningSummary,
    ) -> List[Tuple[str, Tile]]:
        committed: List[Tuple[str, Tile]] = []
        used = set()

        for hub in self.cluster_candidates(anchor):
            if not placer.can_place(EXTENSION_FIELD_STAMP, hub):
                continue
            present = _stamp_present(placer.plan, EXTENSION_FIELD_STAMP, hub)
            if not present and placer.remaining(BuildingKind.EXTENSION) <= 0:
                break
            summary.reports.append(placer.place(EXTENSION_FIELD_STAMP, hub))
            committed.append((EXTENSION_FIELD_STAMP.name, hub))
            used.add(hub)

        if tier_limit(BuildingKind.TOWER, site.tier) > self.cfg.core_towers:
            for hub in self.cluster_candidates(anchor):
                if hub in used or not placer.can_place(TOWER_CLUSTER_STAMP, hub):
                    continue
                summary.reports.append(placer.place(TOWER_CLUSTER_STAMP, hub))
                committed.append((TOWER_CLUSTER_STAMP.name, hub))
                break

        return committed

    def _seal(self, site: Site, placer: StampPlacer, summary: PlanningSummary) -> None:
        seal_plan = self.sealer.compute(
            site.terrain,
            is_blocked=lambda tile: placer.is_blocked(tile, ignore=_SEAL_KINDS),
            tick=site.tick,
        )
        summary.reports.append(self.sealer.fold(seal_plan, placer))
        for tile in seal_plan.unsealable:
            summary.warnings.append(PlanningWarning(
                WarningKind.UNSEALABLE_ENTRANCE,
                f"{tile} cannot be fortified at any depth",
            ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def cluster_candidates(self, anchor: Tile) -> List[Tile]:
        """Lattice hubs around ``anchor``, ring by ring, nearest-looking first."""
        step = self.cfg.cluster_step
        offsets = []
        for ring in self.cfg.cluster_radii:
            for dy in range(-ring, ring + 1, step):
                for dx in range(-ring, ring + 1, step):
                    if max(abs(dx), abs(dy)) == ring:
                        offsets.append((ring, abs(dx) + abs(dy), dy, dx))
        offsets.sort()
        return [anchor.offset(dx, dy) for _, _, dy, dx in offsets]

    def _container_tile(
        self,
        placer: StampPlacer,
        target: Tile,
        anchor: Tile,
        lo: int,
        hi: int,
    ) -> Optional[Tile]:
        candidates = []
        for dy in range(-hi, hi + 1):
            for dx in range(-hi, hi + 1):
                if not lo <= max(abs(dx), abs(dy)) <= hi:
                    continue
                tile = target.offset(dx, dy)
                verdict = placer.verdict(tile, BuildingKind.CONTAINER, margin=self.cfg.container_margin)
                if verdict in (Verdict.OK, Verdict.DUPLICATE):
                    candidates.append((tile.range_to(anchor), tile.y, tile.x, tile))
        if not candidates:
            return None
        return min(candidates)[3]


def _stamp_present(plan: Plan, stamp: Stamp, hub: Tile) -> bool:
    """True if any non-road entry of ``stamp`` at ``hub`` is already planned."""
    return any(
        plan.contains(hub.x + e.dx, hub.y + e.dy, e.kind)
        for e in stamp
        if not e.kind.is_road
    )
