"""
Road Network Planner — cost-aware routing and path→plan folding.

For every (origin, goal, approach range) pair the planner builds a fresh
cost matrix from terrain + the current Plan + the inventory, asks the
PathfindingService for a route, and folds every interior tile of the route
into the Plan as a road.

Cost matrix
-----------
    open        1
    hazardous   5
    impassable  inf      (terrain, plus the site's fixed objects)
    road        0.5      (planned or built, replaces the terrain cost)
    non-road    +10      (planned or built, passable but discouraged)

Because the matrix is rebuilt before each route, later routes see the roads
laid by earlier ones and merge onto them. No attempt is made to minimise the
total road count across routes.

Re-planning
-----------
``plan_roads`` first looks for a route made of roads alone: every interior
tile already a planned or built road, only the stop tile free. A pair that
an earlier pass (or an earlier pair of this call) already connected
therefore folds nothing but duplicates, even after new clusters changed the
matrix. Only pairs with no such route are routed on the full matrix, where
every existing road is cheap, so new routes merge onto the old network
instead of running beside it.

Folding
-------
The path returned by the pathfinder starts at the origin and ends at the stop
tile (inside approach range of the goal). Both endpoints are left alone; the
tiles in between become roads through the StampPlacer's road rule, so an
existing road is a duplicate and a road under a planned building is legal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from ColonyPlanner.construction.stamp_placer import PlacementReport, StampPlacer, Verdict
from ColonyPlanner.construction.structures import (
    BuildingKind,
    Plan,
    PlannedStructure,
    StructureRole,
)
from ColonyPlanner.logger import get_logger
from ColonyPlanner.pathfinding import path_cost
from ColonyPlanner.site import (
    Inventory,
    InventoryQuery,
    PathfindingService,
    Site,
    Terrain,
    TerrainGrid,
    Tile,
)

log = get_logger()

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class RoadConfig:
    """Tunable constants for RoadNetworkPlanner."""

    open_cost: float = 1.0
    hazardous_cost: float = 5.0
    road_cost: float = 0.5
    occupied_penalty: float = 10.0

    # Approach ranges: stop next to a node, a few tiles short of the
    # controller, next to a cluster hub.
    resource_range: int = 1
    controller_range: int = 3
    cluster_range: int = 1

    # Roads may run closer to the edge than clusters, but never on it.
    margin: int = 1


@dataclass(frozen=True)
class RoutePair:
    label: str
    origin: Tile
    goal: Tile
    approach_range: int


@dataclass
class RouteResult:
    pair: RoutePair
    path: Optional[List[Tile]]
    report: PlacementReport
    cost: float = 0.0

    @property
    def reachable(self) -> bool:
        return self.path is not None


@dataclass
class RoadNetworkResult:
    routes: List[RouteResult] = field(default_factory=list)

    @property
    def added(self) -> int:
        return sum(r.report.added for r in self.routes)

    @property
    def unreachable(self) -> List[RoutePair]:
        return [r.pair for r in self.routes if not r.reachable]


# ---------------------------------------------------------------------------
# Cost matrix
# ---------------------------------------------------------------------------

def build_cost_matrix(
    terrain: TerrainGrid,
    plan: Plan,
    inventory: Optional[InventoryQuery] = None,
    config: Optional[RoadConfig] = None,
    fixed: Iterable[Tuple[int, int]] = (),
) -> np.ndarray:
    """
    Float ``[y, x]`` traversal costs for the current plan state.

    ``fixed`` tiles (spawn, controller, resource nodes) are impassable: a
    route may start on one but never steps onto one.
    """
    cfg = config or RoadConfig()
    inventory = inventory if inventory is not None else Inventory()

    cells = terrain.cells
    costs = np.full(cells.shape, cfg.open_cost, dtype=float)
    costs[cells == Terrain.HAZARDOUS] = cfg.hazardous_cost

    occupied: List[Tuple[Tile, BuildingKind]] = [(e.tile, e.kind) for e in plan]
    occupied.extend((Tile(*t), kind) for t, kind in inventory)

    roads: Set[Tile] = set()
    blocked: Set[Tile] = set()
    for tile, kind in occupied:
        if kind.is_road:
            roads.add(tile)
        else:
            blocked.add(tile)

    for tile in roads:
        costs[tile.y, tile.x] = cfg.road_cost
    for tile in blocked:
        costs[tile.y, tile.x] += cfg.occupied_penalty

    costs[cells == Terrain.IMPASSABLE] = np.inf
    for x, y in fixed:
        costs[y, x] = np.inf
    return costs


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

class RoadNetworkPlanner:
    """Routes pairs one at a time against a shared Plan."""

    def __init__(self, pathfinder: PathfindingService, config: Optional[RoadConfig] = None) -> None:
        self.pathfinder = pathfinder
        self.cfg = config or RoadConfig()

    def standard_pairs(
        self,
        site: Site,
        core_anchor: Optional[Tile],
        cluster_anchors: Sequence[Tuple[str, Tile]] = (),
    ) -> List[RoutePair]:
        """Spawn → each node, spawn → controller, spawn → core and each cluster."""
        cfg = self.cfg
        pairs = [
            RoutePair(f"source{tuple(src)}", site.spawn, src, cfg.resource_range)
            for src in site.sources
        ]
        pairs.append(RoutePair("controller", site.spawn, site.controller, cfg.controller_range))
        if core_anchor is not None:
            pairs.append(RoutePair("core", site.spawn, core_anchor, cfg.cluster_range))
        for name, anchor in cluster_anchors:
            pairs.append(RoutePair(f"{name}{tuple(anchor)}", site.spawn, anchor, cfg.cluster_range))
        return pairs

    def route(
        self,
        pair: RoutePair,
        placer: StampPlacer,
        costs: Optional[np.ndarray] = None,
    ) -> RouteResult:
        """
        Route one pair and fold its interior tiles into ``placer.plan``.

        ``costs`` defaults to the matrix of the Plan as it stands.
        """
        if costs is None:
            costs = build_cost_matrix(
                placer.terrain, placer.plan, placer.inventory, self.cfg, fixed=placer.fixed
            )
        report = PlacementReport(stamp=f"road:{pair.label}", anchor=pair.goal)
        path = self.pathfinder.shortest_path(pair.origin, pair.goal, costs, pair.approach_range)

        if path is None:
            log.warning(
                "RoadNetwork: no route %s → %s for %s",
                pair.origin,
                pair.goal,
                pair.label,
                tick=placer.tick,
            )
            return RouteResult(pair=pair, path=None, report=report)

        cost = path_cost(path, costs)
        for tile in path[1:-1]:
            self._fold(tile, placer, report)

        log.placement(
            report.stamp,
            pair.goal,
            added=report.added,
            duplicates=report.duplicates,
            conflicts=report.conflicts,
            tick=placer.tick,
        )
        return RouteResult(pair=pair, path=path, report=report, cost=cost)

    def plan_roads(self, pairs: Sequence[RoutePair], placer: StampPlacer) -> RoadNetworkResult:
        """Route ``pairs`` in order; each route reuses the roads already in the Plan."""
        result = RoadNetworkResult()
        for pair in pairs:
            costs = build_cost_matrix(
                placer.terrain, placer.plan, placer.inventory, self.cfg, fixed=placer.fixed
            )
            on_roads = self.road_only_costs(pair, placer, costs)
            if self.pathfinder.shortest_path(pair.origin, pair.goal, on_roads, pair.approach_range):
                costs = on_roads
            result.routes.append(self.route(pair, placer, costs))
        return result

    @staticmethod
    def road_only_costs(pair: RoutePair, placer: StampPlacer, costs: np.ndarray) -> np.ndarray:
        """``costs`` with every tile impassable except roads and the tiles ``pair`` may stop on."""
        road = np.zeros(costs.shape, dtype=bool)
        for entry in placer.plan:
            if entry.kind.is_road:
                road[entry.y, entry.x] = True
        for (x, y), kind in placer.inventory:
            if kind.is_road:
                road[y, x] = True

        ys, xs = np.indices(costs.shape)
        stop = np.maximum(np.abs(xs - pair.goal.x), np.abs(ys - pair.goal.y)) <= pair.approach_range
        return np.where(road | stop, costs, np.inf)

    # ------------------------------------------------------------------

    def _fold(self, tile: Tile, placer: StampPlacer, report: PlacementReport) -> None:
        verdict = placer.verdict(tile, BuildingKind.ROAD, margin=self.cfg.margin)
        if verdict == Verdict.OK:
            entry = PlannedStructure(tile.x, tile.y, BuildingKind.ROAD, StructureRole.ROAD_NETWORK)
            if placer.plan.add(entry):
                report.added += 1
            else:
                report.duplicates += 1
        elif verdict == Verdict.DUPLICATE:
            report.duplicates += 1
        elif verdict == Verdict.LOCKED:
            report.locked += 1
        else:
            report.conflicts += 1
