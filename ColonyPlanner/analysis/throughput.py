"""
Throughput Planner — round-trip math, worker population and body sizing.

Everything here is a pure function of (tier, energy capacity, path costs)
plus a handful of colony counts, which the caller passes in or
``ThroughputPlanner.for_site`` reads off the inventory and the Plan.
Nothing is cached, nothing is mutated.

Model
-----
    avg_distance   mean path cost spawn → resource node (approach range 1)
    T              round trip = 2 * avg_distance + k                (k = 4)
    C              carry parts wanted per hauler = ceil(0.4 * T)
    efficiency     1 / (1 + T / 50)   (transit overhead discount)

    carry needed   = extraction_rate * T / (unit_capacity * efficiency)
    per hauler     = min(0.4 * T, hauler carry the tier band + energy allow)
    haulers        = ceil(carry needed / per hauler)

Longer routes need more cargo in flight; once a hauler body is capped by the
energy it can cost, that extra cargo can only come from more haulers, so the
count grows with distance and never shrinks.

Energy budget (per tick)
------------------------
    total       extraction rate over all nodes (10 per node)
    upkeep      miner + hauler body cost / 1500 (body lifetime)
    towers      2 per tower
    repairs     5
    builders    min(8, 0.4 * available) when construction is pending, else 0
    upgraders   whatever remains (never below 1)

Bootstrap
---------
No workers at all → one harvester with the minimal body. While energy
capacity is under 550 or fewer than two built containers sit within range 2
of a node, a small harvester/upgrader/builder crew stands in for the
miner/hauler economy. Construction counts as pending while a marker is
down or any planned structure is not yet built.

Public API
----------
    profile = measure_throughput(site, pathfinder)
    profile = ThroughputProfile.from_avg_distance(10.0)
    population_targets(tier, energy_capacity, profile)   -> {Role: count}
    body_composition(tier, energy_capacity, profile)     -> {Role: [BodyPart]}
    energy_budget(profile, bodies, counts)               -> EnergyBudget
    next_role_to_spawn(targets, counts)                  -> Role | None
    construction_pending(plan, inventory)                -> bool
    has_infrastructure(sources, inventory, capacity)     -> bool
    ThroughputPlanner.for_site(site, pathfinder, plan)   -> facade
    worker_name(Role.HAULER)                             -> "haul:3fa9"
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ColonyPlanner.construction.road_network import RoadConfig, build_cost_matrix
from ColonyPlanner.construction.structures import BuildingKind, Plan, tier_energy_capacity
from ColonyPlanner.logger import get_logger
from ColonyPlanner.pathfinding import path_cost
from ColonyPlanner.site import InventoryQuery, PathfindingService, Site, Tile

log = get_logger()


# ---------------------------------------------------------------------------
# Body parts and roles
# ---------------------------------------------------------------------------

class BodyPart(Enum):
    WORK  = "work"
    CARRY = "carry"
    MOVE  = "move"

    @property
    def cost(self) -> int:
        return _PART_COST[self]


_PART_COST: Dict[BodyPart, int] = {
    BodyPart.WORK: 100,
    BodyPart.CARRY: 50,
    BodyPart.MOVE: 50,
}

W, C, M = BodyPart.WORK, BodyPart.CARRY, BodyPart.MOVE


class Role(Enum):
    HARVESTER = "harvester"
    MINER     = "miner"
    HAULER    = "hauler"
    UPGRADER  = "upgrader"
    BUILDER   = "builder"

    @property
    def prefix(self) -> str:
        return _ROLE_PREFIX[self]


_ROLE_PREFIX: Dict[Role, str] = {
    Role.HARVESTER: "harv",
    Role.MINER: "mine",
    Role.HAULER: "haul",
    Role.UPGRADER: "upgr",
    Role.BUILDER: "bldr",
}

# Smallest repeatable unit per role, used when a band template is unaffordable.
ROLE_PATTERN: Dict[Role, Tuple[BodyPart, ...]] = {
    Role.HARVESTER: (W, C, M),
    Role.MINER: (W, W, M),
    Role.HAULER: (C, C, M),
    Role.UPGRADER: (W, C, M),
    Role.BUILDER: (W, C, M),
}

MINIMAL_BODY: Tuple[BodyPart, ...] = (W, C, M)

# (minimum tier energy capacity, templates), highest band first.
BODY_BANDS: Tuple[Tuple[int, Dict[Role, Tuple[BodyPart, ...]]], ...] = (
    (1800, {
        Role.MINER: (W, W, W, W, W, M),
        Role.HAULER: (C,) * 8 + (M,) * 4,
        Role.UPGRADER: (W, W, W, C, C, M, M, M),
        Role.BUILDER: (W, W, W, C, C, M, M, M),
    }),
    (1300, {
        Role.MINER: (W, W, W, W, W, M),
        Role.HAULER: (C,) * 6 + (M,) * 3,
        Role.UPGRADER: (W, W, C, C, M, M),
        Role.BUILDER: (W, W, C, C, M, M),
    }),
    (800, {
        Role.MINER: (W, W, W, W, W, M),
        Role.HAULER: (C,) * 4 + (M,) * 2,
        Role.UPGRADER: (W, W, C, M),
        Role.BUILDER: (W, W, C, M),
    }),
    (0, {
        Role.MINER: (W, W, W, M),
        Role.HAULER: (C, C, M),
        Role.UPGRADER: (W, C, M),
        Role.BUILDER: (W, C, M),
    }),
)

PRODUCTION_PRIORITY: Tuple[Role, ...] = (Role.MINER, Role.HAULER, Role.UPGRADER, Role.BUILDER)
BOOTSTRAP_PRIORITY: Tuple[Role, ...] = (Role.HARVESTER, Role.BUILDER, Role.UPGRADER)


def body_cost(body: Sequence[BodyPart]) -> int:
    return sum(part.cost for part in body)


def count_parts(body: Sequence[BodyPart], part: BodyPart) -> int:
    return sum(1 for p in body if p == part)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class ThroughputConfig:
    """Tunable constants for the Throughput Planner."""

    turnaround_ticks: int = 4           # k in T = 2 * avg + k
    carry_ratio: float = 0.4            # C = ceil(carry_ratio * T)
    efficiency_horizon: float = 50.0    # efficiency = 1 / (1 + T / horizon)
    unit_capacity: int = 50             # cargo per CARRY part
    extraction_rate: float = 10.0       # energy / tick / resource node

    body_lifetime: int = 1500
    tower_upkeep: float = 2.0
    repair_upkeep: float = 5.0
    builder_energy_cap: float = 8.0
    builder_share: float = 0.4
    upgrader_min_energy: float = 1.0
    build_energy_per_work: float = 5.0
    upgrade_energy_per_work: float = 1.0

    max_upgraders: int = 6
    max_builders: int = 3

    bootstrap_capacity: int = 550       # below this the colony stays in bootstrap

    # Built containers within this range of a node count as its source
    # container; production starts once this many exist.
    source_container_range: int = 2
    min_source_containers: int = 2

    # Path cost assumed for a node the pathfinder cannot reach.
    unreachable_distance: float = 25.0


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

@dataclass
class ThroughputProfile:
    path_costs: List[float]
    avg_distance: float
    round_trip: float
    carrier_capacity: int
    efficiency: float
    node_count: int = 1

    @classmethod
    def from_path_costs(
        cls,
        path_costs: Sequence[float],
        config: Optional[ThroughputConfig] = None,
    ) -> "ThroughputProfile":
        cfg = config or ThroughputConfig()
        costs = [float(c) for c in path_costs]
        avg = sum(costs) / len(costs) if costs else 0.0
        return cls._build(costs, avg, len(costs), cfg)

    @classmethod
    def from_avg_distance(
        cls,
        avg_distance: float,
        config: Optional[ThroughputConfig] = None,
        node_count: int = 1,
    ) -> "ThroughputProfile":
        if avg_distance < 0:
            raise ValueError(f"avg_distance must be >= 0, got {avg_distance}")
        cfg = config or ThroughputConfig()
        return cls._build([float(avg_distance)] * node_count, float(avg_distance), node_count, cfg)

    @classmethod
    def _build(cls, costs, avg, node_count, cfg: ThroughputConfig) -> "ThroughputProfile":
        round_trip = 2 * avg + cfg.turnaround_ticks
        return cls(
            path_costs=list(costs),
            avg_distance=avg,
            round_trip=round_trip,
            carrier_capacity=math.ceil(cfg.carry_ratio * round_trip),
            efficiency=1.0 / (1.0 + round_trip / cfg.efficiency_horizon),
            node_count=node_count,
        )


def measure_throughput(
    site: Site,
    pathfinder: PathfindingService,
    plan: Optional[Plan] = None,
    config: Optional[ThroughputConfig] = None,
    road_config: Optional[RoadConfig] = None,
) -> ThroughputProfile:
    """Path cost spawn → each node on the road cost matrix, averaged."""
    cfg = config or ThroughputConfig()
    costs = build_cost_matrix(
        site.terrain, plan or Plan(), site.inventory, road_config, fixed=site.fixed_objects()
    )
    path_costs: List[float] = []
    for source in site.sources:
        path = pathfinder.shortest_path(site.spawn, source, costs, approach_range=1)
        if path is None:
            log.warning(
                "measure_throughput: %s unreachable from spawn, assuming cost %.0f",
                source,
                cfg.unreachable_distance,
                tick=site.tick,
            )
            path_costs.append(cfg.unreachable_distance)
        else:
            path_costs.append(path_cost(path, costs))
    profile = ThroughputProfile.from_path_costs(path_costs, cfg)
    log.debug(
        "measure_throughput: avg=%.1f T=%.1f C=%d eff=%.3f",
        profile.avg_distance,
        profile.round_trip,
        profile.carrier_capacity,
        profile.efficiency,
        tick=site.tick,
    )
    return profile


# ---------------------------------------------------------------------------
# Bodies
# ---------------------------------------------------------------------------

def band_templates(tier: int) -> Dict[Role, Tuple[BodyPart, ...]]:
    """Body templates for the band the tier's target capacity falls in."""
    target = tier_energy_capacity(tier)
    for floor, templates in BODY_BANDS:
        if target >= floor:
            return templates
    return BODY_BANDS[-1][1]


def fit_body(role: Role, template: Sequence[BodyPart], energy_capacity: int) -> List[BodyPart]:
    """
    ``template`` if affordable, else the role pattern repeated as often as
    ``energy_capacity`` allows (never more parts than the template), else
    whatever parts of one pattern fit.
    """
    if body_cost(template) <= energy_capacity:
        return list(template)

    pattern = ROLE_PATTERN[role]
    repeats = min(energy_capacity // body_cost(pattern), max(1, len(template) // len(pattern)))
    if repeats >= 1:
        body = list(pattern) * repeats
    else:
        body = []
        spent = 0
        for part in pattern:
            if spent + part.cost <= energy_capacity:
                body.append(part)
                spent += part.cost
        log.debug(
            "fit_body: %s cannot afford one %s unit at %d energy, using %s",
            role.value,
            [p.value for p in pattern],
            energy_capacity,
            [p.value for p in body],
        )
    return sorted(body, key=lambda p: list(BodyPart).index(p))


def hauler_body(carry: int) -> List[BodyPart]:
    """``carry`` CARRY parts and one MOVE per two CARRY."""
    return [C] * carry + [M] * math.ceil(carry / 2)


def affordable_hauler_carry(energy_capacity: int, limit: Optional[int] = None) -> int:
    carry = 0
    while (limit is None or carry < limit) and body_cost(hauler_body(carry + 1)) <= energy_capacity:
        carry += 1
    return carry


def hauler_carry_cap(tier: int, energy_capacity: int) -> int:
    """Most CARRY parts a hauler may have: the band template, within budget."""
    band = count_parts(band_templates(tier)[Role.HAULER], C)
    return affordable_hauler_carry(energy_capacity, limit=band)


def body_composition(
    tier: int,
    energy_capacity: int,
    profile: Optional[ThroughputProfile] = None,
) -> Dict[Role, List[BodyPart]]:
    """Per-role part lists; every body costs at most ``energy_capacity``."""
    if energy_capacity < 0:
        raise ValueError(f"energy_capacity must be >= 0, got {energy_capacity}")
    templates = band_templates(tier)
    bodies: Dict[Role, List[BodyPart]] = {
        Role.HARVESTER: fit_body(Role.HARVESTER, MINIMAL_BODY, energy_capacity),
    }
    for role in PRODUCTION_PRIORITY:
        template = templates[role]
        if role == Role.HAULER and profile is not None:
            carry = min(profile.carrier_capacity, hauler_carry_cap(tier, energy_capacity))
            template = tuple(hauler_body(max(1, carry)))
        bodies[role] = fit_body(role, template, energy_capacity)
    return bodies


# ---------------------------------------------------------------------------
# Population
# ---------------------------------------------------------------------------

@dataclass
class EnergyBudget:
    total: float
    upkeep: float
    towers: float
    repairs: float
    available: float
    builders: float
    upgraders: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "total": self.total,
            "upkeep": self.upkeep,
            "towers": self.towers,
            "repairs": self.repairs,
            "builders": self.builders,
            "upgraders": self.upgraders,
        }


def hauler_count(
    profile: ThroughputProfile,
    tier: int,
    energy_capacity: int,
    config: Optional[ThroughputConfig] = None,
) -> int:
    cfg = config or ThroughputConfig()
    rate = profile.node_count * cfg.extraction_rate
    needed = rate * profile.round_trip / (cfg.unit_capacity * profile.efficiency)
    per_hauler = min(cfg.carry_ratio * profile.round_trip, hauler_carry_cap(tier, energy_capacity))
    if per_hauler <= 0:
        return 0
    return math.ceil(needed / per_hauler)


def energy_budget(
    profile: ThroughputProfile,
    bodies: Mapping[Role, Sequence[BodyPart]],
    counts: Mapping[Role, int],
    towers: int = 0,
    construction_pending: bool = False,
    config: Optional[ThroughputConfig] = None,
) -> EnergyBudget:
    cfg = config or ThroughputConfig()
    total = profile.node_count * cfg.extraction_rate
    upkeep = sum(
        body_cost(bodies[role]) / cfg.body_lifetime * counts.get(role, 0)
        for role in (Role.MINER, Role.HAULER)
    )
    tower_cost = towers * cfg.tower_upkeep
    available = max(0.0, total - upkeep - tower_cost - cfg.repair_upkeep)
    builders = min(cfg.builder_energy_cap, cfg.builder_share * available) if construction_pending else 0.0
    upgraders = max(cfg.upgrader_min_energy, available - builders)
    return EnergyBudget(
        total=total,
        upkeep=upkeep,
        towers=tower_cost,
        repairs=cfg.repair_upkeep,
        available=available,
        builders=builders,
        upgraders=upgraders,
    )


def bootstrap_targets(
    energy_capacity: int,
    construction_pending: bool = False,
) -> Dict[Role, int]:
    return {
        Role.HARVESTER: min(2, max(1, energy_capacity // 250)),
        Role.UPGRADER: 1,
        Role.BUILDER: 1 if construction_pending else 0,
    }


def built_structures(inventory: InventoryQuery) -> List[Tuple[Tile, BuildingKind]]:
    """Finished structures only; construction markers are left out."""
    markers = {(Tile(*tile), kind) for tile, kind in inventory.pending()}
    return [(Tile(*tile), kind) for tile, kind in inventory if (Tile(*tile), kind) not in markers]


def construction_pending(plan: Plan, inventory: InventoryQuery) -> bool:
    """True while a construction marker is down or a planned structure is still missing."""
    if inventory.pending():
        return True
    return any(entry.kind not in inventory.kinds_at(entry.tile) for entry in plan)


def has_infrastructure(
    sources: Sequence[Tuple[int, int]],
    inventory: InventoryQuery,
    energy_capacity: int,
    config: Optional[ThroughputConfig] = None,
) -> bool:
    """Enough built source containers and enough capacity to leave bootstrap."""
    cfg = config or ThroughputConfig()
    containers = [
        tile for tile, kind in built_structures(inventory)
        if kind == BuildingKind.CONTAINER
        and any(tile.range_to(src) <= cfg.source_container_range for src in sources)
    ]
    return len(containers) >= cfg.min_source_containers and energy_capacity >= cfg.bootstrap_capacity


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def population_targets(
    tier: int,
    energy_capacity: int,
    profile: ThroughputProfile,
    towers: int = 0,
    construction_pending: bool = False,
    worker_count: Optional[int] = None,
    has_infrastructure: bool = True,
    config: Optional[ThroughputConfig] = None,
    tick: Optional[int] = None,
) -> Dict[Role, int]:
    """
    Target worker count per role.

    ``worker_count`` is the number of workers alive now (None = unknown,
    skip the empty-colony check). ``has_infrastructure`` is False while the
    source containers are still missing.
    """
    cfg = config or ThroughputConfig()

    if worker_count == 0:
        targets = {Role.HARVESTER: 1}
    elif energy_capacity < cfg.bootstrap_capacity or not has_infrastructure:
        targets = bootstrap_targets(energy_capacity, construction_pending)
    else:
        bodies = body_composition(tier, energy_capacity, profile)
        counts = {
            Role.MINER: profile.node_count,
            Role.HAULER: hauler_count(profile, tier, energy_capacity, cfg),
        }
        budget = energy_budget(profile, bodies, counts, towers, construction_pending, cfg)

        upg_work = max(1, count_parts(bodies[Role.UPGRADER], W))
        upg_min = 2 if tier >= 3 else 1
        upgraders = math.ceil(budget.upgraders / (upg_work * cfg.upgrade_energy_per_work))
        counts[Role.UPGRADER] = _clamp(upgraders, upg_min, cfg.max_upgraders)

        if construction_pending:
            bld_work = max(1, count_parts(bodies[Role.BUILDER], W))
            builders = math.ceil(budget.builders / (bld_work * cfg.build_energy_per_work))
            counts[Role.BUILDER] = _clamp(builders, 1, cfg.max_builders)
        else:
            counts[Role.BUILDER] = 0
        targets = counts

    log.population({role.value: n for role, n in targets.items()}, tick=tick)
    return targets


def next_role_to_spawn(targets: Mapping[Role, int], counts: Mapping[Role, int]) -> Optional[Role]:
    """First under-target role in spawn priority order, or None."""
    order = BOOTSTRAP_PRIORITY if Role.HARVESTER in targets else PRODUCTION_PRIORITY
    for role in order:
        if counts.get(role, 0) < targets.get(role, 0):
            return role
    return None


def worker_name(role: Role, rng: Optional[random.Random] = None) -> str:
    """Cosmetic worker name; the only random value the planner produces."""
    bits = (rng or random).getrandbits(16)
    return f"{role.prefix}:{bits:04x}"


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

@dataclass
class ThroughputPlanner:
    """
    Binds a ThroughputProfile so callers only pass tier and capacity.

    ``for_site`` also reads the colony state off the site: whether anything
    is left to build, whether the source containers stand, and how many
    towers are up. Explicit keyword arguments to ``population_targets``
    still win.
    """

    profile: ThroughputProfile
    config: ThroughputConfig = field(default_factory=ThroughputConfig)
    pending: bool = False
    infrastructure: bool = True
    towers: int = 0

    @classmethod
    def for_site(
        cls,
        site: Site,
        pathfinder: PathfindingService,
        plan: Optional[Plan] = None,
        config: Optional[ThroughputConfig] = None,
    ) -> "ThroughputPlanner":
        cfg = config or ThroughputConfig()
        plan = plan or Plan()
        built = built_structures(site.inventory)
        return cls(
            measure_throughput(site, pathfinder, plan, cfg),
            cfg,
            pending=construction_pending(plan, site.inventory),
            infrastructure=has_infrastructure(site.sources, site.inventory, site.energy_capacity, cfg),
            towers=sum(1 for _, kind in built if kind == BuildingKind.TOWER),
        )

    def population_targets(self, tier: int, energy_capacity: int, **kwargs) -> Dict[Role, int]:
        kwargs.setdefault("construction_pending", self.pending)
        kwargs.setdefault("has_infrastructure", self.infrastructure)
        kwargs.setdefault("towers", self.towers)
        return population_targets(tier, energy_capacity, self.profile, config=self.config, **kwargs)

    def body_composition(self, tier: int, energy_capacity: int) -> Dict[Role, List[BodyPart]]:
        return body_composition(tier, energy_capacity, self.profile)

    def hauler_count(self, tier: int, energy_capacity: int) -> int:
        return hauler_count(self.profile, tier, energy_capacity, self.config)
