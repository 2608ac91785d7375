"""
Plan — the persisted ledger of planned structure placements.

Responsibility
--------------
This is the single source of truth for "what the planner wants built, and
where". Every planning component appends to the same Plan; the (external)
construction-site issuer reads it and turns entries into real work.

Invariants
----------
  - At most one *non-road* entry per tile.
  - At most one entry per (x, y, kind). Re-adding is a silent no-op.
  - A road entry and a non-road entry may share a tile ("road under
    building"), in either insertion order.
  - Entries are only ever appended; the order is the order of planning.

The Plan itself enforces the last three. Deciding *whether* a non-road may go
on a tile (terrain, bounds, built structures, tier limits) is the
StampPlacer's job — Plan.add() only refuses outright invariant violations.

Tier limits
-----------
``TIER_LIMITS`` mirrors the unlock table of the colony: how many of each
building kind may exist at each tier. ``TIER_ENERGY_CAPACITY`` is the
maximum single-body energy capacity reachable at each tier.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Tuple

from ColonyPlanner.site import Tile


# ---------------------------------------------------------------------------
# Building kinds and roles
# ---------------------------------------------------------------------------

class BuildingKind(Enum):
    SPAWN     = "spawn"
    EXTENSION = "extension"
    ROAD      = "road"
    WALL      = "wall"
    GATE      = "gate"        # passable for us, a wall for everyone else
    TOWER     = "tower"
    STORAGE   = "storage"
    LINK      = "link"
    CONTAINER = "container"
    TERMINAL  = "terminal"

    @property
    def is_road(self) -> bool:
        return self is BuildingKind.ROAD


class StructureRole(Enum):
    """Why an entry is in the plan. Stored on the entry, never re-derived."""

    CORE                 = "core"
    EXTENSION_FIELD      = "extension_field"
    TOWER_CLUSTER        = "tower_cluster"
    SOURCE_CONTAINER     = "source_container"
    CONTROLLER_CONTAINER = "controller_container"
    ROAD_NETWORK         = "road_network"
    SEAL                 = "seal"


MAX_TIER: int = 8

_UNLIMITED = 2500

# kind → counts for tiers 1..8
TIER_LIMITS: Dict[BuildingKind, Tuple[int, ...]] = {
    BuildingKind.SPAWN:     (1, 1, 1, 1, 1, 1, 2, 3),
    BuildingKind.EXTENSION: (0, 5, 10, 20, 30, 40, 50, 60),
    BuildingKind.ROAD:      (_UNLIMITED,) * 8,
    BuildingKind.WALL:      (0,) + (_UNLIMITED,) * 7,
    BuildingKind.GATE:      (0,) + (_UNLIMITED,) * 7,
    BuildingKind.TOWER:     (0, 0, 1, 1, 2, 2, 3, 6),
    BuildingKind.STORAGE:   (0, 0, 0, 1, 1, 1, 1, 1),
    BuildingKind.LINK:      (0, 0, 0, 0, 2, 3, 4, 6),
    BuildingKind.CONTAINER: (5,) * 8,
    BuildingKind.TERMINAL:  (0, 0, 0, 0, 0, 1, 1, 1),
}

TIER_ENERGY_CAPACITY: Tuple[int, ...] = (300, 550, 800, 1300, 1800, 2300, 5600, 12900)


def _clamp_tier(tier: int) -> int:
    return max(1, min(MAX_TIER, tier))


def tier_limit(kind: BuildingKind, tier: int) -> int:
    """How many ``kind`` structures may exist at ``tier``."""
    return TIER_LIMITS[kind][_clamp_tier(tier) - 1]


def tier_energy_capacity(tier: int) -> int:
    """Target (maximum reachable) energy capacity at ``tier``."""
    return TIER_ENERGY_CAPACITY[_clamp_tier(tier) - 1]


# ---------------------------------------------------------------------------
# PlannedStructure
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlannedStructure:
    """
    A single planned placement.

    Fields
    ------
    x, y : int
        Absolute tile.
    kind : BuildingKind
        What to build.
    role : StructureRole | None
        Classification recorded at planning time (which stamp or route put it
        here). Not part of equality: the same (x, y, kind) planned by two
        components is one entry.
    """
    x: int
    y: int
    kind: BuildingKind
    role: Optional[StructureRole] = field(default=None, compare=False)

    @property
    def tile(self) -> Tile:
        return Tile(self.x, self.y)

    @property
    def key(self) -> Tuple[int, int, BuildingKind]:
        return (self.x, self.y, self.kind)

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "type": self.kind.value,
            "role": self.role.value if self.role else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlannedStructure":
        role = data.get("role")
        return cls(
            x=int(data["x"]),
            y=int(data["y"]),
            kind=BuildingKind(data["type"]),
            role=StructureRole(role) if role else None,
        )

    def __str__(self) -> str:
        return f"{self.kind.value}@({self.x}, {self.y})"


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

class Plan:
    """
    Grow-only ordered list of PlannedStructures with a per-tile index.

    Thread-safety: not required (a planning pass is single-threaded).
    """

    def __init__(self, entries: Optional[List[PlannedStructure]] = None) -> None:
        self._entries: List[PlannedStructure] = []
        self._keys: Set[Tuple[int, int, BuildingKind]] = set()
        self._by_tile: Dict[Tile, List[PlannedStructure]] = defaultdict(list)
        self._counts: Counter = Counter()
        for entry in entries or []:
            self.add(entry)

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def add(self, entry: PlannedStructure) -> bool:
        """
        Append an entry unless it duplicates an existing (x, y, kind) or would
        put a second non-road on its tile.

        Returns True if the entry was appended.
        """
        if entry.key in self._keys:
            return False
        if not entry.kind.is_road and self.non_road_at(entry.tile) is not None:
            return False

        self._entries.append(entry)
        self._keys.add(entry.key)
        self._by_tile[entry.tile].append(entry)
        self._counts[entry.kind] += 1
        return True

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def contains(self, x: int, y: int, kind: BuildingKind) -> bool:
        return (x, y, kind) in self._keys

    def entries_at(self, tile: Tuple[int, int]) -> List[PlannedStructure]:
        return list(self._by_tile.get(Tile(*tile), ()))

    def kinds_at(self, tile: Tuple[int, int]) -> Set[BuildingKind]:
        return {e.kind for e in self._by_tile.get(Tile(*tile), ())}

    def non_road_at(self, tile: Tuple[int, int]) -> Optional[PlannedStructure]:
        for entry in self._by_tile.get(Tile(*tile), ()):
            if not entry.kind.is_road:
                return entry
        return None

    def has_road(self, tile: Tuple[int, int]) -> bool:
        return BuildingKind.ROAD in self.kinds_at(tile)

    def count(self, kind: BuildingKind) -> int:
        return self._counts[kind]

    def with_role(self, role: StructureRole) -> List[PlannedStructure]:
        return [e for e in self._entries if e.role == role]

    def __iter__(self) -> Iterator[PlannedStructure]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self._entries]

    @classmethod
    def from_list(cls, data: List[dict]) -> "Plan":
        return cls([PlannedStructure.from_dict(d) for d in data])

    def summary(self) -> str:
        if not self._entries:
            return "(empty)"
        parts = [f"{kind.value}={n}" for kind, n in sorted(self._counts.items(), key=lambda kv: kv[0].value)]
        return f"{len(self._entries)} entries | " + " ".join(parts)


class InMemoryPlanStore:
    """
    PlanStore kept in a dict, keyed by site name.

    Plans are stored serialized so that a loaded Plan never aliases the one a
    caller is still mutating, the same way a persisted store would behave.
    """

    def __init__(self) -> None:
        self._plans: Dict[str, List[dict]] = {}

    def load(self, site_name: str) -> Plan:
        return Plan.from_list(self._plans.get(site_name, []))

    def save(self, site_name: str, plan: Plan) -> None:
        self._plans[site_name] = plan.to_list()

    def __contains__(self, site_name: str) -> bool:
        return site_name in self._plans
