"""
Site model — the read-only world the planner works against.

A *site* is one square tile grid (50×50 by default) with fixed terrain, a
handful of resource nodes, one growth controller and at least one spawn.
Everything in here is input to the planner; nothing in here is mutated by a
planning pass.

Collaborators
-------------
The planner never talks to the simulation directly. It consumes:

  - TerrainQuery       terrain_kind(x, y)
  - InventoryQuery     what is already built or under construction
  - PathfindingService shortest_path(origin, goal, costs, approach_range)
  - PlanStore          load / save the persisted Plan per site
  - TierState          current tier and energy capacity

The Protocols below describe those seams. ``TerrainGrid``, ``Inventory`` and
``Site`` are the in-memory implementations used by the demo and the tests.

Coordinates
-----------
Tiles are ``(x, y)``. numpy arrays are indexed ``[y, x]`` so that a plain
``for y ...: for x ...`` scan and ``np.argmax`` on a flattened array both
walk the grid in the same row-major order.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import IntEnum
from typing import (
    TYPE_CHECKING,
    Dict,
    Iterable,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
)

import numpy as np

if TYPE_CHECKING:
    from ColonyPlanner.construction.structures import BuildingKind, Plan


DEFAULT_SITE_SIZE: int = 50


# ---------------------------------------------------------------------------
# Tiles and terrain
# ---------------------------------------------------------------------------

class Tile(NamedTuple):
    x: int
    y: int

    def range_to(self, other: Tuple[int, int]) -> int:
        """Chebyshev distance — diagonal steps cost the same as straight ones."""
        return max(abs(self.x - other[0]), abs(self.y - other[1]))

    def offset(self, dx: int, dy: int) -> "Tile":
        return Tile(self.x + dx, self.y + dy)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


class Terrain(IntEnum):
    OPEN       = 0
    HAZARDOUS  = 1   # passable but slow (swamp)
    IMPASSABLE = 2


_TERRAIN_CHARS: Dict[str, Terrain] = {
    ".": Terrain.OPEN,
    "~": Terrain.HAZARDOUS,
    "#": Terrain.IMPASSABLE,
}


class TerrainQuery(Protocol):
    size: int

    def terrain_kind(self, x: int, y: int) -> Terrain: ...


class TerrainGrid:
    """
    Immutable N×N terrain snapshot backed by a uint8 numpy array.

    Tiles outside the grid read as IMPASSABLE, so callers can read
    neighbours without bounds checks.
    """

    def __init__(self, cells: np.ndarray) -> None:
        cells = np.asarray(cells, dtype=np.uint8)
        if cells.ndim != 2 or cells.shape[0] != cells.shape[1]:
            raise ValueError(f"terrain grid must be square, got shape {cells.shape}")
        if cells.size and cells.max() > Terrain.IMPASSABLE:
            raise ValueError("terrain grid holds unknown terrain codes")
        self._cells = cells.copy()
        self._cells.setflags(write=False)

    # ── Constructors ──────────────────────────────────────────────────────────

    @classmethod
    def open(cls, size: int = DEFAULT_SITE_SIZE) -> "TerrainGrid":
        return cls(np.full((size, size), Terrain.OPEN, dtype=np.uint8))

    @classmethod
    def walled(cls, size: int = DEFAULT_SITE_SIZE) -> "TerrainGrid":
        """Open interior with a one-tile impassable border."""
        cells = np.full((size, size), Terrain.IMPASSABLE, dtype=np.uint8)
        cells[1:-1, 1:-1] = Terrain.OPEN
        return cls(cells)

    @classmethod
    def from_rows(cls, rows: Sequence[str]) -> "TerrainGrid":
        """
        Build a grid from text rows: ``.`` open, ``~`` hazardous, ``#`` impassable.
        The first row is y = 0.
        """
        try:
            cells = [[_TERRAIN_CHARS[ch] for ch in row] for row in rows]
        except KeyError as exc:
            raise ValueError(f"unknown terrain character {exc.args[0]!r}") from exc
        return cls(np.array(cells, dtype=np.uint8))

    def with_terrain(self, tiles: Iterable[Tuple[int, int]], kind: Terrain) -> "TerrainGrid":
        """Return a copy with ``tiles`` set to ``kind``."""
        cells = self._cells.copy()
        for x, y in tiles:
            cells[y, x] = kind
        return TerrainGrid(cells)

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def size(self) -> int:
        return int(self._cells.shape[0])

    @property
    def cells(self) -> np.ndarray:
        """Read-only ``[y, x]`` view of the terrain codes."""
        return self._cells

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def terrain_kind(self, x: int, y: int) -> Terrain:
        if not self.in_bounds(x, y):
            return Terrain.IMPASSABLE
        return Terrain(int(self._cells[y, x]))

    def is_passable(self, x: int, y: int) -> bool:
        return self.terrain_kind(x, y) != Terrain.IMPASSABLE

    def impassable_mask(self) -> np.ndarray:
        return self._cells == Terrain.IMPASSABLE

    def __repr__(self) -> str:
        walls = int(self.impassable_mask().sum())
        return f"TerrainGrid(size={self.size}, impassable={walls})"


# ---------------------------------------------------------------------------
# Inventory (what already exists on the ground)
# ---------------------------------------------------------------------------

class InventoryQuery(Protocol):
    """
    Iteration yields every ``(tile, kind)`` on the ground, construction
    markers included; ``pending`` lists the markers alone.
    """

    def kinds_at(self, tile: Tuple[int, int]) -> Set["BuildingKind"]: ...

    def count(self, kind: "BuildingKind") -> int: ...

    def __iter__(self) -> Iterator[Tuple[Tuple[int, int], "BuildingKind"]]: ...

    def pending(self) -> List[Tuple[Tuple[int, int], "BuildingKind"]]: ...


@dataclass
class Inventory:
    """
    Built structures and in-progress construction markers.

    Both lists hold ``(x, y, kind)`` triples. Construction markers block
    placement exactly like finished buildings do.
    """

    structures: List[Tuple[int, int, "BuildingKind"]] = field(default_factory=list)
    construction_sites: List[Tuple[int, int, "BuildingKind"]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_tile: Dict[Tile, Set["BuildingKind"]] = defaultdict(set)
        self._counts: Counter = Counter()
        for x, y, kind in [*self.structures, *self.construction_sites]:
            self._by_tile[Tile(x, y)].add(kind)
            self._counts[kind] += 1

    def kinds_at(self, tile: Tuple[int, int]) -> Set["BuildingKind"]:
        return set(self._by_tile.get(Tile(*tile), ()))

    def count(self, kind: "BuildingKind") -> int:
        return self._counts[kind]

    def pending(self) -> List[Tuple[Tile, "BuildingKind"]]:
        """Construction markers not yet finished."""
        return [(Tile(x, y), kind) for x, y, kind in self.construction_sites]

    def __iter__(self) -> Iterator[Tuple[Tile, "BuildingKind"]]:
        for tile, kinds in self._by_tile.items():
            for kind in sorted(kinds, key=lambda k: k.value):
                yield tile, kind


# ---------------------------------------------------------------------------
# Remaining collaborator seams
# ---------------------------------------------------------------------------

class PathfindingService(Protocol):
    def shortest_path(
        self,
        origin: Tuple[int, int],
        goal: Tuple[int, int],
        costs: np.ndarray,
        approach_range: int = 0,
    ) -> Optional[List[Tile]]: ...


class PlanStore(Protocol):
    def load(self, site_name: str) -> "Plan": ...

    def save(self, site_name: str, plan: "Plan") -> None: ...


class TierState(Protocol):
    tier: int
    energy_capacity: int


# ---------------------------------------------------------------------------
# Site
# ---------------------------------------------------------------------------

@dataclass
class Site:
    """
    Everything one planning pass needs to know about a site.

    Fields
    ------
    name : str
        Key used against the PlanStore.
    terrain : TerrainGrid
        Immutable terrain for the pass.
    spawn : Tile
        Primary spawn point; roads and haul distances are measured from here.
    controller : Tile
        The growth controller.
    sources : list[Tile]
        Resource nodes, in the order they are routed.
    tier : int
        Current unlock tier (1–8).
    energy_capacity : int
        Energy available for a single worker body.
    inventory : InventoryQuery
        Already-built structures and construction markers.
    tick : int | None
        Simulation step, only used for log correlation.
    """

    name: str
    terrain: TerrainGrid
    spawn: Tile
    controller: Tile
    sources: List[Tile] = field(default_factory=list)
    tier: int = 1
    energy_capacity: int = 300
    inventory: InventoryQuery = field(default_factory=Inventory)
    tick: Optional[int] = None

    def __post_init__(self) -> None:
        self.spawn = Tile(*self.spawn)
        self.controller = Tile(*self.controller)
        self.sources = [Tile(*s) for s in self.sources]
        for label, tile in [("spawn", self.spawn), ("controller", self.controller)]:
            if not self.terrain.in_bounds(*tile):
                raise ValueError(f"{label} {tile} lies outside the {self.terrain.size}x{self.terrain.size} site")
        for source in self.sources:
            if not self.terrain.in_bounds(*source):
                raise ValueError(f"resource node {source} lies outside the site")
        if not 1 <= self.tier <= 8:
            raise ValueError(f"tier must be between 1 and 8, got {self.tier}")

    @property
    def size(self) -> int:
        return self.terrain.size

    def fixed_objects(self) -> Dict[Tile, Optional["BuildingKind"]]:
        """
        Tiles the site itself occupies: the spawn (as a built spawn) plus the
        controller and every resource node (kind None, never buildable).
        """
        from ColonyPlanner.construction.structures import BuildingKind

        fixed: Dict[Tile, Optional[BuildingKind]] = {self.controller: None}
        fixed.update((source, None) for source in self.sources)
        fixed[self.spawn] = BuildingKind.SPAWN
        return fixed
