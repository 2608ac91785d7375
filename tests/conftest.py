"""
Shared fixtures for the ColonyPlanner test suite.

Log files go to a throwaway directory so test runs don't litter ./logs.
"""

import os
import tempfile

os.environ.setdefault("COLONY_LOG_DIR", tempfile.mkdtemp(prefix="colony-logs-"))
os.environ.setdefault("COLONY_CONSOLE_LEVEL", "WARNING")

import pytest  # noqa: E402

from ColonyPlanner.construction.base_planner import BasePlanner, PlannerConfig  # noqa: E402
from ColonyPlanner.construction.structures import InMemoryPlanStore, Plan  # noqa: E402
from ColonyPlanner.construction.stamp_placer import StampPlacer  # noqa: E402
from ColonyPlanner.pathfinding import GridPathfinder  # noqa: E402
from ColonyPlanner.site import Site, Terrain, TerrainGrid, Tile  # noqa: E402

SIZE = 50


def two_gap_grid(size: int = SIZE) -> TerrainGrid:
    """Border walls with 3-wide gaps on the north (x 10..12) and south (x 30..32) edges."""
    gaps = [(x, 0) for x in range(10, 13)] + [(x, size - 1) for x in range(30, 33)]
    return TerrainGrid.walled(size).with_terrain(gaps, Terrain.OPEN)


def corridor_grid(size: int = SIZE) -> TerrainGrid:
    """Rock everywhere except every fourth row and column."""
    rock = [(x, y) for y in range(size) for x in range(size) if x % 4 and y % 4]
    return TerrainGrid.open(size).with_terrain(rock, Terrain.IMPASSABLE)


def make_site(terrain: TerrainGrid, tier: int = 8, **kwargs) -> Site:
    defaults = dict(
        name="W1N1",
        terrain=terrain,
        spawn=Tile(22, 25),
        controller=Tile(33, 13),
        sources=[Tile(8, 8), Tile(42, 40)],
        tier=tier,
        energy_capacity=12900,
    )
    defaults.update(kwargs)
    return Site(**defaults)


@pytest.fixture
def walled():
    return TerrainGrid.walled(SIZE)


@pytest.fixture
def two_gaps():
    return two_gap_grid()


@pytest.fixture
def corridors():
    return corridor_grid()


@pytest.fixture
def plan():
    return Plan()


@pytest.fixture
def placer(walled, plan):
    return StampPlacer(walled, plan, tier=8)


@pytest.fixture
def pathfinder():
    return GridPathfinder()


@pytest.fixture
def store():
    return InMemoryPlanStore()


@pytest.fixture
def site(walled):
    return make_site(walled)


@pytest.fixture
def planner(store, pathfinder):
    return BasePlanner(store, pathfinder, PlannerConfig())


class ListedInventory:
    """InventoryQuery over plain lists, without the Inventory dataclass."""

    def __init__(self, built=(), markers=()):
        self.built = [(Tile(x, y), kind) for x, y, kind in built]
        self.markers = [(Tile(x, y), kind) for x, y, kind in markers]

    def kinds_at(self, tile):
        return {kind for t, kind in self.built + self.markers if t == tuple(tile)}

    def count(self, kind):
        return sum(1 for _, k in self.built + self.markers if k == kind)

    def pending(self):
        return list(self.markers)

    def __iter__(self):
        return iter(self.built + self.markers)
