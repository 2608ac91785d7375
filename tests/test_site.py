"""Tests for the in-memory site model."""

import pytest

from ColonyPlanner.construction.structures import BuildingKind
from ColonyPlanner.site import Inventory, Site, Terrain, TerrainGrid, Tile


def test_walled_grid_has_impassable_border():
    grid = TerrainGrid.walled(10)
    assert grid.size == 10
    assert not grid.is_passable(0, 5)
    assert not grid.is_passable(9, 9)
    assert grid.is_passable(1, 1)
    assert int(grid.impassable_mask().sum()) == 36


def test_off_grid_reads_impassable():
    grid = TerrainGrid.open(5)
    assert grid.terrain_kind(-1, 2) == Terrain.IMPASSABLE
    assert grid.terrain_kind(2, 5) == Terrain.IMPASSABLE


def test_from_rows_maps_characters():
    grid = TerrainGrid.from_rows([
        "#..",
        ".~.",
        "..#",
    ])
    assert grid.terrain_kind(0, 0) == Terrain.IMPASSABLE
    assert grid.terrain_kind(1, 1) == Terrain.HAZARDOUS
    assert grid.terrain_kind(2, 2) == Terrain.IMPASSABLE
    assert grid.terrain_kind(1, 0) == Terrain.OPEN


def test_from_rows_rejects_bad_input():
    with pytest.raises(ValueError):
        TerrainGrid.from_rows(["..", ".x"])
    with pytest.raises(ValueError):
        TerrainGrid.from_rows(["...", "..."])


def test_with_terrain_leaves_original_untouched():
    grid = TerrainGrid.open(5)
    rocky = grid.with_terrain([(2, 2)], Terrain.IMPASSABLE)
    assert grid.is_passable(2, 2)
    assert not rocky.is_passable(2, 2)


def test_inventory_counts_markers_and_buildings():
    inv = Inventory(
        structures=[(3, 3, BuildingKind.SPAWN), (3, 3, BuildingKind.ROAD)],
        construction_sites=[(4, 4, BuildingKind.EXTENSION)],
    )
    assert inv.kinds_at(Tile(3, 3)) == {BuildingKind.SPAWN, BuildingKind.ROAD}
    assert inv.count(BuildingKind.EXTENSION) == 1
    assert sorted(kind.value for _, kind in inv) == ["extension", "road", "spawn"]
    assert inv.pending() == [(Tile(4, 4), BuildingKind.EXTENSION)]


def test_site_validates_positions_and_tier():
    grid = TerrainGrid.walled(20)
    site = Site("W1N1", grid, spawn=(5, 5), controller=(10, 10), sources=[(3, 3)])
    assert isinstance(site.spawn, Tile)
    assert site.size == 20

    with pytest.raises(ValueError):
        Site("W1N1", grid, spawn=(25, 5), controller=(10, 10))
    with pytest.raises(ValueError):
        Site("W1N1", grid, spawn=(5, 5), controller=(10, 10), sources=[(3, 30)])
    with pytest.raises(ValueError):
        Site("W1N1", grid, spawn=(5, 5), controller=(10, 10), tier=9)


def test_fixed_objects_cover_spawn_controller_and_nodes():
    site = Site("W1N1", TerrainGrid.walled(20), spawn=(5, 5), controller=(10, 10), sources=[(3, 3), (15, 4)])
    assert site.fixed_objects() == {
        Tile(5, 5): BuildingKind.SPAWN,
        Tile(10, 10): None,
        Tile(3, 3): None,
        Tile(15, 4): None,
    }
