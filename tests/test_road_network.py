"""Tests for the road cost matrix, route folding and re-planning."""

import numpy as np
import pytest

from ColonyPlanner.construction.road_network import (
    RoadConfig,
    RoadNetworkPlanner,
    RoutePair,
    build_cost_matrix,
)
from ColonyPlanner.construction.stamp_placer import StampPlacer
from ColonyPlanner.construction.structures import BuildingKind, Plan, PlannedStructure, StructureRole
from ColonyPlanner.site import Inventory, Terrain, TerrainGrid, Tile

from conftest import ListedInventory, make_site

K = BuildingKind


def corridor(size=10, row=5, holes=()):
    """Rock everywhere except a single row from x=1 to x=size-2."""
    open_tiles = {(x, row) for x in range(1, size - 1)} - set(holes)
    rock = [(x, y) for y in range(size) for x in range(size) if (x, y) not in open_tiles]
    return TerrainGrid.open(size).with_terrain(rock, Terrain.IMPASSABLE)


def test_cost_matrix_values():
    terrain = TerrainGrid.walled(10).with_terrain([(3, 3)], Terrain.HAZARDOUS)
    plan = Plan([
        PlannedStructure(4, 4, K.ROAD, StructureRole.ROAD_NETWORK),
        PlannedStructure(5, 5, K.EXTENSION, StructureRole.CORE),
        PlannedStructure(7, 7, K.TOWER, StructureRole.CORE),
        PlannedStructure(7, 7, K.ROAD, StructureRole.CORE),
    ])
    inventory = Inventory(structures=[(6, 6, K.ROAD)])

    costs = build_cost_matrix(terrain, plan, inventory)
    assert np.isinf(costs[0, 0])
    assert costs[2, 2] == 1.0
    assert costs[3, 3] == 5.0
    assert costs[4, 4] == 0.5
    assert costs[5, 5] == 11.0
    assert costs[6, 6] == 0.5
    assert costs[7, 7] == 10.5


def test_cost_matrix_reads_a_bare_inventory_query():
    inventory = ListedInventory(built=[(20, 20, K.ROAD), (21, 21, K.TOWER)])
    costs = build_cost_matrix(TerrainGrid.walled(50), Plan(), inventory)
    assert costs[20, 20] == 0.5
    assert costs[21, 21] == 11.0


def test_fixed_objects_are_impassable():
    terrain = TerrainGrid.walled(10)
    plan = Plan([PlannedStructure(4, 4, K.ROAD, StructureRole.ROAD_NETWORK)])
    costs = build_cost_matrix(terrain, plan, fixed=[(4, 4), (6, 6)])
    assert np.isinf(costs[4, 4])
    assert np.isinf(costs[6, 6])
    assert costs[5, 5] == 1.0


def test_route_steps_around_a_fixed_object(walled, pathfinder):
    placer = StampPlacer(walled, Plan(), fixed={(20, 25): None, (10, 25): K.SPAWN})
    roads = RoadNetworkPlanner(pathfinder)

    result = roads.route(RoutePair("source", Tile(10, 25), Tile(30, 25), 1), placer)
    assert result.reachable
    assert Tile(20, 25) not in result.path
    assert not placer.plan.kinds_at((20, 25))
    assert not placer.plan.kinds_at((10, 25))


def test_route_folds_interior_tiles_only(walled, placer, pathfinder):
    roads = RoadNetworkPlanner(pathfinder)
    pair = RoutePair("source", Tile(10, 25), Tile(30, 25), 1)

    result = roads.route(pair, placer)
    assert result.reachable
    assert len(result.path) == 20
    assert result.report.added == 18
    assert result.cost == pytest.approx(19.0)

    plan = placer.plan
    assert not plan.has_road(result.path[0])
    assert not plan.has_road(result.path[-1])
    assert all(plan.has_road(t) for t in result.path[1:-1])
    assert all(e.role == StructureRole.ROAD_NETWORK for e in plan)


def test_second_route_reuses_existing_roads(placer, pathfinder):
    roads = RoadNetworkPlanner(pathfinder)
    pair = RoutePair("source", Tile(10, 25), Tile(30, 25), 1)
    roads.route(pair, placer)
    before = len(placer.plan)

    again = roads.route(pair, placer)
    assert again.report.added == 0
    assert again.report.duplicates == 18
    assert len(placer.plan) == before


def test_road_is_laid_under_a_building_it_must_cross(pathfinder):
    plan = Plan([PlannedStructure(5, 5, K.EXTENSION, StructureRole.EXTENSION_FIELD)])
    placer = StampPlacer(corridor(), plan)
    roads = RoadNetworkPlanner(pathfinder)

    result = roads.route(RoutePair("node", Tile(1, 5), Tile(8, 5), 1), placer)
    assert result.report.added == 5
    assert result.cost == pytest.approx(16.0)
    assert plan.kinds_at((5, 5)) == {K.EXTENSION, K.ROAD}


def test_unreachable_goal_leaves_plan_untouched(pathfinder):
    plan = Plan()
    placer = StampPlacer(corridor(holes=[(4, 5)]), plan)
    roads = RoadNetworkPlanner(pathfinder)

    result = roads.route(RoutePair("node", Tile(1, 5), Tile(8, 5), 1), placer)
    assert not result.reachable
    assert result.path is None
    assert len(plan) == 0


def test_plan_roads_is_idempotent(placer, pathfinder):
    roads = RoadNetworkPlanner(pathfinder)
    pairs = [
        RoutePair("a", Tile(10, 25), Tile(40, 20), 1),
        RoutePair("b", Tile(10, 25), Tile(38, 35), 1),
        RoutePair("c", Tile(10, 25), Tile(20, 5), 3),
    ]
    first = roads.plan_roads(pairs, placer)
    assert first.added > 0
    assert not first.unreachable
    snapshot = placer.plan.to_list()

    second = roads.plan_roads(pairs, placer)
    assert second.added == 0
    assert placer.plan.to_list() == snapshot


def test_plan_roads_reports_unreachable_pairs(pathfinder):
    placer = StampPlacer(corridor(holes=[(4, 5)]), Plan())
    roads = RoadNetworkPlanner(pathfinder)
    pairs = [
        RoutePair("near", Tile(5, 5), Tile(8, 5), 1),
        RoutePair("far", Tile(5, 5), Tile(1, 5), 1),
    ]
    result = roads.plan_roads(pairs, placer)
    assert [p.label for p in result.unreachable] == ["far"]
    assert result.routes[0].reachable


def test_standard_pairs_order_and_ranges(walled, pathfinder):
    site = make_site(walled)
    roads = RoadNetworkPlanner(pathfinder, RoadConfig())
    pairs = roads.standard_pairs(site, Tile(25, 25), [("extension_field", Tile(30, 25))])

    assert [p.label for p in pairs] == [
        "source(8, 8)",
        "source(42, 40)",
        "controller",
        "core",
        "extension_field(30, 25)",
    ]
    assert [p.approach_range for p in pairs] == [1, 1, 3, 1, 1]
    assert all(p.origin == site.spawn for p in pairs)


def test_later_pass_reuses_roads_from_an_earlier_one(placer, pathfinder):
    roads = RoadNetworkPlanner(pathfinder)
    first = roads.plan_roads([RoutePair("a", Tile(10, 25), Tile(30, 25), 1)], placer)
    assert first.added == 18

    # A new pair whose goal hangs just off the old road, routed on its own.
    later = roads.plan_roads([RoutePair("b", Tile(10, 25), Tile(30, 27), 1)], placer)
    (route,) = later.routes
    assert route.report.added == 0
    assert route.report.duplicates == 18
    assert route.path[-1] == Tile(29, 26)


def test_new_pair_merges_onto_earlier_roads(placer, pathfinder):
    roads = RoadNetworkPlanner(pathfinder)
    roads.plan_roads([RoutePair("a", Tile(10, 25), Tile(30, 25), 1)], placer)

    later = roads.plan_roads([RoutePair("b", Tile(10, 25), Tile(40, 25), 1)], placer)
    (route,) = later.routes
    assert route.report.duplicates == 18
    assert route.report.added == 10
    assert all(placer.plan.has_road(t) for t in route.path[1:-1])
