"""Tests for round-trip math, hauler counts, body sizing and population targets."""

import random
import re

import pytest

from ColonyPlanner.analysis.throughput import (
    C,
    M,
    W,
    BodyPart,
    Role,
    ThroughputConfig,
    ThroughputPlanner,
    ThroughputProfile,
    body_composition,
    body_cost,
    construction_pending,
    energy_budget,
    fit_body,
    hauler_body,
    has_infrastructure,
    hauler_count,
    measure_throughput,
    next_role_to_spawn,
    population_targets,
    worker_name,
)
from ColonyPlanner.construction.structures import (
    TIER_ENERGY_CAPACITY,
    BuildingKind,
    Plan,
    PlannedStructure,
    StructureRole,
)
from ColonyPlanner.site import Inventory, Site, Terrain, Tile

from conftest import ListedInventory

K = BuildingKind


def profile(avg, nodes=1):
    return ThroughputProfile.from_avg_distance(avg, node_count=nodes)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def test_round_trip_and_carrier_capacity():
    p = profile(10)
    assert p.round_trip == 24
    assert p.carrier_capacity == 10
    assert p.efficiency == pytest.approx(1 / (1 + 24 / 50))


def test_profile_from_path_costs_averages():
    p = ThroughputProfile.from_path_costs([8.0, 12.0])
    assert p.avg_distance == 10.0
    assert p.node_count == 2
    assert p.round_trip == 24


def test_negative_distance_rejected():
    with pytest.raises(ValueError):
        ThroughputProfile.from_avg_distance(-1)


def test_measure_throughput_uses_path_cost(walled, pathfinder):
    site = Site("W1N1", walled, spawn=(10, 25), controller=(40, 10), sources=[(21, 25)])
    p = measure_throughput(site, pathfinder)
    assert p.path_costs == [10.0]
    assert p.round_trip == 24


def test_unreachable_node_gets_the_fallback_distance(walled, pathfinder):
    ring = [(x, y) for x in range(39, 42) for y in range(39, 42) if (x, y) != (40, 40)]
    terrain = walled.with_terrain(ring, Terrain.IMPASSABLE)
    site = Site("W1N1", terrain, spawn=(10, 25), controller=(40, 10), sources=[(21, 25), (40, 40)])

    p = measure_throughput(site, pathfinder, config=ThroughputConfig(unreachable_distance=30))
    assert p.path_costs == [10.0, 30.0]
    assert p.avg_distance == 20.0


# ---------------------------------------------------------------------------
# Haulers
# ---------------------------------------------------------------------------

def test_hauler_count_grows_with_distance():
    counts = [hauler_count(profile(d), 1, 300) for d in (5, 10, 20)]
    assert counts == [2, 4, 9]


@pytest.mark.parametrize("tier", [1, 3, 5, 8])
def test_hauler_count_never_shrinks_with_distance(tier):
    capacity = TIER_ENERGY_CAPACITY[tier - 1]
    counts = [hauler_count(profile(d), tier, capacity) for d in range(0, 60)]
    assert counts == sorted(counts)
    assert counts[0] >= 1


def test_more_nodes_need_more_haulers():
    assert hauler_count(profile(10, nodes=2), 4, 1300) > hauler_count(profile(10), 4, 1300)


# ---------------------------------------------------------------------------
# Bodies
# ---------------------------------------------------------------------------

def test_every_body_is_affordable():
    for tier in range(1, 9):
        for capacity in [*range(0, 13000, 50), 199, 251, 549, 799]:
            for p in (None, profile(3), profile(25)):
                for role, body in body_composition(tier, capacity, p).items():
                    assert body_cost(body) <= capacity, (tier, capacity, role)


def test_full_capacity_uses_band_templates():
    bodies = body_composition(8, 12900)
    assert bodies[Role.MINER] == [W] * 5 + [M]
    assert bodies[Role.HAULER] == [C] * 8 + [M] * 4
    assert bodies[Role.UPGRADER] == [W, W, W, C, C, M, M, M]
    assert bodies[Role.HARVESTER] == [W, C, M]


def test_hauler_body_follows_round_trip_within_band():
    assert body_composition(8, 12900, profile(10))[Role.HAULER] == hauler_body(8)
    assert body_composition(8, 12900, profile(2))[Role.HAULER] == hauler_body(4)
    assert body_composition(1, 300, profile(10))[Role.HAULER] == [C, C, M]


def test_short_capacity_falls_back_to_pattern():
    assert fit_body(Role.MINER, [W] * 5 + [M], 400) == [W, W, M]
    assert fit_body(Role.HAULER, [C] * 8 + [M] * 4, 60) == [C]
    assert fit_body(Role.UPGRADER, [W, C, M], 0) == []


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        body_composition(1, -50)


def test_part_costs():
    assert [p.cost for p in BodyPart] == [100, 50, 50]
    assert body_cost([W, W, C, M]) == 300


# ---------------------------------------------------------------------------
# Budget and population
# ---------------------------------------------------------------------------

def test_energy_budget_splits_what_is_left():
    bodies = {Role.MINER: [W] * 5 + [M], Role.HAULER: [C] * 6 + [M] * 3}
    counts = {Role.MINER: 2, Role.HAULER: 3}
    budget = energy_budget(profile(10, nodes=2), bodies, counts, towers=1, construction_pending=True)

    assert budget.total == 20
    assert budget.upkeep == pytest.approx(550 / 1500 * 2 + 450 / 1500 * 3)
    assert budget.towers == 2
    assert budget.available == pytest.approx(20 - budget.upkeep - 2 - 5)
    assert budget.builders == pytest.approx(0.4 * budget.available)
    assert budget.upgraders == pytest.approx(budget.available - budget.builders)


def test_energy_budget_without_construction_and_when_starved():
    bodies = {Role.MINER: [W, W, M], Role.HAULER: [C, C, M]}
    idle = energy_budget(profile(10), bodies, {Role.MINER: 1}, construction_pending=False)
    assert idle.builders == 0
    assert idle.upgraders == pytest.approx(idle.available)

    starved = energy_budget(profile(10), bodies, {Role.MINER: 1}, towers=10)
    assert starved.available == 0
    assert starved.upgraders == 1


def test_production_targets():
    targets = population_targets(4, 1300, profile(10, nodes=2), towers=1, construction_pending=True)
    assert targets == {Role.MINER: 2, Role.HAULER: 3, Role.UPGRADER: 4, Role.BUILDER: 1}

    idle = population_targets(4, 1300, profile(10, nodes=2), towers=1)
    assert idle[Role.BUILDER] == 0


def test_upgrader_floor_rises_from_tier_three():
    assert population_targets(2, 550, profile(10), towers=20)[Role.UPGRADER] == 1
    assert population_targets(3, 800, profile(10), towers=20)[Role.UPGRADER] == 2


def test_role_caps():
    targets = population_targets(8, 12900, profile(5, nodes=10), construction_pending=True)
    assert targets[Role.UPGRADER] <= 6
    assert 1 <= targets[Role.BUILDER] <= 3


def test_empty_colony_spawns_one_harvester():
    assert population_targets(4, 1300, profile(10), worker_count=0) == {Role.HARVESTER: 1}


def test_bootstrap_below_capacity_threshold():
    assert population_targets(1, 300, profile(10), construction_pending=True) == {
        Role.HARVESTER: 1,
        Role.UPGRADER: 1,
        Role.BUILDER: 1,
    }
    assert population_targets(2, 500, profile(10))[Role.HARVESTER] == 2
    assert population_targets(2, 500, profile(10))[Role.BUILDER] == 0


def test_bootstrap_until_containers_exist():
    targets = population_targets(4, 1300, profile(10), has_infrastructure=False)
    assert Role.HARVESTER in targets
    assert Role.MINER not in targets


def test_spawn_priority():
    production = {Role.MINER: 2, Role.HAULER: 3, Role.UPGRADER: 2, Role.BUILDER: 1}
    assert next_role_to_spawn(production, {}) == Role.MINER
    assert next_role_to_spawn(production, {Role.MINER: 2, Role.HAULER: 1}) == Role.HAULER
    assert next_role_to_spawn(production, production) is None

    bootstrap = {Role.HARVESTER: 2, Role.UPGRADER: 1, Role.BUILDER: 1}
    assert next_role_to_spawn(bootstrap, {Role.HARVESTER: 2}) == Role.BUILDER


def test_worker_names():
    name = worker_name(Role.HAULER)
    assert re.fullmatch(r"haul:[0-9a-f]{4}", name)
    assert worker_name(Role.MINER, random.Random(7)) == worker_name(Role.MINER, random.Random(7))


def test_planner_facade(walled, pathfinder):
    site = Site("W1N1", walled, spawn=(10, 25), controller=(40, 10), sources=[Tile(21, 25)])
    planner = ThroughputPlanner.for_site(site, pathfinder)
    assert planner.profile.avg_distance == 10.0
    assert planner.hauler_count(4, 1300) == hauler_count(profile(10), 4, 1300)
    assert planner.population_targets(4, 1300, worker_count=0) == {Role.HARVESTER: 1}
    assert set(planner.body_composition(4, 1300)) == set(Role)


# ---------------------------------------------------------------------------
# Colony state read off the site
# ---------------------------------------------------------------------------

def test_construction_pending_follows_plan_and_markers():
    plan = Plan([
        PlannedStructure(20, 20, K.TOWER, StructureRole.CORE),
        PlannedStructure(20, 21, K.ROAD, StructureRole.CORE),
    ])
    assert construction_pending(plan, Inventory())
    assert construction_pending(plan, Inventory(structures=[(20, 20, K.TOWER)]))

    everything = Inventory(structures=[(20, 20, K.TOWER), (20, 21, K.ROAD)])
    assert not construction_pending(plan, everything)
    assert not construction_pending(Plan(), Inventory())
    assert construction_pending(Plan(), Inventory(construction_sites=[(5, 5, K.WALL)]))


def test_infrastructure_needs_two_built_source_containers():
    sources = [Tile(10, 10), Tile(40, 40)]
    one = ListedInventory(built=[(11, 10, K.CONTAINER)])
    two = ListedInventory(built=[(11, 10, K.CONTAINER), (38, 40, K.CONTAINER)])
    far = ListedInventory(built=[(11, 10, K.CONTAINER), (25, 25, K.CONTAINER)])
    marker = ListedInventory(built=[(11, 10, K.CONTAINER)], markers=[(38, 40, K.CONTAINER)])

    assert has_infrastructure(sources, two, 550)
    assert not has_infrastructure(sources, two, 549)
    assert not has_infrastructure(sources, one, 1300)
    assert not has_infrastructure(sources, far, 1300)
    assert not has_infrastructure(sources, marker, 1300)


def test_facade_reads_colony_state_off_the_site(walled, pathfinder):
    plan = Plan([
        PlannedStructure(20, 25, K.CONTAINER, StructureRole.SOURCE_CONTAINER),
        PlannedStructure(22, 27, K.CONTAINER, StructureRole.SOURCE_CONTAINER),
        PlannedStructure(30, 30, K.TOWER, StructureRole.CORE),
    ])
    built = [(20, 25, K.CONTAINER), (22, 27, K.CONTAINER), (30, 30, K.TOWER)]
    sources = [Tile(21, 25), Tile(21, 27)]

    started = Site("W1N1", walled, (10, 25), (40, 10), sources, tier=4, energy_capacity=1300,
                   inventory=Inventory(structures=built[:2]))
    planner = ThroughputPlanner.for_site(started, pathfinder, plan)
    assert planner.pending
    assert planner.infrastructure
    assert planner.towers == 0
    targets = planner.population_targets(4, 1300)
    assert Role.MINER in targets
    assert targets[Role.BUILDER] >= 1

    done = Site("W1N1", walled, (10, 25), (40, 10), sources, tier=4, energy_capacity=1300,
                inventory=Inventory(structures=built))
    planner = ThroughputPlanner.for_site(done, pathfinder, plan)
    assert not planner.pending
    assert planner.towers == 1
    assert planner.population_targets(4, 1300)[Role.BUILDER] == 0
    assert planner.population_targets(4, 1300, construction_pending=True)[Role.BUILDER] >= 1

    bare = Site("W1N1", walled, (10, 25), (40, 10), sources, tier=4, energy_capacity=1300)
    planner = ThroughputPlanner.for_site(bare, pathfinder, plan)
    assert not planner.infrastructure
    assert Role.HARVESTER in planner.population_targets(4, 1300)
