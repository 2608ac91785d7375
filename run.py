"""
Run script for ColonyPlanner using config.py settings.

Builds a synthetic site, runs the planning pass DEMO_PASSES times against an
in-memory plan store, then prints the population targets and worker bodies
the throughput planner derives for it.
"""

from ColonyPlanner.analysis.throughput import ThroughputPlanner, body_cost, next_role_to_spawn, worker_name
from ColonyPlanner.construction import BasePlanner, InMemoryPlanStore, PlannerConfig
from ColonyPlanner.construction.entrance_sealer import SealConfig
from ColonyPlanner.logger import get_logger
from ColonyPlanner.pathfinding import GridPathfinder
from ColonyPlanner.construction.structures import BuildingKind, Plan, StructureRole
from ColonyPlanner.site import Inventory, Site, Terrain, TerrainGrid, Tile
from config import (
    DEMO_BUILD_SOURCE_CONTAINERS,
    DEMO_ENERGY_CAPACITY,
    DEMO_PASSES,
    DEMO_SITE,
    DEMO_TIER,
    DEMO_TOWERS,
    FORTIFICATION_POLICY,
    SEAL_WITHOUT_ANCHOR,
    SITE_NAME,
    SITE_SIZE,
)

log = get_logger()


def build_demo_terrain(kind: str, size: int) -> TerrainGrid:
    """Synthetic terrain for the demo; the real terrain comes from the simulation."""
    walled = TerrainGrid.walled(size)
    if kind == "two_gaps":
        gaps = [(x, 0) for x in range(10, 13)] + [(x, size - 1) for x in range(30, 33)]
        return walled.with_terrain(gaps, Terrain.OPEN)
    if kind == "cramped":
        rock = TerrainGrid.open(size).with_terrain(
            [(x, y) for y in range(size) for x in range(size) if x % 4 and y % 4],
            Terrain.IMPASSABLE,
        )
        return rock
    if kind == "open":
        openings = (
            [(x, 0) for x in range(18, 23)]
            + [(x, 0) for x in range(26, 28)]
            + [(0, y) for y in range(30, 34)]
            + [(size - 1, 15)]
        )
        swamp = [(x, y) for x in range(30, 36) for y in range(30, 36)]
        return walled.with_terrain(openings, Terrain.OPEN).with_terrain(swamp, Terrain.HAZARDOUS)
    raise ValueError(f"unknown demo site {kind!r}")


def build_demo_site() -> Site:
    terrain = build_demo_terrain(DEMO_SITE, SITE_SIZE)
    mid = SITE_SIZE // 2
    return Site(
        name=SITE_NAME,
        terrain=terrain,
        spawn=Tile(mid - 3, mid),
        controller=Tile(mid + 8, mid - 12),
        sources=[Tile(8, 8), Tile(SITE_SIZE - 8, SITE_SIZE - 10)],
        tier=DEMO_TIER,
        energy_capacity=DEMO_ENERGY_CAPACITY,
    )


def build_demo_inventory(plan: Plan) -> Inventory:
    """Pretend part of the plan already stands, so the workforce has something to react to."""
    built = []
    if DEMO_BUILD_SOURCE_CONTAINERS:
        built.extend(plan.with_role(StructureRole.SOURCE_CONTAINER))
    built.extend([e for e in plan if e.kind == BuildingKind.TOWER][:DEMO_TOWERS])
    return Inventory(structures=[(e.x, e.y, e.kind) for e in built])


def main():
    """Plan a demo site and report what the planner decided"""

    log.info("=" * 50)
    log.info("ColonyPlanner demo: %s (%s)", SITE_NAME, DEMO_SITE)
    log.info("=" * 50)

    site = build_demo_site()
    log.info("Tier %d, energy capacity %d, policy %s", site.tier, site.energy_capacity, FORTIFICATION_POLICY)

    store = InMemoryPlanStore()
    pathfinder = GridPathfinder()
    config = PlannerConfig(
        seal=SealConfig(policy=FORTIFICATION_POLICY),
        seal_without_anchor=SEAL_WITHOUT_ANCHOR,
    )
    planner = BasePlanner(store, pathfinder, config)

    for n in range(1, DEMO_PASSES + 1):
        summary = planner.run_planning_pass(site)
        log.info("Pass %d: +%d structures, anchor %s", n, summary.structures_added, summary.anchor)
        for warning in summary.warnings:
            log.warning("  %s", warning)

    plan = store.load(site.name)
    log.info("Plan: %s", plan.summary())
    site.inventory = build_demo_inventory(plan)

    throughput = ThroughputPlanner.for_site(site, pathfinder, plan)
    profile = throughput.profile
    log.info(
        "Throughput: avg distance %.1f, round trip %.1f, carry %d, efficiency %.3f",
        profile.avg_distance,
        profile.round_trip,
        profile.carrier_capacity,
        profile.efficiency,
    )

    targets = throughput.population_targets(site.tier, site.energy_capacity)
    bodies = throughput.body_composition(site.tier, site.energy_capacity)
    for role, count in targets.items():
        body = bodies[role]
        log.info(
            "  %-9s x%d  %s (%d energy)",
            role.value,
            count,
            " ".join(p.value for p in body),
            body_cost(body),
        )

    role = next_role_to_spawn(targets, {})
    if role is not None:
        log.info("Next spawn: %s", worker_name(role))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log.info("Demo stopped by user")
    except Exception as e:
        log.exception("Unexpected error in main: %s", e)
