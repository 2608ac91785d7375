"""
ColonyPlanner — base-layout planning and logistics throughput for one site.

Public API
----------
    from ColonyPlanner.site import Site, TerrainGrid, Inventory, Tile
    from ColonyPlanner.pathfinding import GridPathfinder
    from ColonyPlanner.construction import BasePlanner, InMemoryPlanStore, PlannerConfig
    from ColonyPlanner.analysis import ThroughputPlanner, population_targets, body_composition
"""
