"""
ColonyPlanner.construction — the Plan and everything that appends to it.

Public API
----------
    from ColonyPlanner.construction import (
        BasePlanner,
        PlannerConfig,
        PlanningSummary,
        PlanningWarning,
        WarningKind,
        Plan,
        PlannedStructure,
        BuildingKind,
        StructureRole,
        InMemoryPlanStore,
        StampPlacer,
        PlacementReport,
    )
    from ColonyPlanner.construction.stamps import CORE_STAMP, EXTENSION_FIELD_STAMP
    from ColonyPlanner.construction.road_network import RoadNetworkPlanner, build_cost_matrix
    from ColonyPlanner.construction.entrance_sealer import compute_seal_plan, SealPolicy
"""

from ColonyPlanner.construction.structures import (
    BuildingKind,
    InMemoryPlanStore,
    Plan,
    PlannedStructure,
    StructureRole,
)
from ColonyPlanner.construction.stamp_placer import PlacementReport, StampPlacer
from ColonyPlanner.construction.base_planner import (
    BasePlanner,
    PlannerConfig,
    PlanningSummary,
    PlanningWarning,
    WarningKind,
)

__all__ = [
    "BasePlanner",
    "PlannerConfig",
    "PlanningSummary",
    "PlanningWarning",
    "WarningKind",
    "Plan",
    "PlannedStructure",
    "BuildingKind",
    "StructureRole",
    "InMemoryPlanStore",
    "StampPlacer",
    "PlacementReport",
]
