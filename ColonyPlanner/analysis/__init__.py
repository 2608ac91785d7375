"""
ColonyPlanner.analysis — read-only analysis of a site.

Public API
----------
    from ColonyPlanner.analysis import find_anchor, distance_matrix
    from ColonyPlanner.analysis import (
        ThroughputPlanner,
        ThroughputProfile,
        measure_throughput,
        population_targets,
        body_composition,
        Role,
    )
"""

from ColonyPlanner.analysis.terrain_analyzer import (
    AnchorConfig,
    AnchorResult,
    distance_matrix,
    find_anchor,
)
from ColonyPlanner.analysis.throughput import (
    BodyPart,
    Role,
    ThroughputConfig,
    ThroughputPlanner,
    ThroughputProfile,
    body_composition,
    construction_pending,
    has_infrastructure,
    measure_throughput,
    population_targets,
)

__all__ = [
    "AnchorConfig",
    "AnchorResult",
    "distance_matrix",
    "find_anchor",
    "BodyPart",
    "Role",
    "ThroughputConfig",
    "ThroughputPlanner",
    "ThroughputProfile",
    "body_composition",
    "construction_pending",
    "has_infrastructure",
    "measure_throughput",
    "population_targets",
]
