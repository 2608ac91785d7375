"""
Default PathfindingService — weighted 8-way A* over a cost matrix.

The planner only depends on the ``PathfindingService`` protocol in
``site.py``; this is the implementation the demo and the tests use.

Cost model
----------
``costs`` is a float ``[y, x]`` array. Entering a tile costs ``costs[y, x]``
regardless of whether the step is straight or diagonal (Chebyshev movement).
``np.inf`` marks a tile that can never be entered.

Approach range
--------------
The search stops at the first tile whose Chebyshev distance to the goal is
≤ ``approach_range``. Range 0 means "stand on the goal", range 1 "stand
next to it". The returned path always starts with the origin and ends with
that stop tile.

Determinism
-----------
Heap entries are ``(f, g, counter, tile)``; the insertion counter breaks ties
so two runs over the same inputs expand tiles in the same order.
"""

from __future__ import annotations

import heapq
import itertools
import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from ColonyPlanner.site import Tile

DIRECTIONS_8: Tuple[Tuple[int, int], ...] = (
    (0, -1), (1, 0), (0, 1), (-1, 0),
    (1, -1), (1, 1), (-1, 1), (-1, -1),
)


def chebyshev(a: Tuple[int, int], b: Tuple[int, int]) -> int:
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def path_cost(path: List[Tile], costs: np.ndarray) -> float:
    """Sum of entry costs along ``path`` (the origin is free)."""
    return float(sum(costs[t.y, t.x] for t in path[1:]))


class GridPathfinder:
    """
    A* with an admissible Chebyshev heuristic scaled by the cheapest
    enterable tile in the matrix.

    ``max_expansions`` bounds the search on pathological inputs; ``None``
    means the whole grid may be expanded.
    """

    def __init__(self, max_expansions: Optional[int] = None) -> None:
        self.max_expansions = max_expansions
        self.last_expansions: int = 0

    def shortest_path(
        self,
        origin: Tuple[int, int],
        goal: Tuple[int, int],
        costs: np.ndarray,
        approach_range: int = 0,
    ) -> Optional[List[Tile]]:
        origin, goal = Tile(*origin), Tile(*goal)
        height, width = costs.shape
        if approach_range < 0:
            raise ValueError(f"approach_range must be >= 0, got {approach_range}")

        finite = costs[np.isfinite(costs)]
        step_floor = float(finite.min()) if finite.size else 0.0

        def heuristic(t: Tile) -> float:
            return max(0, chebyshev(t, goal) - approach_range) * step_floor

        counter = itertools.count()
        frontier: List[Tuple[float, float, int, Tile]] = [
            (heuristic(origin), 0.0, next(counter), origin)
        ]
        came_from: Dict[Tile, Optional[Tile]] = {origin: None}
        cost_so_far: Dict[Tile, float] = {origin: 0.0}
        limit = self.max_expansions if self.max_expansions is not None else width * height
        expansions = 0

        while frontier:
            _, g, _, current = heapq.heappop(frontier)
            if g > cost_so_far[current]:
                continue

            if chebyshev(current, goal) <= approach_range:
                self.last_expansions = expansions
                return self._reconstruct(came_from, current)

            expansions += 1
            if expansions > limit:
                break

            for dx, dy in DIRECTIONS_8:
                nx, ny = current.x + dx, current.y + dy
                if not (0 <= nx < width and 0 <= ny < height):
                    continue
                step = float(costs[ny, nx])
                if math.isinf(step):
                    continue
                nxt = Tile(nx, ny)
                new_cost = g + step
                if nxt not in cost_so_far or new_cost < cost_so_far[nxt]:
                    cost_so_far[nxt] = new_cost
                    came_from[nxt] = current
                    heapq.heappush(frontier, (new_cost + heuristic(nxt), new_cost, next(counter), nxt))

        self.last_expansions = expansions
        return None

    @staticmethod
    def _reconstruct(came_from: Dict[Tile, Optional[Tile]], end: Tile) -> List[Tile]:
        path: List[Tile] = []
        node: Optional[Tile] = end
        while node is not None:
            path.append(node)
            node = came_from[node]
        path.reverse()
        return path
