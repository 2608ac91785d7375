"""
Terrain Analyzer — wall-distance transform and base-anchor search.

Runs once at the start of every planning pass. Produces:

  - a distance matrix: per tile, the Chebyshev distance to the nearest
    impassable tile (0 on impassable tiles), and
  - an anchor: the tile the core cluster is stamped around, or None.

Design notes
------------
- The distance matrix is a fixed-point relaxation over an immutable terrain
  snapshot:  d ← min(d, min₃ₓ₃(d) + 1), walls seeded at 0.  Each step is one
  ``scipy.ndimage.minimum_filter`` call, so the whole transform stays in
  numpy.  Off-grid tiles read as impassable, matching
  ``TerrainGrid.terrain_kind``.
- The number of relaxation steps is capped. With the default cap (the grid
  size) the result is exact. A smaller cap gives a bounded local search:
  tiles the relaxation never reached read ``cap + 1``, which is all the anchor
  threshold needs.
- Scoring is vectorised over the whole grid and masked down to the inset
  candidate region. ``np.argmax`` on a ``[y, x]`` array returns the first
  maximum in row-major order, which is exactly the tie-break we want.

Public API
----------
    dist   = distance_matrix(terrain)                    -> np.ndarray[int]
    scores = score_candidates(terrain, controller, spawn) -> np.ndarray[float]
    result = find_anchor(terrain, controller, spawn)      -> AnchorResult
    result.anchor                                         # Tile | None
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
from scipy.ndimage import minimum_filter

from ColonyPlanner.logger import get_logger
from ColonyPlanner.site import TerrainGrid, Tile

log = get_logger()


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class AnchorConfig:
    """Tunable constants for the anchor search."""

    # Candidates are only taken from tiles at least this far from every edge.
    margin: int = 5

    # The core stamp is 5×5, so the anchor needs 2 clear tiles on every side
    # plus one more so the ring road isn't flush against rock.
    min_wall_distance: int = 3

    wall_weight: float = 2.0
    controller_weight: float = 0.5
    controller_cap: int = 15        # beyond this, distance to the controller stops mattering
    spawn_weight: float = 0.3
    spawn_cap: int = 10

    # Relaxation steps for the distance matrix. None = grid size (exact).
    max_iterations: Optional[int] = None


@dataclass
class AnchorResult:
    anchor: Optional[Tile]
    score: float
    distances: np.ndarray

    @property
    def found(self) -> bool:
        return self.anchor is not None


# ---------------------------------------------------------------------------
# Distance transform
# ---------------------------------------------------------------------------

def distance_matrix(terrain: TerrainGrid, max_iterations: Optional[int] = None) -> np.ndarray:
    """
    Chebyshev distance from every tile to the nearest impassable tile.

    Pure function of ``terrain``. Returns an int ``[y, x]`` array.
    """
    cap = terrain.size if max_iterations is None else max_iterations
    if cap < 0:
        raise ValueError(f"max_iterations must be >= 0, got {max_iterations}")

    dist = np.where(terrain.impassable_mask(), 0.0, np.inf)

    steps = 0
    while steps < cap:
        relaxed = np.minimum(dist, minimum_filter(dist, size=3, mode="constant", cval=0.0) + 1.0)
        steps += 1
        if np.array_equal(relaxed, dist):
            break
        dist = relaxed

    log.debug("distance_matrix: settled after %d relaxation steps (cap %d)", steps, cap)
    dist[np.isinf(dist)] = cap + 1
    return dist.astype(int)


# ---------------------------------------------------------------------------
# Anchor scoring
# ---------------------------------------------------------------------------

def _chebyshev_field(size: int, origin: Tuple[int, int]) -> np.ndarray:
    ys, xs = np.indices((size, size))
    return np.maximum(np.abs(xs - origin[0]), np.abs(ys - origin[1]))


def score_candidates(
    terrain: TerrainGrid,
    controller: Tuple[int, int],
    spawn: Tuple[int, int],
    config: Optional[AnchorConfig] = None,
    distances: Optional[np.ndarray] = None,
    reserved: Iterable[Tuple[int, int]] = (),
) -> np.ndarray:
    """
    Score array over the whole grid; ``-inf`` everywhere a tile cannot be an
    anchor (outside the inset region, too close to a wall, or on one of the
    ``reserved`` tiles the site itself occupies).
    """
    cfg = config or AnchorConfig()
    size = terrain.size
    if distances is None:
        distances = distance_matrix(terrain, cfg.max_iterations)

    ctrl = np.minimum(_chebyshev_field(size, controller), cfg.controller_cap)
    home = np.minimum(_chebyshev_field(size, spawn), cfg.spawn_cap)
    raw = (
        distances * cfg.wall_weight
        - ctrl * cfg.controller_weight
        - home * cfg.spawn_weight
    )

    eligible = np.zeros((size, size), dtype=bool)
    lo, hi = cfg.margin, size - cfg.margin
    if lo < hi:
        eligible[lo:hi, lo:hi] = True
    eligible &= distances >= cfg.min_wall_distance
    for x, y in reserved:
        eligible[y, x] = False

    return np.where(eligible, raw, -np.inf)


def find_anchor(
    terrain: TerrainGrid,
    controller: Tuple[int, int],
    spawn: Tuple[int, int],
    config: Optional[AnchorConfig] = None,
    tick: Optional[int] = None,
    reserved: Iterable[Tuple[int, int]] = (),
) -> AnchorResult:
    """
    Highest-scoring candidate tile, first in row-major order on ties.
    ``reserved`` tiles (spawn, controller, resource nodes) never anchor.

    A None anchor is not an error: the caller logs it and retries later.
    """
    cfg = config or AnchorConfig()
    distances = distance_matrix(terrain, cfg.max_iterations)
    scores = score_candidates(terrain, controller, spawn, cfg, distances, reserved)

    flat = int(np.argmax(scores))
    y, x = divmod(flat, terrain.size)
    best = float(scores[y, x])

    if np.isneginf(best):
        log.warning(
            "find_anchor: no tile with wall distance >= %d inside margin %d",
            cfg.min_wall_distance,
            cfg.margin,
            tick=tick,
        )
        return AnchorResult(anchor=None, score=best, distances=distances)

    anchor = Tile(x, y)
    log.plan_event("ANCHOR", f"{anchor} score={best:.2f} wall={distances[y, x]}", tick=tick)
    return AnchorResult(anchor=anchor, score=best, distances=distances)
