"""
StampPlacer — validates and commits stamps into the shared Plan.

Contract
--------
    placer = StampPlacer(terrain, plan, inventory, tier=site.tier,
                         fixed=site.fixed_objects())

    placer.can_place(CORE_STAMP, anchor)      -> bool
    report = placer.place(CORE_STAMP, anchor) -> PlacementReport
    report.added                              # structures actually appended

Per-offset validation
---------------------
  1. The absolute tile lies inside the inset boundary (``margin`` tiles from
     every edge; the outer rows are kept free for fortifications).
  2. The tile is not impassable terrain.
  3. Fixed objects (the spawn, the controller, resource nodes) are occupied
     for every kind, roads included. Only a spawn onto the spawn tile
     passes, as a duplicate.
  4. Occupancy, checked against the Plan *and* the inventory (built
     structures plus construction markers):
       - same kind already there       → duplicate, silent no-op
       - road onto anything else       → allowed (roads go under buildings)
       - non-road onto a non-road      → conflict, skipped
       - non-road onto empty / roads   → allowed
  5. Tier gating: once planned + built structures of a kind reach the tier
     limit, further entries of that kind are skipped as ``locked``.

A failing offset is skipped and the rest of the stamp is still attempted.
Nothing here raises; outcomes are counted on the PlacementReport and logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from ColonyPlanner.construction.stamps import Stamp, StampEntry
from ColonyPlanner.construction.structures import (
    BuildingKind,
    Plan,
    PlannedStructure,
    StructureRole,
    tier_limit,
)
from ColonyPlanner.logger import get_logger
from ColonyPlanner.site import Inventory, InventoryQuery, TerrainGrid, Tile

log = get_logger()


# Default inset for clusters: rows/columns 0..2 from each edge stay free.
DEFAULT_MARGIN: int = 3


class Verdict(Enum):
    OK        = auto()
    DUPLICATE = auto()
    BOUNDS    = auto()
    TERRAIN   = auto()
    OCCUPIED  = auto()
    LOCKED    = auto()

    @property
    def is_conflict(self) -> bool:
        return self in (Verdict.BOUNDS, Verdict.TERRAIN, Verdict.OCCUPIED)


@dataclass
class PlacementConfig:
    """Tunable constants for StampPlacer."""

    margin: int = DEFAULT_MARGIN

    # When False, tier limits are ignored (used by tooling that wants the
    # full eventual layout regardless of what is unlocked now).
    enforce_tier_limits: bool = True


@dataclass
class PlacementReport:
    """Outcome of a single ``place()`` call."""

    stamp: str
    anchor: Tile
    added: int = 0
    duplicates: int = 0
    conflicts: int = 0
    locked: int = 0

    @property
    def attempted(self) -> int:
        return self.added + self.duplicates + self.conflicts + self.locked

    def merge(self, other: "PlacementReport") -> None:
        self.added += other.added
        self.duplicates += other.duplicates
        self.conflicts += other.conflicts
        self.locked += other.locked

    def __str__(self) -> str:
        return (
            f"{self.stamp}@{self.anchor}: +{self.added} "
            f"dup={self.duplicates} conflict={self.conflicts} locked={self.locked}"
        )


class StampPlacer:
    """
    Places stamps against one shared Plan.

    Stateless apart from the references it is handed: the Plan is the only
    thing it mutates, and every check re-reads the Plan's current contents,
    so placements are order-independent in correctness (not in outcome).
    """

    def __init__(
        self,
        terrain: TerrainGrid,
        plan: Plan,
        inventory: Optional[InventoryQuery] = None,
        tier: int = 8,
        config: Optional[PlacementConfig] = None,
        tick: Optional[int] = None,
        fixed: Optional[Mapping[Tuple[int, int], Optional[BuildingKind]]] = None,
    ) -> None:
        self.terrain = terrain
        self.plan = plan
        self.inventory: InventoryQuery = inventory if inventory is not None else Inventory()
        self.fixed: Dict[Tile, Optional[BuildingKind]] = {
            Tile(*t): kind for t, kind in (fixed or {}).items()
        }
        self.tier = tier
        self.cfg = config or PlacementConfig()
        self.tick = tick

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def can_place(
        self,
        stamp: Stamp,
        anchor: Tuple[int, int],
        margin: Optional[int] = None,
    ) -> bool:
        """
        True if every non-road entry of ``stamp`` would be added or is already
        present. Roads never make a stamp unplaceable; tier limits are not
        considered (a cluster site stays valid as the tier rises).
        """
        anchor = Tile(*anchor)
        for entry in stamp:
            if entry.kind.is_road:
                continue
            verdict = self._check(self._target(anchor, entry), entry.kind, margin)
            if verdict.is_conflict:
                return False
        return True

    def place(
        self,
        stamp: Stamp,
        anchor: Tuple[int, int],
        margin: Optional[int] = None,
        role: Optional[StructureRole] = None,
    ) -> PlacementReport:
        """
        Commit every valid entry of ``stamp`` at ``anchor`` into the Plan.

        ``margin`` overrides the configured inset for this call only.
        ``role`` overrides the stamp's role on the created entries.
        """
        anchor = Tile(*anchor)
        report = PlacementReport(stamp=stamp.name, anchor=anchor)
        role = role or stamp.role

        for entry in stamp:
            tile = self._target(anchor, entry)
            verdict = self._check(tile, entry.kind, margin)
            if verdict == Verdict.OK and self._is_locked(entry.kind):
                verdict = Verdict.LOCKED

            if verdict == Verdict.OK:
                if self.plan.add(PlannedStructure(tile.x, tile.y, entry.kind, role)):
                    report.added += 1
                else:
                    report.conflicts += 1
            elif verdict == Verdict.DUPLICATE:
                report.duplicates += 1
            elif verdict == Verdict.LOCKED:
                report.locked += 1
            else:
                report.conflicts += 1
                log.debug(
                    "StampPlacer: %s %s at %s skipped (%s)",
                    stamp.name,
                    entry.kind.value,
                    tile,
                    verdict.name.lower(),
                    tick=self.tick,
                )

        log.placement(
            stamp.name,
            anchor,
            added=report.added,
            duplicates=report.duplicates,
            conflicts=report.conflicts,
            locked=report.locked,
            tick=self.tick,
        )
        return report

    def verdict(
        self,
        tile: Tuple[int, int],
        kind: BuildingKind,
        margin: Optional[int] = None,
    ) -> Verdict:
        """Single-tile check without touching the Plan (tier limits included)."""
        verdict = self._check(Tile(*tile), kind, margin)
        if verdict == Verdict.OK and self._is_locked(kind):
            return Verdict.LOCKED
        return verdict

    def is_blocked(
        self,
        tile: Tuple[int, int],
        ignore: FrozenSet[BuildingKind] = frozenset(),
    ) -> bool:
        """True if a non-road (other than the ``ignore`` kinds) is planned or built on ``tile``."""
        tile = Tile(*tile)
        if tile in self.fixed:
            return True
        present = self.plan.kinds_at(tile) | self.inventory.kinds_at(tile)
        return any(not k.is_road and k not in ignore for k in present)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _target(anchor: Tile, entry: StampEntry) -> Tile:
        return anchor.offset(entry.dx, entry.dy)

    def _in_inset(self, tile: Tile, margin: int) -> bool:
        size = self.terrain.size
        return margin <= tile.x < size - margin and margin <= tile.y < size - margin

    def _check(self, tile: Tile, kind: BuildingKind, margin: Optional[int]) -> Verdict:
        margin = self.cfg.margin if margin is None else margin
        if not self._in_inset(tile, margin):
            return Verdict.BOUNDS
        if not self.terrain.is_passable(tile.x, tile.y):
            return Verdict.TERRAIN
        if tile in self.fixed:
            return Verdict.DUPLICATE if self.fixed[tile] == kind else Verdict.OCCUPIED

        present = self.plan.kinds_at(tile) | self.inventory.kinds_at(tile)
        if kind in present:
            return Verdict.DUPLICATE
        if kind.is_road:
            return Verdict.OK
        if any(not k.is_road for k in present):
            return Verdict.OCCUPIED
        return Verdict.OK

    def remaining(self, kind: BuildingKind) -> int:
        """How many more ``kind`` structures the current tier still unlocks."""
        existing = self.plan.count(kind) + self._built_outside_plan(kind)
        return tier_limit(kind, self.tier) - existing

    def _is_locked(self, kind: BuildingKind) -> bool:
        return self.cfg.enforce_tier_limits and self.remaining(kind) <= 0

    def _built_outside_plan(self, kind: BuildingKind) -> int:
        """Built structures of ``kind`` (fixed spawn included) that the Plan does not already account for."""
        built = {Tile(*tile) for tile, k in self.inventory if k == kind}
        built.update(tile for tile, k in self.fixed.items() if k == kind)
        return sum(1 for tile in built if not self.plan.contains(tile.x, tile.y, kind))
