"""
Entrance Sealer — find border openings and fortify them.

Works off raw terrain only (not the anchor), so it can run even when the
anchor search failed.

Pipeline
--------
1. Segmentation
   Each of the four border edges is scanned; contiguous passable tiles form
   an EntranceSegment(edge, start, end). Corner tiles belong to the north
   and south edges only, so an open corner is one opening, not two.

2. Consolidation
   Segments on the same edge separated by at most ``merge_gap`` impassable
   tiles are merged into one entrance group spanning their union.

3. Fortification (one policy per deployment, never both)

   bookend   A wall just past each end of the span (``overhang`` tiles
             outward), one tile in from the border; two tiles in if the
             first is unbuildable.

   curtain   The span, widened by ``curtain_depth`` on each side, projected
             ``curtain_depth`` tiles inward, plus the flank tiles that close
             each end back to the border. Every tile is a wall except the one
             aligned with the entrance midpoint (or the nearest buildable
             curtain tile to it), which is the single gate.

   Entrances of width 1 are never fortified: sealing them would remove the
   only passage instead of controlling it.

A tile is *buildable* when it lies in the safe inset (1..N-2 on both axes),
is not impassable, and is not blocked by an existing non-road. Impassable or
out-of-inset tiles are skipped silently; blocked tiles that leave part of an
entrance open are reported as unsealable.

Public API
----------
    plan = compute_seal_plan(terrain, policy="curtain", is_blocked=placer.is_blocked)
    plan.entries        # PlannedStructure list (wall / gate), de-duplicated
    plan.entrances      # consolidated EntranceSegments
    plan.unsealable     # tiles that could not be fortified
    sealer.fold(plan, placer) -> PlacementReport
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from ColonyPlanner.construction.stamp_placer import PlacementReport, StampPlacer
from ColonyPlanner.construction.stamps import seal_stamp
from ColonyPlanner.construction.structures import BuildingKind, PlannedStructure, StructureRole
from ColonyPlanner.logger import get_logger
from ColonyPlanner.site import TerrainGrid, Tile

log = get_logger()

BlockedFn = Callable[[Tuple[int, int]], bool]


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

class SealPolicy(Enum):
    BOOKEND = "bookend"
    CURTAIN = "curtain"

    @classmethod
    def parse(cls, value: Union[str, "SealPolicy"]) -> "SealPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"unknown fortification policy {value!r} (expected one of: {valid})") from None


@dataclass
class SealConfig:
    """Tunable constants for the Entrance Sealer."""

    policy: SealPolicy = SealPolicy.BOOKEND

    # Same-edge segments this many tiles apart (or fewer) are one entrance.
    merge_gap: int = 5

    # bookend: how far past each end of the span the wall goes, and the
    # deepest row tried before giving up on that tile.
    overhang: int = 1
    max_depth: int = 2

    # curtain: rows inward from the border (also the widening on each side).
    curtain_depth: int = 2

    def __post_init__(self) -> None:
        self.policy = SealPolicy.parse(self.policy)
        if self.curtain_depth < 1 or self.max_depth < 1:
            raise ValueError("seal depths must be >= 1")


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------

class Edge(Enum):
    NORTH = "north"     # y = 0,     inward +y
    SOUTH = "south"     # y = N - 1, inward -y
    WEST  = "west"      # x = 0,     inward +x
    EAST  = "east"      # x = N - 1, inward -x


@dataclass(frozen=True)
class EntranceSegment:
    edge: Edge
    start: int
    end: int

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    @property
    def midpoint(self) -> int:
        return (self.start + self.end) // 2

    def __str__(self) -> str:
        return f"{self.edge.value}[{self.start}..{self.end}] w={self.width}"


def edge_tile(edge: Edge, index: int, depth: int, size: int) -> Tile:
    """Tile ``depth`` rows in from ``edge`` at position ``index`` along it."""
    if edge == Edge.NORTH:
        return Tile(index, depth)
    if edge == Edge.SOUTH:
        return Tile(index, size - 1 - depth)
    if edge == Edge.WEST:
        return Tile(depth, index)
    return Tile(size - 1 - depth, index)


def segment_edges(terrain: TerrainGrid) -> List[EntranceSegment]:
    """
    Maximal passable runs along each border edge, edge by edge, in scan order.

    North and south run the full width; west and east skip the two corner
    tiles, which the north and south scans already cover.
    """
    size = terrain.size
    segments: List[EntranceSegment] = []
    for edge in Edge:
        lo, hi = (0, size - 1) if edge in (Edge.NORTH, Edge.SOUTH) else (1, size - 2)
        run_start: Optional[int] = None
        for i in range(lo, hi + 1):
            t = edge_tile(edge, i, 0, size)
            if terrain.is_passable(t.x, t.y):
                if run_start is None:
                    run_start = i
            elif run_start is not None:
                segments.append(EntranceSegment(edge, run_start, i - 1))
                run_start = None
        if run_start is not None:
            segments.append(EntranceSegment(edge, run_start, hi))
    return segments


def consolidate(segments: List[EntranceSegment], merge_gap: int = 5) -> List[EntranceSegment]:
    """Merge same-edge segments whose gap is at most ``merge_gap`` tiles."""
    groups: List[EntranceSegment] = []
    for seg in segments:
        last = groups[-1] if groups else None
        if last is not None and last.edge == seg.edge and seg.start - last.end - 1 <= merge_gap:
            groups[-1] = EntranceSegment(seg.edge, last.start, max(last.end, seg.end))
        else:
            groups.append(seg)
    return groups


# ---------------------------------------------------------------------------
# Seal plan
# ---------------------------------------------------------------------------

@dataclass
class SealPlan:
    entries: List[PlannedStructure] = field(default_factory=list)
    entrances: List[EntranceSegment] = field(default_factory=list)
    unsealable: List[Tile] = field(default_factory=list)

    @property
    def walls(self) -> List[PlannedStructure]:
        return [e for e in self.entries if e.kind == BuildingKind.WALL]

    @property
    def gates(self) -> List[PlannedStructure]:
        return [e for e in self.entries if e.kind == BuildingKind.GATE]


class EntranceSealer:
    """Computes and folds border fortifications for one terrain snapshot."""

    def __init__(self, config: Optional[SealConfig] = None) -> None:
        self.cfg = config or SealConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute(
        self,
        terrain: TerrainGrid,
        is_blocked: Optional[BlockedFn] = None,
        policy: Optional[Union[str, SealPolicy]] = None,
        tick: Optional[int] = None,
    ) -> SealPlan:
        policy = SealPolicy.parse(policy) if policy is not None else self.cfg.policy
        blocked = is_blocked or (lambda tile: False)
        size = terrain.size

        def buildable(tile: Tile) -> bool:
            return (
                1 <= tile.x <= size - 2
                and 1 <= tile.y <= size - 2
                and terrain.is_passable(tile.x, tile.y)
                and not blocked(tile)
            )

        def skippable(tile: Tile) -> bool:
            inset = 1 <= tile.x <= size - 2 and 1 <= tile.y <= size - 2
            return not inset or not terrain.is_passable(tile.x, tile.y)

        entrances = consolidate(segment_edges(terrain), self.cfg.merge_gap)
        result = SealPlan(entrances=entrances)
        raw: List[PlannedStructure] = []

        for group in entrances:
            if group.width <= 1:
                log.debug("EntranceSealer: %s left open (width 1)", group, tick=tick)
                continue
            if policy == SealPolicy.BOOKEND:
                self._bookend(group, size, buildable, skippable, raw, result.unsealable)
            else:
                self._curtain(group, size, buildable, skippable, raw, result.unsealable)

        result.entries = _dedupe(raw)
        for tile in result.unsealable:
            log.warning("EntranceSealer: cannot fortify %s at any depth", tile, tick=tick)
        log.plan_event(
            "SEAL",
            f"{policy.value}: {len(entrances)} entrances, {len(result.walls)} walls, "
            f"{len(result.gates)} gates, {len(result.unsealable)} unsealable",
            tick=tick,
        )
        return result

    def fold(self, seal_plan: SealPlan, placer: StampPlacer) -> PlacementReport:
        """Commit seal entries through one-offset stamps (margin 1)."""
        total = PlacementReport(stamp="seal", anchor=Tile(0, 0))
        for entry in seal_plan.entries:
            total.merge(placer.place(seal_stamp(entry.kind), entry.tile, margin=1))
        return total

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _bookend(self, group, size, buildable, skippable, out, unsealable) -> None:
        o = self.cfg.overhang
        for index in (group.start - o, group.end + o):
            if not 0 <= index < size:
                continue
            for depth in range(1, self.cfg.max_depth + 1):
                tile = edge_tile(group.edge, index, depth, size)
                if buildable(tile):
                    out.append(PlannedStructure(tile.x, tile.y, BuildingKind.WALL, StructureRole.SEAL))
                    break
            else:
                first = edge_tile(group.edge, index, 1, size)
                if not skippable(first):
                    unsealable.append(first)

    def _curtain(self, group, size, buildable, skippable, out, unsealable) -> None:
        d = self.cfg.curtain_depth
        lo, hi = group.start - d, group.end + d

        row = [edge_tile(group.edge, i, d, size) for i in range(lo, hi + 1)]
        flanks = [
            edge_tile(group.edge, i, depth, size)
            for i in (lo, hi)
            for depth in range(1, d)
        ]

        row_ok = [t for t in row if buildable(t)]
        gate: Optional[Tile] = None
        if row_ok:
            mid = edge_tile(group.edge, group.midpoint, d, size)
            gate = min(row_ok, key=lambda t: (t.range_to(mid), t.y, t.x))
            out.append(PlannedStructure(gate.x, gate.y, BuildingKind.GATE, StructureRole.SEAL))

        for tile in row + flanks:
            if tile == gate:
                continue
            if buildable(tile):
                out.append(PlannedStructure(tile.x, tile.y, BuildingKind.WALL, StructureRole.SEAL))
            elif not skippable(tile):
                unsealable.append(tile)


def _dedupe(entries: List[PlannedStructure]) -> List[PlannedStructure]:
    """Drop repeated (x, y, kind); a gate displaces a wall on the same tile."""
    gates = {e.tile for e in entries if e.kind == BuildingKind.GATE}
    seen: Dict[Tuple[int, int, BuildingKind], PlannedStructure] = {}
    for e in entries:
        if e.kind == BuildingKind.WALL and e.tile in gates:
            continue
        seen.setdefault(e.key, e)
    return list(seen.values())


def compute_seal_plan(
    terrain: TerrainGrid,
    policy: Optional[Union[str, SealPolicy]] = None,
    is_blocked: Optional[BlockedFn] = None,
    config: Optional[SealConfig] = None,
    tick: Optional[int] = None,
) -> SealPlan:
    return EntranceSealer(config).compute(terrain, is_blocked=is_blocked, policy=policy, tick=tick)
