"""
Stamps — reusable offset templates for clusters of buildings.

A stamp is an ordered list of ``StampEntry(dx, dy, kind)`` relative to an
anchor tile. Stamps are immutable. On construction every non-road entry is
moved ahead of every road entry (stable within each group) so a road in a
template can never claim a tile before the building that needs it is tried.

Layouts (``S`` spawn, ``E`` extension, ``T`` tower, ``L`` link, ``St``
storage, ``Tm`` terminal, ``R`` road, ``A`` = the anchor tile)

Core cluster (anchor = storage)::

     R  R  R  R  R
     R  T  L  T  R
     R  S  St Tm R
     R  E  E  E  R
     R  R  R  R  R

Extension field (anchor = road hub)::

     .  .  E  .  .
     .  E  R  E  .
     E  R  A  R  E
     .  E  R  E  .
     .  .  E  .  .

Tower cluster (anchor = road hub)::

     R  T  R
     T  A  T
     R  T  R
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Tuple

from ColonyPlanner.construction.structures import BuildingKind, StructureRole

K = BuildingKind


@dataclass(frozen=True)
class StampEntry:
    dx: int
    dy: int
    kind: BuildingKind


@dataclass(frozen=True)
class Stamp:
    """Named, ordered, immutable offset template."""

    name: str
    role: StructureRole
    entries: Tuple[StampEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        entries = tuple(self.entries)
        ordered = tuple(e for e in entries if not e.kind.is_road) + tuple(
            e for e in entries if e.kind.is_road
        )
        object.__setattr__(self, "entries", ordered)

    @classmethod
    def from_offsets(
        cls,
        name: str,
        role: StructureRole,
        offsets: Iterable[Tuple[int, int, BuildingKind]],
    ) -> "Stamp":
        return cls(name, role, tuple(StampEntry(dx, dy, kind) for dx, dy, kind in offsets))

    @classmethod
    def single(cls, kind: BuildingKind, role: StructureRole, name: str = "") -> "Stamp":
        """One-offset stamp, used for containers and fortification tiles."""
        return cls(name or kind.value, role, (StampEntry(0, 0, kind),))

    @property
    def radius(self) -> int:
        return max((max(abs(e.dx), abs(e.dy)) for e in self.entries), default=0)

    def count(self, kind: BuildingKind) -> int:
        return sum(1 for e in self.entries if e.kind == kind)

    def __iter__(self) -> Iterator[StampEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def _ring(radius: int) -> Iterator[Tuple[int, int]]:
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            if max(abs(dx), abs(dy)) == radius:
                yield dx, dy


CORE_STAMP = Stamp.from_offsets("core", StructureRole.CORE, [
    (0, 0, K.STORAGE),
    (-1, 0, K.SPAWN),
    (1, 0, K.TERMINAL),
    (0, -1, K.LINK),
    (-1, -1, K.TOWER),
    (1, -1, K.TOWER),
    (-1, 1, K.EXTENSION),
    (0, 1, K.EXTENSION),
    (1, 1, K.EXTENSION),
    *((dx, dy, K.ROAD) for dx, dy in _ring(2)),
])

EXTENSION_FIELD_STAMP = Stamp.from_offsets("extension_field", StructureRole.EXTENSION_FIELD, [
    (-1, -1, K.EXTENSION),
    (1, -1, K.EXTENSION),
    (-1, 1, K.EXTENSION),
    (1, 1, K.EXTENSION),
    (0, -2, K.EXTENSION),
    (-2, 0, K.EXTENSION),
    (2, 0, K.EXTENSION),
    (0, 2, K.EXTENSION),
    (0, 0, K.ROAD),
    (0, -1, K.ROAD),
    (-1, 0, K.ROAD),
    (1, 0, K.ROAD),
    (0, 1, K.ROAD),
])

TOWER_CLUSTER_STAMP = Stamp.from_offsets("tower_cluster", StructureRole.TOWER_CLUSTER, [
    (0, -1, K.TOWER),
    (-1, 0, K.TOWER),
    (1, 0, K.TOWER),
    (0, 1, K.TOWER),
    (0, 0, K.ROAD),
    (-1, -1, K.ROAD),
    (1, -1, K.ROAD),
    (-1, 1, K.ROAD),
    (1, 1, K.ROAD),
])

SOURCE_CONTAINER_STAMP = Stamp.single(K.CONTAINER, StructureRole.SOURCE_CONTAINER, "source_container")

CONTROLLER_CONTAINER_STAMP = Stamp.single(K.CONTAINER, StructureRole.CONTROLLER_CONTAINER, "controller_container")

WALL_STAMP = Stamp.single(K.WALL, StructureRole.SEAL, "seal_wall")

GATE_STAMP = Stamp.single(K.GATE, StructureRole.SEAL, "seal_gate")


def seal_stamp(kind: BuildingKind) -> Stamp:
    if kind == K.GATE:
        return GATE_STAMP
    if kind == K.WALL:
        return WALL_STAMP
    raise ValueError(f"{kind.value} is not a fortification kind")
