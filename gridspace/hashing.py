"""Spatial hashes that identify a grid cell within a particular grid."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import timedelta

from .precision import DEFAULT_PRECISION
from .timing import GridHashStats

__all__ = ["GridHash", "FastGridHash", "GridHashTracker", "Cell"]

Cell = tuple[int, int, int]

_MAX_RADIUS = 255


def _normalize_cell(cell: Iterable[int]) -> Cell:
    coords = DEFAULT_PRECISION.check_cell(int(c) for c in cell)
    if len(coords) != 3:
        raise ValueError(f"a grid cell needs exactly 3 coordinates, got {len(coords)}")
    return coords  # type: ignore[return-value]


def _entity_bytes(entity: Hashable) -> bytes:
    if isinstance(entity, int) and 0 <= entity < 1 << 64:
        return entity.to_bytes(8, "little")
    return repr(entity).encode("utf-8")


def _pre_hash(parent: Hashable, cell: Cell) -> int:
    hasher = hashlib.blake2b(digest_size=8)
    hasher.update(_entity_bytes(parent))
    for coord in cell:
        hasher.update(coord.to_bytes(16, "little", signed=True))
    return int.from_bytes(hasher.digest(), "little")


@dataclass(frozen=True, eq=False)
class GridHash:
    """A spatial hash shared by all entities in the same cell of the same grid.

    Equality compares the cell and the grid; the precomputed ``pre_hash`` is used as the
    Python hash, so hash collisions are resolved by the full comparison.
    """

    cell: Cell
    grid: Hashable
    pre_hash: int = field(repr=False)

    @classmethod
    def from_parent(cls, parent: Hashable, cell: Iterable[int]) -> GridHash:
        """Hash ``cell`` within the grid entity ``parent``."""
        coords = _normalize_cell(cell)
        return cls(coords, parent, _pre_hash(parent, coords))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GridHash):
            return self.cell == other.cell and self.grid == other.grid
        if isinstance(other, FastGridHash):
            return self.pre_hash == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return self.pre_hash

    def fast_eq(self, other: GridHash) -> bool:
        """Compare hashes only: may give false positives, never false negatives."""
        return self.pre_hash == other.pre_hash

    def adjacent(self, cell_radius: int) -> Iterator[GridHash]:
        """Yield the hashes of all cells within ``cell_radius``, excluding this cell.

        Offsets are visited with x varying fastest, then y, then z.
        """
        if not 0 <= cell_radius <= _MAX_RADIUS:
            raise ValueError(f"cell radius must be in [0, {_MAX_RADIUS}], got {cell_radius}")
        width = 1 + 2 * cell_radius
        x0, y0, z0 = self.cell
        for dz in range(-cell_radius, cell_radius + 1):
            for dy in range(-cell_radius, cell_radius + 1):
                for dx in range(-cell_radius, cell_radius + 1):
                    if dx == dy == dz == 0:
                        continue
                    yield GridHash.from_parent(self.grid, (x0 + dx, y0 + dy, z0 + dz))
        del width


@dataclass(frozen=True, eq=False)
class FastGridHash:
    """A lossy version of :class:`GridHash` that compares the precomputed hash only."""

    value: int

    @classmethod
    def from_grid_hash(cls, grid_hash: GridHash) -> FastGridHash:
        """Take the precomputed hash of ``grid_hash``."""
        return cls(grid_hash.pre_hash)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FastGridHash):
            return self.value == other.value
        if isinstance(other, GridHash):
            return self.value == other.pre_hash
        return NotImplemented

    def __hash__(self) -> int:
        return self.value


class GridHashTracker:
    """Keeps the current :class:`GridHash` of each spatial entity.

    Entities whose hash was created or changed are collected in a short list, so that
    consumers only need to look at what actually moved between cells.
    """

    def __init__(self, stats: GridHashStats | None = None) -> None:
        self.stats = stats
        self._hashes: dict[Hashable, GridHash] = {}
        self._updated: list[Hashable] = []

    def __len__(self) -> int:
        return len(self._hashes)

    def __contains__(self, entity: object) -> bool:
        return entity in self._hashes

    def hash_of(self, entity: Hashable) -> GridHash | None:
        """The current hash of ``entity``, or ``None`` if it is not tracked."""
        return self._hashes.get(entity)

    def update(
        self, spatial_entities: Iterable[tuple[Hashable, Hashable, Iterable[int]]]
    ) -> list[Hashable]:
        """Hash the given ``(entity, parent, cell)`` triples.

        New entities, and entities whose cell or parent changed, are recorded as updated
        and returned in the order they were seen.
        """
        start = time.perf_counter()
        changed: list[Hashable] = []
        for entity, parent, cell in spatial_entities:
            new_hash = GridHash.from_parent(parent, cell)
            old_hash = self._hashes.get(entity)
            if old_hash is None or old_hash != new_hash:
                self._hashes[entity] = new_hash
                changed.append(entity)
        self._updated.extend(changed)
        if self.stats is not None:
            self.stats.hash_update_duration += timedelta(
                seconds=time.perf_counter() - start
            )
        return changed

    def remove(self, entity: Hashable) -> GridHash | None:
        """Stop tracking ``entity``, returning its last hash if it had one."""
        return self._hashes.pop(entity, None)

    def drain_updated(self) -> list[Hashable]:
        """Return and clear the entities updated since the last drain."""
        updated, self._updated = self._updated, []
        return updated