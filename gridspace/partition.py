"""Groups of connected occupied grid cells, kept up to date from a :class:`GridHashMap`."""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass
from datetime import timedelta

from .hashing import Cell, GridHash
from .map import GridHashMap
from .timing import GridHashStats

__all__ = ["GridPartitionId", "GridPartition", "GridPartitionMap"]

# Bound used for the extents of a partition that no longer holds any cell.
_EMPTY_BOUND = 10_000_000_000


def _cell_min(a: Cell, b: Cell) -> Cell:
    return tuple(map(min, a, b))  # type: ignore[return-value]


def _cell_max(a: Cell, b: Cell) -> Cell:
    return tuple(map(max, a, b))  # type: ignore[return-value]


@dataclass(frozen=True)
class GridPartitionId:
    """Uniquely identifies a :class:`GridPartition` within a :class:`GridPartitionMap`."""

    id: int

    def __hash__(self) -> int:
        return hash(self.id)


class GridPartition:
    """A group of connected grid cells, disconnected from all other occupied cells."""

    # Tables smaller than this are drained into an existing table when merging; larger
    # ones are moved over whole, which avoids re-inserting every hash.
    MIN_TABLE_SIZE = 20_000

    def __init__(
        self,
        grid: Hashable,
        tables: Iterable[set[GridHash]],
        min_cell: Cell,
        max_cell: Cell,
    ) -> None:
        self._grid = grid
        self._tables: list[set[GridHash]] = [table for table in tables]
        self._min: Cell = tuple(min_cell)  # type: ignore[assignment]
        self._max: Cell = tuple(max_cell)  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"GridPartition(grid={self._grid!r}, cells={self.num_cells()}, "
            f"min={self._min}, max={self._max})"
        )

    @property
    def grid(self) -> Hashable:
        """The grid this partition resides in."""
        return self._grid

    @property
    def min(self) -> Cell:
        """The minimum cell extent of the partition."""
        return self._min

    @property
    def max(self) -> Cell:
        """The maximum cell extent of the partition."""
        return self._max

    def contains(self, grid_hash: GridHash) -> bool:
        """Whether ``grid_hash`` is in this partition."""
        return any(grid_hash in table for table in self._tables)

    def __contains__(self, grid_hash: object) -> bool:
        return isinstance(grid_hash, GridHash) and self.contains(grid_hash)

    def __iter__(self) -> Iterator[GridHash]:
        for table in self._tables:
            yield from table

    def num_cells(self) -> int:
        """Total number of cells in this partition."""
        return sum(len(table) for table in self._tables)

    def is_empty(self) -> bool:
        """Whether the partition holds no cells."""
        return not self._tables

    def _smallest_table(self) -> int | None:
        if not self._tables:
            return None
        return min(range(len(self._tables)), key=lambda i: len(self._tables[i]))

    def insert(self, grid_hash: GridHash) -> None:
        """Add a cell to the partition, widening its extents."""
        if self.contains(grid_hash):
            return
        index = self._smallest_table()
        if index is None:
            self._tables.append({grid_hash})
        else:
            self._tables[index].add(grid_hash)
        self._min = _cell_min(self._min, grid_hash.cell)
        self._max = _cell_max(self._max, grid_hash.cell)

    def extend(self, other: GridPartition) -> None:
        """Move every cell of ``other`` into this partition, leaving ``other`` empty."""
        tables, other._tables = other._tables, []
        for table in tables:
            index = self._smallest_table() if len(table) < self.MIN_TABLE_SIZE else None
            if index is None:
                self._tables.append(table)
            else:
                self._tables[index].update(table)
        self._min = _cell_min(self._min, other._min)
        self._max = _cell_max(self._max, other._max)

    def remove(self, grid_hash: GridHash) -> bool:
        """Remove a cell from the partition. Returns whether it was present."""
        for index, table in enumerate(self._tables):
            if grid_hash in table:
                table.discard(grid_hash)
                break
        else:
            return False
        if not self._tables[index]:
            self._tables[index] = self._tables[-1]
            self._tables.pop()

        cell = grid_hash.cell
        # Bounds only need recomputing when the removed cell touched them; a cell may
        # touch the minimum on one axis and the maximum on another.
        if any(lo == c for lo, c in zip(self._min, cell)):
            self._compute_min()
        if any(hi == c for hi, c in zip(self._max, cell)):
            self._compute_max()
        return True

    def _compute_min(self) -> None:
        cells = [grid_hash.cell for grid_hash in self]
        if cells:
            self._min = tuple(map(min, *cells)) if len(cells) > 1 else cells[0]
        else:
            self._min = (_EMPTY_BOUND,) * 3

    def _compute_max(self) -> None:
        cells = [grid_hash.cell for grid_hash in self]
        if cells:
            self._max = tuple(map(max, *cells)) if len(cells) > 1 else cells[0]
        else:
            self._max = (-_EMPTY_BOUND,) * 3


class GridPartitionMap:
    """Groups the occupied cells of a :class:`GridHashMap` into connected partitions.

    Iterating over the map yields ``(GridPartitionId, GridPartition)`` pairs.
    """

    def __init__(self) -> None:
        self._partitions: dict[GridPartitionId, GridPartition] = {}
        self._reverse: dict[GridHash, GridPartitionId] = {}
        self._next_partition = 0

    def __repr__(self) -> str:
        return f"GridPartitionMap(partitions={len(self._partitions)})"

    def resolve(self, partition_id: GridPartitionId) -> GridPartition | None:
        """The partition with this id, if it exists."""
        return self._partitions.get(partition_id)

    def get(self, grid_hash: GridHash) -> GridPartitionId | None:
        """The id of the partition holding ``grid_hash``, if any."""
        return self._reverse.get(grid_hash)

    def __iter__(self) -> Iterator[tuple[GridPartitionId, GridPartition]]:
        return iter(list(self._partitions.items()))

    def __len__(self) -> int:
        return len(self._partitions)

    def _insert(self, partition_id: GridPartitionId, cells: set[GridHash]) -> None:
        if not cells:
            return
        first = next(iter(cells))
        min_cell = max_cell = first.cell
        for grid_hash in cells:
            self._reverse[grid_hash] = partition_id
            min_cell = _cell_min(min_cell, grid_hash.cell)
            max_cell = _cell_max(max_cell, grid_hash.cell)
        self._partitions[partition_id] = GridPartition(first.grid, [cells], min_cell, max_cell)

    def _push(self, partition_id: GridPartitionId, grid_hash: GridHash) -> None:
        partition = self._partitions.get(partition_id)
        if partition is None:
            return
        partition.insert(grid_hash)
        self._reverse[grid_hash] = partition_id

    def _remove(self, grid_hash: GridHash) -> None:
        old_id = self._reverse.pop(grid_hash, None)
        if old_id is None:
            return
        partition = self._partitions.get(old_id)
        if partition is not None and partition.remove(grid_hash) and partition.is_empty():
            del self._partitions[old_id]

    def _take_next_id(self) -> GridPartitionId:
        partition_id = GridPartitionId(self._next_partition)
        self._next_partition += 1
        return partition_id

    def _merge(self, partition_ids: list[GridPartitionId]) -> None:
        candidates = [pid for pid in partition_ids if pid in self._partitions]
        if not candidates:
            return
        largest = max(candidates, key=lambda pid: self._partitions[pid].num_cells())
        for pid in partition_ids:
            if pid == largest:
                continue
            partition = self._partitions.pop(pid, None)
            if partition is None:
                continue
            for grid_hash in partition:
                self._reverse[grid_hash] = largest
            self._partitions[largest].extend(partition)

    def update(self, grid_map: GridHashMap, stats: GridHashStats | None = None) -> None:
        """Apply the cells inserted into and removed from ``grid_map`` in its last update."""
        start = time.perf_counter()

        for added_hash in grid_map.just_inserted():
            # The partition map is consulted rather than the hash map, so that a cell
            # about to be vacated still links the added cell to its old partition.
            neighbors = [
                pid
                for pid in (self.get(h) for h in added_hash.adjacent(1))
                if pid is not None
            ]
            if neighbors:
                self._push(neighbors[0], added_hash)
                self._merge(neighbors)
            else:
                self._insert(self._take_next_id(), {added_hash})

        removed_cells = list(grid_map.just_removed())
        for removed_cell in removed_cells:
            self._remove(removed_cell)

        adjacent_to_removals: dict[GridPartitionId, set[GridHash]] = defaultdict(set)
        for removed_cell in removed_cells:
            for grid_hash in removed_cell.adjacent(1):
                if not grid_map.contains(grid_hash):
                    continue
                pid = self.get(grid_hash)
                if pid is not None:
                    adjacent_to_removals[pid].add(grid_hash)

        splits = [
            (pid, pieces)
            for pid, affected in adjacent_to_removals.items()
            if (pieces := self._split_pieces(grid_map, affected)) is not None
        ]

        for original_id, pieces in splits:
            # The original id stays with the largest piece; smaller ones get new ids.
            pieces.sort(key=len)
            if pieces:
                self._insert(original_id, pieces.pop())
            for piece in pieces:
                self._insert(self._take_next_id(), piece)

        if stats is not None:
            stats.update_partition += timedelta(seconds=time.perf_counter() - start)

    @staticmethod
    def _split_pieces(
        grid_map: GridHashMap, affected: set[GridHash]
    ) -> list[set[GridHash]] | None:
        """Connected pieces reached from ``affected``, or ``None`` if there is only one."""
        remaining = set(affected)
        pieces: list[set[GridHash]] = []
        first_pass = True
        while remaining:
            this_cell = next(iter(remaining))
            for neighbor in grid_map.flood(this_cell):
                remaining.discard(neighbor.grid_hash)
                if not remaining:
                    break
            if not remaining and first_pass:
                return None
            pieces.append({n.grid_hash for n in grid_map.flood(this_cell)})
            first_pass = False
        return pieces