"""A spatial hash map from grid cells to the entities located in them."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import timedelta
from typing import NamedTuple, Union

from .hashing import GridHash, GridHashTracker
from .timing import GridHashStats

__all__ = ["GridHashEntry", "Neighbor", "GridHashMap", "entities_of"]


@dataclass
class GridHashEntry:
    """The entities in one occupied cell, and the hashes of its occupied neighbours."""

    entities: set[Hashable] = field(default_factory=set)
    occupied_neighbors: list[GridHash] = field(default_factory=list)

    def _neighbor_index(self, grid_hash: GridHash) -> int | None:
        # Recently added cells are more likely to be removed, so search from the end.
        for index in range(len(self.occupied_neighbors) - 1, -1, -1):
            if self.occupied_neighbors[index] == grid_hash:
                return index
        return None

    def nearby(self, grid_map: GridHashMap) -> Iterator[GridHashEntry]:
        """Iterate over this cell and its occupied adjacent cells in ``grid_map``."""
        return grid_map.nearby(self)


class Neighbor(NamedTuple):
    """A cell visited by a flood fill: its hash and its entry."""

    grid_hash: GridHash
    entry: GridHashEntry


def entities_of(entries: Iterable[Union[GridHashEntry, Neighbor]]) -> Iterator[Hashable]:
    """Flatten entries or flood-fill neighbours into the entities they hold."""
    for item in entries:
        entry = item.entry if isinstance(item, Neighbor) else item
        yield from entry.entities


class GridHashMap:
    """Maps :class:`GridHash` values to the entities in that cell.

    Each entry caches which of its adjacent cells are occupied, which makes neighbour
    lookups cheap. The cells that became occupied or empty during the last
    :meth:`update` are available through :meth:`just_inserted` and :meth:`just_removed`.
    """

    def __init__(self) -> None:
        self._inner: dict[GridHash, GridHashEntry] = {}
        self._reverse: dict[Hashable, GridHash] = {}
        self._just_inserted: set[GridHash] = set()
        self._just_removed: set[GridHash] = set()

    def __len__(self) -> int:
        return len(self._inner)

    def __repr__(self) -> str:
        return f"GridHashMap(cells={len(self._inner)}, entities={len(self._reverse)})"

    def get(self, grid_hash: GridHash) -> GridHashEntry | None:
        """The entry of an occupied cell, or ``None`` if the cell is empty."""
        return self._inner.get(grid_hash)

    def contains(self, grid_hash: GridHash) -> bool:
        """Whether the cell is occupied."""
        return grid_hash in self._inner

    def __contains__(self, grid_hash: object) -> bool:
        return grid_hash in self._inner

    def all_entries(self) -> Iterator[tuple[GridHash, GridHashEntry]]:
        """All occupied cells and their entries, in arbitrary order."""
        return iter(list(self._inner.items()))

    def nearby(self, entry: GridHashEntry) -> Iterator[GridHashEntry]:
        """Yield ``entry`` followed by the entries of its occupied adjacent cells."""
        yield entry
        for neighbor_hash in entry.occupied_neighbors:
            neighbor = self._inner.get(neighbor_hash)
            if neighbor is None:
                raise RuntimeError("occupied_neighbors should be occupied")
            yield neighbor

    def within_cube(self, center: GridHash, radius: int) -> Iterator[GridHashEntry]:
        """Yield the entries of all occupied cells in the cube of ``radius`` around ``center``."""
        candidates = [center]
        candidates_iter = center.adjacent(radius)
        for grid_hash in candidates:
            entry = self._inner.get(grid_hash)
            if entry is not None:
                yield entry
        for grid_hash in candidates_iter:
            entry = self._inner.get(grid_hash)
            if entry is not None:
                yield entry

    def flood(self, seed: GridHash, max_depth: int | None = None) -> Iterator[Neighbor]:
        """Breadth-first traversal of connected occupied cells starting at ``seed``.

        Iteration ends at the first visited cell whose offset from ``seed`` exceeds
        ``max_depth`` along any axis. Nothing is yielded if ``seed`` is unoccupied.
        """
        start_cell = seed.cell
        for neighbor in self._contiguous(seed):
            if max_depth is not None:
                offset = tuple(a - b for a, b in zip(neighbor.grid_hash.cell, start_cell))
                if any(component > max_depth for component in offset):
                    return
            yield neighbor

    def _contiguous(self, seed: GridHash) -> Iterator[Neighbor]:
        seed_entry = self._inner.get(seed)
        if seed_entry is None:
            return
        queue: deque[Neighbor] = deque([Neighbor(seed, seed_entry)])
        visited: set[GridHash] = {seed}
        while queue:
            current = queue.popleft()
            for neighbor_hash in current.entry.occupied_neighbors:
                if neighbor_hash in visited:
                    continue
                visited.add(neighbor_hash)
                neighbor_entry = self._inner.get(neighbor_hash)
                if neighbor_entry is None:
                    raise RuntimeError("neighbor hashes in an entry are guaranteed to exist")
                queue.append(Neighbor(neighbor_hash, neighbor_entry))
            yield current

    def just_inserted(self) -> frozenset[GridHash]:
        """Cells that were empty before the last update and are occupied now."""
        return frozenset(self._just_inserted)

    def just_removed(self) -> frozenset[GridHash]:
        """Cells that were occupied before the last update and are empty now."""
        return frozenset(self._just_removed)

    def insert(self, entity: Hashable, grid_hash: GridHash) -> None:
        """Place ``entity`` in the cell ``grid_hash``, moving it if it was elsewhere."""
        old_hash = self._reverse.get(entity)
        if old_hash is not None:
            if old_hash == grid_hash:
                return
            self._remove_from_cell(entity, old_hash)
        self._reverse[entity] = grid_hash
        entry = self._inner.get(grid_hash)
        if entry is not None:
            entry.entities.add(entity)
        else:
            self._insert_entry(grid_hash, {entity})

    def remove(self, entity: Hashable) -> None:
        """Remove ``entity`` from the map, if it is present."""
        old_hash = self._reverse.pop(entity, None)
        if old_hash is not None:
            self._remove_from_cell(entity, old_hash)

    def update(
        self,
        tracker: GridHashTracker,
        removed: Iterable[Hashable] = (),
        stats: GridHashStats | None = None,
    ) -> None:
        """Apply removed entities and the entities whose hashes ``tracker`` changed."""
        start = time.perf_counter()
        self._just_inserted.clear()
        self._just_removed.clear()

        removed_entities = set(removed)
        for entity in removed_entities:
            self.remove(entity)

        updated = tracker.drain_updated()
        if stats is not None:
            stats.moved_entities = len(updated)

        for entity in updated:
            if entity in removed_entities:
                continue
            grid_hash = tracker.hash_of(entity)
            if grid_hash is not None:
                self.insert(entity, grid_hash)

        if stats is not None:
            stats.map_update_duration += timedelta(seconds=time.perf_counter() - start)

    def _insert_entry(self, grid_hash: GridHash, entities: set[Hashable]) -> None:
        occupied: list[GridHash] = []
        for neighbor_hash in grid_hash.adjacent(1):
            neighbor = self._inner.get(neighbor_hash)
            if neighbor is not None:
                neighbor.occupied_neighbors.append(grid_hash)
                occupied.append(neighbor_hash)
        self._inner[grid_hash] = GridHashEntry(entities, occupied)

        # A cell removed and re-added within one update existed at its start.
        if grid_hash in self._just_removed:
            self._just_removed.discard(grid_hash)
        else:
            self._just_inserted.add(grid_hash)

    def _remove_from_cell(self, entity: Hashable, old_hash: GridHash) -> None:
        entry = self._inner.get(old_hash)
        if entry is not None:
            entry.entities.discard(entity)
            if entry.entities:
                return

        removed_entry = self._inner.pop(old_hash, None)
        if removed_entry is None:
            return
        for neighbor_hash in removed_entry.occupied_neighbors:
            neighbor = self._inner.get(neighbor_hash)
            if neighbor is None:
                raise RuntimeError("occupied neighbors are guaranteed to be up to date")
            index = neighbor._neighbor_index(old_hash)
            if index is None:
                raise RuntimeError("neighbor lists are guaranteed to be symmetric")
            del neighbor.occupied_neighbors[index]

        # A cell added and removed within one update did not exist at its start.
        if old_hash in self._just_inserted:
            self._just_inserted.discard(old_hash)
        else:
            self._just_removed.add(old_hash)