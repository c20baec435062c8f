# gridspace

Data structures for worlds built on integer grids. Each entity sits in a cell of
its parent grid. The cell is named by three integer coordinates, so two entities
can be compared, grouped and looked up by cell however far they are from the
origin.

The package needs Python 3.10 or later. It has no dependencies outside the
standard library.

## Modules

- **`gridspace.precision`**: `GridPrecision` is an enum of integer widths
  (`I8`, `I16`, `I32`, `I64`, `I128`). It provides `bits()`, `min_value()`,
  `max_value()`, `contains(value)`, and `check_cell(cell)`. `check_cell`
  returns the cell as a tuple and raises `OverflowError` if a coordinate does
  not fit. `DEFAULT_PRECISION` is `GridPrecision.I64`, and all hashing checks
  cells against it.
- **`gridspace.timing`**: `PropagationStats` and `GridHashStats` are
  dataclasses of `timedelta` figures (`GridHashStats` also counts
  `moved_entities`). Each has `update_total()`, can be added with `+` or
  `sum()`, and can be divided by an integer. `SmoothedStat(factory)` keeps the
  last 64 samples pushed with `push(value)`. `compute_avg()` stores their mean,
  and `avg()` returns it.
- **`gridspace.hashing`**: `GridHash.from_parent(parent, cell)` builds the
  spatial hash of a cell within a grid entity. Two hashes are equal when both
  the cell and the grid match. `fast_eq` compares only the precomputed 64-bit
  hash. `adjacent(radius)` yields every cell within a Chebyshev radius (0 to
  255), except the centre cell. `FastGridHash` is the lossy form that holds only
  the hash. `GridHashTracker.update(triples)` takes `(entity, parent, cell)`
  triples and records the entities that are new or whose cell or parent
  changed. `hash_of`, `remove` and `drain_updated` give access to those
  records.
- **`gridspace.map`**: `GridHashMap` maps each occupied cell to a
  `GridHashEntry`, which holds the cell's entities and its occupied neighbours.
  It offers:
  - `get`, `contains` and `all_entries` to look up cells;
  - `nearby(entry)` for the cell and its occupied neighbours;
  - `within_cube(center, radius)` for every occupied cell in a cube;
  - `flood(seed, max_depth)`, a breadth-first walk over connected cells that
    yields `Neighbor(grid_hash, entry)` tuples;
  - `insert`, `remove`, and `update(tracker, removed, stats)` to change the map.

  `just_inserted()` and `just_removed()` return the cells that became occupied
  or empty during the last `update`. `entities_of` flattens entries or
  neighbours into their entities.
- **`gridspace.partition`**: `GridPartitionMap.update(grid_map, stats)` groups
  connected occupied cells into `GridPartition` islands. Each island has a
  `GridPartitionId`, its grid, and `min` and `max` cell extents. Partitions are
  merged when a new cell joins them and split when a removed cell was their
  only link. Use `resolve(id)`, `get(grid_hash)`, iteration and `len()` to read
  the map.
- **`gridspace.validation`**: describe each entity as an `EntityRecord`, giving
  its `Component` set, its parent and its children. `validate_hierarchy(records)`
  walks the tree from the entities that have no parent, starting at
  `SpatialHierarchyRoot`. It returns a `ValidationIssue` for each entity that
  matches none of the node kinds allowed under its parent, and logs an error for
  each one. A `HierarchyValidator` reports each entity only once, however many
  times it is run.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from gridspace.hashing import GridHash, GridHashTracker
from gridspace.map import GridHashMap, entities_of
from gridspace.partition import GridPartitionMap
from gridspace.timing import GridHashStats

root = 1  # identifier of the grid that owns the cells
stats = GridHashStats()
tracker = GridHashTracker(stats)
tracker.update([
    (10, root, (0, 0, 0)),
    (11, root, (1, 1, 1)),
    (12, root, (2, 2, 2)),
])

grid_map = GridHashMap()
grid_map.update(tracker, removed=(), stats=stats)

seed = GridHash.from_parent(root, (0, 0, 0))
entry = grid_map.get(seed)
print(set(entities_of(grid_map.nearby(entry))))     # {10, 11}
print(set(entities_of(grid_map.flood(seed, None)))) # {10, 11, 12}

partitions = GridPartitionMap()
partitions.update(grid_map, stats=stats)
print(len(partitions))                              # 1
```

The structures change step by step. In each step, call the `update` methods in
this order: the tracker first, then the map, then the partition map. Each stage
reads the changes recorded by the stage before it. Entities that were despawned
go to the map through `removed`.

## What it does not do

This package keeps track of which cell each entity is in and how the entities
relate to one another. It does not store or move transforms and does not
compute global positions. It has no floating origin, no scheduler or update
loop, and no command-line tool. The caller supplies the entities, their cells
and their parents, and decides when each `update` runs.