import pytest

from gridspace.hashing import GridHash, GridHashTracker
from gridspace.map import GridHashMap
from gridspace.partition import GridPartition, GridPartitionId, GridPartitionMap

ROOT = 7


def h(x, y, z, parent=ROOT):
    return GridHash.from_parent(parent, (x, y, z))


class World:
    def __init__(self):
        self.tracker = GridHashTracker()
        self.grid_map = GridHashMap()
        self.partitions = GridPartitionMap()

    def place(self, placements):
        self.tracker.update((e, ROOT, cell) for e, cell in placements)
        self.grid_map.update(self.tracker)
        self.partitions.update(self.grid_map)

    def despawn(self, entities):
        for entity in entities:
            self.tracker.remove(entity)
        self.grid_map.update(self.tracker, removed=entities)
        self.partitions.update(self.grid_map)


def single(x, y, z):
    grid_hash = h(x, y, z)
    return GridPartition(ROOT, [{grid_hash}], grid_hash.cell, grid_hash.cell)


def test_partition_insert_and_contains():
    partition = single(0, 0, 0)
    partition.insert(h(3, -2, 1))
    partition.insert(h(3, -2, 1))
    assert partition.contains(h(3, -2, 1))
    assert partition.num_cells() == 2
    assert partition.min == (0, -2, 0)
    assert partition.max == (3, 0, 1)
    assert set(partition) == {h(0, 0, 0), h(3, -2, 1)}


def test_partition_remove_recomputes_bounds():
    partition = single(0, 0, 0)
    partition.insert(h(1, 2, 3))
    partition.insert(h(4, 1, 0))
    assert partition.remove(h(4, 1, 0)) is True
    assert partition.max == (1, 2, 3)
    assert partition.min == (0, 0, 0)
    assert partition.remove(h(4, 1, 0)) is False
    assert not partition.contains(h(4, 1, 0))


def test_partition_becomes_empty():
    partition = single(2, 2, 2)
    assert not partition.is_empty()
    assert partition.remove(h(2, 2, 2))
    assert partition.is_empty()
    assert partition.num_cells() == 0


def test_partition_extend_moves_cells_and_bounds():
    a = single(0, 0, 0)
    b = single(5, 5, 5)
    a.extend(b)
    assert set(a) == {h(0, 0, 0), h(5, 5, 5)}
    assert a.min == (0, 0, 0)
    assert a.max == (5, 5, 5)
    assert b.is_empty()


def test_partition_grid():
    assert single(0, 0, 0).grid == ROOT


def test_separate_clusters_get_separate_partitions():
    world = World()
    clusters = [[(0, 0, 0), (1, 0, 0)], [(10, 10, 10), (10, 11, 10)]]
    world.place(
        (f"{i}-{j}", cell) for i, cluster in enumerate(clusters) for j, cell in enumerate(cluster)
    )
    assert len(world.partitions) == len(clusters)
    for cluster in clusters:
        ids = {world.partitions.get(h(*cell)) for cell in cluster}
        assert len(ids) == 1
        partition = world.partitions.resolve(ids.pop())
        assert partition.num_cells() == len(cluster)
    assert world.partitions.get(h(0, 0, 0)) != world.partitions.get(h(10, 10, 10))


def test_partition_bounds_from_map():
    world = World()
    cells = [(0, 0, 0), (1, 1, 0), (2, 1, -1)]
    world.place((i, cell) for i, cell in enumerate(cells))
    (pid, partition), = list(world.partitions)
    assert world.partitions.resolve(pid) is partition
    assert all(world.partitions.get(h(*cell)) == pid for cell in cells)
    assert partition.min == (0, 0, -1)
    assert partition.max == (2, 1, 0)


def test_bridge_cell_merges_partitions():
    world = World()
    world.place([("a", (0, 0, 0)), ("b", (2, 0, 0))])
    assert world.partitions.get(h(0, 0, 0)) != world.partitions.get(h(2, 0, 0))
    world.place([("bridge", (1, 0, 0))])
    ids = {world.partitions.get(h(x, 0, 0)) for x in range(3)}
    assert len(ids) == 1
    assert len(world.partitions) == 1
    assert world.partitions.resolve(ids.pop()).num_cells() == 3


def test_removing_bridge_splits_partition():
    world = World()
    world.place([("a", (0, 0, 0)), ("b", (1, 0, 0)), ("c", (2, 0, 0))])
    original = world.partitions.get(h(0, 0, 0))
    world.despawn(["b"])
    left = world.partitions.get(h(0, 0, 0))
    right = world.partitions.get(h(2, 0, 0))
    assert left != right
    assert original in {left, right}
    assert world.partitions.get(h(1, 0, 0)) is None
    assert len(world.partitions) == 2


def test_split_keeps_original_id_on_largest_piece():
    world = World()
    cells = [(0, 0, 0), (1, 0, 0), (2, 0, 0), (3, 0, 0), (4, 0, 0)]
    world.place((i, cell) for i, cell in enumerate(cells))
    original = world.partitions.get(h(0, 0, 0))
    world.despawn([3])
    assert world.partitions.get(h(0, 0, 0)) == original
    assert world.partitions.get(h(2, 0, 0)) == original
    assert world.partitions.get(h(4, 0, 0)) != original
    assert world.partitions.resolve(original).num_cells() == 3


def test_moving_entity_keeps_partition_id():
    world = World()
    world.place([("mover", (0, 0, 0))])
    original = world.partitions.get(h(0, 0, 0))
    for x in range(1, 5):
        world.place([("mover", (x, 0, 0))])
        assert world.partitions.get(h(x, 0, 0)) == original
        assert world.partitions.get(h(x - 1, 0, 0)) is None
    assert len(world.partitions) == 1


def test_removing_non_bridge_keeps_single_partition():
    world = World()
    world.place([("a", (0, 0, 0)), ("b", (1, 0, 0)), ("c", (1, 1, 0))])
    original = world.partitions.get(h(0, 0, 0))
    world.despawn(["c"])
    assert len(world.partitions) == 1
    assert world.partitions.get(h(1, 0, 0)) == original


def test_removing_everything_empties_map():
    world = World()
    world.place([("a", (0, 0, 0)), ("b", (5, 5, 5))])
    assert len(world.partitions) == 2
    world.despawn(["a", "b"])
    assert len(world.partitions) == 0
    assert list(world.partitions) == []
    assert world.partitions.get(h(0, 0, 0)) is None
    assert world.partitions.get(h(5, 5, 5)) is None


def test_unknown_lookups_return_none():
    partitions = GridPartitionMap()
    assert partitions.resolve(GridPartitionId(3)) is None
    assert partitions.get(h(0, 0, 0)) is None


def test_partition_ids_compare_by_value():
    assert GridPartitionId(4) == GridPartitionId(4)
    assert len({GridPartitionId(4), GridPartitionId(4), GridPartitionId(5)}) == 2


@pytest.mark.parametrize("offset", [(1, 1, 1), (-1, 0, 1), (0, -1, 0)])
def test_diagonal_neighbors_share_partition(offset):
    world = World()
    world.place([("a", (0, 0, 0)), ("b", offset)])
    assert world.partitions.get(h(0, 0, 0)) == world.partitions.get(h(*offset))
    assert len(world.partitions) == 1