"""Integer precision of the grids that hold high-precision cells.

Larger precisions give a larger usable volume and use more memory. With a cell edge
length of 10,000 units, the usable edge length of the whole grid is
``2 ** bits * cell_edge_length``:

- ``I8``: 2,560 km
- ``I16``: 655,350 km
- ``I32``: about 0.0045 light years
- ``I64``: about 19.5 million light years
- ``I128``: about 3.6e+26 light years
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

__all__ = ["GridPrecision", "DEFAULT_PRECISION"]


class GridPrecision(Enum):
    """Width of the signed integers used to index grid cells."""

    I8 = 8
    I16 = 16
    I32 = 32
    I64 = 64
    I128 = 128

    def bits(self) -> int:
        """Number of bits in one cell coordinate."""
        return self.value

    def min_value(self) -> int:
        """Smallest coordinate a cell may have."""
        return -(1 << (self.value - 1))

    def max_value(self) -> int:
        """Largest coordinate a cell may have."""
        return (1 << (self.value - 1)) - 1

    def contains(self, value: int) -> bool:
        """Whether ``value`` fits in one coordinate of this precision."""
        return self.min_value() <= value <= self.max_value()

    def check_cell(self, cell: Iterable[int]) -> tuple[int, ...]:
        """Return ``cell`` as a tuple, raising ``OverflowError`` if a coordinate does not fit."""
        coords = tuple(cell)
        for axis, coord in zip("xyz", coords):
            if not self.contains(coord):
                raise OverflowError(
                    f"cell coordinate {axis}={coord} does not fit in {self.name.lower()} "
                    f"[{self.min_value()}, {self.max_value()}]"
                )
        return coords


DEFAULT_PRECISION = GridPrecision.I64