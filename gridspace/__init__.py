"""Integer grid precision, timing statistics, spatial hashing, cell maps, partitions and hierarchy validation."""

__version__ = "0.1.0"
__all__ = ["precision", "timing", "hashing", "map", "partition", "validation"]