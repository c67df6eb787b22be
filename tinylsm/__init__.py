"""Building blocks of a small LSM-tree key-value store: blocks, block index, block cache, merging iterator, configuration, logging and a Redis-protocol front end."""

__version__ = "0.1.0"