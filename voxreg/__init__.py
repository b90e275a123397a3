"""Voxel downsampling, descriptor matching, graph-based outlier pruning and hash-table growth policies."""

__version__ = "0.3.1"

__all__ = ["points", "growth_policy", "config", "robin_matching"]