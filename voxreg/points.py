"""Point clouds, voxel coordinates and voxel-grid downsampling."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field

import numpy as np

__all__ = [
    "PointCloud",
    "fast_floor",
    "xor_vector3i_hash",
    "voxelgrid_sampling",
]

_COORD_BIT_SIZE = 21
_COORD_BIT_MASK = (1 << _COORD_BIT_SIZE) - 1
_COORD_OFFSET = 1 << (_COORD_BIT_SIZE - 1)

_HASH_PRIMES = (73856093, 19349669, 83492791)
_SIZE_T_MASK = (1 << 64) - 1


def _empty_points() -> np.ndarray:
    return np.zeros((0, 4), dtype=np.float64)


def _empty_covs() -> np.ndarray:
    return np.zeros((0, 4, 4), dtype=np.float64)


@dataclass
class PointCloud:
    """Homogeneous points (x, y, z, 1) with per-point normals and covariances."""

    points: np.ndarray = field(default_factory=_empty_points)
    normals: np.ndarray = field(default_factory=_empty_points)
    covs: np.ndarray = field(default_factory=_empty_covs)

    @classmethod
    def from_points(cls, points) -> "PointCloud":
        """Build a cloud from an (N, 3+) array; only the first three columns are used."""
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] < 3:
            raise ValueError(f"expected an (N, 3) array of points, got shape {arr.shape}")
        n = arr.shape[0]
        cloud = cls()
        cloud.resize(n)
        cloud.points[:, :3] = arr[:, :3]
        cloud.points[:, 3] = 1.0
        return cloud

    def resize(self, n: int) -> None:
        """Resize points, normals and covariances, keeping the leading entries."""
        if n < 0:
            raise ValueError("size must not be negative")
        keep = min(n, len(self.points))
        points = np.zeros((n, 4), dtype=np.float64)
        normals = np.zeros((n, 4), dtype=np.float64)
        covs = np.zeros((n, 4, 4), dtype=np.float64)
        points[:keep] = self.points[:keep]
        normals[:keep] = self.normals[:keep]
        covs[:keep] = self.covs[:keep]
        self.points, self.normals, self.covs = points, normals, covs

    def __len__(self) -> int:
        return len(self.points)


def fast_floor(points) -> np.ndarray:
    """Floor each coordinate to an integer."""
    return np.floor(np.asarray(points)).astype(np.int64)


def xor_vector3i_hash(coord) -> int:
    """Spatial hash of an integer 3-vector, as an unsigned 64-bit value."""
    x, y, z = (int(c) for c in coord)
    p1, p2, p3 = _HASH_PRIMES
    return ((x * p1) & _SIZE_T_MASK) ^ ((y * p2) & _SIZE_T_MASK) ^ ((z * p3) & _SIZE_T_MASK)


def _voxel_means(xyz: np.ndarray, summed: np.ndarray, leaf_size: float) -> np.ndarray:
    """Average ``summed`` rows over the voxels that ``xyz`` falls into."""
    scaled = xyz * xyz.dtype.type(1.0 / leaf_size)
    floored = np.floor(scaled) + _COORD_OFFSET
    valid = np.all((floored >= 0) & (floored <= _COORD_BIT_MASK), axis=1)
    if not valid.all():
        warnings.warn("voxel coord is out of range", RuntimeWarning, stacklevel=3)
    if not valid.any():
        return summed[:0]

    coords = floored[valid].astype(np.uint64)
    keys = (
        coords[:, 0]
        | (coords[:, 1] << np.uint64(_COORD_BIT_SIZE))
        | (coords[:, 2] << np.uint64(2 * _COORD_BIT_SIZE))
    )
    order = np.argsort(keys, kind="stable")
    sorted_keys = keys[order]
    values = summed[valid][order]

    starts = np.concatenate(([0], np.flatnonzero(np.diff(sorted_keys)) + 1))
    sums = np.add.reduceat(values, starts, axis=0)
    counts = np.diff(np.append(starts, len(values))).astype(values.dtype)
    return sums / counts[:, None]


def voxelgrid_sampling(points, leaf_size: float):
    """Replace all points inside each voxel of side ``leaf_size`` by their mean.

    Accepts a ``PointCloud`` (returns a ``PointCloud``) or an (N, 3) array
    (returns a float32 (M, 3) array). Voxels come out ordered by their packed
    coordinate key; points whose voxel coordinate does not fit in 21 bits are
    dropped with a warning.
    """
    if leaf_size <= 0:
        raise ValueError("leaf_size must be positive")

    if isinstance(points, PointCloud):
        if len(points) == 0:
            return PointCloud()
        means = _voxel_means(points.points[:, :3], points.points[:, :3], leaf_size)
        return PointCloud.from_points(means)

    arr = np.asarray(points, dtype=np.float32)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=np.float32)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"expected an (N, 3) array of points, got shape {arr.shape}")
    return _voxel_means(arr, arr, leaf_size).astype(np.float32)