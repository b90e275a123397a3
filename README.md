# voxreg

Building blocks for registering two 3D point clouds:

- `voxreg.points` handles voxel-grid downsampling, voxel coordinates and a small homogeneous `PointCloud` container.
- `voxreg.robin_matching` matches descriptors with a mutual nearest-neighbour cross-check. It can also apply a ratio test. It then prunes the resulting correspondences with a pairwise-distance compatibility graph, taking its maximum k-core or a maximum clique.
- `voxreg.config` provides `MatcherConfig`, which derives descriptor radii and noise bounds from a voxel size.
- `voxreg.growth_policy` holds bucket-count growth policies for open-addressing hash tables: power-of-two, modulo and prime.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Points and downsampling

```python
import numpy as np
from voxreg.points import PointCloud, voxelgrid_sampling, fast_floor, xor_vector3i_hash

cloud = np.random.default_rng(0).uniform(0.0, 20.0, size=(10_000, 3))
down = voxelgrid_sampling(cloud, leaf_size=0.5)   # float32 array of shape (M, 3)

pc = PointCloud.from_points(cloud)                # rows are (x, y, z, 1)
pc_down = voxelgrid_sampling(pc, 0.5)             # returns a PointCloud

fast_floor([[1.5, -0.5, 2.0]])                    # array([[ 1, -1,  2]])
xor_vector3i_hash((1, 2, 3))                      # unsigned 64-bit spatial hash
```

`voxelgrid_sampling` replaces all the points in a voxel with their mean. The voxels come out ordered by their packed 21-bit-per-axis coordinate key. A point whose voxel coordinate does not fit in 21 bits is dropped, and a `RuntimeWarning` is issued. A `leaf_size` that is not positive raises `ValueError`.

`PointCloud` carries `points`, `normals` and `covs` arrays. `resize(n)` keeps the leading entries and zero-fills the rest. `len(cloud)` gives the number of points.

## Configuration

```python
from voxreg.config import MatcherConfig

config = MatcherConfig(voxel_size=0.3)
print(config.normal_radius, config.fpfh_radius)          # 3 and 5 times the voxel size
print(config.robin_noise_bound, config.solver_noise_bound)
```

`MatcherConfig` raises `ValueError` in two cases:

- the voxel size is smaller than 5e-3;
- `solver_noise_bound_gain` exceeds `robin_noise_bound_gain`.

When `enable_noise_bound_clamping` is on, which is the default, the following applies to a noise bound above 1.0:

- the bound is set to 1.0;
- a `RuntimeWarning` is issued.

## Matching and pruning

```python
import numpy as np
from voxreg.robin_matching import RobinMatching, RobinMode

rng = np.random.default_rng(0)
src = rng.uniform(0.0, 10.0, size=(200, 3))
tgt = src + np.array([1.0, 2.0, 0.5])
features = rng.normal(size=(200, 33))

matcher = RobinMatching(noise_bound=0.3)
matcher.rng = np.random.default_rng(1)   # optional: reproducible random choices

pairs = matcher.establish_correspondences(src, tgt, features, features, RobinMode.MAX_CORE)
print(matcher.cross_checked_correspondences())   # mutual nearest pairs, (source, target)
print(matcher.final_correspondences())           # pairs that survived pruning
print(matcher.rejection_time, matcher.num_initial_correspondences,
      matcher.num_pruned_correspondences)

# Prune correspondences that are already matched one-to-one (row i with row i).
kept = matcher.apply_outlier_pruning(src, tgt, RobinMode.MAX_CORE)
```

The `RobinMode` options are as follows.

- `MAX_CORE` keeps the maximum k-core of the compatibility graph. This is the default.
- `MAX_CLIQUE` keeps a maximum clique.
- `NONE` replaces graph pruning with a randomised triangle-consistency test. `apply_outlier_pruning` does not accept this mode.

Other behaviour of `establish_correspondences`:

- Descriptor pairs whose squared distance exceeds 900 are never matched.
- If more than `num_max_corr` pairs pass the cross-check, the pairs with the best ratio are kept when `use_ratio_test` is on. Otherwise a random subset is kept.

`build_compatibility_graph(src, tgt, noise_bound)` and `find_inlier_structure(graph, mode)` can also be used on their own. Two correspondences are joined by an edge when their pairwise distances differ by at most `2 * noise_bound`.

## Growth policies

```python
from voxreg.growth_policy import PowerOfTwoGrowthPolicy, ModGrowthPolicy, PrimeGrowthPolicy

policy = PowerOfTwoGrowthPolicy(10, 2)
print(policy.bucket_count)                 # 16
print(policy.bucket_for_hash(12345), policy.next_bucket_count())

PrimeGrowthPolicy(100).bucket_count        # 131
ModGrowthPolicy(10, 3, 2).next_bucket_count()   # 15
```

A request beyond a policy's maximum bucket count raises `HashTableSizeError`, a subclass of `ValueError`. The helpers `is_power_of_two` and `round_up_to_power_of_two` are exported as well.

## What this package does not do

The package takes descriptors as input; it does not compute them. Its scope stops short of a full registration tool in these ways:

- It has no normal or FPFH feature extraction.
- It has no rotation or translation solver, so it does not estimate a pose.
- It has no end-to-end matcher object that chains these steps.
- It offers no command-line program.