import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from voxreg.points import PointCloud, fast_floor, voxelgrid_sampling, xor_vector3i_hash


def test_fast_floor_handles_negative_values():
    result = fast_floor([[1.5, -1.5, 0.0]])
    assert result.tolist() == [[1, -2, 0]]


@given(st.lists(st.floats(-1e6, 1e6), min_size=1, max_size=20))
def test_fast_floor_bounds(values):
    arr = np.array(values, dtype=np.float64)
    floored = np.asarray(fast_floor(arr))
    assert floored.shape == arr.shape
    assert floored.tolist() == [int(v) for v in np.floor(arr)]
    assert bool(np.all(floored <= arr))
    assert bool(np.all(arr < floored + 1))


def test_hash_of_origin_is_zero():
    assert xor_vector3i_hash((0, 0, 0)) == 0


def test_hash_unit_x_is_first_prime():
    assert xor_vector3i_hash((1, 0, 0)) == 73856093


@given(st.tuples(*[st.integers(-(2**31), 2**31 - 1)] * 3))
def test_hash_fits_in_unsigned_64_bits(coord):
    h = xor_vector3i_hash(coord)
    assert 0 <= h < 2**64
    assert h == xor_vector3i_hash(np.array(coord))


def test_point_cloud_from_points_is_homogeneous():
    cloud = PointCloud.from_points([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    assert len(cloud) == 2
    assert np.array_equal(cloud.points[:, 3], [1.0, 1.0])
    assert np.array_equal(cloud.points[:, :3], [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    assert cloud.normals.shape == (2, 4)
    assert cloud.covs.shape == (2, 4, 4)


def test_point_cloud_from_points_rejects_bad_shape():
    with pytest.raises(ValueError):
        PointCloud.from_points([1.0, 2.0])


def test_point_cloud_resize_keeps_prefix():
    cloud = PointCloud.from_points([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    cloud.resize(3)
    assert len(cloud) == 3
    assert np.array_equal(cloud.points[:2, :3], [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    assert np.array_equal(cloud.points[2], np.zeros(4))
    cloud.resize(1)
    assert len(cloud) == 1
    assert np.array_equal(cloud.points[0, :3], [1.0, 2.0, 3.0])
    assert cloud.covs.shape == (1, 4, 4)


def test_point_cloud_resize_rejects_negative():
    with pytest.raises(ValueError):
        PointCloud().resize(-1)


def test_voxelgrid_empty_input():
    result = voxelgrid_sampling(np.zeros((0, 3)), 0.5)
    assert result.shape == (0, 3)


def test_voxelgrid_single_point_unchanged():
    result = voxelgrid_sampling([[0.25, 0.5, 0.75]], 1.0)
    assert result.shape == (1, 3)
    assert np.allclose(result[0], [0.25, 0.5, 0.75])


def test_voxelgrid_averages_points_in_same_voxel():
    pts = [[0.25, 0.25, 0.25], [0.75, 0.75, 0.75]]
    result = voxelgrid_sampling(pts, 1.0)
    assert result.shape == (1, 3)
    assert np.allclose(result[0], np.mean(pts, axis=0))


def test_voxelgrid_orders_by_key_with_z_most_significant():
    pts = [[5.5, 0.5, 1.5], [0.5, 0.5, 0.5]]
    result = voxelgrid_sampling(pts, 1.0)
    assert np.allclose(result, [[0.5, 0.5, 0.5], [5.5, 0.5, 1.5]])


def test_voxelgrid_drops_out_of_range_points_with_warning():
    pts = [[0.5, 0.5, 0.5], [2.0e6, 0.0, 0.0]]
    with pytest.warns(RuntimeWarning):
        result = voxelgrid_sampling(pts, 1.0)
    assert np.allclose(result, [[0.5, 0.5, 0.5]])


def test_voxelgrid_rejects_non_positive_leaf():
    with pytest.raises(ValueError):
        voxelgrid_sampling([[0.0, 0.0, 0.0]], 0.0)


def test_voxelgrid_point_cloud_input():
    cloud = PointCloud.from_points([[0.1, 0.1, 0.1], [0.3, 0.3, 0.3], [3.5, 3.5, 3.5]])
    result = voxelgrid_sampling(cloud, 1.0)
    assert isinstance(result, PointCloud)
    assert len(result) == 2
    assert np.allclose(result.points[0], [0.2, 0.2, 0.2, 1.0])
    assert np.allclose(result.points[1], [3.5, 3.5, 3.5, 1.0])


@settings(max_examples=50)
@given(
    st.lists(
        st.tuples(*[st.floats(-50, 50, allow_nan=False, width=32)] * 3),
        min_size=1,
        max_size=60,
    ),
    st.sampled_from([0.5, 1.0, 2.5]),
)
def test_voxelgrid_invariants(raw, leaf):
    pts = np.array(raw, dtype=np.float32)
    result = voxelgrid_sampling(pts, leaf)
    voxels = {tuple(v) for v in fast_floor(pts * np.float32(1.0 / leaf))}
    assert len(result) == len(voxels)
    assert len(result) <= len(pts)
    tol = 1e-3
    assert np.all(result >= pts.min(axis=0) - tol)
    assert np.all(result <= pts.max(axis=0) + tol)