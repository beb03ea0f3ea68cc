import numpy as np
import pytest

from mcceval.diversity import compare_bodies, endpoint_distance, trajectory_distance
from mcceval.phenotypes import VoxelBody, VoxelMaterial


def passive_cube(gid, size=2):
    return VoxelBody(
        genome_id=gid,
        materials=np.full((size, size, size), VoxelMaterial.PASSIVE_TISSUE, dtype=np.int8),
    )


def half_active(gid):
    materials = np.zeros((2, 2, 2), dtype=np.int8)
    materials[0] = VoxelMaterial.ACTIVE_TISSUE
    return VoxelBody(genome_id=gid, materials=materials)


def test_passive_cube_against_half_active_body():
    mismatch = compare_bodies(passive_cube(1), half_active(2))
    assert mismatch.overall == 8
    assert mismatch.occupancy == 4
    assert mismatch.active == 4
    assert mismatch.passive == 8


def test_comparison_is_symmetric():
    a, b = passive_cube(1), half_active(2)
    assert compare_bodies(a, b) == compare_bodies(b, a)


def test_identical_bodies_do_not_differ():
    assert tuple(compare_bodies(passive_cube(1), passive_cube(2))) == (0, 0, 0, 0)


def test_out_of_range_voxels_read_as_empty():
    mismatch = compare_bodies(passive_cube(1, size=2), passive_cube(2, size=3))
    # 27 - 8 cells exist only in the larger body
    assert mismatch.overall == 19
    assert mismatch.occupancy == 19
    assert mismatch.passive == 19
    assert mismatch.active == 0


def test_trajectory_distance_holds_shorter_trajectory_at_its_end():
    a = [[0.0, 0.0], [1.0, 0.0]]
    b = [[0.0, 0.0], [1.0, 0.0], [1.0, 3.0], [1.0, 4.0]]
    assert trajectory_distance(a, b) == pytest.approx((0 + 0 + 3 + 4) / 4)
    assert trajectory_distance(a, b) == trajectory_distance(b, a)


def test_endpoint_distance():
    assert endpoint_distance([[0, 0], [3, 0]], [[5, 5], [0, 4]]) == pytest.approx(5.0)


def test_empty_trajectory_rejected():
    with pytest.raises(ValueError):
        trajectory_distance([], [[0.0, 0.0]])
