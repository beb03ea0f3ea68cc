import numpy as np
import pytest

from mcceval.exceptions import DecodeError
from mcceval.genomes import (
    BodyFactoryConfig,
    Genome,
    GenomeKind,
    MazeFactoryConfig,
    NavigatorFactoryConfig,
    decode,
)
from mcceval.phenotypes import MazeStructure, NavigatorController, VoxelBody, VoxelMaterial

from conftest import (
    body_genome,
    brain_genome,
    constant_network,
    make_genome,
    maze_genome,
    navigator_genome,
)


def test_body_decodes_on_factory_grid(body_factory):
    body = decode(body_genome(1, present=1.0, active=-1.0), body_factory)
    assert isinstance(body, VoxelBody)
    assert body.extents == (3, 3, 3)
    assert np.all(body.materials == VoxelMaterial.PASSIVE_TISSUE)
    assert body.num_material_voxels == 27
    assert body.passive_proportion == 1.0
    assert body.full_proportion == 1.0


def test_body_materials_follow_cppn_outputs(body_factory):
    active = decode(body_genome(1, present=1.0, active=1.0), body_factory)
    empty = decode(body_genome(2, present=-1.0, active=1.0), body_factory)
    assert np.all(active.materials == VoxelMaterial.ACTIVE_TISSUE)
    assert active.active_proportion == 1.0
    assert empty.num_material_voxels == 0
    assert empty.active_proportion == 0.0


def test_spatially_varying_body():
    # material only where x > 0
    network = {
        "inputs": 5,
        "outputs": 2,
        "connections": [{"source": 0, "target": 5, "weight": 1.0}],
    }
    genome = make_genome(3, GenomeKind.BODY, {"network": network})
    body = decode(genome, BodyFactoryConfig(x_dimension=3, y_dimension=2, z_dimension=2))
    assert body.material_at(0, 0, 0) == VoxelMaterial.NONE
    assert body.material_at(1, 0, 0) == VoxelMaterial.NONE  # tanh(0) is not > 0
    assert body.material_at(2, 1, 1) == VoxelMaterial.PASSIVE_TISSUE
    assert body.material_at(5, 0, 0) == VoxelMaterial.NONE


def test_decoding_is_deterministic(body_factory, brain_factory):
    network = {
        "inputs": 5,
        "outputs": 2,
        "connections": [
            {"source": 0, "target": 5, "weight": 1.5},
            {"source": 3, "target": 5, "weight": -0.5},
            {"source": 1, "target": 6, "weight": 2.0},
        ],
    }
    genome = make_genome(4, GenomeKind.BODY, {"network": network, "resolution": [4, 3, 3]})

    first = decode(genome, body_factory, resolution_delta=1)
    second = decode(genome, body_factory, resolution_delta=1)

    assert first.extents == second.extents == (5, 4, 4)
    assert np.array_equal(first.materials, second.materials)
    assert len(np.unique(first.materials)) > 1

    brains = [decode(brain_genome(5), brain_factory, paired=body) for body in (first, second)]
    assert np.array_equal(brains[0].weights, brains[1].weights)


def test_resolution_delta_grows_every_axis(body_factory):
    genome = body_genome(1, resolution=[4, 3, 2])
    assert decode(genome, body_factory).extents == (4, 3, 2)
    assert decode(genome, body_factory, resolution_delta=2).extents == (6, 5, 4)


def test_resolution_above_ceiling_is_rejected(body_factory):
    with pytest.raises(DecodeError, match="max body size"):
        decode(body_genome(1), body_factory, resolution_delta=8)


def test_layer_codes_are_per_z_layer():
    materials = np.zeros((2, 2, 1), dtype=np.int8)
    materials[1, 0, 0] = VoxelMaterial.ACTIVE_TISSUE
    materials[0, 1, 0] = VoxelMaterial.PASSIVE_TISSUE
    body = VoxelBody(genome_id=1, materials=materials)
    assert body.layer_codes() == ["0310"]


@pytest.mark.parametrize(
    "encoding",
    ["{not json", "[1, 2]", '{"resolution": [3, 3, 3]}'],
)
def test_malformed_body_encoding(encoding, body_factory):
    with pytest.raises(DecodeError):
        decode(Genome(id=1, kind=GenomeKind.BODY, encoding=encoding), body_factory)


def test_body_cppn_with_wrong_shape(body_factory):
    genome = make_genome(1, GenomeKind.BODY, {"network": constant_network(5, [1.0, 1.0, 1.0])})
    with pytest.raises(DecodeError, match="expected 5x2"):
        decode(genome, body_factory)


def test_brain_is_sized_by_paired_body(body_factory, brain_factory):
    body = decode(body_genome(1, resolution=[2, 3, 4]), body_factory)
    brain = decode(brain_genome(7, outputs=6, bias=0.5), brain_factory, paired=body)
    assert brain.body_extents == (2, 3, 4)
    assert brain.weights.shape == (2, 3, 4, 4)
    assert np.allclose(brain.weights, np.tanh(0.5))
    assert len(brain.to_config()["weights"]) == 24


def test_brain_needs_a_body(brain_factory):
    with pytest.raises(DecodeError, match="decoded body"):
        decode(brain_genome(7), brain_factory)


def test_brain_with_too_few_outputs(body_factory, brain_factory):
    body = decode(body_genome(1), body_factory)
    with pytest.raises(DecodeError, match="at least 4"):
        decode(brain_genome(7, outputs=2), brain_factory, paired=body)


def test_maze_is_scaled():
    maze = decode(maze_genome(5), MazeFactoryConfig(height=20, width=20, scale_multiplier=2))
    assert isinstance(maze, MazeStructure)
    assert maze.start == (2.0, 2.0)
    assert maze.target == (20.0, 20.0)
    assert maze.walls[0].end == (16.0, 10.0)
    assert maze.width == 40
    assert maze.max_timesteps == 100


def test_maze_points_must_lie_inside_bounds():
    with pytest.raises(DecodeError, match="outside"):
        decode(maze_genome(5, target=(30, 1)), MazeFactoryConfig(height=20, width=20))


def test_maze_dimension_mismatch():
    genome = make_genome(
        5, GenomeKind.MAZE, {"height": 10, "width": 20, "start": [0, 0], "target": [1, 1]}
    )
    with pytest.raises(DecodeError, match="height"):
        decode(genome, MazeFactoryConfig(height=20, width=20))


def test_maze_missing_start():
    genome = make_genome(5, GenomeKind.MAZE, {"target": [1, 1]})
    with pytest.raises(DecodeError):
        decode(genome, MazeFactoryConfig())


def test_navigator_decodes_and_activates():
    nav = decode(navigator_genome(9), NavigatorFactoryConfig())
    assert isinstance(nav, NavigatorController)
    assert nav.activate(np.zeros(10)).shape == (1, 2)


def test_navigator_io_mismatch():
    with pytest.raises(DecodeError, match="expected 10x2"):
        decode(navigator_genome(9, inputs=8), NavigatorFactoryConfig())


def test_resolution_delta_is_ignored_for_navigators():
    nav = decode(navigator_genome(9), NavigatorFactoryConfig(), resolution_delta=3)
    assert nav.genome_id == 9
