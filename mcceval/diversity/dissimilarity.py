from __future__ import annotations

from typing import NamedTuple, Sequence

import numpy as np

from mcceval.phenotypes import VoxelBody, VoxelMaterial

__all__ = [
    "VoxelMismatch",
    "compare_bodies",
    "trajectory_distance",
    "endpoint_distance",
]


class VoxelMismatch(NamedTuple):
    overall: int
    occupancy: int
    active: int
    passive: int


def _padded(body: VoxelBody, extents: tuple[int, int, int]) -> np.ndarray:
    grid = np.zeros(extents, dtype=np.int8)
    lx, ly, lz = body.extents
    grid[:lx, :ly, :lz] = body.materials
    return grid


def compare_bodies(a: VoxelBody, b: VoxelBody) -> VoxelMismatch:
    """Count differing voxels over the union of both bounding boxes.

    Coordinates outside a body's grid read as ``NONE``.
    """
    extents = tuple(max(p, q) for p, q in zip(a.extents, b.extents))
    ga, gb = _padded(a, extents), _padded(b, extents)  # type: ignore[arg-type]

    differ = ga != gb
    occupancy = differ & ((ga == VoxelMaterial.NONE) | (gb == VoxelMaterial.NONE))
    active = differ & (
        (ga == VoxelMaterial.ACTIVE_TISSUE) | (gb == VoxelMaterial.ACTIVE_TISSUE)
    )
    passive = differ & (
        (ga == VoxelMaterial.PASSIVE_TISSUE) | (gb == VoxelMaterial.PASSIVE_TISSUE)
    )
    return VoxelMismatch(
        overall=int(np.count_nonzero(differ)),
        occupancy=int(np.count_nonzero(occupancy)),
        active=int(np.count_nonzero(active)),
        passive=int(np.count_nonzero(passive)),
    )


def _as_points(trajectory: Sequence[Sequence[float]]) -> np.ndarray:
    points = np.asarray(trajectory, dtype=np.float64)
    if points.ndim != 2 or points.shape[0] == 0:
        raise ValueError("trajectory must be a non-empty sequence of points")
    return points


def trajectory_distance(
    a: Sequence[Sequence[float]], b: Sequence[Sequence[float]]
) -> float:
    """Mean per-timestep Euclidean distance.

    The shorter trajectory is held at its final point for the remaining
    timesteps.
    """
    pa, pb = _as_points(a), _as_points(b)
    steps = max(len(pa), len(pb))
    if len(pa) < steps:
        pa = np.vstack([pa, np.repeat(pa[-1:], steps - len(pa), axis=0)])
    if len(pb) < steps:
        pb = np.vstack([pb, np.repeat(pb[-1:], steps - len(pb), axis=0)])
    return float(np.linalg.norm(pa - pb, axis=1).mean())


def endpoint_distance(
    a: Sequence[Sequence[float]], b: Sequence[Sequence[float]]
) -> float:
    pa, pb = _as_points(a), _as_points(b)
    return float(np.linalg.norm(pa[-1] - pb[-1]))
