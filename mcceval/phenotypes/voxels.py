from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

import numpy as np

__all__ = ["VoxelMaterial", "VoxelBody", "VoxelBrain"]


class VoxelMaterial(IntEnum):
    NONE = 0
    PASSIVE_TISSUE = 1
    ACTIVE_TISSUE = 3


@dataclass(frozen=True, eq=False)
class VoxelBody:
    """Decoded voxel body.

    ``materials`` holds :class:`VoxelMaterial` codes indexed ``[x, y, z]``.
    """

    genome_id: int
    materials: np.ndarray

    @property
    def extents(self) -> tuple[int, int, int]:
        x, y, z = self.materials.shape
        return int(x), int(y), int(z)

    @property
    def length_x(self) -> int:
        return int(self.materials.shape[0])

    @property
    def length_y(self) -> int:
        return int(self.materials.shape[1])

    @property
    def length_z(self) -> int:
        return int(self.materials.shape[2])

    @property
    def num_voxels(self) -> int:
        return int(self.materials.size)

    @property
    def num_material_voxels(self) -> int:
        return int(np.count_nonzero(self.materials))

    @property
    def num_active_voxels(self) -> int:
        return int(np.count_nonzero(self.materials == VoxelMaterial.ACTIVE_TISSUE))

    @property
    def num_passive_voxels(self) -> int:
        return int(np.count_nonzero(self.materials == VoxelMaterial.PASSIVE_TISSUE))

    @property
    def active_proportion(self) -> float:
        filled = self.num_material_voxels
        return self.num_active_voxels / filled if filled else 0.0

    @property
    def passive_proportion(self) -> float:
        filled = self.num_material_voxels
        return self.num_passive_voxels / filled if filled else 0.0

    @property
    def full_proportion(self) -> float:
        return self.num_material_voxels / self.num_voxels if self.num_voxels else 0.0

    def material_at(self, x: int, y: int, z: int) -> VoxelMaterial:
        """Material at a coordinate; anything outside the grid reads as NONE."""
        lx, ly, lz = self.extents
        if 0 <= x < lx and 0 <= y < ly and 0 <= z < lz:
            return VoxelMaterial(int(self.materials[x, y, z]))
        return VoxelMaterial.NONE

    def layer_codes(self) -> list[str]:
        # One string per z layer, y-major then x.
        return [
            "".join(str(int(code)) for code in self.materials[:, :, z].T.ravel())
            for z in range(self.length_z)
        ]

    def to_config(self) -> dict[str, Any]:
        return {
            "id": self.genome_id,
            "extents": list(self.extents),
            "layers": self.layer_codes(),
        }


@dataclass(frozen=True, eq=False)
class VoxelBrain:
    """Per-voxel controller weights decoded against a specific body."""

    genome_id: int
    body_extents: tuple[int, int, int]
    weights: np.ndarray

    @property
    def num_connections(self) -> int:
        return int(self.weights.shape[-1])

    def to_config(self) -> dict[str, Any]:
        return {
            "id": self.genome_id,
            "extents": list(self.body_extents),
            "num_connections": self.num_connections,
            "weights": self.weights.reshape(-1, self.num_connections).tolist(),
        }
