from mcceval.phenotypes.controllers import NavigatorController
from mcceval.phenotypes.mazes import MazeStructure, Wall
from mcceval.phenotypes.voxels import VoxelBody, VoxelBrain, VoxelMaterial

__all__ = [
    "MazeStructure",
    "NavigatorController",
    "VoxelBody",
    "VoxelBrain",
    "VoxelMaterial",
    "Wall",
]
