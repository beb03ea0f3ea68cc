from mcceval.diversity.accumulator import AtomicCounters
from mcceval.diversity.aggregator import DiversityAggregator, DiversityRecord
from mcceval.diversity.dissimilarity import (
    VoxelMismatch,
    compare_bodies,
    endpoint_distance,
    trajectory_distance,
)

__all__ = [
    "AtomicCounters",
    "DiversityAggregator",
    "DiversityRecord",
    "VoxelMismatch",
    "compare_bodies",
    "endpoint_distance",
    "trajectory_distance",
]
