"""Population diversity statistics.

For every entity the aggregator compares it against a reference population
(the whole population, or a sample of it when ``sample_size > 0``), fanning
the pairwise comparisons out over a thread pool and reducing the partial
results into :class:`AtomicCounters`. An entity is never compared with
itself.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import os
from typing import Any, Callable, Hashable, Mapping, Sequence, TypeVar

from loguru import logger
from pydantic import BaseModel, Field

from mcceval.config import DiversityNormalization, EvaluationConfig
from mcceval.diversity.accumulator import AtomicCounters
from mcceval.diversity.dissimilarity import (
    compare_bodies,
    endpoint_distance,
    trajectory_distance,
)
from mcceval.diversity.sampling import (
    make_rng,
    sample_even,
    sample_stratified,
    sample_uniform,
)
from mcceval.evaluation.units import EvaluationUnit, TrajectorySample
from mcceval.phenotypes import VoxelBody

__all__ = [
    "BODY_METRICS",
    "NAVIGATION_METRICS",
    "SIMULATION_METRICS",
    "DiversityRecord",
    "DiversityAggregator",
]

T = TypeVar("T")

BODY_METRICS = ("avg_voxel_diff", "avg_material_diff", "avg_active_diff", "avg_passive_diff")
NAVIGATION_METRICS = ("intra_maze_diversity", "inter_maze_diversity", "global_diversity")
SIMULATION_METRICS = ("trajectory_diversity", "end_point_diversity")


class DiversityRecord(BaseModel):
    entity_id: int
    secondary_id: int | None = None
    size: int | None = None
    metrics: dict[str, float] = Field(default_factory=dict)

    @property
    def values(self) -> list[float]:
        return list(self.metrics.values())


Traced = EvaluationUnit | TrajectorySample


def _samples(units: Sequence[Traced]) -> list[TrajectorySample]:
    """Evaluated units with at least one recorded position."""
    samples = []
    for unit in units:
        if isinstance(unit, EvaluationUnit):
            if unit.outcome is None:
                continue
            unit = unit.to_sample()
        if len(unit.points):
            samples.append(unit)
    return samples


def _sample_key(sample: TrajectorySample) -> tuple[int, int]:
    return sample.primary_id, sample.secondary_id


class DiversityAggregator:
    def __init__(
        self,
        *,
        sample_size: int = 0,
        use_even_distribution: bool = False,
        seed: int | None = None,
        normalization: DiversityNormalization = DiversityNormalization.COUNTERPARTS,
        max_workers: int | None = None,
    ):
        self.sample_size = sample_size
        self.use_even_distribution = use_even_distribution
        self.normalization = DiversityNormalization(normalization)
        self._rng = make_rng(seed)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or os.cpu_count() or 4,
            thread_name_prefix="mcceval-diversity",
        )

    @classmethod
    def from_config(cls, config: EvaluationConfig) -> "DiversityAggregator":
        return cls(
            sample_size=config.sample_size,
            use_even_distribution=config.use_even_distribution,
            seed=config.sampling_seed,
            normalization=config.normalization,
            max_workers=config.max_workers,
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "DiversityAggregator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Shared machinery
    # ------------------------------------------------------------------

    def _reference(
        self,
        population: Sequence[T],
        key: Callable[[T], Hashable] | None = None,
        even: bool = False,
    ) -> list[T]:
        if self.sample_size == 0:
            return list(population)
        if key is not None and even:
            sampled = sample_even(population, self.sample_size, key, self._rng)
        elif key is not None:
            sampled = sample_stratified(population, self.sample_size, key, self._rng)
        else:
            sampled = sample_uniform(population, self.sample_size, self._rng)
        logger.debug(
            "[DiversityAggregator] sampled {} of {} reference entities",
            len(sampled),
            len(population),
        )
        return sampled

    def _divisor(self, compared: int, reference_size: int) -> int:
        if self.normalization == DiversityNormalization.POPULATION:
            return reference_size
        return compared

    def _accumulate(
        self,
        entity: T,
        reference: Sequence[T],
        identity: Callable[[T], Hashable],
        compare: Callable[[T, T], Sequence[float]],
        names: Sequence[str],
    ) -> AtomicCounters:
        counters = AtomicCounters(names)
        own = identity(entity)

        def _task(other: T) -> None:
            counters.add(compare(entity, other))

        futures = [
            self._executor.submit(_task, other)
            for other in reference
            if identity(other) != own
        ]
        for future in futures:
            future.result()
        return counters

    # ------------------------------------------------------------------
    # Body morphology
    # ------------------------------------------------------------------

    def body_diversity(
        self,
        bodies: Sequence[VoxelBody],
        population: Sequence[VoxelBody],
        groups: Mapping[int, Hashable] | None = None,
    ) -> list[DiversityRecord]:
        """Average voxel mismatch of each body against the population.

        With ``groups`` (body id -> species) a sampled reference is drawn per
        group.
        """
        key = (lambda b: groups.get(b.genome_id)) if groups else None
        reference = self._reference(population, key=key)

        records = []
        for body in bodies:
            counters = self._accumulate(
                body,
                reference,
                identity=lambda b: b.genome_id,
                compare=compare_bodies,
                names=BODY_METRICS,
            )
            records.append(
                DiversityRecord(
                    entity_id=body.genome_id,
                    size=body.length_x,
                    metrics=counters.normalized(self._divisor(counters.count, len(reference))),
                )
            )
        return records

    # ------------------------------------------------------------------
    # Maze navigation trajectories
    # ------------------------------------------------------------------

    def navigation_diversity(self, units: Sequence[Traced]) -> list[DiversityRecord]:
        """Trajectory diversity of solved maze/navigator units or their samples.

        Intra-maze scores compare against other navigators on the same maze,
        inter-maze scores against navigators on other mazes, and the global
        score against all of them. A score with nothing to compare is 0.
        """
        solved = [s for s in _samples(units) if s.success]
        if self.use_even_distribution:
            reference = self._reference(solved, key=lambda u: u.primary_id, even=True)
        else:
            reference = self._reference(solved)

        def _compare(unit: TrajectorySample, other: TrajectorySample) -> tuple[float, ...]:
            distance = trajectory_distance(unit.points, other.points)
            if other.primary_id == unit.primary_id:
                return distance, 1.0, 0.0, 0.0
            return 0.0, 0.0, distance, 1.0

        records = []
        for unit in reference:
            counters = self._accumulate(
                unit,
                reference,
                identity=_sample_key,
                compare=_compare,
                names=("intra_sum", "intra_count", "inter_sum", "inter_count"),
            )
            totals = counters.totals()
            intra_n, inter_n = int(totals["intra_count"]), int(totals["inter_count"])
            global_n = self._divisor(intra_n + inter_n, len(reference))
            records.append(
                DiversityRecord(
                    entity_id=unit.primary_id,
                    secondary_id=unit.secondary_id,
                    size=unit.steps,
                    metrics={
                        "intra_maze_diversity": totals["intra_sum"] / intra_n if intra_n else 0.0,
                        "inter_maze_diversity": totals["inter_sum"] / inter_n if inter_n else 0.0,
                        "global_diversity": (
                            (totals["intra_sum"] + totals["inter_sum"]) / global_n
                            if global_n
                            else 0.0
                        ),
                    },
                )
            )
        return records

    # ------------------------------------------------------------------
    # Body/brain simulation trajectories
    # ------------------------------------------------------------------

    def simulation_diversity(self, units: Sequence[Traced]) -> list[DiversityRecord]:
        """Trajectory and end-point diversity of evaluated body/brain pairs."""
        traced = _samples(units)
        reference = self._reference(traced)

        def _compare(unit: TrajectorySample, other: TrajectorySample) -> tuple[float, float]:
            a, b = unit.points, other.points
            return trajectory_distance(a, b), endpoint_distance(a, b)

        records = []
        for unit in traced:
            counters = self._accumulate(
                unit,
                reference,
                identity=_sample_key,
                compare=_compare,
                names=SIMULATION_METRICS,
            )
            records.append(
                DiversityRecord(
                    entity_id=unit.primary_id,
                    secondary_id=unit.secondary_id,
                    size=unit.size,
                    metrics=counters.normalized(self._divisor(counters.count, len(reference))),
                )
            )
        return records
