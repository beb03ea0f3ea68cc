"""Trial strategies run by :class:`~mcceval.evaluation.evaluator.ParallelEvaluator`.

A trial resolves both phenotypes of a unit (cache or decode, on the shared
worker pool), hands them to the simulator and turns the result into a
:class:`TrialOutcome`. Errors propagate; the evaluator decides whether they
are isolated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable

from mcceval.evaluation.cache import PhenotypeCache
from mcceval.evaluation.units import EvaluationUnit, TrialOutcome
from mcceval.evaluation.worker_pool import WorkerPool
from mcceval.genomes.codec import decode
from mcceval.genomes.factories import (
    BodyFactoryConfig,
    BrainFactoryConfig,
    MazeFactoryConfig,
    NavigatorFactoryConfig,
)
from mcceval.simulation.runner import SimulationMode, SimulationRequest, SimulatorRunner

__all__ = ["SimulationTrial", "BodyBrainTrial", "MazeNavigationTrial"]


class SimulationTrial(ABC):
    def __init__(self, simulator: SimulatorRunner, cache: PhenotypeCache, run: int = 0):
        self.simulator = simulator
        self.cache = cache
        self.run = run

    async def _resolve(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        return await WorkerPool.run(self.cache.get_or_insert, key, compute)

    @abstractmethod
    async def __call__(self, unit: EvaluationUnit) -> TrialOutcome: ...


class BodyBrainTrial(SimulationTrial):
    """Body (primary) driven by brain (secondary) in the voxel simulator.

    Distance-bounded trials succeed when the body covers ``bound``;
    time-bounded trials run for ``bound`` seconds, succeed when the
    simulator says so, and carry the per-timestep log.
    """

    def __init__(
        self,
        simulator: SimulatorRunner,
        cache: PhenotypeCache,
        body_factory: BodyFactoryConfig,
        brain_factory: BrainFactoryConfig,
        *,
        mode: SimulationMode,
        bound: float,
        run: int = 0,
    ):
        super().__init__(simulator, cache, run)
        self.body_factory = body_factory
        self.brain_factory = brain_factory
        self.mode = mode
        self.bound = bound

    async def __call__(self, unit: EvaluationUnit) -> TrialOutcome:
        body = await self._resolve(
            ("body", unit.primary_id),
            lambda: decode(unit.primary, self.body_factory),
        )
        brain = await self._resolve(
            ("brain", unit.secondary_id, body.extents),
            lambda: decode(unit.secondary, self.brain_factory, paired=body),
        )
        unit.primary_phenotype = body
        unit.secondary_phenotype = brain

        result = await self.simulator.run(
            SimulationRequest(
                run=self.run,
                primary_id=unit.primary_id,
                secondary_id=unit.secondary_id,
                mode=self.mode,
                bound=self.bound,
                primary=body.to_config(),
                secondary=brain.to_config(),
            )
        )
        if self.mode == SimulationMode.DISTANCE_BOUNDED:
            success = result.distance >= self.bound
        else:
            success = result.success
        return TrialOutcome.from_result(result, success=success)


class MazeNavigationTrial(SimulationTrial):
    """Navigator (secondary) attempting a maze (primary) within its timestep budget."""

    def __init__(
        self,
        simulator: SimulatorRunner,
        cache: PhenotypeCache,
        maze_factory: MazeFactoryConfig,
        navigator_factory: NavigatorFactoryConfig,
        run: int = 0,
    ):
        super().__init__(simulator, cache, run)
        self.maze_factory = maze_factory
        self.navigator_factory = navigator_factory

    async def __call__(self, unit: EvaluationUnit) -> TrialOutcome:
        maze = await self._resolve(
            ("maze", unit.primary_id),
            lambda: decode(unit.primary, self.maze_factory),
        )
        navigator = await self._resolve(
            ("navigator", unit.secondary_id),
            lambda: decode(unit.secondary, self.navigator_factory, paired=maze),
        )
        unit.primary_phenotype = maze
        unit.secondary_phenotype = navigator

        result = await self.simulator.run(
            SimulationRequest(
                run=self.run,
                primary_id=unit.primary_id,
                secondary_id=unit.secondary_id,
                mode=SimulationMode.TIME_BOUNDED,
                bound=maze.max_timesteps,
                primary=maze.to_config(),
                secondary=navigator.to_config(),
            )
        )
        return TrialOutcome.from_result(result, success=result.success)
