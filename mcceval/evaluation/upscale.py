from __future__ import annotations

from typing import Sequence

from loguru import logger
from pydantic import BaseModel

from mcceval.evaluation.evaluator import ParallelEvaluator
from mcceval.evaluation.worker_pool import WorkerPool
from mcceval.exceptions import ConfigurationError, DecodeError, SimulationError
from mcceval.genomes.codec import decode
from mcceval.genomes.factories import BodyFactoryConfig, BrainFactoryConfig
from mcceval.genomes.models import Genome
from mcceval.phenotypes import VoxelBody
from mcceval.simulation.runner import SimulationMode, SimulationRequest, SimulatorRunner

__all__ = ["UpscaleResult", "UpscaleSearchEngine"]


class UpscaleResult(BaseModel):
    brain_id: int
    body_id: int
    base_size: int
    max_size: int
    trials: int

    @property
    def improved(self) -> bool:
        return self.max_size > self.base_size


class UpscaleSearchEngine:
    """Finds the largest body resolution at which a body/brain pair stays viable.

    The body is re-decoded one step larger per trial, starting at its evolved
    size, until a trial fails or the ceiling is reached. The brain is
    re-decoded against each body so its controller matches the new extents.
    """

    def __init__(
        self,
        simulator: SimulatorRunner,
        body_factory: BodyFactoryConfig,
        brain_factory: BrainFactoryConfig,
        *,
        min_success_distance: float,
        max_body_size: int | None = None,
        evaluator: ParallelEvaluator | None = None,
        run: int = 0,
    ):
        self.simulator = simulator
        self.body_factory = body_factory
        self.brain_factory = brain_factory
        self.min_success_distance = min_success_distance
        self.max_body_size = max_body_size or body_factory.max_body_size
        if self.max_body_size < body_factory.x_dimension:
            raise ConfigurationError(
                f"max body size {self.max_body_size} is below the initial body size "
                f"{body_factory.x_dimension}"
            )
        self.evaluator = evaluator or ParallelEvaluator()
        self.run = run

    async def search(self, body: Genome, brain: Genome) -> UpscaleResult:
        base_body: VoxelBody = await WorkerPool.run(decode, body, self.body_factory)
        evolved = base_body.length_x
        if self.max_body_size < evolved:
            raise ConfigurationError(
                f"max body size {self.max_body_size} is below body {body.id}'s evolved size {evolved}"
            )

        last_success = -1
        trials = 0
        for increment in range(self.max_body_size - evolved + 1):
            trials += 1
            if not await self._trial(body, brain, increment, base_body):
                break
            last_success = increment

        result = UpscaleResult(
            brain_id=brain.id,
            body_id=body.id,
            base_size=evolved,
            max_size=evolved + max(last_success, 0),
            trials=trials,
        )
        logger.debug(
            "[UpscaleSearchEngine] body {} / brain {}: {} -> {} in {} trials",
            body.id,
            brain.id,
            result.base_size,
            result.max_size,
            trials,
        )
        return result

    async def _trial(
        self, body: Genome, brain: Genome, increment: int, base_body: VoxelBody
    ) -> bool:
        try:
            if increment == 0:
                scaled = base_body
            else:
                scaled = await WorkerPool.run(decode, body, self.body_factory, increment)
            controller = await WorkerPool.run(decode, brain, self.brain_factory, 0, scaled)
        except DecodeError:
            if increment == 0:
                raise
            logger.warning(
                "[UpscaleSearchEngine] body {} / brain {} undecodable at +{}",
                body.id,
                brain.id,
                increment,
            )
            return False

        try:
            result = await self.simulator.run(
                SimulationRequest(
                    run=self.run,
                    primary_id=body.id,
                    secondary_id=brain.id,
                    mode=SimulationMode.DISTANCE_BOUNDED,
                    bound=self.min_success_distance,
                    primary=scaled.to_config(),
                    secondary=controller.to_config(),
                    tag=f"upscale{increment}",
                )
            )
        except SimulationError as e:
            logger.warning(
                "[UpscaleSearchEngine] body {} / brain {} trial at +{} failed: {}",
                body.id,
                brain.id,
                increment,
                e,
            )
            return False
        return result.distance >= self.min_success_distance

    async def search_all(self, pairs: Sequence[tuple[Genome, Genome]]) -> list[UpscaleResult]:
        """Search independent pairs concurrently; pairs that cannot be searched are dropped."""

        async def _search(pair: tuple[Genome, Genome]) -> UpscaleResult | None:
            return await self.search(*pair)

        def _failed(pair: tuple[Genome, Genome], exc: Exception) -> None:
            if isinstance(exc, ConfigurationError):
                raise exc
            logger.error(
                "[UpscaleSearchEngine] body {} / brain {} skipped: {}", pair[0].id, pair[1].id, exc
            )
            return None

        results = await self.evaluator.map(pairs, _search, on_error=_failed)
        return [r for r in results if r is not None]
