"""Chunked post-hoc analyses over one experiment run.

Every analysis walks the run's primary genome ids in chunks of
``config.chunk_size``: it fetches the chunk's genomes and pairings, evaluates
them, hands the records to the result sink, and drops the chunk's units and
phenotypes before moving on. Passes that need results across chunks keep
only a :class:`TrajectorySample` per unit.
"""

from __future__ import annotations

import asyncio
from functools import partial
from itertools import product
from pathlib import Path
from typing import Sequence

from loguru import logger

from mcceval.config import EvaluationConfig
from mcceval.diversity.aggregator import DiversityAggregator
from mcceval.evaluation.cache import PhenotypeCache
from mcceval.evaluation.chunking import chunk
from mcceval.evaluation.evaluator import ParallelEvaluator
from mcceval.evaluation.trials import BodyBrainTrial, MazeNavigationTrial
from mcceval.evaluation.units import EvaluationUnit, TrajectorySample
from mcceval.evaluation.upscale import UpscaleSearchEngine
from mcceval.evaluation.worker_pool import WorkerPool
from mcceval.genomes.codec import decode
from mcceval.genomes.factories import (
    BodyFactoryConfig,
    BrainFactoryConfig,
    MazeFactoryConfig,
    NavigatorFactoryConfig,
)
from mcceval.genomes.models import Genome, GenomeKind
from mcceval.phenotypes import VoxelBody
from mcceval.simulation.runner import SimulationMode, SimulationRequest, SimulatorRunner
from mcceval.storage.repository import GenomeRepository
from mcceval.storage.sinks import RecordKind, ResultSink

__all__ = ["EvaluationPipeline"]


class EvaluationPipeline:
    def __init__(
        self,
        repository: GenomeRepository,
        sink: ResultSink,
        simulator: SimulatorRunner,
        *,
        config: EvaluationConfig | None = None,
        body_factory: BodyFactoryConfig | None = None,
        brain_factory: BrainFactoryConfig | None = None,
        maze_factory: MazeFactoryConfig | None = None,
        navigator_factory: NavigatorFactoryConfig | None = None,
    ):
        self.repository = repository
        self.sink = sink
        self.simulator = simulator
        self.config = config or EvaluationConfig()
        self.body_factory = body_factory or BodyFactoryConfig()
        self.brain_factory = brain_factory or BrainFactoryConfig()
        self.maze_factory = maze_factory or MazeFactoryConfig()
        self.navigator_factory = navigator_factory or NavigatorFactoryConfig()

        self.cache = PhenotypeCache()
        self.evaluator = ParallelEvaluator(self.config.max_workers, self.config.failure_policy)
        self.aggregator = DiversityAggregator.from_config(self.config)

    async def close(self) -> None:
        self.aggregator.close()
        await self.sink.close()
        await self.repository.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _log_chunk(label: str, start: int, size: int, total: int) -> None:
        logger.info(
            "Evaluating {} [{}] through [{}] of [{}]", label, start, start + size, total
        )

    async def _paired_units(
        self,
        experiment_id: int,
        run: int,
        primary_kind: GenomeKind,
        secondary_kind: GenomeKind,
        primary_ids: Sequence[int],
    ) -> list[EvaluationUnit]:
        pairs = await self.repository.get_pairings(experiment_id, run, primary_kind, primary_ids)
        if not pairs:
            return []
        primaries = await self._genomes(experiment_id, run, primary_kind, {p for p, _ in pairs})
        secondaries = await self._genomes(experiment_id, run, secondary_kind, {s for _, s in pairs})
        return [EvaluationUnit(primaries[p], secondaries[s]) for p, s in pairs]

    async def _genomes(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: set[int] | Sequence[int]
    ) -> dict[int, Genome]:
        genomes = await self.repository.get_genome_data(experiment_id, run, kind, sorted(ids))
        return {g.id: g for g in genomes}

    async def _decode_bodies(self, genomes: Sequence[Genome]) -> list[VoxelBody]:
        async def _decode(genome: Genome) -> VoxelBody:
            return await WorkerPool.run(
                self.cache.get_or_insert,
                ("body", genome.id),
                partial(decode, genome, self.body_factory),
            )

        def _skip(genome: Genome, exc: Exception) -> None:
            logger.error("[EvaluationPipeline] body {} not decodable: {}", genome.id, exc)
            return None

        bodies = await self.evaluator.map(genomes, _decode, on_error=_skip)
        return [b for b in bodies if b is not None]

    async def _run_trials(
        self, experiment_id: int, run: int, kind: RecordKind, collect: bool = False
    ) -> tuple[int, list[TrajectorySample]]:
        trial = BodyBrainTrial(
            self.simulator,
            self.cache,
            self.body_factory,
            self.brain_factory,
            mode=SimulationMode.TIME_BOUNDED,
            bound=self.config.simulation_time,
            run=run,
        )
        body_ids = await self.repository.get_ids(experiment_id, run, GenomeKind.BODY)
        evaluated = 0
        samples: list[TrajectorySample] = []
        for i, ids in enumerate(chunk(body_ids, self.config.chunk_size)):
            self._log_chunk("bodies", i * self.config.chunk_size, len(ids), len(body_ids))
            units = await self._paired_units(
                experiment_id, run, GenomeKind.BODY, GenomeKind.BRAIN, ids
            )
            await self.evaluator.evaluate(units, trial)
            await self.sink.write(kind, [u.to_record() for u in units])
            evaluated += len(units)
            if collect:
                samples.extend(u.to_sample() for u in units)
            self.cache.clear()
        return evaluated, samples

    # ------------------------------------------------------------------
    # Body/brain analyses
    # ------------------------------------------------------------------

    async def evaluate_simulation_logs(self, experiment_id: int, run: int) -> int:
        """Time-bounded trials for every viable body/brain pair, with per-timestep logs."""
        evaluated, _ = await self._run_trials(experiment_id, run, RecordKind.SIMULATION_LOG)
        logger.info("[EvaluationPipeline] simulated {} body/brain pairs", evaluated)
        return evaluated

    async def evaluate_simulation_diversity(self, experiment_id: int, run: int) -> int:
        _, samples = await self._run_trials(
            experiment_id, run, RecordKind.SIMULATION_LOG, collect=True
        )
        records = await asyncio.to_thread(self.aggregator.simulation_diversity, samples)
        await self.sink.write(RecordKind.SIMULATION_DIVERSITY, records)
        return len(records)

    async def evaluate_upscale(self, experiment_id: int, run: int) -> int:
        engine = UpscaleSearchEngine(
            self.simulator,
            self.body_factory,
            self.brain_factory,
            min_success_distance=self.config.min_success_distance,
            max_body_size=self.config.max_body_size,
            evaluator=self.evaluator,
            run=run,
        )
        body_ids = await self.repository.get_ids(experiment_id, run, GenomeKind.BODY)
        written = improved = 0
        for i, ids in enumerate(chunk(body_ids, self.config.chunk_size)):
            self._log_chunk("bodies", i * self.config.chunk_size, len(ids), len(body_ids))
            units = await self._paired_units(
                experiment_id, run, GenomeKind.BODY, GenomeKind.BRAIN, ids
            )
            results = await engine.search_all([(u.primary, u.secondary) for u in units])
            await self.sink.write(RecordKind.UPSCALE, results)
            written += len(results)
            improved += sum(1 for r in results if r.improved)
        logger.info(
            "[EvaluationPipeline] upscale: {} pairs searched, {} improved", written, improved
        )
        return written

    async def generate_configs(self, experiment_id: int, run: int) -> list[Path]:
        """Write distance-bounded simulator configs for every viable pair without running them.

        Configs are grouped into ``size_XxYxZ/proportion_P`` directories.
        """
        body_ids = await self.repository.get_ids(experiment_id, run, GenomeKind.BODY)
        paths: list[Path] = []
        for i, ids in enumerate(chunk(body_ids, self.config.chunk_size)):
            self._log_chunk("bodies", i * self.config.chunk_size, len(ids), len(body_ids))
            units = await self._paired_units(
                experiment_id, run, GenomeKind.BODY, GenomeKind.BRAIN, ids
            )
            for unit in units:
                body = await WorkerPool.run(
                    self.cache.get_or_insert,
                    ("body", unit.primary_id),
                    partial(decode, unit.primary, self.body_factory),
                )
                brain = await WorkerPool.run(decode, unit.secondary, self.brain_factory, 0, body)
                x, y, z = body.extents
                request = SimulationRequest(
                    run=run,
                    primary_id=unit.primary_id,
                    secondary_id=unit.secondary_id,
                    mode=SimulationMode.DISTANCE_BOUNDED,
                    bound=self.config.min_success_distance,
                    primary=body.to_config(),
                    secondary=brain.to_config(),
                    subdir=f"size_{x}x{y}x{z}/proportion_{body.full_proportion:.2f}",
                )
                paths.append(self.simulator.write_config(request))
            self.cache.clear()
        return paths

    async def evaluate_body_diversity(
        self, experiment_id: int, run: int, by_batch: bool = False
    ) -> int:
        """Morphological diversity of every body.

        Run mode compares each chunk of bodies against the whole run
        population; batch mode compares the bodies of each batch with one
        another.
        """
        if by_batch:
            return await self._batch_body_diversity(experiment_id, run)

        body_ids = await self.repository.get_ids(experiment_id, run, GenomeKind.BODY)
        genomes = await self._genomes(experiment_id, run, GenomeKind.BODY, body_ids)
        population = await self._decode_bodies([genomes[gid] for gid in body_ids])
        groups = await self.repository.get_groups(experiment_id, run, GenomeKind.BODY, body_ids)

        written = 0
        for i, bodies in enumerate(chunk(population, self.config.chunk_size)):
            self._log_chunk("bodies", i * self.config.chunk_size, len(bodies), len(population))
            records = await asyncio.to_thread(
                self.aggregator.body_diversity, bodies, population, groups
            )
            await self.sink.write(RecordKind.BODY_DIVERSITY, records)
            written += len(records)
        self.cache.clear()
        return written

    async def _batch_body_diversity(self, experiment_id: int, run: int) -> int:
        written = 0
        for batch in await self.repository.get_batches(experiment_id, run, GenomeKind.BODY):
            ids = await self.repository.get_ids(experiment_id, run, GenomeKind.BODY, batch=batch)
            genomes = await self._genomes(experiment_id, run, GenomeKind.BODY, ids)
            bodies = await self._decode_bodies([genomes[gid] for gid in ids])
            logger.info("Evaluating batch [{}] with [{}] bodies", batch, len(bodies))
            records = await asyncio.to_thread(self.aggregator.body_diversity, bodies, bodies)
            await self.sink.write(RecordKind.BODY_DIVERSITY, records)
            written += len(records)
            self.cache.clear()
        return written

    # ------------------------------------------------------------------
    # Maze/navigator analyses
    # ------------------------------------------------------------------

    async def evaluate_navigation(
        self, experiment_id: int, run: int, cross_product: bool = False
    ) -> int:
        """Run navigators through mazes, chunked by maze.

        With ``cross_product`` every navigator of the run attempts every maze;
        otherwise only the recorded viable pairs are evaluated.
        """
        evaluated, _ = await self._navigate(experiment_id, run, cross_product)
        logger.info("[EvaluationPipeline] evaluated {} maze/navigator pairs", evaluated)
        return evaluated

    async def _navigate(
        self, experiment_id: int, run: int, cross_product: bool, collect_solved: bool = False
    ) -> tuple[int, list[TrajectorySample]]:
        trial = MazeNavigationTrial(
            self.simulator, self.cache, self.maze_factory, self.navigator_factory, run=run
        )
        maze_ids = await self.repository.get_ids(experiment_id, run, GenomeKind.MAZE)
        navigators: dict[int, Genome] = {}
        if cross_product:
            navigator_ids = await self.repository.get_ids(experiment_id, run, GenomeKind.NAVIGATOR)
            navigators = await self._genomes(experiment_id, run, GenomeKind.NAVIGATOR, navigator_ids)

        evaluated = 0
        solved: list[TrajectorySample] = []
        for i, ids in enumerate(chunk(maze_ids, self.config.chunk_size)):
            self._log_chunk("mazes", i * self.config.chunk_size, len(ids), len(maze_ids))
            if cross_product:
                mazes = await self._genomes(experiment_id, run, GenomeKind.MAZE, ids)
                units = [
                    EvaluationUnit(mazes[m], navigators[n])
                    for m, n in product(ids, sorted(navigators))
                ]
            else:
                units = await self._paired_units(
                    experiment_id, run, GenomeKind.MAZE, GenomeKind.NAVIGATOR, ids
                )
            await self.evaluator.evaluate(units, trial)
            await self.sink.write(RecordKind.NAVIGATION, [u.to_record() for u in units])
            evaluated += len(units)
            if collect_solved:
                solved.extend(u.to_sample() for u in units if u.outcome.success)
            if cross_product:
                # navigators stay cached for the next chunk of mazes
                for maze_id in ids:
                    self.cache.evict(("maze", maze_id))
            else:
                self.cache.clear()
        self.cache.clear()
        return evaluated, solved

    async def evaluate_navigation_diversity(
        self, experiment_id: int, run: int, cross_product: bool = False
    ) -> int:
        _, solved = await self._navigate(experiment_id, run, cross_product, collect_solved=True)
        records = await asyncio.to_thread(self.aggregator.navigation_diversity, solved)
        await self.sink.write(RecordKind.NAVIGATION_DIVERSITY, records)
        logger.info(
            "[EvaluationPipeline] navigation diversity for {} solved units", len(records)
        )
        return len(records)
