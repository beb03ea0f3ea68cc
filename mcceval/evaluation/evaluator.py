from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
import os
from typing import Awaitable, Callable, Iterable, Sequence, TypeVar

from loguru import logger

from mcceval.config import FailurePolicy
from mcceval.evaluation.units import EvaluationUnit, TrialOutcome, TrialStatus
from mcceval.exceptions import ConfigurationError

__all__ = ["Trial", "EvaluatorMetrics", "ParallelEvaluator"]

T = TypeVar("T")
R = TypeVar("R")

Trial = Callable[[EvaluationUnit], Awaitable[TrialOutcome]]


@dataclass
class EvaluatorMetrics:
    units_evaluated: int = 0
    succeeded: int = 0
    unsuccessful: int = 0
    failed: int = 0
    failed_decode: int = 0
    timed_out: int = 0

    def observe(self, outcome: TrialOutcome) -> None:
        self.units_evaluated += 1
        if outcome.status == TrialStatus.SUCCEEDED:
            self.succeeded += 1
        elif outcome.status == TrialStatus.UNSUCCESSFUL:
            self.unsuccessful += 1
        elif outcome.status == TrialStatus.FAILED_DECODE:
            self.failed_decode += 1
        elif outcome.status == TrialStatus.TIMEOUT:
            self.timed_out += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class ParallelEvaluator:
    """Runs one trial per unit with bounded concurrency.

    ``evaluate`` returns only after every unit's trial has finished, so
    callers read outcomes after a single join point. Under
    :attr:`FailurePolicy.ISOLATE` a failing trial becomes a failed outcome
    on its unit; under :attr:`FailurePolicy.FAIL_FAST` the first error
    cancels the remaining trials and propagates.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        failure_policy: FailurePolicy = FailurePolicy.ISOLATE,
    ):
        workers = max_workers if max_workers is not None else (os.cpu_count() or 1)
        if workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {workers}")
        self.max_workers = workers
        self.failure_policy = FailurePolicy(failure_policy)
        self.metrics = EvaluatorMetrics()

    async def map(
        self,
        items: Iterable[T],
        fn: Callable[[T], Awaitable[R]],
        on_error: Callable[[T, Exception], R] | None = None,
    ) -> list[R]:
        """Apply ``fn`` to every item, at most ``max_workers`` at a time.

        Results keep input order. When isolating, a failed item is replaced
        by ``on_error(item, exc)``; without a handler the error propagates.
        """
        sema = asyncio.Semaphore(self.max_workers)
        isolate = self.failure_policy == FailurePolicy.ISOLATE and on_error is not None

        async def _run_one(item: T) -> R:
            async with sema:
                try:
                    return await fn(item)
                except Exception as exc:
                    if not isolate:
                        raise
                    return on_error(item, exc)  # type: ignore[misc]

        tasks = [asyncio.create_task(_run_one(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def evaluate(
        self, units: Sequence[EvaluationUnit], trial: Trial
    ) -> list[EvaluationUnit]:
        async def _run(unit: EvaluationUnit) -> EvaluationUnit:
            unit.record(await trial(unit))
            return unit

        def _failed(unit: EvaluationUnit, exc: Exception) -> EvaluationUnit:
            logger.error(
                "[ParallelEvaluator] unit ({}, {}) failed: {}",
                unit.primary_id,
                unit.secondary_id,
                exc,
            )
            unit.record(TrialOutcome.from_error(exc))
            return unit

        logger.debug(
            "[ParallelEvaluator] evaluating {} units with {} workers",
            len(units),
            self.max_workers,
        )
        evaluated = await self.map(units, _run, on_error=_failed)
        for unit in evaluated:
            self.metrics.observe(unit.outcome)  # type: ignore[arg-type]
        logger.info("[ParallelEvaluator] batch done: metrics={}", self.metrics.to_dict())
        return evaluated
