import asyncio

import pytest

from mcceval.config import FailurePolicy
from mcceval.evaluation import (
    EvaluationUnit,
    ParallelEvaluator,
    TrialOutcome,
    TrialStatus,
)
from mcceval.exceptions import (
    ConfigurationError,
    DecodeError,
    SimulationError,
    SimulationTimeoutError,
)
from mcceval.genomes import Genome, GenomeKind


def _units(n):
    return [
        EvaluationUnit(
            primary=Genome(id=i, kind=GenomeKind.MAZE, encoding="{}"),
            secondary=Genome(id=100 + i, kind=GenomeKind.NAVIGATOR, encoding="{}"),
        )
        for i in range(n)
    ]


@pytest.mark.asyncio
async def test_every_unit_gets_an_outcome_with_bounded_concurrency():
    active = 0
    peak = 0

    async def trial(unit):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return TrialOutcome(status=TrialStatus.SUCCEEDED, distance=float(unit.primary_id))

    evaluator = ParallelEvaluator(max_workers=3)
    units = await evaluator.evaluate(_units(10), trial)

    assert peak <= 3
    assert [u.outcome.distance for u in units] == [float(i) for i in range(10)]
    assert evaluator.metrics.succeeded == 10


@pytest.mark.asyncio
async def test_isolate_marks_failures_per_unit():
    errors = {
        1: DecodeError("bad encoding"),
        2: SimulationTimeoutError("too slow"),
        3: SimulationError("crashed", returncode=1),
    }

    async def trial(unit):
        if unit.primary_id in errors:
            raise errors[unit.primary_id]
        return TrialOutcome(status=TrialStatus.UNSUCCESSFUL)

    evaluator = ParallelEvaluator(max_workers=2)
    units = await evaluator.evaluate(_units(5), trial)
    statuses = [u.outcome.status for u in units]

    assert statuses == [
        TrialStatus.UNSUCCESSFUL,
        TrialStatus.FAILED_DECODE,
        TrialStatus.TIMEOUT,
        TrialStatus.FAILED,
        TrialStatus.UNSUCCESSFUL,
    ]
    assert "bad encoding" in units[1].outcome.error
    assert evaluator.metrics.to_dict()["failed_decode"] == 1
    assert evaluator.metrics.timed_out == 1


@pytest.mark.asyncio
async def test_fail_fast_cancels_remaining_trials():
    finished = []

    async def trial(unit):
        if unit.primary_id == 0:
            raise SimulationError("first unit broke")
        await asyncio.sleep(1)
        finished.append(unit.primary_id)
        return TrialOutcome(status=TrialStatus.SUCCEEDED)

    evaluator = ParallelEvaluator(max_workers=4, failure_policy=FailurePolicy.FAIL_FAST)
    with pytest.raises(SimulationError):
        await evaluator.evaluate(_units(4), trial)
    assert finished == []


@pytest.mark.asyncio
async def test_map_keeps_input_order():
    async def slow_square(x):
        await asyncio.sleep(0.01 * (5 - x))
        return x * x

    assert await ParallelEvaluator(max_workers=5).map(range(5), slow_square) == [0, 1, 4, 9, 16]


def test_outcome_is_write_once():
    unit = _units(1)[0]
    unit.record(TrialOutcome(status=TrialStatus.SUCCEEDED))
    with pytest.raises(RuntimeError):
        unit.record(TrialOutcome(status=TrialStatus.FAILED))


def test_unevaluated_unit_has_no_record():
    with pytest.raises(RuntimeError):
        _units(1)[0].to_record()


def test_non_positive_workers_rejected():
    with pytest.raises(ConfigurationError):
        ParallelEvaluator(max_workers=0)
