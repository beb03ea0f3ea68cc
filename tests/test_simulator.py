import sys

import pytest

from mcceval.exceptions import SimulationError, SimulationTimeoutError
from mcceval.simulation import (
    SimulationMode,
    SimulationRequest,
    SimulatorConfig,
    SimulatorRunner,
)
from mcceval.utils.json import loads


def _request(**overrides):
    values = dict(
        run=2,
        primary_id=11,
        secondary_id=22,
        mode=SimulationMode.DISTANCE_BOUNDED,
        bound=5.0,
        primary={"id": 11},
        secondary={"id": 22},
    )
    values.update(overrides)
    return SimulationRequest(**values)


def _runner(tmp_path, script, behaviour="ok", **config):
    return SimulatorRunner(
        SimulatorConfig(
            command=[sys.executable, str(script)],
            work_dir=tmp_path / "work",
            env={"FAKE_SIM_BEHAVIOUR": behaviour},
            **config,
        )
    )


@pytest.mark.asyncio
async def test_successful_run_parses_result_and_cleans_up(tmp_path, fake_simulator_script):
    runner = _runner(tmp_path, fake_simulator_script)
    result = await runner.run(_request())
    assert result.success is True
    assert result.distance == 6.0
    assert result.trajectory == [[0.0, 0.0], [1.0, 2.0]]
    assert list((tmp_path / "work").iterdir()) == []


@pytest.mark.asyncio
async def test_keep_artifacts_leaves_config_and_result(tmp_path, fake_simulator_script):
    runner = _runner(tmp_path, fake_simulator_script, keep_artifacts=True)
    await runner.run(_request(tag="upscale1"))
    names = sorted(p.name for p in (tmp_path / "work").iterdir())
    assert names == [
        "experiment_run2_p11_s22_distance_upscale1.config.json",
        "experiment_run2_p11_s22_distance_upscale1.result.json",
    ]


def test_write_config_groups_into_subdir(tmp_path):
    runner = SimulatorRunner(SimulatorConfig(command=["sim"], work_dir=tmp_path))
    path = runner.write_config(_request(subdir="size_3x3x3/proportion_0.50"))
    assert path.parent == tmp_path / "size_3x3x3" / "proportion_0.50"
    payload = loads(path.read_bytes())
    assert payload["mode"] == "distance"
    assert payload["bound"] == 5.0
    assert payload["result_path"].endswith(".result.json")


@pytest.mark.asyncio
async def test_non_zero_exit_raises_with_stderr(tmp_path, fake_simulator_script):
    runner = _runner(tmp_path, fake_simulator_script, behaviour="crash")
    with pytest.raises(SimulationError) as info:
        await runner.run(_request())
    assert info.value.returncode == 3
    assert "exploded" in info.value.stderr


@pytest.mark.asyncio
async def test_timeout_kills_the_simulator(tmp_path, fake_simulator_script):
    runner = _runner(tmp_path, fake_simulator_script, behaviour="hang", timeout=0.5)
    with pytest.raises(SimulationTimeoutError):
        await runner.run(_request())


@pytest.mark.asyncio
@pytest.mark.parametrize("behaviour", ["no_result", "garbage"])
async def test_missing_or_unreadable_result(tmp_path, fake_simulator_script, behaviour):
    runner = _runner(tmp_path, fake_simulator_script, behaviour=behaviour)
    with pytest.raises(SimulationError):
        await runner.run(_request())


@pytest.mark.asyncio
async def test_missing_executable(tmp_path):
    runner = SimulatorRunner(
        SimulatorConfig(command=[str(tmp_path / "does-not-exist")], work_dir=tmp_path)
    )
    with pytest.raises(SimulationError, match="could not launch"):
        await runner.run(_request())
