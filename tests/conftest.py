"""
Shared fixtures: genome builders and a stand-in simulator.
"""

import json
import sys
import textwrap

import pytest

from mcceval.genomes import BodyFactoryConfig, BrainFactoryConfig, Genome, GenomeKind
from mcceval.simulation import SimulationResult, SimulatorConfig, SimulatorRunner


def constant_network(inputs, output_biases, activation="tanh"):
    """Network whose outputs are activation(bias), independent of the inputs."""
    return {
        "inputs": inputs,
        "outputs": len(output_biases),
        "nodes": [
            {"id": inputs + i, "activation": activation, "bias": bias}
            for i, bias in enumerate(output_biases)
        ],
        "connections": [],
    }


def make_genome(gid, kind, payload):
    return Genome(id=gid, kind=kind, encoding=json.dumps(payload))


def body_genome(gid, present=1.0, active=-1.0, resolution=None):
    payload = {"network": constant_network(5, [present, active])}
    if resolution is not None:
        payload["resolution"] = resolution
    return make_genome(gid, GenomeKind.BODY, payload)


def brain_genome(gid, outputs=4, bias=0.5):
    return make_genome(gid, GenomeKind.BRAIN, {"network": constant_network(5, [bias] * outputs)})


def maze_genome(gid, start=(1, 1), target=(10, 10), walls=((0, 5, 8, 5),), max_timesteps=100):
    return make_genome(
        gid,
        GenomeKind.MAZE,
        {
            "start": list(start),
            "target": list(target),
            "walls": [list(w) for w in walls],
            "max_timesteps": max_timesteps,
        },
    )


def navigator_genome(gid, inputs=10, outputs=2):
    return make_genome(
        gid, GenomeKind.NAVIGATOR, {"network": constant_network(inputs, [0.1] * outputs)}
    )


class StubSimulator(SimulatorRunner):
    """Answers trials in-process.

    Bodies up to ``max_viable_size`` travel ``distance``; larger ones do not
    move. Mazes are solved by navigators whose id is in ``solvers`` (all
    navigators when ``solvers`` is None).
    """

    def __init__(self, config, max_viable_size=1000, distance=10.0, solvers=None, fail_ids=()):
        super().__init__(config)
        self.max_viable_size = max_viable_size
        self.distance = distance
        self.solvers = solvers
        self.fail_ids = set(fail_ids)
        self.requests = []

    async def run(self, request):
        self.requests.append(request)
        if request.primary_id in self.fail_ids:
            from mcceval.exceptions import SimulationError

            raise SimulationError(f"stub failure for {request.primary_id}")

        if "extents" in request.primary and "layers" in request.primary:
            size = request.primary["extents"][0]
            distance = self.distance if size <= self.max_viable_size else 0.0
            log = [
                {"time": t * 0.1, "x": float(t * request.secondary_id), "y": 0.0, "z": 0.0}
                for t in range(3)
            ]
            return SimulationResult(success=distance > 0, distance=distance, log=log)

        solved = self.solvers is None or request.secondary_id in self.solvers
        trajectory = [[0.0, 0.0], [float(request.secondary_id), float(request.primary_id)]]
        return SimulationResult(success=solved, steps=len(trajectory), trajectory=trajectory)


@pytest.fixture
def body_factory():
    return BodyFactoryConfig(x_dimension=3, y_dimension=3, z_dimension=3, max_body_size=10)


@pytest.fixture
def brain_factory():
    return BrainFactoryConfig(num_connections=4)


@pytest.fixture
def simulator_config(tmp_path):
    return SimulatorConfig(command=[sys.executable], work_dir=tmp_path / "sims")


@pytest.fixture
def stub_simulator(simulator_config):
    return StubSimulator(simulator_config)


FAKE_SIMULATOR = textwrap.dedent(
    """
    import json
    import os
    import sys
    import time

    with open(sys.argv[1]) as fh:
        config = json.load(fh)

    behaviour = os.environ.get("FAKE_SIM_BEHAVIOUR", "ok")
    if behaviour == "crash":
        sys.stderr.write("simulator exploded")
        sys.exit(3)
    if behaviour == "hang":
        time.sleep(30)
    if behaviour == "no_result":
        sys.exit(0)

    with open(config["result_path"], "w") as fh:
        if behaviour == "garbage":
            fh.write("not json")
        else:
            json.dump(
                {
                    "success": True,
                    "distance": float(config["bound"]) + 1.0,
                    "trajectory": [[0.0, 0.0], [1.0, 2.0]],
                },
                fh,
            )
    """
)


@pytest.fixture
def fake_simulator_script(tmp_path):
    script = tmp_path / "fake_sim.py"
    script.write_text(FAKE_SIMULATOR)
    return script
