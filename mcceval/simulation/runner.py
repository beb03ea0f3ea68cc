"""External simulator invocation.

Each trial writes a JSON config, launches the simulator as a child process
with the config path as its last argument, and reads back the JSON result
artifact the simulator writes to ``result_path``.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import os
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcceval.exceptions import SimulationError, SimulationTimeoutError
from mcceval.utils.json import dumps_bytes, loads

__all__ = [
    "SimulationMode",
    "SimulatorConfig",
    "SimulationRequest",
    "SimulationLogEntry",
    "SimulationResult",
    "SimulatorRunner",
]


class SimulationMode(str, Enum):
    TIME_BOUNDED = "time"
    DISTANCE_BOUNDED = "distance"


class SimulatorConfig(BaseModel):
    command: list[str] = Field(
        min_length=1, description="Simulator executable and fixed arguments"
    )
    work_dir: Path = Field(default=Path("simulations"))
    experiment_name: str = Field(default="experiment")
    timeout: float = Field(default=600.0, gt=0, description="Seconds before the simulator is killed")
    keep_artifacts: bool = Field(default=False)
    env: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class SimulationRequest(BaseModel):
    run: int = 0
    primary_id: int
    secondary_id: int
    mode: SimulationMode
    bound: float = Field(ge=0, description="Time limit or target distance, per mode")
    primary: dict[str, Any]
    secondary: dict[str, Any]
    tag: str = ""
    subdir: str | None = None


class SimulationLogEntry(BaseModel):
    time: float
    x: float
    y: float
    z: float = 0.0
    distance: float = 0.0
    voxels_touching_floor: int = 0
    max_voxel_velocity: float = 0.0
    max_voxel_displacement: float = 0.0


class SimulationResult(BaseModel):
    success: bool = False
    distance: float = 0.0
    steps: int = 0
    trajectory: list[list[float]] = Field(default_factory=list)
    log: list[SimulationLogEntry] = Field(default_factory=list)


class SimulatorRunner:
    def __init__(self, config: SimulatorConfig):
        self.config = config

    def _stem(self, request: SimulationRequest) -> str:
        stem = (
            f"{self.config.experiment_name}_run{request.run}"
            f"_p{request.primary_id}_s{request.secondary_id}_{request.mode.value}"
        )
        return f"{stem}_{request.tag}" if request.tag else stem

    def write_config(self, request: SimulationRequest) -> Path:
        """Write the simulator config for ``request`` and return its path."""
        directory = self.config.work_dir
        if request.subdir:
            directory = directory / request.subdir
        directory.mkdir(parents=True, exist_ok=True)

        stem = self._stem(request)
        config_path = directory / f"{stem}.config.json"
        payload = {
            "experiment": self.config.experiment_name,
            "run": request.run,
            "mode": request.mode.value,
            "bound": request.bound,
            "primary": request.primary,
            "secondary": request.secondary,
            "result_path": str((directory / f"{stem}.result.json").resolve()),
        }
        config_path.write_bytes(dumps_bytes(payload))
        return config_path

    async def run(self, request: SimulationRequest) -> SimulationResult:
        config_path = self.write_config(request)
        result_path = config_path.with_name(config_path.name.replace(".config.", ".result."))
        try:
            await self._execute(config_path)
            return self._read_result(result_path)
        finally:
            if not self.config.keep_artifacts:
                config_path.unlink(missing_ok=True)
                result_path.unlink(missing_ok=True)

    async def _execute(self, config_path: Path) -> None:
        env = os.environ.copy()
        env.update(self.config.env)
        env.setdefault("PYTHONUNBUFFERED", "1")

        try:
            proc = await asyncio.create_subprocess_exec(
                *self.config.command,
                str(config_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise SimulationError(f"could not launch simulator {self.config.command[0]}: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.config.timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError) as e:
            # Kill subprocess immediately on timeout or cancellation
            proc.kill()
            await proc.wait()
            if isinstance(e, asyncio.CancelledError):
                raise
            logger.warning(
                "[SimulatorRunner] {} exceeded {}s, killed", config_path.name, self.config.timeout
            )
            raise SimulationTimeoutError(
                f"simulator exceeded {self.config.timeout}s on {config_path.name}"
            ) from e

        if proc.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace")
            raise SimulationError(
                f"simulator failed (exit={proc.returncode}) on {config_path.name}",
                returncode=proc.returncode,
                stderr=stderr_text,
            )

    @staticmethod
    def _read_result(result_path: Path) -> SimulationResult:
        try:
            raw = result_path.read_bytes()
        except FileNotFoundError as e:
            raise SimulationError(f"simulator wrote no result at {result_path.name}") from e
        try:
            return SimulationResult.model_validate(loads(raw))
        except (ValueError, ValidationError) as e:
            raise SimulationError(f"unreadable simulator result {result_path.name}: {e}") from e
