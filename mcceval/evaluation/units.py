from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from mcceval.exceptions import DecodeError, SimulationTimeoutError
from mcceval.genomes.models import Genome
from mcceval.simulation.runner import SimulationLogEntry, SimulationResult

__all__ = [
    "TrialStatus",
    "TrialOutcome",
    "EvaluationUnit",
    "TrajectorySample",
    "TrialRecord",
]


class TrialStatus(str, Enum):
    SUCCEEDED = "succeeded"
    UNSUCCESSFUL = "unsuccessful"
    FAILED = "failed"
    FAILED_DECODE = "failed_decode"
    TIMEOUT = "timeout"


class TrialOutcome(BaseModel):
    status: TrialStatus
    distance: float = 0.0
    steps: int = 0
    trajectory: list[list[float]] = Field(default_factory=list)
    log: list[SimulationLogEntry] = Field(default_factory=list)
    error: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def success(self) -> bool:
        return self.status == TrialStatus.SUCCEEDED

    @classmethod
    def from_result(cls, result: SimulationResult, *, success: bool) -> "TrialOutcome":
        return cls(
            status=TrialStatus.SUCCEEDED if success else TrialStatus.UNSUCCESSFUL,
            distance=result.distance,
            steps=result.steps or len(result.trajectory) or len(result.log),
            trajectory=result.trajectory,
            log=result.log,
        )

    @classmethod
    def from_error(cls, error: BaseException) -> "TrialOutcome":
        if isinstance(error, DecodeError):
            status = TrialStatus.FAILED_DECODE
        elif isinstance(error, SimulationTimeoutError):
            status = TrialStatus.TIMEOUT
        else:
            status = TrialStatus.FAILED
        return cls(status=status, error=f"{type(error).__name__}: {error}")


@dataclass(eq=False)
class EvaluationUnit:
    """One (primary, secondary) pairing: body/brain or maze/navigator.

    Phenotype slots are filled by the trial; ``outcome`` is written once.
    """

    primary: Genome
    secondary: Genome
    primary_phenotype: Any = None
    secondary_phenotype: Any = None
    outcome: TrialOutcome | None = None

    @property
    def primary_id(self) -> int:
        return self.primary.id

    @property
    def secondary_id(self) -> int:
        return self.secondary.id

    def record(self, outcome: TrialOutcome) -> None:
        if self.outcome is not None:
            raise RuntimeError(
                f"outcome for ({self.primary_id}, {self.secondary_id}) already recorded"
            )
        self.outcome = outcome

    def to_sample(self) -> "TrajectorySample":
        """Keep only what diversity passes need once the chunk is released."""
        outcome = self.outcome
        if outcome is None:
            raise RuntimeError(f"unit ({self.primary_id}, {self.secondary_id}) was not evaluated")
        if outcome.trajectory:
            points = outcome.trajectory
        else:
            points = [[entry.x, entry.y, entry.z] for entry in outcome.log]
        return TrajectorySample(
            primary_id=self.primary_id,
            secondary_id=self.secondary_id,
            success=outcome.success,
            steps=outcome.steps,
            size=getattr(self.primary_phenotype, "length_x", None),
            points=np.asarray(points, dtype=np.float64),
        )

    def to_record(self) -> "TrialRecord":
        if self.outcome is None:
            raise RuntimeError(f"unit ({self.primary_id}, {self.secondary_id}) was not evaluated")
        return TrialRecord(
            primary_id=self.primary_id,
            secondary_id=self.secondary_id,
            **self.outcome.model_dump(),
        )


@dataclass(frozen=True, eq=False)
class TrajectorySample:
    primary_id: int
    secondary_id: int
    success: bool
    steps: int
    size: int | None
    points: np.ndarray


class TrialRecord(BaseModel):
    """Flat, sink-ready view of an evaluated unit."""

    primary_id: int
    secondary_id: int
    status: TrialStatus
    distance: float = 0.0
    steps: int = 0
    trajectory: list[list[float]] = Field(default_factory=list)
    log: list[SimulationLogEntry] = Field(default_factory=list)
    error: str | None = None
