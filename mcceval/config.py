from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcceval.exceptions import ConfigurationError

__all__ = [
    "FailurePolicy",
    "DiversityNormalization",
    "EvaluationConfig",
    "load_config",
]


class FailurePolicy(str, Enum):
    ISOLATE = "isolate"
    FAIL_FAST = "fail_fast"


class DiversityNormalization(str, Enum):
    COUNTERPARTS = "counterparts"
    POPULATION = "population"


class EvaluationConfig(BaseModel):
    """Parameters shared by every analysis of a run."""

    chunk_size: int = Field(
        default=100, gt=0, description="Primary genomes decoded and evaluated per chunk"
    )
    max_body_size: int | None = Field(
        default=None,
        gt=0,
        description="Upscale ceiling (None = use the body factory's max_body_size)",
    )
    sample_size: int = Field(
        default=0, ge=0, description="Diversity reference sample size (0 = exhaustive)"
    )
    use_even_distribution: bool = Field(
        default=False,
        description="Spread the diversity sample evenly across mazes",
    )
    cluster_range: int | None = Field(
        default=None,
        gt=0,
        description="Upper cluster count for an external clustering step (not read here)",
    )
    sampling_seed: int | None = Field(
        default=None, description="Seed for diversity sampling (None = fresh randomness)"
    )
    normalization: DiversityNormalization = Field(default=DiversityNormalization.COUNTERPARTS)
    min_success_distance: float = Field(
        default=5.0, ge=0, description="Distance a body must travel for a viable trial"
    )
    simulation_time: float = Field(
        default=10.0, gt=0, description="Time bound for simulation-log trials (seconds)"
    )
    max_workers: int | None = Field(
        default=None, gt=0, description="Concurrent trials (None = CPU count)"
    )
    failure_policy: FailurePolicy = Field(default=FailurePolicy.ISOLATE)

    model_config = ConfigDict(frozen=True, extra="forbid")


def load_config(values: Mapping[str, Any] | None = None) -> EvaluationConfig:
    """Build an :class:`EvaluationConfig`, reporting bad values as ConfigurationError."""
    try:
        return EvaluationConfig.model_validate(dict(values or {}))
    except ValidationError as e:
        raise ConfigurationError(f"invalid evaluation config: {e}") from e
