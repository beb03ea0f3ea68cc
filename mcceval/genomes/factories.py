"""Decoder factory parameters for each genome kind."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "BodyFactoryConfig",
    "BrainFactoryConfig",
    "MazeFactoryConfig",
    "NavigatorFactoryConfig",
    "CPPN_INPUTS",
    "BODY_CPPN_OUTPUTS",
]

# x, y, z, distance to centroid, bias
CPPN_INPUTS = 5
# material present, active vs passive
BODY_CPPN_OUTPUTS = 2


class BodyFactoryConfig(BaseModel):
    """Voxel body substrate."""

    x_dimension: int = Field(default=5, gt=0)
    y_dimension: int = Field(default=5, gt=0)
    z_dimension: int = Field(default=5, gt=0)
    max_body_size: int = Field(
        default=20, gt=0, description="Largest edge length a body may be decoded at"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _dimensions_within_ceiling(self) -> "BodyFactoryConfig":
        largest = max(self.x_dimension, self.y_dimension, self.z_dimension)
        if largest > self.max_body_size:
            raise ValueError(
                f"initial dimension {largest} exceeds max_body_size {self.max_body_size}"
            )
        return self


class BrainFactoryConfig(BaseModel):
    """Per-voxel controller: the CPPN emits ``num_connections`` weights per voxel."""

    num_connections: int = Field(default=32, gt=0)

    model_config = ConfigDict(frozen=True)


class MazeFactoryConfig(BaseModel):
    height: int = Field(default=20, gt=0)
    width: int = Field(default=20, gt=0)
    scale_multiplier: int = Field(default=16, gt=0)
    max_timesteps: int = Field(
        default=300, gt=0, description="Default navigation budget when a genome sets none"
    )

    model_config = ConfigDict(frozen=True)


class NavigatorFactoryConfig(BaseModel):
    # 6 range finders + 4 pie-slice radars
    input_count: int = Field(default=10, gt=0)
    # angular velocity, speed
    output_count: int = Field(default=2, gt=0)

    model_config = ConfigDict(frozen=True)
