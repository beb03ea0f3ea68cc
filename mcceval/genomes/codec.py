"""Genome decoders.

Every codec is stateless: :meth:`GenomeCodec.decode` depends only on its
arguments, so one instance is shared by all worker threads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np
from pydantic import BaseModel

from mcceval.exceptions import DecodeError
from mcceval.genomes.factories import (
    BODY_CPPN_OUTPUTS,
    CPPN_INPUTS,
    BodyFactoryConfig,
    BrainFactoryConfig,
    MazeFactoryConfig,
    NavigatorFactoryConfig,
)
from mcceval.genomes.models import Genome, GenomeKind
from mcceval.genomes.network import FeedForwardNetwork
from mcceval.phenotypes import (
    MazeStructure,
    NavigatorController,
    VoxelBody,
    VoxelBrain,
    VoxelMaterial,
    Wall,
)

__all__ = [
    "GenomeCodec",
    "VoxelBodyCodec",
    "VoxelBrainCodec",
    "MazeCodec",
    "NavigatorCodec",
    "get_codec",
    "decode",
]


def _axis(length: int) -> np.ndarray:
    if length == 1:
        return np.zeros(1)
    return np.linspace(-1.0, 1.0, length)


def substrate_inputs(extents: Sequence[int]) -> np.ndarray:
    """CPPN query matrix for a grid: normalised x, y, z, distance to centroid, bias.

    Rows are in C order over ``[x, y, z]`` so outputs reshape straight back to
    the grid.
    """
    xs, ys, zs = np.meshgrid(*(_axis(n) for n in extents), indexing="ij")
    xs, ys, zs = xs.ravel(), ys.ravel(), zs.ravel()
    distance = np.sqrt(xs**2 + ys**2 + zs**2)
    return np.column_stack([xs, ys, zs, distance, np.ones_like(xs)])


def _network(genome: Genome, data: dict[str, Any]) -> FeedForwardNetwork:
    if "network" not in data:
        raise DecodeError(f"{genome.kind.value} genome {genome.id} has no network")
    return FeedForwardNetwork.from_dict(data["network"])


class GenomeCodec(ABC):
    kind: GenomeKind

    @abstractmethod
    def decode(
        self,
        genome: Genome,
        factory: BaseModel,
        *,
        resolution_delta: int = 0,
        paired: Any = None,
    ) -> Any:
        """Decode ``genome`` with ``factory``; raise DecodeError when it cannot."""


class VoxelBodyCodec(GenomeCodec):
    kind = GenomeKind.BODY

    def decode(
        self,
        genome: Genome,
        factory: BodyFactoryConfig,
        *,
        resolution_delta: int = 0,
        paired: Any = None,
    ) -> VoxelBody:
        if resolution_delta < 0:
            raise ValueError(f"resolution_delta must be >= 0, got {resolution_delta}")

        data = genome.payload()
        network = _network(genome, data)
        if network.input_count != CPPN_INPUTS or network.output_count != BODY_CPPN_OUTPUTS:
            raise DecodeError(
                f"body genome {genome.id} CPPN is {network.input_count}x{network.output_count}, "
                f"expected {CPPN_INPUTS}x{BODY_CPPN_OUTPUTS}"
            )

        base = self._resolution(genome, data, factory)
        extents = tuple(d + resolution_delta for d in base)
        if max(extents) > factory.max_body_size:
            raise DecodeError(
                f"body genome {genome.id} at {extents} exceeds max body size {factory.max_body_size}"
            )

        outputs = network.activate(substrate_inputs(extents))
        materials = np.where(
            outputs[:, 0] > 0,
            np.where(
                outputs[:, 1] > 0,
                VoxelMaterial.ACTIVE_TISSUE,
                VoxelMaterial.PASSIVE_TISSUE,
            ),
            VoxelMaterial.NONE,
        ).astype(np.int8)
        return VoxelBody(genome_id=genome.id, materials=materials.reshape(extents))

    @staticmethod
    def _resolution(
        genome: Genome, data: dict[str, Any], factory: BodyFactoryConfig
    ) -> tuple[int, int, int]:
        raw = data.get(
            "resolution",
            [factory.x_dimension, factory.y_dimension, factory.z_dimension],
        )
        try:
            dims = tuple(int(d) for d in raw)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"body genome {genome.id} has a malformed resolution: {e}") from e
        if len(dims) != 3 or min(dims) <= 0:
            raise DecodeError(f"body genome {genome.id} resolution must be 3 positive ints")
        return dims  # type: ignore[return-value]


class VoxelBrainCodec(GenomeCodec):
    kind = GenomeKind.BRAIN

    def decode(
        self,
        genome: Genome,
        factory: BrainFactoryConfig,
        *,
        resolution_delta: int = 0,
        paired: Any = None,
    ) -> VoxelBrain:
        if not isinstance(paired, VoxelBody):
            raise DecodeError(f"brain genome {genome.id} needs a decoded body to size against")

        network = _network(genome, genome.payload())
        if network.input_count != CPPN_INPUTS:
            raise DecodeError(
                f"brain genome {genome.id} CPPN has {network.input_count} inputs, expected {CPPN_INPUTS}"
            )
        if network.output_count < factory.num_connections:
            raise DecodeError(
                f"brain genome {genome.id} CPPN has {network.output_count} outputs, "
                f"needs at least {factory.num_connections}"
            )

        extents = paired.extents
        outputs = network.activate(substrate_inputs(extents))
        weights = outputs[:, : factory.num_connections].reshape(
            *extents, factory.num_connections
        )
        return VoxelBrain(genome_id=genome.id, body_extents=extents, weights=weights)


class MazeCodec(GenomeCodec):
    kind = GenomeKind.MAZE

    def decode(
        self,
        genome: Genome,
        factory: MazeFactoryConfig,
        *,
        resolution_delta: int = 0,
        paired: Any = None,
    ) -> MazeStructure:
        data = genome.payload()
        for dim in ("height", "width"):
            if dim in data and data[dim] != getattr(factory, dim):
                raise DecodeError(
                    f"maze genome {genome.id} {dim} {data[dim]} does not match factory {getattr(factory, dim)}"
                )

        try:
            raw_walls = [tuple(float(v) for v in w) for w in data.get("walls", [])]
            start = self._point(data["start"])
            target = self._point(data["target"])
            max_timesteps = int(data.get("max_timesteps", factory.max_timesteps))
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"maze genome {genome.id} is malformed: {e}") from e
        if max_timesteps <= 0:
            raise DecodeError(f"maze genome {genome.id} has a non-positive timestep budget")

        walls = []
        for wall in raw_walls:
            if len(wall) != 4:
                raise DecodeError(f"maze genome {genome.id} wall {wall} needs 4 coordinates")
            walls.append(Wall(start=(wall[0], wall[1]), end=(wall[2], wall[3])))

        points = [start, target] + [p for w in walls for p in (w.start, w.end)]
        for x, y in points:
            if not (0 <= x <= factory.width and 0 <= y <= factory.height):
                raise DecodeError(
                    f"maze genome {genome.id} point ({x}, {y}) lies outside "
                    f"{factory.width}x{factory.height}"
                )

        scale = factory.scale_multiplier
        return MazeStructure(
            genome_id=genome.id,
            height=factory.height * scale,
            width=factory.width * scale,
            walls=tuple(
                Wall(start=(w.start[0] * scale, w.start[1] * scale),
                     end=(w.end[0] * scale, w.end[1] * scale))
                for w in walls
            ),
            start=(start[0] * scale, start[1] * scale),
            target=(target[0] * scale, target[1] * scale),
            max_timesteps=max_timesteps,
        )

    @staticmethod
    def _point(raw: Any) -> tuple[float, float]:
        x, y = raw
        return float(x), float(y)


class NavigatorCodec(GenomeCodec):
    kind = GenomeKind.NAVIGATOR

    def decode(
        self,
        genome: Genome,
        factory: NavigatorFactoryConfig,
        *,
        resolution_delta: int = 0,
        paired: Any = None,
    ) -> NavigatorController:
        network = _network(genome, genome.payload())
        if (network.input_count, network.output_count) != (
            factory.input_count,
            factory.output_count,
        ):
            raise DecodeError(
                f"navigator genome {genome.id} is {network.input_count}x{network.output_count}, "
                f"expected {factory.input_count}x{factory.output_count}"
            )
        return NavigatorController(genome_id=genome.id, network=network)


_CODECS: dict[GenomeKind, GenomeCodec] = {
    codec.kind: codec
    for codec in (VoxelBodyCodec(), VoxelBrainCodec(), MazeCodec(), NavigatorCodec())
}


def get_codec(kind: GenomeKind) -> GenomeCodec:
    return _CODECS[kind]


def decode(
    genome: Genome,
    factory: BaseModel,
    resolution_delta: int = 0,
    paired: Any = None,
) -> Any:
    """Decode any genome with the codec registered for its kind."""
    return get_codec(genome.kind).decode(
        genome, factory, resolution_delta=resolution_delta, paired=paired
    )
