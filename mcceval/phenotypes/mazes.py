from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = ["Point", "Wall", "MazeStructure"]

Point = tuple[float, float]


@dataclass(frozen=True)
class Wall:
    start: Point
    end: Point


@dataclass(frozen=True)
class MazeStructure:
    """Scaled maze ready for the navigation simulator."""

    genome_id: int
    height: float
    width: float
    walls: tuple[Wall, ...]
    start: Point
    target: Point
    max_timesteps: int

    def to_config(self) -> dict[str, Any]:
        return {
            "id": self.genome_id,
            "height": self.height,
            "width": self.width,
            "walls": [[*w.start, *w.end] for w in self.walls],
            "start": list(self.start),
            "target": list(self.target),
            "max_timesteps": self.max_timesteps,
        }
