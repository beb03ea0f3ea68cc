from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from mcceval.genomes.network import FeedForwardNetwork

__all__ = ["NavigatorController"]


@dataclass(frozen=True, eq=False)
class NavigatorController:
    genome_id: int
    network: FeedForwardNetwork

    def activate(self, sensors: np.ndarray) -> np.ndarray:
        """Map one sensor reading (or a batch of them) to motor outputs."""
        return self.network.activate(sensors)

    def to_config(self) -> dict[str, Any]:
        return {"id": self.genome_id, "network": self.network.to_dict()}
