from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mcceval.exceptions import DecodeError
from mcceval.utils.json import loads

__all__ = ["GenomeKind", "Genome"]


class GenomeKind(str, Enum):
    BODY = "body"
    BRAIN = "brain"
    MAZE = "maze"
    NAVIGATOR = "navigator"


class Genome(BaseModel):
    """A stored genome: identifier plus its serialized encoding."""

    id: int = Field(ge=0)
    kind: GenomeKind
    encoding: str = Field(description="Serialized JSON genome description")

    model_config = ConfigDict(frozen=True)

    def payload(self) -> dict[str, Any]:
        try:
            data = loads(self.encoding)
        except ValueError as e:
            raise DecodeError(f"{self.kind.value} genome {self.id} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError(f"{self.kind.value} genome {self.id} must encode a JSON object")
        return data
