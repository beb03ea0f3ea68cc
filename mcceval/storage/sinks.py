from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Sequence

from loguru import logger
from pydantic import BaseModel

from mcceval.utils.json import dumps_bytes

__all__ = ["RecordKind", "ResultSink", "MemoryResultSink", "JsonlResultSink"]


class RecordKind(str, Enum):
    SIMULATION_LOG = "simulation_log"
    NAVIGATION = "navigation"
    UPSCALE = "upscale"
    BODY_DIVERSITY = "body_diversity"
    NAVIGATION_DIVERSITY = "navigation_diversity"
    SIMULATION_DIVERSITY = "simulation_diversity"


class ResultSink(ABC):
    """Destination for evaluation records; called once per evaluated chunk."""

    @abstractmethod
    async def write(self, kind: RecordKind, records: Sequence[BaseModel]) -> None: ...

    async def close(self) -> None:
        return None


class MemoryResultSink(ResultSink):
    def __init__(self) -> None:
        self.records: dict[RecordKind, list[BaseModel]] = defaultdict(list)
        self.writes = 0
        self._lock = asyncio.Lock()

    async def write(self, kind: RecordKind, records: Sequence[BaseModel]) -> None:
        async with self._lock:
            self.records[kind].extend(records)
            self.writes += 1


class JsonlResultSink(ResultSink):
    """Appends one JSON object per record to ``<output_dir>/<name>_<kind>.jsonl``."""

    def __init__(self, output_dir: str | Path, name: str = "results"):
        self.output_dir = Path(output_dir)
        self.name = name
        self._lock = asyncio.Lock()

    def path_for(self, kind: RecordKind) -> Path:
        return self.output_dir / f"{self.name}_{kind.value}.jsonl"

    def _append(self, path: Path, lines: list[bytes]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("ab") as fh:
            for line in lines:
                fh.write(line + b"\n")

    async def write(self, kind: RecordKind, records: Sequence[BaseModel]) -> None:
        if not records:
            return
        lines = [dumps_bytes(r.model_dump(mode="json")) for r in records]
        path = self.path_for(kind)
        async with self._lock:
            await asyncio.to_thread(self._append, path, lines)
        logger.debug("[JsonlResultSink] wrote {} {} records to {}", len(lines), kind.value, path)
