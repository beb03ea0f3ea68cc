from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections import defaultdict
from typing import Sequence

from mcceval.exceptions import StorageError
from mcceval.genomes.models import Genome, GenomeKind

__all__ = ["GenomeRepository", "MemoryGenomeRepository"]


class GenomeRepository(ABC):
    """Read-only access to the genomes of an experiment run.

    Ids come back sorted ascending so chunking is deterministic.
    """

    @abstractmethod
    async def get_ids(
        self, experiment_id: int, run: int, kind: GenomeKind, batch: int | None = None
    ) -> list[int]: ...

    @abstractmethod
    async def get_genome_data(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> list[Genome]:
        """Genomes for ``ids`` in request order; a missing id raises StorageError."""

    @abstractmethod
    async def get_pairings(
        self, experiment_id: int, run: int, kind: GenomeKind, primary_ids: Sequence[int]
    ) -> list[tuple[int, int]]:
        """Viable (primary, secondary) pairs recorded for primaries of ``kind``."""

    @abstractmethod
    async def get_batches(self, experiment_id: int, run: int, kind: GenomeKind) -> list[int]: ...

    @abstractmethod
    async def get_groups(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> dict[int, int]:
        """Species/group id per genome; genomes without one are left out."""

    async def close(self) -> None:
        return None


class MemoryGenomeRepository(GenomeRepository):
    """Dict-backed repository for tests and small offline runs."""

    def __init__(self) -> None:
        self._genomes: dict[tuple[int, int, GenomeKind], dict[int, Genome]] = defaultdict(dict)
        self._batches: dict[tuple[int, int, GenomeKind], dict[int, int]] = defaultdict(dict)
        self._groups: dict[tuple[int, int, GenomeKind], dict[int, int]] = defaultdict(dict)
        self._pairings: dict[tuple[int, int, GenomeKind], dict[int, list[int]]] = defaultdict(
            lambda: defaultdict(list)
        )
        self._lock = asyncio.Lock()

    async def add(
        self,
        experiment_id: int,
        run: int,
        genome: Genome,
        *,
        batch: int = 0,
        group: int | None = None,
    ) -> None:
        key = (experiment_id, run, genome.kind)
        async with self._lock:
            if genome.id in self._genomes[key]:
                raise StorageError(f"{genome.kind.value} genome {genome.id} already exists")
            self._genomes[key][genome.id] = genome
            self._batches[key][genome.id] = batch
            if group is not None:
                self._groups[key][genome.id] = group

    async def add_pairing(
        self,
        experiment_id: int,
        run: int,
        kind: GenomeKind,
        primary_id: int,
        secondary_id: int,
    ) -> None:
        async with self._lock:
            self._pairings[(experiment_id, run, kind)][primary_id].append(secondary_id)

    async def get_ids(
        self, experiment_id: int, run: int, kind: GenomeKind, batch: int | None = None
    ) -> list[int]:
        key = (experiment_id, run, kind)
        async with self._lock:
            batches = self._batches[key]
            return sorted(gid for gid in self._genomes[key] if batch is None or batches[gid] == batch)

    async def get_genome_data(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> list[Genome]:
        async with self._lock:
            stored = self._genomes[(experiment_id, run, kind)]
            missing = [gid for gid in ids if gid not in stored]
            if missing:
                raise StorageError(f"missing {kind.value} genomes: {missing}")
            return [stored[gid] for gid in ids]

    async def get_pairings(
        self, experiment_id: int, run: int, kind: GenomeKind, primary_ids: Sequence[int]
    ) -> list[tuple[int, int]]:
        async with self._lock:
            pairings = self._pairings[(experiment_id, run, kind)]
            return [(pid, sid) for pid in primary_ids for sid in pairings.get(pid, [])]

    async def get_batches(self, experiment_id: int, run: int, kind: GenomeKind) -> list[int]:
        async with self._lock:
            return sorted(set(self._batches[(experiment_id, run, kind)].values()))

    async def get_groups(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> dict[int, int]:
        async with self._lock:
            groups = self._groups[(experiment_id, run, kind)]
            return {gid: groups[gid] for gid in ids if gid in groups}
