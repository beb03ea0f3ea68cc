"""Redis-backed :class:`GenomeRepository`.

Key schema (``{p}`` = ``{prefix}:{experiment}:{run}``)::

    {p}:{kind}:genome:{id}    JSON {"id", "kind", "encoding", "batch", "group"}
    {p}:{kind}:ids            set of genome ids
    {p}:{kind}:batch:{batch}  set of genome ids in a batch
    {p}:{kind}:pairings:{id}  set of viable secondary ids for a primary genome
"""

from __future__ import annotations

import asyncio
from itertools import islice
from typing import Awaitable, Callable, Iterable, Sequence, TypeVar

from loguru import logger
from pydantic import AnyUrl, BaseModel, Field
from redis import asyncio as aioredis

from mcceval.exceptions import StorageError
from mcceval.genomes.models import Genome, GenomeKind
from mcceval.storage.repository import GenomeRepository
from mcceval.utils.json import dumps, loads

__all__ = ["RedisGenomeRepositoryConfig", "RedisGenomeRepository"]

T = TypeVar("T")


class RedisGenomeRepositoryConfig(BaseModel):
    redis_url: AnyUrl = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="mcceval")

    max_retries: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=0.2, ge=0.0)
    max_connections: int = Field(default=50, ge=1)
    connection_timeout: float = Field(default=60.0, ge=1.0)

    model_config = {"extra": "forbid"}


class RedisGenomeRepository(GenomeRepository):
    _MGET_CHUNK: int = 1024

    def __init__(
        self,
        config: RedisGenomeRepositoryConfig | None = None,
        client: aioredis.Redis | None = None,
    ):
        self.config = config or RedisGenomeRepositoryConfig()
        self._redis = client
        self._lock = asyncio.Lock()

    def _k_run(self, experiment_id: int, run: int) -> str:
        return f"{self.config.key_prefix}:{experiment_id}:{run}"

    def _k_genome(self, experiment_id: int, run: int, kind: GenomeKind, gid: int) -> str:
        return f"{self._k_run(experiment_id, run)}:{kind.value}:genome:{gid}"

    def _k_ids(self, experiment_id: int, run: int, kind: GenomeKind) -> str:
        return f"{self._k_run(experiment_id, run)}:{kind.value}:ids"

    def _k_batch(self, experiment_id: int, run: int, kind: GenomeKind, batch: int) -> str:
        return f"{self._k_run(experiment_id, run)}:{kind.value}:batch:{batch}"

    def _k_pairings(
        self, experiment_id: int, run: int, kind: GenomeKind, primary_id: int
    ) -> str:
        return f"{self._k_run(experiment_id, run)}:{kind.value}:pairings:{primary_id}"

    async def _conn(self) -> aioredis.Redis:
        if self._redis is not None:
            return self._redis
        async with self._lock:
            if self._redis is None:
                r = aioredis.from_url(
                    str(self.config.redis_url),
                    decode_responses=True,
                    max_connections=self.config.max_connections,
                    socket_connect_timeout=self.config.connection_timeout,
                    socket_timeout=self.config.connection_timeout,
                    retry_on_timeout=True,
                )
                await r.ping()
                logger.debug("[RedisGenomeRepository] connected {}", self.config.redis_url)
                self._redis = r
        return self._redis

    async def _with_redis(self, name: str, fn: Callable[[aioredis.Redis], Awaitable[T]]) -> T:
        delay = self.config.retry_delay
        for attempt in range(1, self.config.max_retries + 1):
            try:
                return await fn(await self._conn())
            except StorageError:
                raise
            except Exception as e:
                if attempt == self.config.max_retries:
                    logger.debug("[RedisGenomeRepository] {} failed: {}", name, e)
                    raise StorageError(f"Redis op {name} failed: {e}") from e
                await asyncio.sleep(min(delay, 1.0))
                delay *= 2
        raise StorageError(f"Redis op {name} failed")

    @staticmethod
    def _chunks(items: Iterable[str], n: int) -> Iterable[list[str]]:
        it = iter(items)
        while batch := list(islice(it, n)):
            yield batch

    # ------------------------------------------------------------------
    # Writers (used by importers and tests)
    # ------------------------------------------------------------------

    async def add(
        self,
        experiment_id: int,
        run: int,
        genome: Genome,
        *,
        batch: int = 0,
        group: int | None = None,
    ) -> None:
        async def _add(r: aioredis.Redis) -> None:
            record = {
                "id": genome.id,
                "kind": genome.kind.value,
                "encoding": genome.encoding,
                "batch": batch,
                "group": group,
            }
            pipe = r.pipeline(transaction=False)
            pipe.set(self._k_genome(experiment_id, run, genome.kind, genome.id), dumps(record))
            pipe.sadd(self._k_ids(experiment_id, run, genome.kind), genome.id)
            pipe.sadd(self._k_batch(experiment_id, run, genome.kind, batch), genome.id)
            await pipe.execute()

        await self._with_redis("add", _add)

    async def add_pairing(
        self,
        experiment_id: int,
        run: int,
        kind: GenomeKind,
        primary_id: int,
        secondary_id: int,
    ) -> None:
        async def _add(r: aioredis.Redis) -> None:
            await r.sadd(self._k_pairings(experiment_id, run, kind, primary_id), secondary_id)

        await self._with_redis("add_pairing", _add)

    # ------------------------------------------------------------------
    # GenomeRepository
    # ------------------------------------------------------------------

    async def get_ids(
        self, experiment_id: int, run: int, kind: GenomeKind, batch: int | None = None
    ) -> list[int]:
        key = (
            self._k_ids(experiment_id, run, kind)
            if batch is None
            else self._k_batch(experiment_id, run, kind, batch)
        )

        async def _ids(r: aioredis.Redis) -> list[int]:
            return sorted(int(m) for m in await r.smembers(key))

        return await self._with_redis("get_ids", _ids)

    async def _records(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> list[dict]:
        async def _mget(r: aioredis.Redis) -> list[dict]:
            keys = [self._k_genome(experiment_id, run, kind, gid) for gid in ids]
            out: list[dict] = []
            missing: list[int] = []
            for batch in self._chunks(keys, self._MGET_CHUNK):
                for key, raw in zip(batch, await r.mget(*batch)):
                    if raw is None:
                        missing.append(int(key.rsplit(":", 1)[1]))
                        continue
                    out.append(loads(raw))
            if missing:
                raise StorageError(f"missing {kind.value} genomes: {missing}")
            return out

        return await self._with_redis("get_genome_data", _mget)

    async def get_genome_data(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> list[Genome]:
        records = await self._records(experiment_id, run, kind, ids)
        return [
            Genome(id=rec["id"], kind=GenomeKind(rec["kind"]), encoding=rec["encoding"])
            for rec in records
        ]

    async def get_pairings(
        self, experiment_id: int, run: int, kind: GenomeKind, primary_ids: Sequence[int]
    ) -> list[tuple[int, int]]:
        async def _pairings(r: aioredis.Redis) -> list[tuple[int, int]]:
            pipe = r.pipeline(transaction=False)
            for pid in primary_ids:
                pipe.smembers(self._k_pairings(experiment_id, run, kind, pid))
            members = await pipe.execute()
            return [
                (pid, sid)
                for pid, secondaries in zip(primary_ids, members)
                for sid in sorted(int(s) for s in secondaries)
            ]

        return await self._with_redis("get_pairings", _pairings)

    async def get_batches(self, experiment_id: int, run: int, kind: GenomeKind) -> list[int]:
        prefix = f"{self._k_run(experiment_id, run)}:{kind.value}:batch:"

        async def _batches(r: aioredis.Redis) -> list[int]:
            return sorted(
                [int(key[len(prefix):]) async for key in r.scan_iter(match=f"{prefix}*")]
            )

        return await self._with_redis("get_batches", _batches)

    async def get_groups(
        self, experiment_id: int, run: int, kind: GenomeKind, ids: Sequence[int]
    ) -> dict[int, int]:
        records = await self._records(experiment_id, run, kind, ids)
        return {rec["id"]: rec["group"] for rec in records if rec.get("group") is not None}

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
