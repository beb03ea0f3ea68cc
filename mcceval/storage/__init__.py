from mcceval.storage.redis_repository import RedisGenomeRepository, RedisGenomeRepositoryConfig
from mcceval.storage.repository import GenomeRepository, MemoryGenomeRepository
from mcceval.storage.sinks import JsonlResultSink, MemoryResultSink, RecordKind, ResultSink

__all__ = [
    "GenomeRepository",
    "JsonlResultSink",
    "MemoryGenomeRepository",
    "MemoryResultSink",
    "RecordKind",
    "RedisGenomeRepository",
    "RedisGenomeRepositoryConfig",
    "ResultSink",
]
