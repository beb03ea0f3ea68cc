from mcceval.evaluation.cache import PhenotypeCache
from mcceval.evaluation.chunking import chunk
from mcceval.evaluation.evaluator import EvaluatorMetrics, ParallelEvaluator
from mcceval.evaluation.trials import BodyBrainTrial, MazeNavigationTrial
from mcceval.evaluation.units import (
    EvaluationUnit,
    TrajectorySample,
    TrialOutcome,
    TrialRecord,
    TrialStatus,
)
from mcceval.evaluation.upscale import UpscaleResult, UpscaleSearchEngine
from mcceval.evaluation.worker_pool import WorkerPool

__all__ = [
    "BodyBrainTrial",
    "EvaluationUnit",
    "EvaluatorMetrics",
    "MazeNavigationTrial",
    "ParallelEvaluator",
    "PhenotypeCache",
    "TrajectorySample",
    "TrialOutcome",
    "TrialRecord",
    "TrialStatus",
    "UpscaleResult",
    "UpscaleSearchEngine",
    "WorkerPool",
    "chunk",
]
