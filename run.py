import asyncio
from datetime import datetime, timezone
import time
from typing import Awaitable, Callable

from dotenv import load_dotenv
import hydra
from hydra.utils import instantiate
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from mcceval.config import load_config
from mcceval.evaluation.worker_pool import WorkerPool
from mcceval.exceptions import ConfigurationError
from mcceval.pipeline import EvaluationPipeline
from mcceval.utils.logger_setup import setup_logger

Analysis = Callable[[EvaluationPipeline, DictConfig], Awaitable[object]]

ANALYSES: dict[str, Analysis] = {
    "simulation_logs": lambda p, c: p.evaluate_simulation_logs(c.experiment_id, c.run),
    "simulation_diversity": lambda p, c: p.evaluate_simulation_diversity(c.experiment_id, c.run),
    "upscale": lambda p, c: p.evaluate_upscale(c.experiment_id, c.run),
    "generate_configs": lambda p, c: p.generate_configs(c.experiment_id, c.run),
    "body_diversity": lambda p, c: p.evaluate_body_diversity(
        c.experiment_id, c.run, by_batch=c.by_batch
    ),
    "navigation": lambda p, c: p.evaluate_navigation(
        c.experiment_id, c.run, cross_product=c.cross_product
    ),
    "navigation_diversity": lambda p, c: p.evaluate_navigation_diversity(
        c.experiment_id, c.run, cross_product=c.cross_product
    ),
}


def build_pipeline(cfg: DictConfig) -> EvaluationPipeline:
    unknown = [name for name in cfg.analyses if name not in ANALYSES]
    if unknown:
        raise ConfigurationError(f"unknown analyses {unknown}; choose from {sorted(ANALYSES)}")

    return EvaluationPipeline(
        repository=instantiate(cfg.repository, _convert_="all"),
        sink=instantiate(cfg.sink, _convert_="all"),
        simulator=instantiate(cfg.simulator, _convert_="all"),
        config=load_config(OmegaConf.to_container(cfg.evaluation, resolve=True)),
        body_factory=instantiate(cfg.body_factory),
        brain_factory=instantiate(cfg.brain_factory),
        maze_factory=instantiate(cfg.maze_factory),
        navigator_factory=instantiate(cfg.navigator_factory),
    )


async def run_evaluation(cfg: DictConfig) -> None:
    start_time = time.time()
    logger.info("Starting evaluation of {} (experiment {}, run {})", cfg.experiment_name, cfg.experiment_id, cfg.run)
    logger.info("Start time: {}", datetime.now(timezone.utc).isoformat())

    pipeline = build_pipeline(cfg)
    try:
        for name in cfg.analyses:
            logger.info("Running analysis '{}'", name)
            await ANALYSES[name](pipeline, cfg)
    except Exception as e:
        logger.error("Evaluation failed: {}", e)
        raise
    finally:
        await pipeline.close()
        WorkerPool.shutdown()
        duration = time.time() - start_time
        logger.info("Total evaluation duration: {:.2f} seconds", duration)


@hydra.main(version_base=None, config_path="config", config_name="config")
def main(cfg: DictConfig) -> None:
    """Main entrypoint with Hydra configuration management."""
    load_dotenv()

    log_file_path = setup_logger(
        log_dir=cfg.logging.log_dir,
        level=cfg.logging.level,
        rotation=cfg.logging.rotation,
        retention=cfg.logging.retention,
        experiment_name=cfg.experiment_name,
        run=cfg.run,
        json_logs=cfg.logging.get("json_logs", False),
    )
    logger.info(
        "Working directory: {}.",
        hydra.core.hydra_config.HydraConfig.get().runtime.output_dir,
    )
    logger.info("Log file: {}", log_file_path)
    asyncio.run(run_evaluation(cfg))


if __name__ == "__main__":
    main()
