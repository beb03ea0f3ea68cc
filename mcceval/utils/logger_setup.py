"""
Logging setup for evaluation runs.

Every record carries the experiment and run it belongs to (bound through
``logger.configure(extra=...)``), so log files from concurrent runs can be
merged and still told apart.
"""

from datetime import datetime, timezone
from pathlib import Path
import sys

from loguru import logger

_PLAIN_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[experiment]}/run{extra[run]} | {name}:{function}:{line} | {message}"
)
_COLOR_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[experiment]}/run{extra[run]}</magenta> | "
    "<cyan>{name}</cyan>:<yellow>{line}</yellow> | <level>{message}</level>"
)


def setup_logger(
    log_dir: str | Path = "logs",
    level: str = "INFO",
    rotation: str = "50 MB",
    retention: str = "30 days",
    enable_colors: bool = True,
    experiment_name: str = "evaluation",
    run: int = 0,
    json_logs: bool = False,
) -> Path:
    """
    Route loguru output to stderr and to a rotating file under ``log_dir``.

    Args:
        log_dir: Directory for log files
        level: Minimum level for both sinks
        rotation: loguru rotation policy (e.g. "50 MB", "1 day")
        retention: loguru retention policy (e.g. "30 days")
        enable_colors: Colorize the console sink when stderr is a terminal
        experiment_name: Bound to every record and used as the file prefix
        run: Run number bound to every record
        json_logs: Write the file sink as one serialized JSON record per line

    Returns:
        Path of the log file
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    suffix = "jsonl" if json_logs else "log"
    log_file = directory / f"{experiment_name}_run{run}_{stamp}.{suffix}"

    logger.remove()
    logger.configure(extra={"experiment": experiment_name, "run": run})

    colorize = enable_colors and sys.stderr.isatty()
    logger.add(
        sys.stderr,
        level=level,
        format=_COLOR_FORMAT if colorize else _PLAIN_FORMAT,
        colorize=colorize,
        backtrace=True,
        diagnose=False,
    )
    logger.add(
        log_file,
        level=level,
        format=_PLAIN_FORMAT,
        serialize=json_logs,
        rotation=rotation,
        retention=retention,
        compression="zip",
        encoding="utf-8",
        # decode threads and the event loop log concurrently
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )

    logger.debug("Log level {}, colors {}, file {}", level, colorize, log_file)
    return log_file
