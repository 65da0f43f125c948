"""
Run logging for dino_rl.

- setup_logger / get_logger: the "dino_rl" logger tree, console plus run log file
- EpisodeCSVLogger: one CSV row per training episode, columns named
  after the progress event wire keys
- MetricsTracker: windowed statistics (returns, losses)
- WandbLogger: optional Weights & Biases run
"""

import csv
import sys
import logging
from collections import deque
from typing import Any, Deque, Dict, Mapping, Optional, Sequence, Union
from pathlib import Path

import numpy as np


DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Wire keys of a progress event, plus wall-clock time
EPISODE_FIELDS = (
    "episode", "steps", "return", "episodeCleared", "bestScore", "epsilon", "timeHours"
)


class FlushingFileHandler(logging.FileHandler):
    """File handler that flushes after every record so a killed run keeps its log."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


def setup_logger(
    name: str = "dino_rl",
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    format_string: str = DEFAULT_FORMAT
) -> logging.Logger:
    """
    Configure a logger of the dino_rl tree.

    Handlers from an earlier call are replaced, so calling this once per
    run is safe. The file handler records DEBUG and up regardless of the
    console level.

    Args:
        name: Logger name; child loggers ("dino_rl.training", ...) inherit it
        level: Console level, name or number
        log_file: Run log path (parent directories are created)
        console: Whether to log to stdout
        format_string: Record format

    Example:
        >>> logger = setup_logger(log_file="runs/dqn_0/training.log")
        >>> logger.info("Training started")
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(name)
    logger.handlers = []
    logger.propagate = False

    formatter = logging.Formatter(format_string, datefmt=DATE_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = FlushingFileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(level)

    return logger


def get_logger(name: str = "dino_rl") -> logging.Logger:
    return logging.getLogger(name)


class EpisodeCSVLogger:
    """
    Per-episode training CSV.

    The header is written on open. Rows are flushed every `flush_every`
    episodes and on close; keys outside `fieldnames` are dropped, so a
    progress event's wire dict can be logged as is.

    Args:
        filepath: CSV path (parent directories are created)
        fieldnames: Columns, EPISODE_FIELDS by default
        flush_every: Episodes between flushes

    Example:
        >>> with EpisodeCSVLogger("runs/dqn_0/training_log.csv") as csv_log:
        ...     csv_log.log_progress(event, timeHours=0.01)
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        fieldnames: Sequence[str] = EPISODE_FIELDS,
        flush_every: int = 10
    ) -> None:
        if flush_every < 1:
            raise ValueError(f"flush_every must be >= 1, got {flush_every}")

        self.filepath = Path(filepath)
        self.fieldnames = list(fieldnames)
        self.flush_every = flush_every
        self.row_count = 0

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.filepath, 'w', newline='', encoding='utf-8')
        self._writer = csv.DictWriter(self._file, fieldnames=self.fieldnames, extrasaction='ignore')
        self._writer.writeheader()
        self._file.flush()

    @property
    def closed(self) -> bool:
        return self._file.closed

    def log(self, row: Mapping[str, Any]) -> None:
        if self.closed:
            raise RuntimeError(f"{self.filepath} is closed")

        self._writer.writerow(row)
        self.row_count += 1
        if self.row_count % self.flush_every == 0:
            self._file.flush()

    def log_progress(self, event: Any, **extra: Any) -> None:
        """Log a progress event (anything with to_dict()) plus extra columns."""
        row = event.to_dict()
        row.update(extra)
        self.log(row)

    def flush(self) -> None:
        if not self.closed:
            self._file.flush()

    def close(self) -> None:
        if not self.closed:
            self._file.close()

    def __enter__(self) -> "EpisodeCSVLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MetricsTracker:
    """
    Named series of floats with summary statistics.

    Args:
        history: Keep only the newest N values per series (None keeps all)

    Example:
        >>> tracker = MetricsTracker(history=100)
        >>> tracker.update("loss", 0.5)
        >>> tracker.get_stats("loss")["mean"]
        0.5
    """

    def __init__(self, history: Optional[int] = None) -> None:
        if history is not None and history < 1:
            raise ValueError(f"history must be >= 1 or None, got {history}")
        self.history = history
        self.metrics: Dict[str, Deque[float]] = {}

    def update(self, name: str, value: float) -> None:
        if name not in self.metrics:
            self.metrics[name] = deque(maxlen=self.history)
        self.metrics[name].append(float(value))

    def get_stats(self, name: str, window: Optional[int] = None) -> Dict[str, float]:
        """mean/std/min/max/count over the last `window` values (all kept if None)."""
        values = list(self.metrics.get(name, ()))
        if window is not None:
            values = values[-window:]
        if not values:
            return {"mean": 0.0, "std": 0.0, "min": 0.0, "max": 0.0, "count": 0}

        return {
            "mean": float(np.mean(values)),
            "std": float(np.std(values)),
            "min": float(np.min(values)),
            "max": float(np.max(values)),
            "count": len(values)
        }

    def reset(self, name: Optional[str] = None) -> None:
        if name is None:
            self.metrics = {}
        else:
            self.metrics.pop(name, None)


class WandbLogger:
    """
    Thin wrapper around a Weights & Biases run.

    When disabled every call is a no-op and wandb is never imported.

    Args:
        project: W&B project name
        config: Run configuration to record
        run_name: Display name of the run
        enabled: Whether to log to W&B at all
    """

    def __init__(
        self,
        project: str,
        config: Optional[Dict[str, Any]] = None,
        run_name: Optional[str] = None,
        enabled: bool = False
    ) -> None:
        self.enabled = enabled
        self._run = None

        if enabled:
            import wandb

            self._run = wandb.init(project=project, config=config, name=run_name)

    def log(self, data: Dict[str, Any], step: Optional[int] = None) -> None:
        if self._run is not None:
            self._run.log(data, step=step)

    def finish(self) -> None:
        if self._run is not None:
            self._run.finish()
            self._run = None
