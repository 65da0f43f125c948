#!/usr/bin/env python3
"""
Evaluation script for dino runner agents.

Runs evaluation episodes through the worker and reports step counts.
Run with:
    python experiments/evaluate.py                          # random baseline
    python experiments/evaluate.py evaluation.policy=greedy # saved model
    python experiments/evaluate.py evaluation.episodes=20 model_name=my-run
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import hydra
from omegaconf import DictConfig
import numpy as np

from dino_rl.training import TrainingWorker, EvaluateCommand, EvalResultEvent, ErrorEvent
from dino_rl.utils.factory import build_store
from dino_rl.utils.logging import setup_logger
from dino_rl.utils.seeding import set_seed
from dino_rl.utils.config_schema import validate_config, ConfigValidationError


@hydra.main(version_base=None, config_path="../dino_rl/configs", config_name="default")
def main(config: DictConfig) -> float:
    """
    Evaluate the configured policy.

    Returns:
        Mean episode length in steps
    """
    try:
        validate_config(config)
    except ConfigValidationError as e:
        print(f"ERROR: {e}")
        return float('-inf')

    logger = setup_logger(name="dino_rl", level=config.logging.get('level', 'INFO'))
    set_seed(config.seed)

    policy = config.evaluation.policy
    logger.info(f"Evaluating policy '{policy}' for {config.evaluation.episodes} episodes")
    if policy == 'greedy':
        logger.info(f"Model: {Path(config.model_dir) / config.model_name}")

    lengths = []
    with TrainingWorker(config, store=build_store(config)) as worker:
        worker.send(EvaluateCommand(policy=policy))
        for event in worker.iter_events():
            if isinstance(event, EvalResultEvent):
                lengths.append(event.steps)
            elif isinstance(event, ErrorEvent):
                logger.error(f"Worker failed: {event.error}")

    if not lengths:
        return float('-inf')

    logger.info("-" * 60)
    logger.info(
        f"Steps: mean={np.mean(lengths):.1f} +/- {np.std(lengths):.1f} "
        f"min={np.min(lengths)} max={np.max(lengths)}"
    )
    return float(np.mean(lengths))


if __name__ == "__main__":
    main()
