#!/usr/bin/env python3
"""
Main training script for dino runner DQN experiments.

Uses Hydra for configuration management. Run with:
    python experiments/train.py
    python experiments/train.py training.episodes=200 env.frame_skip=3
    python experiments/train.py training.autosave_threshold=10 agent.tau=0.005
    python experiments/train.py --multirun agent.learning_rate=0.0001,0.001

Training runs on the worker thread; this script only sends the start
command and consumes events. Ctrl-C sends a stop and waits for done.
"""

import json
import sys
import time
from pathlib import Path
from typing import Tuple

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import hydra
from omegaconf import DictConfig, OmegaConf
import numpy as np

from dino_rl.training import (
    TrainingWorker,
    StartCommand,
    StopCommand,
    ProgressEvent,
    AutosavedEvent,
    SaveFailedEvent,
    DoneEvent,
    ErrorEvent,
)
from dino_rl.utils.factory import build_store
from dino_rl.utils.logging import WandbLogger, EpisodeCSVLogger, MetricsTracker, setup_logger
from dino_rl.utils.plotting import plot_learning_curve, plot_training_metrics
from dino_rl.utils.seeding import set_seed
from dino_rl.utils.config_schema import validate_config, ConfigValidationError, print_config_summary


def create_run_directory(config: DictConfig) -> Tuple[Path, str, str]:
    """
    Create a unique, timestamped run directory.

    Structure: results/YYYY-MM-DD/HH-MM-SS_dqn_fsN_params_seed/

    Returns:
        Tuple of (run_dir, run_name, run_id)
    """
    from datetime import datetime

    now = datetime.now()
    date_str = now.strftime("%Y-%m-%d")
    time_str = now.strftime("%H-%M-%S")

    params_parts = [f"lr{config.agent.learning_rate}"]
    if config.agent.tau > 0:
        params_parts.append(f"tau{config.agent.tau}")
    if config.env.get('celebratory_run', False):
        params_parts.append("letters")
    params_str = "_".join(params_parts)

    run_name = f"dqn_fs{config.env.frame_skip}_{params_str}_seed{config.seed}"
    run_id = f"{date_str}_{time_str}_{run_name}"

    run_dir = Path("results") / date_str / f"{time_str}_{run_name}"
    run_dir.mkdir(parents=True, exist_ok=True)
    (run_dir / "plots").mkdir(exist_ok=True)

    # Save full config for reproducibility
    with open(run_dir / "config.yaml", 'w') as f:
        f.write(OmegaConf.to_yaml(config))

    return run_dir, run_name, run_id


@hydra.main(version_base=None, config_path="../dino_rl/configs", config_name="default")
def main(config: DictConfig) -> float:
    """
    Main training function.

    Args:
        config: Hydra configuration

    Returns:
        Mean return over the last 20 episodes (for hyperparameter sweeps)
    """
    # Validate configuration early (catch errors before training)
    try:
        validate_config(config)
    except ConfigValidationError as e:
        print(f"ERROR: {e}")
        return float('-inf')

    run_dir, run_name, run_id = create_run_directory(config)

    logger = setup_logger(
        name="dino_rl",
        level=config.logging.get('level', 'INFO'),
        log_file=run_dir / "training.log",
        console=True
    )

    logger.info("=" * 60)
    logger.info(f"Run ID: {run_id}")
    logger.info(f"Run directory: {run_dir}")
    logger.info("=" * 60)

    print_config_summary(config)
    logger.debug("Full configuration:\n" + OmegaConf.to_yaml(config))

    seed_info = set_seed(config.seed)
    logger.info(f"Random seed set to: {config.seed}")

    wandb_logger = WandbLogger(
        project=config.logging.get('wandb_project', 'dino-rl'),
        config=OmegaConf.to_container(config, resolve=True),
        run_name=run_id,
        enabled=config.logging.get('wandb_enabled', False)
    )

    csv_logger = None
    if config.logging.csv_log:
        csv_logger = EpisodeCSVLogger(
            filepath=run_dir / "training_log.csv",
            flush_every=config.logging.get('flush_every', 10)
        )

    tracker = MetricsTracker(history=100)
    returns, cleared, epsilons, steps = [], [], [], []
    autosaved_at = None
    start_time = time.time()

    worker = TrainingWorker(config, store=build_store(config))
    worker.start()
    worker.send(StartCommand())

    logger.info("Starting training...")
    logger.info("-" * 60)

    finished = False
    while not finished:
        try:
            for event in worker.iter_events():
                if isinstance(event, ProgressEvent):
                    returns.append(event.episode_return)
                    cleared.append(event.episode_cleared)
                    epsilons.append(event.epsilon)
                    steps.append(event.steps)
                    tracker.update('return', event.episode_return)

                    elapsed = time.time() - start_time
                    wandb_logger.log({
                        'train/return': event.episode_return,
                        'train/return_avg_20': tracker.get_stats('return', window=20)['mean'],
                        'train/steps': event.steps,
                        'train/cleared': event.episode_cleared,
                        'train/best_score': event.best_score,
                        'agent/epsilon': event.epsilon,
                        'time/hours': elapsed / 3600,
                    }, step=event.episode)

                    if csv_logger:
                        csv_logger.log_progress(event, timeHours=elapsed / 3600)

                elif isinstance(event, AutosavedEvent):
                    autosaved_at = event.best_score
                    logger.info(f"  [SAVE] Model autosaved at best score {event.best_score}")
                    if csv_logger:
                        csv_logger.flush()

                elif isinstance(event, SaveFailedEvent):
                    logger.warning(f"  [SAVE] Autosave failed: {event.error}")

                elif isinstance(event, ErrorEvent):
                    logger.error(f"Worker failed: {event.error}")

                elif isinstance(event, DoneEvent):
                    logger.info("Worker done.")
            finished = True
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping after the current step...")
            worker.send(StopCommand())

    worker.close()

    total_time = time.time() - start_time
    final_avg_return = float(np.mean(returns[-20:])) if returns else float('-inf')
    best_score = max(cleared) if cleared else 0

    logger.info("-" * 60)
    logger.info("Training complete!")
    logger.info(f"Episodes: {len(returns)}")
    logger.info(f"Total time: {total_time / 3600:.2f} hours")
    logger.info(f"Final avg return (last 20): {final_avg_return:.3f}")
    logger.info(f"Best cleared: {best_score}")

    if returns:
        plot_learning_curve(
            returns,
            window=20,
            title=f"DQN on dino runner (frame skip {config.env.frame_skip})",
            save_path=str(run_dir / "plots" / "learning_curve.png")
        )
        plot_training_metrics(
            {'return': returns, 'cleared': cleared, 'steps': steps, 'epsilon': epsilons},
            title=run_name,
            save_path=str(run_dir / "plots" / "training_metrics.png")
        )

    summary = {
        'run_name': run_name,
        'run_id': run_id,
        'run_dir': str(run_dir),
        'total_time_hours': total_time / 3600,
        'episodes_completed': len(returns),
        'final_avg_return_20': final_avg_return,
        'best_cleared': best_score,
        'autosaved_at': autosaved_at,
        'model': str(Path(config.model_dir) / config.model_name),
        'seed_info': seed_info,
    }
    with open(run_dir / "summary.json", 'w') as f:
        json.dump(summary, f, indent=2)

    if csv_logger:
        csv_logger.close()
        logger.info("CSV logger closed.")
    wandb_logger.finish()

    logger.info(f"All outputs saved to: {run_dir}")
    return final_avg_return


if __name__ == "__main__":
    main()
