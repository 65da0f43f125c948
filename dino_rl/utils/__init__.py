"""
Utility modules for training and evaluation.

Includes:
- Replay buffer
- Model store (named save/load of network blobs)
- Logging (console/file, CSV, metrics, W&B)
- Configuration loading and validation
- Seeding
- Plotting (learning curves)

Factories live in `dino_rl.utils.factory`; they import the agents, which
in turn import these utilities.
"""

from .replay_buffer import ReplayBuffer, Transition
from .model_store import ModelStore
from .logging import setup_logger, get_logger, EpisodeCSVLogger, MetricsTracker, WandbLogger
from .config_schema import load_config, validate_config, ConfigValidationError
from .seeding import set_seed
from .plotting import plot_learning_curve, plot_training_metrics

__all__ = [
    # Replay buffer
    "ReplayBuffer",
    "Transition",
    # Persistence
    "ModelStore",
    # Logging
    "setup_logger",
    "get_logger",
    "EpisodeCSVLogger",
    "MetricsTracker",
    "WandbLogger",
    # Configuration
    "load_config",
    "validate_config",
    "ConfigValidationError",
    # Seeding
    "set_seed",
    # Plotting
    "plot_learning_curve",
    "plot_training_metrics",
]
