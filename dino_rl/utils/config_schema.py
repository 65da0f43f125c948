"""
Configuration schema and validation for dino runner experiments.

This module provides:
- Dataclass schemas for all config sections
- Validation logic to catch invalid hyperparameters early
- validate_config() function to check entire config
- load_config() to read the packaged defaults with overrides

Usage:
    from dino_rl.utils.config_schema import load_config, validate_config
    config = load_config(["training.episodes=10"])
    validate_config(config)  # Raises ConfigValidationError if invalid
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from omegaconf import DictConfig, OmegaConf


CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "default.yaml"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# =============================================================================
# Config Dataclasses with Validation
# =============================================================================

@dataclass
class EnvConfig:
    """Environment configuration schema."""
    frame_skip: int
    celebratory_run: bool = False

    def __post_init__(self):
        if not 1 <= self.frame_skip <= 10:
            raise ConfigValidationError(
                f"frame_skip must be in [1, 10], got {self.frame_skip}"
            )


@dataclass
class AgentConfig:
    """Agent configuration schema."""
    hidden_sizes: List[int]
    learning_rate: float
    gamma: float
    batch_size: int
    update_every: int
    warmup: int
    target_update_freq: int
    tau: float = 0.0
    grad_clip: float = 10.0

    def __post_init__(self):
        if not self.hidden_sizes or any(h < 1 for h in self.hidden_sizes):
            raise ConfigValidationError(
                f"hidden_sizes must be a non-empty list of positive ints, got {self.hidden_sizes}"
            )

        if not 0 < self.learning_rate <= 1:
            raise ConfigValidationError(
                f"learning_rate must be in (0, 1], got {self.learning_rate}"
            )

        if not 0 < self.gamma <= 1:
            raise ConfigValidationError(
                f"gamma must be in (0, 1], got {self.gamma}"
            )

        if not 1 <= self.batch_size <= 4096:
            raise ConfigValidationError(
                f"batch_size must be in [1, 4096], got {self.batch_size}"
            )

        if not self.update_every >= 1:
            raise ConfigValidationError(
                f"update_every must be >= 1, got {self.update_every}"
            )

        if not self.warmup >= 1:
            raise ConfigValidationError(
                f"warmup must be >= 1, got {self.warmup}"
            )

        if not self.target_update_freq >= 1:
            raise ConfigValidationError(
                f"target_update_freq must be >= 1, got {self.target_update_freq}"
            )

        # tau > 0 switches to soft sync
        if not 0 <= self.tau < 1:
            raise ConfigValidationError(
                f"tau must be in [0, 1), got {self.tau}"
            )

        if self.grad_clip < 0:
            raise ConfigValidationError(
                f"grad_clip must be >= 0, got {self.grad_clip}"
            )


@dataclass
class BufferConfig:
    """Replay buffer configuration schema."""
    capacity: int
    warmup: int

    def __post_init__(self):
        if not 1 <= self.capacity <= 10_000_000:
            raise ConfigValidationError(
                f"buffer.capacity must be in [1, 10000000], got {self.capacity}"
            )

        # Training never starts if warmup cannot be reached
        if self.capacity < self.warmup:
            raise ConfigValidationError(
                f"buffer.capacity ({self.capacity}) must be >= agent.warmup ({self.warmup})"
            )


@dataclass
class TrainingConfig:
    """Training configuration schema."""
    episodes: int
    max_steps: int
    epsilon_start: float
    epsilon_end: float
    epsilon_decay_episodes: Optional[int] = None
    autosave_threshold: Optional[int] = None
    frame_interval_ms: float = 50.0
    emit_frames: bool = True

    def __post_init__(self):
        if not self.episodes >= 1:
            raise ConfigValidationError(
                f"episodes must be >= 1, got {self.episodes}"
            )

        if not 1 <= self.max_steps <= 1_000_000:
            raise ConfigValidationError(
                f"max_steps must be in [1, 1000000], got {self.max_steps}"
            )

        if not 0 <= self.epsilon_start <= 1:
            raise ConfigValidationError(
                f"epsilon_start must be in [0, 1], got {self.epsilon_start}"
            )
        if not 0 <= self.epsilon_end <= 1:
            raise ConfigValidationError(
                f"epsilon_end must be in [0, 1], got {self.epsilon_end}"
            )
        if self.epsilon_end > self.epsilon_start:
            raise ConfigValidationError(
                f"epsilon_end ({self.epsilon_end}) must be <= epsilon_start ({self.epsilon_start})"
            )

        if self.epsilon_decay_episodes is not None and self.epsilon_decay_episodes < 1:
            raise ConfigValidationError(
                f"epsilon_decay_episodes must be >= 1 or null, got {self.epsilon_decay_episodes}"
            )

        if self.autosave_threshold is not None and self.autosave_threshold < 0:
            raise ConfigValidationError(
                f"autosave_threshold must be >= 0 or null, got {self.autosave_threshold}"
            )

        if self.frame_interval_ms < 0:
            raise ConfigValidationError(
                f"frame_interval_ms must be >= 0, got {self.frame_interval_ms}"
            )


@dataclass
class EvaluationConfig:
    """Evaluation configuration schema."""
    episodes: int
    max_steps: int
    policy: str = "random"

    def __post_init__(self):
        if not self.episodes >= 1:
            raise ConfigValidationError(
                f"evaluation.episodes must be >= 1, got {self.episodes}"
            )

        if not 1 <= self.max_steps <= 1_000_000:
            raise ConfigValidationError(
                f"evaluation.max_steps must be in [1, 1000000], got {self.max_steps}"
            )

        valid_policies = ['random', 'greedy']
        if self.policy not in valid_policies:
            raise ConfigValidationError(
                f"evaluation.policy must be one of {valid_policies}, got '{self.policy}'"
            )


@dataclass
class LoggingConfig:
    """Logging configuration schema."""
    csv_log: bool
    log_freq: int
    level: str = "INFO"
    flush_every: int = 10

    def __post_init__(self):
        if not self.log_freq >= 1:
            raise ConfigValidationError(
                f"log_freq must be >= 1, got {self.log_freq}"
            )

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.level.upper() not in valid_levels:
            raise ConfigValidationError(
                f"logging.level must be one of {valid_levels}, got '{self.level}'"
            )

        if not 1 <= self.flush_every <= 100:
            raise ConfigValidationError(
                f"flush_every must be in [1, 100], got {self.flush_every}"
            )


# =============================================================================
# Loading
# =============================================================================

def load_config(overrides: Optional[Sequence[str]] = None) -> DictConfig:
    """
    Load the packaged default configuration.

    Args:
        overrides: Optional dotlist overrides, e.g. ["training.episodes=10"]

    Returns:
        Merged DictConfig

    Example:
        >>> config = load_config(["agent.tau=0.005"])
        >>> config.agent.tau
        0.005
    """
    config = OmegaConf.load(DEFAULT_CONFIG_PATH)
    if overrides:
        config = OmegaConf.merge(config, OmegaConf.from_dotlist(list(overrides)))
    return config


# =============================================================================
# Main Validation Function
# =============================================================================

def validate_config(config: DictConfig) -> None:
    """
    Validate entire configuration.

    Checks all sections for valid values and raises ConfigValidationError
    with a descriptive message if any validation fails.

    Args:
        config: Hydra DictConfig to validate

    Raises:
        ConfigValidationError: If any config value is invalid

    Example:
        >>> config = load_config()
        >>> validate_config(config)  # Raises if invalid
    """
    errors = []

    # Validate env section
    try:
        EnvConfig(
            frame_skip=config.env.frame_skip,
            celebratory_run=config.env.get('celebratory_run', False),
        )
    except ConfigValidationError as e:
        errors.append(f"[env] {e}")
    except Exception as e:
        errors.append(f"[env] Unexpected error: {e}")

    # Validate agent section
    try:
        AgentConfig(
            hidden_sizes=list(config.agent.hidden_sizes),
            learning_rate=config.agent.learning_rate,
            gamma=config.agent.gamma,
            batch_size=config.agent.batch_size,
            update_every=config.agent.update_every,
            warmup=config.agent.warmup,
            target_update_freq=config.agent.target_update_freq,
            tau=config.agent.get('tau', 0.0),
            grad_clip=config.agent.get('grad_clip', 10.0),
        )
    except ConfigValidationError as e:
        errors.append(f"[agent] {e}")
    except Exception as e:
        errors.append(f"[agent] Unexpected error: {e}")

    # Validate buffer section
    try:
        BufferConfig(
            capacity=config.buffer.capacity,
            warmup=config.agent.warmup,
        )
    except ConfigValidationError as e:
        errors.append(f"[buffer] {e}")
    except Exception as e:
        errors.append(f"[buffer] Unexpected error: {e}")

    # Validate training section
    try:
        TrainingConfig(
            episodes=config.training.episodes,
            max_steps=config.training.max_steps,
            epsilon_start=config.training.epsilon_start,
            epsilon_end=config.training.epsilon_end,
            epsilon_decay_episodes=config.training.get('epsilon_decay_episodes'),
            autosave_threshold=config.training.get('autosave_threshold'),
            frame_interval_ms=config.training.get('frame_interval_ms', 50.0),
            emit_frames=config.training.get('emit_frames', True),
        )
    except ConfigValidationError as e:
        errors.append(f"[training] {e}")
    except Exception as e:
        errors.append(f"[training] Unexpected error: {e}")

    # Validate evaluation section
    try:
        EvaluationConfig(
            episodes=config.evaluation.episodes,
            max_steps=config.evaluation.max_steps,
            policy=config.evaluation.get('policy', 'random'),
        )
    except ConfigValidationError as e:
        errors.append(f"[evaluation] {e}")
    except Exception as e:
        errors.append(f"[evaluation] Unexpected error: {e}")

    # Validate logging section
    try:
        LoggingConfig(
            csv_log=config.logging.csv_log,
            log_freq=config.logging.log_freq,
            level=config.logging.get('level', 'INFO'),
            flush_every=config.logging.get('flush_every', 10),
        )
    except ConfigValidationError as e:
        errors.append(f"[logging] {e}")
    except Exception as e:
        errors.append(f"[logging] Unexpected error: {e}")

    # Validate seed
    if not isinstance(config.seed, int) or config.seed < 0:
        errors.append(f"[seed] seed must be a non-negative integer, got {config.seed}")

    # Validate device
    valid_devices = ['auto', 'cuda', 'cpu']
    if config.device not in valid_devices:
        errors.append(f"[device] device must be one of {valid_devices}, got '{config.device}'")

    # Validate model persistence
    if not config.get('model_dir'):
        errors.append("[model_dir] model_dir must be a non-empty path")
    if not config.get('model_name'):
        errors.append("[model_name] model_name must be a non-empty string")

    # Raise all errors together
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigValidationError(error_msg)


def print_config_summary(config: DictConfig) -> None:
    """
    Print a formatted summary of the configuration.

    Args:
        config: Hydra DictConfig to summarize
    """
    sync = f"soft (tau={config.agent.tau})" if config.agent.tau > 0 else \
        f"hard (every {config.agent.target_update_freq})"
    print("=" * 60)
    print("CONFIGURATION SUMMARY")
    print("=" * 60)
    print(f"Agent:      DQN {list(config.agent.hidden_sizes)} (lr={config.agent.learning_rate}, gamma={config.agent.gamma})")
    print(f"Sync:       {sync}")
    print(f"Frame skip: {config.env.frame_skip}")
    print(f"Episodes:   {config.training.episodes} x {config.training.max_steps} steps")
    print(f"Batch Size: {config.agent.batch_size}")
    print(f"Buffer:     {config.buffer.capacity}")
    print(f"Model:      {config.model_dir}/{config.model_name}")
    print(f"Seed:       {config.seed}")
    print(f"Device:     {config.device}")
    print("=" * 60)
