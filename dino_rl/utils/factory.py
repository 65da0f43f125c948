"""
Factory functions for building environments, agents and buffers from configuration.

This module provides:
- build_env: Create the dino runner environment from Hydra config
- build_buffer: Create replay buffer instances from Hydra config
- build_store: Create the model store from Hydra config
- build_agent: Create agent instances from Hydra config

These factories enable the config-driven pipeline where experiments
are defined entirely through YAML configuration files.
"""

from typing import Optional

from omegaconf import DictConfig, OmegaConf

from ..agents.base import BaseAgent
from ..agents.dqn import DQNAgent
from ..agents.random_agent import RandomAgent
from ..envs.dino_env import DinoEnv, make_dino_env, OBS_SIZE, NUM_ACTIONS
from .model_store import ModelStore
from .replay_buffer import ReplayBuffer


# Registry of available agent types
AGENT_REGISTRY = {
    'dqn': DQNAgent,
    'random': RandomAgent,
}


def build_env(
    config: DictConfig,
    frame_skip: Optional[int] = None,
    seed: Optional[int] = None
) -> DinoEnv:
    """
    Build the environment from Hydra configuration.

    Args:
        config: Hydra DictConfig with env settings
        frame_skip: Overrides config.env.frame_skip when given
        seed: Seed for obstacle spawning

    Returns:
        Configured DinoEnv
    """
    reward = config.env.get('reward')
    return make_dino_env(
        frame_skip=frame_skip if frame_skip is not None else config.env.frame_skip,
        celebratory_run=config.env.get('celebratory_run', False),
        reward=OmegaConf.to_container(reward, resolve=True) if reward is not None else None,
        seed=seed
    )


def build_buffer(config: DictConfig, seed: Optional[int] = None) -> ReplayBuffer:
    """
    Build a replay buffer from Hydra configuration.

    Args:
        config: Hydra DictConfig with buffer settings
        seed: Seed for minibatch sampling

    Returns:
        Empty ReplayBuffer sized for the observation vector
    """
    return ReplayBuffer(
        capacity=config.buffer.capacity,
        state_shape=(OBS_SIZE,),
        seed=seed
    )


def build_store(config: DictConfig) -> ModelStore:
    """Build the model store rooted at config.model_dir."""
    return ModelStore(config.model_dir)


def build_agent(
    config: DictConfig,
    kind: str = 'dqn',
    store: Optional[ModelStore] = None,
    seed: Optional[int] = None
) -> BaseAgent:
    """
    Build an agent from Hydra configuration.

    Supports the following agent types:
    - 'dqn': Double DQN with its own replay buffer
    - 'random': Uniform random baseline

    Args:
        config: Hydra DictConfig with agent settings
        kind: Agent type key in AGENT_REGISTRY
        store: Model store for save/load (built from config if None)
        seed: Seed for exploration and sampling

    Returns:
        Initialized agent instance

    Raises:
        ValueError: If agent type is not recognized

    Example:
        >>> config = load_config()
        >>> agent = build_agent(config, 'dqn')
    """
    kind = kind.lower()

    if kind not in AGENT_REGISTRY:
        available = list(AGENT_REGISTRY.keys())
        raise ValueError(
            f"Unknown agent type: '{kind}'. "
            f"Available: {available}"
        )

    if kind == 'random':
        return RandomAgent(num_actions=NUM_ACTIONS, seed=seed)

    return DQNAgent(
        obs_size=OBS_SIZE,
        num_actions=NUM_ACTIONS,
        hidden_sizes=list(config.agent.hidden_sizes),
        learning_rate=config.agent.learning_rate,
        gamma=config.agent.gamma,
        batch_size=config.agent.batch_size,
        update_every=config.agent.update_every,
        warmup=config.agent.warmup,
        target_update_freq=config.agent.target_update_freq,
        tau=config.agent.get('tau', 0.0),
        grad_clip=config.agent.get('grad_clip', 10.0),
        buffer=build_buffer(config, seed=seed),
        store=store if store is not None else build_store(config),
        model_name=config.model_name,
        device=config.device,
        seed=seed
    )


def list_agents() -> list:
    """List all available agent types."""
    return list(AGENT_REGISTRY.keys())
