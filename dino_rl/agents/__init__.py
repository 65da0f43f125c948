"""
Agent implementations.

Available agents:
- DQNAgent: Double DQN with target network and replay
- RandomAgent: Uniform random baseline
"""

from .base import BaseAgent, QNetwork
from .dqn import DQNAgent, DEFAULT_MODEL_NAME
from .random_agent import RandomAgent

__all__ = [
    "BaseAgent",
    "QNetwork",
    "DQNAgent",
    "DEFAULT_MODEL_NAME",
    "RandomAgent",
]
