"""
Uniform random baseline agent.
"""

from typing import Any, Dict, Optional

import numpy as np

from .base import BaseAgent
from ..utils.replay_buffer import Transition


class RandomAgent(BaseAgent):
    """
    Agent that picks actions uniformly at random.

    Epsilon is ignored and learning is a no-op, which makes it a
    distributional baseline for evaluation runs.

    Args:
        num_actions: Number of discrete actions
        seed: Seed for the action generator
    """

    def __init__(self, num_actions: int, seed: Optional[int] = None) -> None:
        super().__init__(num_actions)
        self.rng = np.random.default_rng(seed)

    def select_action(self, state: np.ndarray, training: bool = True) -> int:
        return int(self.rng.integers(self.num_actions))

    def observe(self, transition: Transition) -> None:
        pass

    def train(self) -> Optional[float]:
        return None

    def save(self, name: Optional[str] = None) -> None:
        pass

    def load(self, name: Optional[str] = None) -> bool:
        return False

    def get_config(self) -> Dict[str, Any]:
        config = super().get_config()
        config['agent_type'] = 'random'
        return config
