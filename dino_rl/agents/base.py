"""
Base classes for reinforcement learning agents.

This module provides:
- QNetwork: MLP Q-value network over the observation vector
- BaseAgent: Abstract base class defining the agent interface
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

from ..utils.replay_buffer import Transition


class QNetwork(nn.Module):
    """
    Fully connected Q-Network for low-dimensional observations.

    Architecture:
    - Hidden layers: `hidden_sizes` units each, ReLU
    - Output: num_actions Q-values (linear)

    Args:
        obs_size: Length of the observation vector
        num_actions: Number of discrete actions
        hidden_sizes: Width of each hidden layer

    Example:
        >>> net = QNetwork(obs_size=7, num_actions=2)
        >>> state = torch.randn(1, 7)
        >>> q_values = net(state)  # Shape: (1, 2)
    """

    def __init__(
        self,
        obs_size: int,
        num_actions: int,
        hidden_sizes: Sequence[int] = (128, 128)
    ) -> None:
        super().__init__()

        if not hidden_sizes:
            raise ValueError("hidden_sizes must contain at least one layer")

        self.obs_size = obs_size
        self.num_actions = num_actions
        self.hidden_sizes = tuple(int(h) for h in hidden_sizes)

        layers = []
        in_features = obs_size
        for width in self.hidden_sizes:
            layers.append(nn.Linear(in_features, width))
            in_features = width
        self.hidden = nn.ModuleList(layers)
        self.out = nn.Linear(in_features, num_actions)

        # Initialize weights
        self._initialize_weights()

    def _initialize_weights(self) -> None:
        """Initialize network weights using orthogonal initialization."""
        for module in self.modules():
            if isinstance(module, nn.Linear):
                nn.init.orthogonal_(module.weight, gain=np.sqrt(2))
                if module.bias is not None:
                    nn.init.zeros_(module.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass through the network.

        Args:
            x: Input tensor of shape (batch, obs_size)

        Returns:
            Q-values tensor of shape (batch, num_actions)
        """
        for layer in self.hidden:
            x = F.relu(layer(x))
        return self.out(x)


class BaseAgent(ABC):
    """
    Abstract base class for agents.

    Defines the interface that all agents implement:
    - select_action: Choose action given an observation
    - observe: Ingest a transition
    - train: Run a learning step if one is due
    - save/load: Model persistence by name

    Epsilon is bookkeeping owned by the caller; agents only read it
    when selecting actions in training mode.

    Args:
        num_actions: Number of discrete actions
    """

    def __init__(self, num_actions: int) -> None:
        if num_actions < 1:
            raise ValueError(f"num_actions must be >= 1, got {num_actions}")

        self.num_actions = num_actions
        self.epsilon = 1.0

    @abstractmethod
    def select_action(self, state: np.ndarray, training: bool = True) -> int:
        """
        Select an action.

        Args:
            state: Current observation
            training: If True, explore with probability epsilon;
                if False, act greedily

        Returns:
            Selected action index
        """
        pass

    @abstractmethod
    def observe(self, transition: Transition) -> None:
        """Store one transition for later learning."""
        pass

    @abstractmethod
    def train(self) -> Optional[float]:
        """
        Run one learning step if one is due.

        Returns:
            Loss of the gradient step, or None if no step ran
        """
        pass

    @abstractmethod
    def save(self, name: Optional[str] = None) -> None:
        """Persist parameters under `name`."""
        pass

    @abstractmethod
    def load(self, name: Optional[str] = None) -> bool:
        """Restore parameters saved under `name`; returns success."""
        pass

    def get_config(self) -> Dict[str, Any]:
        """Return agent configuration as dictionary."""
        return {
            "num_actions": self.num_actions,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"num_actions={self.num_actions}, "
            f"epsilon={self.epsilon:.3f})"
        )
