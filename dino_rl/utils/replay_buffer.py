"""
Experience replay buffer.

This module provides:
- Transition: Immutable (obs, action, reward, next_obs, done) record
- ReplayBuffer: Fixed-capacity circular buffer with uniform sampling
"""

from typing import Dict, NamedTuple, Optional, Tuple

import numpy as np


class Transition(NamedTuple):
    obs: np.ndarray
    action: int
    reward: float
    next_obs: np.ndarray
    done: bool


class ReplayBuffer:
    """
    Experience replay buffer with uniform sampling.

    Stores transitions (s, a, r, s', done) in pre-allocated NumPy arrays.
    Once full, each new transition overwrites the oldest slot.

    Args:
        capacity: Maximum number of transitions to store
        state_shape: Shape of state observations
        seed: Seed for the sampling generator

    Raises:
        ValueError: If capacity is not positive

    Example:
        >>> buffer = ReplayBuffer(100000, (7,))
        >>> buffer.push(state, action, reward, next_state, done)
        >>> batch = buffer.sample(128)
    """

    def __init__(
        self,
        capacity: int,
        state_shape: Tuple[int, ...],
        seed: Optional[int] = None
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")

        self.capacity = int(capacity)
        self.state_shape = tuple(state_shape)
        self.rng = np.random.default_rng(seed)

        # Pre-allocate arrays for efficiency
        self.states = np.zeros((self.capacity, *self.state_shape), dtype=np.float32)
        self.actions = np.zeros(self.capacity, dtype=np.int64)
        self.rewards = np.zeros(self.capacity, dtype=np.float32)
        self.next_states = np.zeros((self.capacity, *self.state_shape), dtype=np.float32)
        self.dones = np.zeros(self.capacity, dtype=np.bool_)

        # Buffer state
        self.position = 0
        self.size = 0

    def push(
        self,
        state: np.ndarray,
        action: int,
        reward: float,
        next_state: np.ndarray,
        done: bool
    ) -> None:
        """
        Add a transition, overwriting the oldest one when full.

        Args:
            state: Current state observation
            action: Action taken
            reward: Reward received
            next_state: Next state observation
            done: Whether episode terminated
        """
        idx = self.position
        self.states[idx] = state
        self.actions[idx] = action
        self.rewards[idx] = reward
        self.next_states[idx] = next_state
        self.dones[idx] = done

        # Update position (circular buffer)
        self.position = (self.position + 1) % self.capacity
        self.size = min(self.size + 1, self.capacity)

    def add(self, transition: Transition) -> None:
        """Add a Transition record."""
        self.push(*transition)

    def sample(self, batch_size: int) -> Dict[str, np.ndarray]:
        """
        Sample transitions uniformly at random, with replacement.

        Args:
            batch_size: Number of transitions to sample

        Returns:
            Dictionary containing:
                - 'states': (batch, *state_shape)
                - 'actions': (batch,)
                - 'rewards': (batch,)
                - 'next_states': (batch, *state_shape)
                - 'dones': (batch,)
                - 'indices': (batch,) sampled slots

        Raises:
            ValueError: If the buffer is empty or batch_size is not positive
        """
        if self.size == 0:
            raise ValueError("Cannot sample from an empty replay buffer")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")

        indices = self.rng.integers(0, self.size, size=batch_size)

        return {
            'states': self.states[indices],
            'actions': self.actions[indices],
            'rewards': self.rewards[indices],
            'next_states': self.next_states[indices],
            'dones': self.dones[indices],
            'indices': indices,
        }

    def reset(self) -> None:
        """Clear the buffer."""
        self.position = 0
        self.size = 0

    def __len__(self) -> int:
        """Return current buffer size."""
        return self.size
