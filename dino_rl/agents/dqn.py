"""
Deep Q-Network agent with a double estimator.

Implements DQN (Mnih et al., 2015) with the Double DQN target
(Van Hasselt et al., 2016):

Key features:
- MLP Q-network over the observation vector
- Target network, synced by hard copy or soft blending
- Internal experience replay with warmup and update interval
- Huber loss with gradient clipping
- Named save/load of both networks
"""

import pickle
from typing import Any, Dict, Optional, Sequence

import numpy as np
import torch
import torch.nn.functional as F

from .base import BaseAgent, QNetwork
from ..utils.logging import get_logger
from ..utils.model_store import ModelStore
from ..utils.replay_buffer import ReplayBuffer, Transition


logger = get_logger("dino_rl.agent")

DEFAULT_MODEL_NAME = "dino-dqn"


class DQNAgent(BaseAgent):
    """
    Double DQN agent.

    The online network is trained every `update_every` calls to train()
    once the buffer holds `warmup` transitions. TD targets use the online
    network to pick the next action and the target network to value it:

        a* = argmax_a Q_online(s', a)
        y  = r + gamma * Q_target(s', a*) * (1 - done)

    Exactly one target sync mode is active: soft blending after every
    gradient step when tau > 0, otherwise a hard copy every
    `target_update_freq` calls to train().

    Args:
        obs_size: Length of the observation vector
        num_actions: Number of discrete actions
        hidden_sizes: Hidden layer widths of the Q-network
        learning_rate: Adam optimizer learning rate
        gamma: Discount factor
        batch_size: Minibatch size
        update_every: Calls to train() between gradient steps
        warmup: Buffer occupancy required before training
        target_update_freq: Calls to train() between hard syncs
        tau: Soft sync rate (0 selects hard sync)
        grad_clip: Max gradient norm (0 disables clipping)
        buffer: Replay buffer (created with `buffer_capacity` if None)
        buffer_capacity: Capacity of the default buffer
        store: Model store for save/load
        model_name: Default name used by save/load
        device: 'cuda', 'cpu', or 'auto'
        seed: Seed for exploration draws

    Raises:
        ValueError: If a hyperparameter is out of range

    Example:
        >>> agent = DQNAgent(obs_size=7, num_actions=2, device="cpu")
        >>> action = agent.select_action(obs)
        >>> agent.observe(Transition(obs, action, reward, next_obs, done))
        >>> loss = agent.train()  # None until warmup is reached
    """

    def __init__(
        self,
        obs_size: int,
        num_actions: int,
        hidden_sizes: Sequence[int] = (128, 128),
        learning_rate: float = 1e-3,
        gamma: float = 0.99,
        batch_size: int = 128,
        update_every: int = 4,
        warmup: int = 1000,
        target_update_freq: int = 2000,
        tau: float = 0.0,
        grad_clip: float = 10.0,
        buffer: Optional[ReplayBuffer] = None,
        buffer_capacity: int = 100_000,
        store: Optional[ModelStore] = None,
        model_name: str = DEFAULT_MODEL_NAME,
        device: str = "auto",
        seed: Optional[int] = None
    ) -> None:
        super().__init__(num_actions)

        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if update_every < 1:
            raise ValueError(f"update_every must be >= 1, got {update_every}")
        if warmup < 1:
            raise ValueError(f"warmup must be >= 1, got {warmup}")
        if target_update_freq < 1:
            raise ValueError(f"target_update_freq must be >= 1, got {target_update_freq}")
        if not 0.0 <= tau < 1.0:
            raise ValueError(f"tau must be in [0, 1), got {tau}")
        if not 0.0 < gamma <= 1.0:
            raise ValueError(f"gamma must be in (0, 1], got {gamma}")

        self.obs_size = obs_size
        self.hidden_sizes = tuple(hidden_sizes)
        self.learning_rate = learning_rate
        self.gamma = gamma
        self.batch_size = batch_size
        self.update_every = update_every
        self.warmup = warmup
        self.target_update_freq = target_update_freq
        self.tau = tau
        self.grad_clip = grad_clip
        self.store = store
        self.model_name = model_name
        self.rng = np.random.default_rng(seed)

        # Set device
        if device == "auto":
            self.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        else:
            self.device = torch.device(device)

        self.buffer = buffer if buffer is not None else ReplayBuffer(
            capacity=buffer_capacity,
            state_shape=(obs_size,),
            seed=seed
        )

        # Initialize networks
        self.online_network = QNetwork(obs_size, num_actions, self.hidden_sizes).to(self.device)
        self.target_network = QNetwork(obs_size, num_actions, self.hidden_sizes).to(self.device)

        # Copy weights to target network
        self.sync_target_network()

        # Freeze target network (no gradients)
        for param in self.target_network.parameters():
            param.requires_grad = False

        self.optimizer = torch.optim.Adam(
            self.online_network.parameters(),
            lr=learning_rate
        )

        # Calls to train(), gated or not
        self.total_steps = 0
        self.update_count = 0

    @property
    def soft_sync(self) -> bool:
        return self.tau > 0.0

    def select_action(self, state: np.ndarray, training: bool = True) -> int:
        """
        Select action using epsilon-greedy policy.

        Args:
            state: Current observation (obs_size,)
            training: If False, use pure greedy (epsilon=0)

        Returns:
            Selected action index
        """
        if training and self.rng.random() < self.epsilon:
            return int(self.rng.integers(self.num_actions))

        with torch.no_grad():
            state_tensor = torch.as_tensor(state, dtype=torch.float32, device=self.device).unsqueeze(0)
            q_values = self.online_network(state_tensor)
            return int(q_values.argmax(dim=1).item())

    def observe(self, transition: Transition) -> None:
        self.buffer.add(transition)

    def train(self) -> Optional[float]:
        """
        Run a gradient step if warmup and update interval allow it.

        Returns:
            Loss value, or None if no step ran
        """
        self.total_steps += 1
        if len(self.buffer) < self.warmup:
            return None
        if self.total_steps % self.update_every != 0:
            return None

        batch = self.buffer.sample(self.batch_size)
        metrics = self.update({
            k: torch.from_numpy(v) for k, v in batch.items()
        })

        if self.soft_sync:
            self.soft_update_target(self.tau)
        elif self.total_steps % self.target_update_freq == 0:
            self.sync_target_network()
            logger.debug(f"Target network synced at step {self.total_steps}")

        return metrics['loss']

    def compute_td_target(
        self,
        rewards: torch.Tensor,
        next_states: torch.Tensor,
        dones: torch.Tensor
    ) -> torch.Tensor:
        """
        Compute Double DQN TD target.

        Args:
            rewards: Batch of rewards
            next_states: Batch of next states
            dones: Batch of done flags

        Returns:
            Target Q-values
        """
        with torch.no_grad():
            # Online network selects best action
            online_next_q = self.online_network(next_states)
            best_actions = online_next_q.argmax(dim=1)

            # Target network evaluates
            target_next_q = self.target_network(next_states)
            next_q = target_next_q.gather(1, best_actions.unsqueeze(1)).squeeze(1)

            targets = rewards + self.gamma * next_q * (1 - dones.float())

        return targets

    def update(self, batch: Dict[str, torch.Tensor]) -> Dict[str, float]:
        """
        Perform one gradient update step.

        Args:
            batch: Dictionary containing:
                - 'states': (batch, obs_size)
                - 'actions': (batch,)
                - 'rewards': (batch,)
                - 'next_states': (batch, obs_size)
                - 'dones': (batch,)

        Returns:
            Dictionary with metrics:
                - 'loss': Huber loss value
                - 'mean_q': Mean Q-value
                - 'max_q': Max Q-value
                - 'td_error_mean': Mean absolute TD error
        """
        states = batch['states'].to(self.device).float()
        actions = batch['actions'].to(self.device).long()
        rewards = batch['rewards'].to(self.device).float()
        next_states = batch['next_states'].to(self.device).float()
        dones = batch['dones'].to(self.device)

        # Current Q-values for taken actions
        q_values = self.online_network(states)
        current_q = q_values.gather(1, actions.unsqueeze(1)).squeeze(1)

        targets = self.compute_td_target(rewards, next_states, dones)
        td_errors = (current_q - targets).detach().abs()

        loss = F.huber_loss(current_q, targets, delta=1.0)

        self.optimizer.zero_grad()
        loss.backward()

        # Gradient clipping for stability
        if self.grad_clip > 0:
            torch.nn.utils.clip_grad_norm_(
                self.online_network.parameters(),
                self.grad_clip
            )

        self.optimizer.step()
        self.update_count += 1

        return {
            'loss': loss.item(),
            'mean_q': q_values.mean().item(),
            'max_q': q_values.max().item(),
            'td_error_mean': td_errors.mean().item(),
        }

    def sync_target_network(self) -> None:
        """Hard update: copy online network weights to target network."""
        self.target_network.load_state_dict(self.online_network.state_dict())

    def soft_update_target(self, tau: float) -> None:
        """
        Soft update: blend online weights into target network.

        target = tau * online + (1 - tau) * target
        """
        with torch.no_grad():
            for target_param, online_param in zip(
                self.target_network.parameters(),
                self.online_network.parameters()
            ):
                target_param.data.copy_(
                    tau * online_param.data + (1.0 - tau) * target_param.data
                )

    def save(self, name: Optional[str] = None) -> None:
        """
        Save both networks under `name`.

        The online blob also carries the optimizer state and step
        counter. Blobs are written online first, then target.

        Raises:
            RuntimeError: If the agent has no model store
            OSError: If writing fails
        """
        if self.store is None:
            raise RuntimeError("DQNAgent.save() requires a model store")

        name = name or self.model_name
        online_blob = {
            'network': self.online_network.state_dict(),
            'optimizer': self.optimizer.state_dict(),
            'total_steps': self.total_steps,
            'config': self.get_config(),
        }
        target_blob = {
            'network': self.target_network.state_dict(),
        }
        self.store.save(name, online_blob, target_blob)
        logger.info(f"Saved model '{name}' to {self.store.root}")

    def load(self, name: Optional[str] = None) -> bool:
        """
        Load both networks saved under `name`.

        Both blobs are read before either is applied. Any failure leaves
        the current parameters untouched.

        Returns:
            True if both networks were restored
        """
        name = name or self.model_name
        if self.store is None:
            logger.warning("No model store configured; keeping initialized parameters")
            return False

        try:
            online_blob, target_blob = self.store.load(name, map_location=self.device)
            online_state = online_blob['network']
            target_state = target_blob['network']

            # Validate both before touching the live networks
            probe = QNetwork(self.obs_size, self.num_actions, self.hidden_sizes)
            probe.load_state_dict(online_state)
            probe.load_state_dict(target_state)
        except FileNotFoundError:
            logger.info(f"No saved model '{name}' in {self.store.root}; keeping initialized parameters")
            return False
        except (OSError, EOFError, RuntimeError, KeyError, ValueError, pickle.UnpicklingError) as e:
            logger.warning(f"Could not load model '{name}': {e}; keeping initialized parameters")
            return False

        self.online_network.load_state_dict(online_state)
        self.target_network.load_state_dict(target_state)
        if 'optimizer' in online_blob:
            self.optimizer.load_state_dict(online_blob['optimizer'])
        self.total_steps = online_blob.get('total_steps', 0)
        logger.info(f"Loaded model '{name}' from {self.store.root}")
        return True

    def get_q_values(self, state: np.ndarray) -> np.ndarray:
        """
        Get Q-values for all actions given state.

        Args:
            state: Observation (obs_size,)

        Returns:
            Q-values array of shape (num_actions,)
        """
        with torch.no_grad():
            state_tensor = torch.as_tensor(state, dtype=torch.float32, device=self.device).unsqueeze(0)
            q_values = self.online_network(state_tensor)
            return q_values.squeeze(0).cpu().numpy()

    def set_training_mode(self, training: bool = True) -> None:
        if training:
            self.online_network.train()
            self.target_network.train()
        else:
            self.online_network.eval()
            self.target_network.eval()

    def get_config(self) -> Dict[str, Any]:
        """Return agent configuration."""
        config = super().get_config()
        config.update({
            'obs_size': self.obs_size,
            'hidden_sizes': list(self.hidden_sizes),
            'learning_rate': self.learning_rate,
            'gamma': self.gamma,
            'batch_size': self.batch_size,
            'update_every': self.update_every,
            'warmup': self.warmup,
            'target_update_freq': self.target_update_freq,
            'tau': self.tau,
            'grad_clip': self.grad_clip,
            'buffer_capacity': self.buffer.capacity,
            'device': str(self.device),
            'agent_type': 'dqn',
        })
        return config

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"num_actions={self.num_actions}, "
            f"lr={self.learning_rate}, "
            f"gamma={self.gamma}, "
            f"sync={'soft' if self.soft_sync else 'hard'}, "
            f"epsilon={self.epsilon:.3f})"
        )
