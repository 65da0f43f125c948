"""
Training and evaluation worker.

The worker runs on its own thread. Its only contact with the caller is
two queues: commands flow in (start, stop, evaluate) and events flow out
(progress, frames, autosave notices, evaluation results, done).

Cancellation is cooperative: the stop flag is polled at the top of every
episode and every step. Other commands that arrive while a run is in
progress are deferred and handled once it finishes.

Invalid commands and configuration are rejected before they reach the
thread; an unexpected exception inside a run is reported as an error
event and ends the worker.

Example:
    >>> worker = TrainingWorker(load_config(["training.episodes=5"]))
    >>> worker.start()
    >>> worker.send({"type": "start", "maxSteps": 500})
    >>> for event in worker.iter_events(timeout=60):
    ...     print(event.to_dict())
    >>> worker.close()
"""

import math
import queue
import threading
import time
from collections import deque
from typing import Any, Deque, Iterator, Mapping, Optional, Union

import numpy as np
from omegaconf import DictConfig

from ..agents.base import BaseAgent
from ..envs.dino_env import DinoEnv, NUM_ACTIONS
from ..utils.config_schema import load_config, validate_config
from ..utils.factory import build_agent, build_env, build_store
from ..utils.logging import get_logger, MetricsTracker
from ..utils.model_store import ModelStore
from ..utils.replay_buffer import Transition
from .messages import (
    Command,
    Event,
    StartCommand,
    StopCommand,
    EvaluateCommand,
    ProgressEvent,
    FrameEvent,
    AutosavedEvent,
    SaveFailedEvent,
    EvalResultEvent,
    DoneEvent,
    ErrorEvent,
    parse_command,
)


logger = get_logger("dino_rl.training")

# Put on the command queue by close()
_SHUTDOWN = object()


def linear_epsilon(
    episode_index: int,
    start: float,
    end: float,
    decay_episodes: int
) -> float:
    """
    Linearly annealed exploration rate.

    Args:
        episode_index: 0-based episode index
        start: Epsilon at episode 0
        end: Epsilon from `decay_episodes` onward
        decay_episodes: Episodes to go from start to end

    Returns:
        Epsilon for the given episode
    """
    frac = min(1.0, episode_index / max(1, decay_episodes))
    return start * (1.0 - frac) + end * frac


class TrainingWorker:
    """
    Queue-driven worker that trains and evaluates agents on DinoEnv.

    A fresh environment and agent are built for every start or evaluate
    command. Runs can also be driven synchronously with handle(), which
    is what the worker thread does for each command it receives.

    Args:
        config: Full configuration (packaged defaults if None)
        store: Model store for autosave and greedy evaluation
            (built from config.model_dir if None)
        seed: Base seed; run k uses seed + k (config.seed if None)

    Raises:
        ConfigValidationError: If the configuration is invalid
    """

    def __init__(
        self,
        config: Optional[DictConfig] = None,
        store: Optional[ModelStore] = None,
        seed: Optional[int] = None
    ) -> None:
        self.config = config if config is not None else load_config()
        validate_config(self.config)
        self.store = store if store is not None else build_store(self.config)
        self.seed = seed if seed is not None else self.config.seed

        self.commands: "queue.Queue[Any]" = queue.Queue()
        self.events: "queue.Queue[Event]" = queue.Queue()

        self._pending: Deque[Command] = deque()
        self._stop_requested = False
        self._shutdown = False
        self._run_count = 0
        self._last_frame_time = -math.inf
        self._thread: Optional[threading.Thread] = None

    # -------------------------------------------------------------------------
    # Caller side
    # -------------------------------------------------------------------------

    def start(self) -> "TrainingWorker":
        """Start the worker thread."""
        if self._thread is not None:
            raise RuntimeError("TrainingWorker already started")

        self._thread = threading.Thread(
            target=self._run_loop,
            name="dino-rl-worker",
            daemon=True
        )
        self._thread.start()
        return self

    def send(self, command: Union[Command, Mapping[str, Any]]) -> None:
        """
        Queue a command.

        Raises:
            ValueError: If a wire dict cannot be parsed
        """
        if isinstance(command, Mapping):
            command = parse_command(command)
        self.commands.put(command)

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the current run after its step and end the worker thread."""
        if self._thread is None:
            return
        self.commands.put(_SHUTDOWN)
        self._thread.join(timeout)
        self._thread = None

    def get_event(self, timeout: Optional[float] = None) -> Event:
        """Next outbound event; raises queue.Empty on timeout."""
        return self.events.get(timeout=timeout)

    def iter_events(self, timeout: Optional[float] = None) -> Iterator[Event]:
        """Yield events up to and including the next DoneEvent or ErrorEvent."""
        while True:
            event = self.get_event(timeout)
            yield event
            if isinstance(event, (DoneEvent, ErrorEvent)):
                return

    def __enter__(self) -> "TrainingWorker":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Worker side
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._shutdown:
            command = self._pending.popleft() if self._pending else self.commands.get()
            if command is _SHUTDOWN:
                break
            try:
                self.handle(command)
            except Exception as e:
                logger.exception("Worker failed while handling %r", command)
                self._emit(ErrorEvent(f"{type(e).__name__}: {e}"))
                raise

    def handle(self, command: Command) -> None:
        """Run one command to completion on the calling thread."""
        if isinstance(command, StartCommand):
            self.run_training(command)
        elif isinstance(command, EvaluateCommand):
            self.run_evaluation(command)
        elif isinstance(command, StopCommand):
            logger.debug("Stop received while idle; ignoring")
        else:
            raise TypeError(f"Unsupported command: {command!r}")

    def _poll_commands(self) -> bool:
        """Drain inbound commands without blocking; returns the stop flag."""
        while True:
            try:
                command = self.commands.get_nowait()
            except queue.Empty:
                break

            if command is _SHUTDOWN:
                self._shutdown = True
                self._stop_requested = True
            elif isinstance(command, StopCommand):
                self._stop_requested = True
            else:
                self._pending.append(command)

        return self._stop_requested

    def _emit(self, event: Event) -> None:
        self.events.put(event)

    def _next_seed(self) -> Optional[int]:
        seed = None if self.seed is None else self.seed + self._run_count
        self._run_count += 1
        return seed

    def _maybe_emit_frame(
        self,
        env: DinoEnv,
        episode: int,
        step: int,
        epsilon: float,
        best_score: int
    ) -> None:
        cfg = self.config.training
        if not cfg.get('emit_frames', True):
            return

        now = time.monotonic()
        if (now - self._last_frame_time) * 1000.0 < cfg.get('frame_interval_ms', 50):
            return

        self._last_frame_time = now
        self._emit(FrameEvent(
            episode=episode,
            step=step,
            epsilon=epsilon,
            state=env.frame_state(),
            best_score=best_score
        ))

    def _autosave(self, agent: BaseAgent, best_score: int) -> None:
        try:
            agent.save()
        except (OSError, RuntimeError) as e:
            logger.warning(f"Autosave failed at best score {best_score}: {e}")
            self._emit(SaveFailedEvent(str(e)))
            return

        logger.info(f"Autosaved model at best score {best_score}")
        self._emit(AutosavedEvent(best_score))

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def run_training(self, command: StartCommand) -> None:
        """
        Train a fresh DQN agent.

        Each episode resets the environment and steps it up to the step
        cap with explicit epsilon-greedy action selection, feeding every
        transition to the agent and calling train() after each step.
        Progress is emitted after every completed episode and done at the
        end or on stop.
        """
        cfg = self.config.training
        episodes = command.episodes if command.episodes is not None else cfg.episodes
        max_steps = command.max_steps if command.max_steps is not None else cfg.max_steps
        frame_skip = command.frame_skip if command.frame_skip is not None else self.config.env.frame_skip
        eps_start = command.epsilon_start if command.epsilon_start is not None else cfg.epsilon_start
        eps_end = command.epsilon_end if command.epsilon_end is not None else cfg.epsilon_end
        decay = command.epsilon_decay_episodes or cfg.get('epsilon_decay_episodes') or episodes
        threshold = command.autosave_threshold
        if threshold is None:
            threshold = cfg.get('autosave_threshold')
        log_freq = self.config.logging.get('log_freq', 1)

        seed = self._next_seed()
        env = build_env(self.config, frame_skip=frame_skip, seed=seed)
        agent = build_agent(self.config, 'dqn', store=self.store, seed=seed)
        rng = np.random.default_rng(seed)
        tracker = MetricsTracker(history=100)

        self._stop_requested = False
        self._last_frame_time = -math.inf
        best_score = 0
        autosaved = False

        logger.info(
            f"Training started: {episodes} episodes x {max_steps} steps, "
            f"frame_skip={frame_skip}, epsilon {eps_start} -> {eps_end} over {decay}"
        )

        for episode_index in range(episodes):
            if self._poll_commands():
                break

            episode = episode_index + 1
            epsilon = linear_epsilon(episode_index, eps_start, eps_end, decay)
            agent.epsilon = epsilon

            obs, _ = env.reset()
            episode_return = 0.0
            steps = 0

            while steps < max_steps:
                if self._poll_commands():
                    break

                if rng.random() < epsilon:
                    action = int(rng.integers(NUM_ACTIONS))
                else:
                    action = agent.select_action(obs, training=False)

                next_obs, reward, terminated, truncated, _ = env.step(action)
                agent.observe(Transition(obs, action, reward, next_obs, terminated))
                loss = agent.train()
                if loss is not None:
                    tracker.update('loss', loss)

                episode_return += reward
                steps += 1
                obs = next_obs

                self._maybe_emit_frame(env, episode, steps, epsilon, best_score)

                if terminated or truncated:
                    break

            if self._stop_requested:
                break

            cleared = env.physics.obstacles_cleared
            best_score = max(best_score, cleared)

            if threshold is not None and not autosaved and best_score >= threshold:
                autosaved = True
                self._autosave(agent, best_score)

            next_epsilon = linear_epsilon(episode_index + 1, eps_start, eps_end, decay)
            self._emit(ProgressEvent(
                episode=episode,
                steps=steps,
                episode_return=episode_return,
                epsilon=next_epsilon,
                best_score=best_score,
                episode_cleared=cleared
            ))

            if episode % log_freq == 0:
                loss_stats = tracker.get_stats('loss', window=100)
                logger.info(
                    f"Episode {episode:5d} | "
                    f"Steps: {steps:5d} | "
                    f"Return: {episode_return:8.3f} | "
                    f"Cleared: {cleared:3d} | "
                    f"Best: {best_score:3d} | "
                    f"Eps: {epsilon:.3f} | "
                    f"Loss: {loss_stats['mean']:.4f}"
                )

        if self._stop_requested:
            logger.info("Training stopped")
        else:
            logger.info(f"Training complete, best cleared: {best_score}")
        env.close()
        self._emit(DoneEvent())

    def run_evaluation(self, command: EvaluateCommand) -> None:
        """
        Run evaluation episodes without learning.

        The "random" policy is the uniform baseline; "greedy" loads the
        saved model (keeping fresh parameters if none exists) and acts
        with epsilon 0.
        """
        cfg = self.config.evaluation
        episodes = command.episodes if command.episodes is not None else cfg.episodes
        max_steps = command.max_steps if command.max_steps is not None else cfg.max_steps
        policy = command.policy or cfg.get('policy', 'random')

        seed = self._next_seed()
        env = build_env(self.config, seed=seed)

        if policy == 'greedy':
            agent = build_agent(self.config, 'dqn', store=self.store, seed=seed)
            if not agent.load():
                logger.warning("Evaluating an untrained network")
            agent.set_training_mode(False)
        else:
            agent = build_agent(self.config, 'random', seed=seed)
        agent.epsilon = 0.0

        self._stop_requested = False
        logger.info(f"Evaluation started: {episodes} episodes x {max_steps} steps, policy={policy}")

        for episode_index in range(episodes):
            if self._poll_commands():
                break

            obs, _ = env.reset()
            steps = 0
            while steps < max_steps:
                if self._poll_commands():
                    break
                action = agent.select_action(obs, training=False)
                obs, _, terminated, truncated, _ = env.step(action)
                steps += 1
                if terminated or truncated:
                    break

            if self._stop_requested:
                break

            self._emit(EvalResultEvent(episode=episode_index + 1, steps=steps))
            logger.info(f"  [EVAL] Episode {episode_index + 1}: {steps} steps")

        env.close()
        self._emit(DoneEvent())
