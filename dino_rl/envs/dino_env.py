"""
Gymnasium environment for the dino runner.

This module provides:
- Action: Discrete action set (idle, jump, reserved duck)
- RewardShaping: Coefficients of the shaped reward
- build_observation: Pure snapshot -> observation vector function
- DinoEnv: Frame-skipping environment with shaped rewards

Factory function:
- make_dino_env: Create a configured environment
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple

import gymnasium as gym
import numpy as np

from .physics import (
    DEFAULT_WORLD,
    DinoPhysics,
    EpisodeTerminatedError,
    PhysicsSnapshot,
    WorldConstants,
)


class Action(IntEnum):
    IDLE = 0
    JUMP = 1
    DUCK = 2  # reserved


# [y_rel, speed, dist, tti, width, height, grounded]
OBS_SIZE = 7
NUM_ACTIONS = 2

# Normalisation horizons for the nearest obstacle features
TTI_HORIZON_FRAMES = 60.0
OBSTACLE_SIZE_SCALE = 60.0


@dataclass(frozen=True)
class RewardShaping:
    """
    Coefficients of the shaped reward.

    A sparse terminal-only reward is too weak for episodes of thousands
    of steps, so survival, progress, cleared obstacles and jump timing
    all contribute. A terminal step always receives terminal_penalty.
    """
    survive: float = 0.003
    progress_scale: float = 0.0005
    clear_bonus: float = 2.0
    jump_proximity_bonus: float = 0.05
    jump_far_penalty: float = -0.02
    proximity_threshold: float = 0.25
    terminal_penalty: float = -1.0


def _nearest_ahead(snapshot: PhysicsSnapshot, world: WorldConstants):
    """First obstacle (oldest first) that has not been passed yet."""
    for ob in snapshot.obstacles:
        if not ob.passed and ob.right > world.dino_x:
            return ob
    return None


def build_observation(
    snapshot: PhysicsSnapshot,
    world: WorldConstants = DEFAULT_WORLD
) -> np.ndarray:
    """
    Build the normalised observation vector from a physics snapshot.

    Pure function of the snapshot, so renderers and replays can rebuild
    exactly what the agent saw.

    Returns:
        float32 array of shape (OBS_SIZE,) with values in [0, 1]
    """
    y_rel = snapshot.dino_y / world.ground_y
    speed_norm = snapshot.speed / world.max_speed

    dist_norm = 1.0
    tti_norm = 1.0
    width_norm = 0.0
    height_norm = 0.0
    ob = _nearest_ahead(snapshot, world)
    if ob is not None:
        dist_px = max(0.0, ob.x - world.dino_x)
        dist_norm = float(np.clip(dist_px / world.world_width, 0.0, 1.0))
        tti_frames = dist_px / max(1e-6, snapshot.speed)
        tti_norm = float(np.clip(tti_frames / TTI_HORIZON_FRAMES, 0.0, 1.0))
        width_norm = float(np.clip(ob.width / OBSTACLE_SIZE_SCALE, 0.0, 1.0))
        height_norm = float(np.clip(ob.height / OBSTACLE_SIZE_SCALE, 0.0, 1.0))

    grounded = 1.0 if snapshot.dino_y >= world.ground_y else 0.0

    return np.array(
        [y_rel, speed_norm, dist_norm, tti_norm, width_norm, height_norm, grounded],
        dtype=np.float32
    )


class DinoEnv(gym.Env):
    """
    Dino runner environment with action repeat and reward shaping.

    Each step repeats the chosen action for `frame_skip` physics frames.
    A jump is issued only on the first repeated frame, and repetition
    stops early if the runner collides.

    Episodes end only by collision; step caps are the caller's concern,
    so `truncated` is always False.

    Args:
        frame_skip: Number of physics frames per step
        celebratory_run: Use the scheduled letter obstacles
        reward: Reward shaping coefficients
        world: World constants
        seed: Seed for obstacle spawning

    Example:
        >>> env = DinoEnv(frame_skip=2, seed=0)
        >>> obs, info = env.reset()
        >>> obs, reward, terminated, truncated, info = env.step(Action.JUMP)
    """

    metadata = {"render_modes": []}

    def __init__(
        self,
        frame_skip: int = 2,
        celebratory_run: bool = False,
        reward: Optional[RewardShaping] = None,
        world: WorldConstants = DEFAULT_WORLD,
        seed: Optional[int] = None
    ) -> None:
        super().__init__()

        if frame_skip < 1:
            raise ValueError(f"frame_skip must be >= 1, got {frame_skip}")

        self.frame_skip = int(frame_skip)
        self.reward_shaping = reward or RewardShaping()
        self.world = world
        self.physics = DinoPhysics(world=world, celebratory_run=celebratory_run, seed=seed)

        self.observation_space = gym.spaces.Box(
            low=0.0,
            high=1.0,
            shape=(OBS_SIZE,),
            dtype=np.float32
        )
        self.action_space = gym.spaces.Discrete(NUM_ACTIONS)

        self._last_score = 0
        self._terminated = False

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """Reset the physics and episode bookkeeping."""
        super().reset(seed=seed)
        self.physics.reset(seed=seed)
        self._last_score = 0
        self._terminated = False
        return self._observe(), self._info(cleared_delta=0, near_obstacle=False)

    def step(
        self,
        action: int
    ) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        """
        Apply one action for `frame_skip` frames.

        Raises:
            EpisodeTerminatedError: If the previous step ended the episode
            ValueError: If the action is not a member of Action
        """
        if self._terminated:
            raise EpisodeTerminatedError(
                "step() called on a terminated episode; call reset() first"
            )
        try:
            action = Action(int(action))
        except ValueError:
            raise ValueError(f"Unknown action: {action!r}") from None

        rs = self.reward_shaping
        pre_cleared = self.physics.obstacles_cleared
        near_obstacle = self._obstacle_near()

        done = False
        for k in range(self.frame_skip):
            snapshot = self.physics.step(
                jump=(action == Action.JUMP and k == 0),
                duck=(action == Action.DUCK),
                frames=1.0
            )
            if snapshot.done:
                done = True
                break

        obs = self._observe()

        score = self.physics.score
        delta_score = max(0, score - self._last_score)
        self._last_score = score
        cleared_delta = max(0, self.physics.obstacles_cleared - pre_cleared)

        reward = rs.survive * self.frame_skip + rs.progress_scale * delta_score
        reward += rs.clear_bonus * cleared_delta
        if action == Action.JUMP:
            reward += rs.jump_proximity_bonus if near_obstacle else rs.jump_far_penalty

        if done:
            reward = rs.terminal_penalty
            self._terminated = True

        return obs, float(reward), done, False, self._info(cleared_delta, near_obstacle)

    def frame_state(self) -> Dict[str, Any]:
        """Plain snapshot of the scene for live visualisation."""
        w = self.world
        return {
            "dinoX": w.dino_x,
            "dinoY": self.physics.dino_y,
            "groundY": w.ground_y,
            "worldWidth": w.world_width,
            "worldHeight": w.world_height,
            "speed": self.physics.speed,
            "score": self.physics.score,
            "cleared": self.physics.obstacles_cleared,
            "obstacles": [
                {"x": ob.x, "width": ob.width, "height": ob.height}
                for ob in self.physics.obstacles
            ],
            "done": self._terminated,
        }

    @property
    def terminated(self) -> bool:
        return self._terminated

    def _obstacle_near(self) -> bool:
        """Whether the nearest unpassed obstacle is within the jump window."""
        ob = _nearest_ahead(self.physics.snapshot(), self.world)
        if ob is None:
            return False
        dist_norm = np.clip((ob.x - self.world.dino_x) / self.world.world_width, 0.0, 1.0)
        return bool(dist_norm < self.reward_shaping.proximity_threshold)

    def _observe(self) -> np.ndarray:
        return build_observation(self.physics.snapshot(), self.world)

    def _info(self, cleared_delta: int, near_obstacle: bool) -> Dict[str, Any]:
        return {
            "score": self.physics.score,
            "cleared": self.physics.obstacles_cleared,
            "cleared_delta": cleared_delta,
            "near_obstacle": near_obstacle,
        }


def make_dino_env(
    frame_skip: int = 2,
    celebratory_run: bool = False,
    reward: Optional[Dict[str, float]] = None,
    seed: Optional[int] = None
) -> DinoEnv:
    """
    Create a dino runner environment.

    Args:
        frame_skip: Number of physics frames per step (action repeat)
        celebratory_run: Use the scheduled letter obstacles
        reward: Optional overrides for RewardShaping fields
        seed: Seed for obstacle spawning

    Returns:
        Configured DinoEnv

    Raises:
        ValueError: If a reward override names an unknown coefficient
    """
    shaping = RewardShaping()
    if reward:
        unknown = set(reward) - set(RewardShaping.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown reward coefficients: {sorted(unknown)}")
        shaping = RewardShaping(**{k: float(v) for k, v in reward.items()})

    return DinoEnv(
        frame_skip=frame_skip,
        celebratory_run=celebratory_run,
        reward=shaping,
        seed=seed
    )
