"""
Frame-stepped physics for the dino runner game.

This module provides:
- WorldConstants: Geometry and dynamics of the game world
- Obstacle: A single obstacle scrolling towards the runner
- PhysicsSnapshot: Immutable result of one physics step
- DinoPhysics: Deterministic (given a seed) simulation engine

Coordinates follow screen conventions: x grows to the right, y grows
downwards, so the runner is on the ground when dino_y == ground_y and
jumping means a negative vertical velocity.
"""

import dataclasses
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional, Tuple

import numpy as np


class EpisodeTerminatedError(RuntimeError):
    """Raised when stepping a simulation that already reported done."""
    pass


@dataclass(frozen=True)
class WorldConstants:
    """Geometry and dynamics of the game world (pixels and frames)."""
    world_width: int = 800
    world_height: int = 200
    ground_y: float = 160.0
    dino_x: float = 80.0
    gravity: float = 0.9
    jump_velocity: float = -14.0
    base_speed: float = 6.0
    max_speed_bonus: float = 8.0
    speed_score_divisor: float = 150.0

    # Hitbox of the runner relative to (dino_x, dino_y)
    dino_box_offset_x: float = -20.0
    dino_box_offset_y: float = -30.0
    dino_box_width: float = 40.0
    dino_box_height: float = 40.0
    ground_offset: float = 10.0

    # Random obstacle spawning
    initial_spawn_delay: float = 30.0
    spawn_margin: float = 20.0
    min_obstacle_height: int = 20
    obstacle_height_range: int = 30
    min_obstacle_width: int = 10
    obstacle_width_range: int = 20
    min_spawn_interval: float = 60.0
    spawn_interval_range: float = 40.0

    # Scheduled letter obstacles (celebratory run)
    letter_width: int = 46
    letter_height: int = 70
    letter_spawn_margin: float = 40.0
    letter_spawn_interval: float = 80.0

    @property
    def max_speed(self) -> float:
        return self.base_speed + self.max_speed_bonus


DEFAULT_WORLD = WorldConstants()

LETTER_SEQUENCE: Tuple[Tuple[str, str], ...] = (
    ("R", "#ff4d4d"),
    ("E", "#ff8a00"),
    ("I", "#ffd60a"),
    ("N", "#2ec27e"),
    ("O", "#339dff"),
    ("U", "#7b4dff"),
    ("T", "#d948e8"),
)


@dataclass
class Obstacle:
    """
    Obstacle scrolling from right to left.

    Only x, width, height and passed take part in the simulation;
    kind, letter, color and sequence_index are display metadata.
    """
    x: float
    width: float
    height: float
    obstacle_id: int = 0
    passed: bool = False
    kind: Optional[str] = None
    letter: Optional[str] = None
    color: Optional[str] = None
    sequence_index: Optional[int] = None

    @property
    def right(self) -> float:
        """Trailing (rightmost) edge."""
        return self.x + self.width


@dataclass(frozen=True)
class PhysicsSnapshot:
    """State of the simulation after a step."""
    done: bool
    score: int
    speed: float
    dino_y: float
    obstacles: Tuple[Obstacle, ...] = field(default_factory=tuple)
    obstacles_cleared: int = 0
    letter_sequence_progress: int = 0
    letter_sequence_total: int = 0
    letter_sequence_just_completed: bool = False


def _boxes_overlap(
    ax: float, ay: float, aw: float, ah: float,
    bx: float, by: float, bw: float, bh: float
) -> bool:
    return ax < bx + bw and ax + aw > bx and ay < by + bh and ay + ah > by


class DinoPhysics:
    """
    Deterministic physics engine for the runner.

    Owns all game state. Time advances only through step(), which may be
    called with fractional frame counts to follow wall-clock timing.
    Random obstacle sizes and spawn intervals are drawn from a NumPy
    Generator, so two engines reset with the same seed and driven by the
    same inputs produce identical snapshots.

    Args:
        world: World constants
        celebratory_run: Spawn the scheduled letter sequence instead of
            random cacti
        seed: Seed for the spawn generator

    Example:
        >>> physics = DinoPhysics(seed=0)
        >>> physics.reset()
        >>> snap = physics.step(jump=True)
        >>> snap.dino_y < physics.world.ground_y
        True
    """

    def __init__(
        self,
        world: WorldConstants = DEFAULT_WORLD,
        celebratory_run: bool = False,
        seed: Optional[int] = None
    ) -> None:
        self.world = world
        self.celebratory_run = celebratory_run
        self.rng = np.random.default_rng(seed)
        self.reset()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def dino_y(self) -> float:
        return self._dino_y

    @property
    def velocity_y(self) -> float:
        return self._velocity_y

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def score(self) -> int:
        return self._score

    @property
    def obstacles(self) -> Tuple[Obstacle, ...]:
        return tuple(self._obstacles)

    @property
    def obstacles_cleared(self) -> int:
        return self._obstacles_cleared

    @property
    def grounded(self) -> bool:
        return self._dino_y >= self.world.ground_y

    @property
    def done(self) -> bool:
        return self._done

    @property
    def letter_sequence_total(self) -> int:
        return len(LETTER_SEQUENCE) if self.celebratory_run else 0

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def reset(self, seed: Optional[int] = None) -> None:
        """Return to the canonical start state, optionally reseeding."""
        if seed is not None:
            self.rng = np.random.default_rng(seed)

        self._velocity_y = 0.0
        self._dino_y = self.world.ground_y
        self._speed = self.world.base_speed
        self._obstacles: Deque[Obstacle] = deque()
        self._spawn_cooldown = self.world.initial_spawn_delay
        self._score = 0
        self._score_acc = 0.0
        self._obstacles_cleared = 0
        self._next_obstacle_id = 0
        self._frame = 0.0
        self._done = False

        self._letter_queue_index = 0
        self._letter_progress = 0
        self._letter_celebrated = False

    def step(
        self,
        jump: bool = False,
        duck: bool = False,
        frames: float = 1.0
    ) -> PhysicsSnapshot:
        """
        Advance the simulation by `frames` frames.

        Args:
            jump: Jump input; ignored while airborne
            duck: Reserved input, currently ignored
            frames: Number of frames to advance (may be fractional)

        Returns:
            Snapshot of the state after the step

        Raises:
            EpisodeTerminatedError: If a previous step already collided
                and reset() was not called since
        """
        if self._done:
            raise EpisodeTerminatedError(
                "step() called after the episode ended; call reset() first"
            )

        w = self.world
        f = max(0.0, float(frames))
        self._frame += f

        # Difficulty grows with score
        self._speed = w.base_speed + min(w.max_speed_bonus, self._score / w.speed_score_divisor)

        if jump and self.grounded:
            self._velocity_y = w.jump_velocity

        # Vertical motion, clamped to the ground
        self._velocity_y += w.gravity * f
        self._dino_y = min(w.ground_y, self._dino_y + self._velocity_y * f)
        if self._dino_y == w.ground_y:
            self._velocity_y = 0.0

        self._spawn_cooldown -= f
        if self._spawn_cooldown <= 0:
            self._spawn()

        for ob in self._obstacles:
            ob.x -= self._speed * f
            if not ob.passed and ob.right < w.dino_x:
                ob.passed = True
                self._obstacles_cleared += 1
                if self.celebratory_run and ob.kind == "letter":
                    self._letter_progress = min(len(LETTER_SEQUENCE), self._letter_progress + 1)

        while self._obstacles and self._obstacles[0].right < 0:
            self._obstacles.popleft()

        just_completed = (
            self.celebratory_run
            and not self._letter_celebrated
            and self._letter_progress >= len(LETTER_SEQUENCE)
        )
        if just_completed:
            self._letter_celebrated = True
            self._spawn_cooldown = float("inf")

        self._done = self._collides()

        # Score by distance, scaled by speed
        self._score_acc += (self._speed / w.base_speed) * f
        if self._score_acc >= 1:
            inc = int(self._score_acc)
            self._score += inc
            self._score_acc -= inc

        return self.snapshot(letter_sequence_just_completed=just_completed)

    def snapshot(self, letter_sequence_just_completed: bool = False) -> PhysicsSnapshot:
        """Capture the current state without advancing time."""
        return PhysicsSnapshot(
            done=self._done,
            score=self._score,
            speed=self._speed,
            dino_y=self._dino_y,
            obstacles=tuple(dataclasses.replace(ob) for ob in self._obstacles),
            obstacles_cleared=self._obstacles_cleared,
            letter_sequence_progress=self._letter_progress,
            letter_sequence_total=self.letter_sequence_total,
            letter_sequence_just_completed=letter_sequence_just_completed,
        )

    def _spawn(self) -> None:
        """Spawn one obstacle at the right edge and restart the cooldown."""
        w = self.world

        if self.celebratory_run:
            if self._letter_queue_index >= len(LETTER_SEQUENCE):
                return
            letter, color = LETTER_SEQUENCE[self._letter_queue_index]
            self._obstacles.append(Obstacle(
                x=w.world_width + w.letter_spawn_margin,
                width=w.letter_width,
                height=w.letter_height,
                obstacle_id=self._take_obstacle_id(),
                kind="letter",
                letter=letter,
                color=color,
                sequence_index=self._letter_queue_index,
            ))
            self._letter_queue_index += 1
            self._spawn_cooldown = w.letter_spawn_interval
            return

        height = w.min_obstacle_height + int(self.rng.integers(w.obstacle_height_range))
        width = w.min_obstacle_width + int(self.rng.integers(w.obstacle_width_range))
        self._obstacles.append(Obstacle(
            x=w.world_width + w.spawn_margin,
            width=width,
            height=height,
            obstacle_id=self._take_obstacle_id(),
            kind="cactus",
        ))
        self._spawn_cooldown = w.min_spawn_interval + self.rng.random() * w.spawn_interval_range

    def _take_obstacle_id(self) -> int:
        obstacle_id = self._next_obstacle_id
        self._next_obstacle_id += 1
        return obstacle_id

    def _collides(self) -> bool:
        """Axis-aligned box test between the runner and every obstacle."""
        w = self.world
        dx = w.dino_x + w.dino_box_offset_x
        dy = self._dino_y + w.dino_box_offset_y
        for ob in self._obstacles:
            oy = w.ground_y + w.ground_offset - ob.height
            if _boxes_overlap(
                dx, dy, w.dino_box_width, w.dino_box_height,
                ob.x, oy, ob.width, ob.height
            ):
                return True
        return False
