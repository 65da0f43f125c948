"""
Dino runner simulation and environment.

Provides:
- Deterministic frame-stepped physics
- Observation building from physics snapshots
- Frame-skipping Gymnasium environment with reward shaping
"""

from .physics import (
    DinoPhysics,
    Obstacle,
    PhysicsSnapshot,
    WorldConstants,
    DEFAULT_WORLD,
    EpisodeTerminatedError,
)
from .dino_env import (
    make_dino_env,
    build_observation,
    DinoEnv,
    Action,
    RewardShaping,
    OBS_SIZE,
    NUM_ACTIONS,
)

__all__ = [
    "DinoPhysics",
    "Obstacle",
    "PhysicsSnapshot",
    "WorldConstants",
    "DEFAULT_WORLD",
    "EpisodeTerminatedError",
    "make_dino_env",
    "build_observation",
    "DinoEnv",
    "Action",
    "RewardShaping",
    "OBS_SIZE",
    "NUM_ACTIONS",
]
