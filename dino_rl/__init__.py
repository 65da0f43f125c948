"""
Dino Runner Deep RL

A reinforcement learning framework for a side-scrolling obstacle-avoidance game.
Implements deterministic physics, a Gymnasium environment, Double DQN,
and a queue-driven training/evaluation worker.
"""

__version__ = "1.0.0"
__author__ = "RL Course Project"
