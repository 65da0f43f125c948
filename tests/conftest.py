"""Shared fixtures for the dino_rl test suite."""

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dino_rl.agents import DQNAgent
from dino_rl.utils.config_schema import load_config
from dino_rl.utils.model_store import ModelStore


@pytest.fixture
def store(tmp_path):
    return ModelStore(tmp_path / "models")


@pytest.fixture
def small_config(tmp_path):
    """Packaged defaults shrunk so a run takes well under a second per episode."""
    return load_config([
        f"model_dir={tmp_path / 'models'}",
        "device=cpu",
        "seed=0",
        "agent.hidden_sizes=[16]",
        "agent.warmup=16",
        "agent.batch_size=8",
        "buffer.capacity=1000",
        "training.emit_frames=false",
    ])


@pytest.fixture
def make_agent(store):
    """Factory for tiny CPU DQN agents sharing one model store."""
    def _make(**overrides):
        params = dict(
            obs_size=7,
            num_actions=2,
            hidden_sizes=(16,),
            batch_size=4,
            warmup=1,
            update_every=1,
            buffer_capacity=100,
            store=store,
            device="cpu",
            seed=0,
        )
        params.update(overrides)
        return DQNAgent(**params)
    return _make
