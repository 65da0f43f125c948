"""Tests for training/messages.py, utils/config_schema.py and utils/factory.py."""

import pytest
from omegaconf import OmegaConf

from dino_rl.agents import DQNAgent, RandomAgent
from dino_rl.training.messages import (
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
from dino_rl.utils.config_schema import ConfigValidationError, load_config, validate_config
from dino_rl.utils.factory import build_agent, build_buffer, build_env, list_agents


class TestParseCommand:
    def test_start_fields(self):
        cmd = parse_command({
            "type": "start",
            "episodes": 10,
            "maxSteps": 500,
            "frameSkip": 3,
            "epsilonStart": 0.9,
            "epsilonEnd": 0.1,
            "epsilonDecayEpisodes": 8,
            "autosaveThreshold": 4,
        })
        assert cmd == StartCommand(
            episodes=10,
            max_steps=500,
            frame_skip=3,
            epsilon_start=0.9,
            epsilon_end=0.1,
            epsilon_decay_episodes=8,
            autosave_threshold=4,
        )

    def test_start_defaults_unset(self):
        assert parse_command({"type": "start"}) == StartCommand()

    def test_autosave_alias(self):
        cmd = parse_command({"type": "start", "highScoreSaveThreshold": 7})
        assert cmd.autosave_threshold == 7

    def test_stop(self):
        assert parse_command({"type": "stop"}) == StopCommand()

    @pytest.mark.parametrize("kind", ["evaluate", "eval"])
    def test_evaluate(self, kind):
        cmd = parse_command({"type": kind, "episodes": 3, "maxSteps": 100, "policy": "greedy"})
        assert cmd == EvaluateCommand(episodes=3, max_steps=100, policy="greedy")

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            parse_command({"type": "dance"})

    def test_unknown_policy_raises(self):
        with pytest.raises(ValueError):
            parse_command({"type": "evaluate", "policy": "clever"})

    @pytest.mark.parametrize("field", [
        {"frameSkip": 0},
        {"episodes": 0},
        {"maxSteps": -5},
        {"epsilonStart": 1.5},
        {"epsilonEnd": -0.1},
        {"epsilonDecayEpisodes": 0},
        {"autosaveThreshold": -1},
        {"highScoreSaveThreshold": -2},
    ])
    def test_invalid_start_values_raise(self, field):
        """Out-of-range start fields are rejected when the command is parsed."""
        with pytest.raises(ValueError):
            parse_command({"type": "start", **field})

    @pytest.mark.parametrize("field", [{"episodes": 0}, {"maxSteps": 0}])
    def test_invalid_evaluate_values_raise(self, field):
        with pytest.raises(ValueError):
            parse_command({"type": "eval", **field})

    def test_boundary_start_values_accepted(self):
        cmd = StartCommand(
            episodes=1, max_steps=1, frame_skip=1,
            epsilon_start=1.0, epsilon_end=0.0, autosave_threshold=0
        )
        assert cmd.autosave_threshold == 0


class TestEventWireFormat:
    def test_progress(self):
        event = ProgressEvent(
            episode=2, steps=120, episode_return=1.5, epsilon=0.8,
            best_score=3, episode_cleared=2
        )
        assert event.to_dict() == {
            "type": "progress",
            "episode": 2,
            "steps": 120,
            "return": 1.5,
            "epsilon": 0.8,
            "bestScore": 3,
            "episodeCleared": 2,
        }

    def test_frame(self):
        event = FrameEvent(episode=1, step=5, epsilon=0.5, state={"score": 4}, best_score=1)
        assert event.to_dict() == {
            "type": "frame",
            "episode": 1,
            "step": 5,
            "epsilon": 0.5,
            "state": {"score": 4},
            "bestScore": 1,
        }

    def test_small_events(self):
        assert AutosavedEvent(5).to_dict() == {"type": "autosaved", "bestScore": 5}
        assert SaveFailedEvent("disk full").to_dict() == {"type": "saveFailed", "error": "disk full"}
        assert EvalResultEvent(1, 42).to_dict() == {"type": "evalResult", "episode": 1, "steps": 42}
        assert DoneEvent().to_dict() == {"type": "done"}
        assert ErrorEvent("boom").to_dict() == {"type": "error", "error": "boom"}


class TestConfig:
    def test_defaults_validate(self):
        config = load_config()
        validate_config(config)
        assert config.agent.hidden_sizes == [128, 128]
        assert config.training.episodes == 50
        assert config.evaluation.max_steps == 4000

    def test_overrides(self):
        config = load_config(["agent.tau=0.005", "training.episodes=7"])
        assert config.agent.tau == 0.005
        assert config.training.episodes == 7

    def test_errors_aggregated(self):
        """All invalid sections are reported in one error."""
        config = load_config(["env.frame_skip=0", "agent.batch_size=0", "device=tpu"])
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_config(config)
        message = str(exc_info.value)
        assert "[env]" in message
        assert "[agent]" in message
        assert "[device]" in message

    def test_capacity_below_warmup(self):
        config = load_config(["buffer.capacity=10", "agent.warmup=100"])
        with pytest.raises(ConfigValidationError, match=r"\[buffer\]"):
            validate_config(config)

    @pytest.mark.parametrize("override", [
        "agent.tau=1.0",
        "training.epsilon_end=1.5",
        "training.max_steps=0",
        "evaluation.policy=smart",
        "logging.level=LOUD",
    ])
    def test_invalid_values(self, override):
        with pytest.raises(ConfigValidationError):
            validate_config(load_config([override]))


class TestFactory:
    def test_build_dqn(self, small_config):
        agent = build_agent(small_config, 'dqn')
        assert isinstance(agent, DQNAgent)
        assert agent.hidden_sizes == (16,)
        assert agent.buffer.capacity == 1000
        assert agent.model_name == small_config.model_name

    def test_build_random(self, small_config):
        assert isinstance(build_agent(small_config, 'random'), RandomAgent)

    def test_unknown_agent_raises(self, small_config):
        with pytest.raises(ValueError):
            build_agent(small_config, 'ppo')

    def test_build_env_uses_reward_config(self):
        config = load_config(["env.reward.clear_bonus=3.0", "env.frame_skip=4"])
        env = build_env(config)
        assert env.frame_skip == 4
        assert env.reward_shaping.clear_bonus == 3.0
        assert build_env(config, frame_skip=1).frame_skip == 1

    def test_build_buffer(self):
        buffer = build_buffer(OmegaConf.create({"buffer": {"capacity": 50}}))
        assert buffer.capacity == 50
        assert buffer.state_shape == (7,)

    def test_list_agents(self):
        assert set(list_agents()) == {'dqn', 'random'}
