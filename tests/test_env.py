"""Tests for envs/dino_env.py: observations, action repeat, shaped reward."""

import numpy as np
import pytest

from dino_rl.envs import (
    Action,
    DinoEnv,
    EpisodeTerminatedError,
    Obstacle,
    RewardShaping,
    build_observation,
    make_dino_env,
    OBS_SIZE,
)


def _blocking_obstacle():
    return Obstacle(x=70, width=20, height=30)


class TestObservation:
    def test_reset_observation(self):
        """reset() returns a grounded, obstacle-free observation."""
        env = DinoEnv(seed=0)
        obs, info = env.reset()
        assert obs.shape == (OBS_SIZE,)
        assert obs.dtype == np.float32
        assert obs[0] == pytest.approx(1.0)        # y_rel
        assert obs[1] == pytest.approx(6.0 / 14.0)  # speed
        assert obs[2] == pytest.approx(1.0)        # no obstacle ahead
        assert obs[6] == 1.0                       # grounded
        assert info["score"] == 0

    def test_observation_in_unit_box(self):
        """Every observation of a random rollout lies in the observation space."""
        env = DinoEnv(seed=2)
        rng = np.random.default_rng(2)
        obs, _ = env.reset()
        for _ in range(500):
            assert env.observation_space.contains(obs)
            obs, _, terminated, _, _ = env.step(int(rng.integers(2)))
            if terminated:
                obs, _ = env.reset()

    def test_build_observation_is_pure(self):
        """The same snapshot always maps to the same vector."""
        env = DinoEnv(seed=0)
        env.reset()
        env.physics._obstacles.append(Obstacle(x=300, width=20, height=40))
        snap = env.physics.snapshot()
        a = build_observation(snap, env.world)
        b = build_observation(snap, env.world)
        np.testing.assert_array_equal(a, b)
        assert a[2] == pytest.approx((300 - 80) / 800)
        assert a[4] == pytest.approx(20 / 60)
        assert a[5] == pytest.approx(40 / 60)


class TestStep:
    def test_jump_only_on_first_repeat(self, monkeypatch):
        """With frame skip, the jump input is sent on the first frame only."""
        env = DinoEnv(frame_skip=4, seed=0)
        env.reset()
        calls = []
        original = env.physics.step

        def recording_step(jump=False, duck=False, frames=1.0):
            calls.append(jump)
            return original(jump=jump, duck=duck, frames=frames)

        monkeypatch.setattr(env.physics, "step", recording_step)
        env.step(Action.JUMP)
        assert calls == [True, False, False, False]

    def test_repetition_stops_on_collision(self, monkeypatch):
        """No further physics frames run after a collision."""
        env = DinoEnv(frame_skip=4, seed=0)
        env.reset()
        env.physics._obstacles.append(_blocking_obstacle())
        calls = []
        original = env.physics.step

        def recording_step(jump=False, duck=False, frames=1.0):
            calls.append(jump)
            return original(jump=jump, duck=duck, frames=frames)

        monkeypatch.setattr(env.physics, "step", recording_step)
        _, _, terminated, _, _ = env.step(Action.IDLE)
        assert terminated
        assert len(calls) == 1

    def test_terminal_reward(self):
        """A colliding step is rewarded exactly the terminal penalty."""
        env = DinoEnv(seed=0)
        env.reset()
        env.physics._obstacles.append(_blocking_obstacle())
        _, reward, terminated, truncated, _ = env.step(Action.IDLE)
        assert terminated
        assert not truncated
        assert reward == pytest.approx(RewardShaping().terminal_penalty)
        assert env.terminated

    def test_step_after_terminal_raises(self):
        """Stepping after termination fails until reset."""
        env = DinoEnv(seed=0)
        env.reset()
        env.physics._obstacles.append(_blocking_obstacle())
        env.step(Action.IDLE)
        with pytest.raises(EpisodeTerminatedError):
            env.step(Action.IDLE)

        env.reset()
        env.step(Action.IDLE)

    def test_unknown_action_raises(self):
        env = DinoEnv(seed=0)
        env.reset()
        with pytest.raises(ValueError):
            env.step(7)

    def test_truncated_always_false(self):
        env = DinoEnv(seed=0)
        env.reset()
        for _ in range(20):
            _, _, _, truncated, _ = env.step(Action.IDLE)
            assert truncated is False


class TestRewardShaping:
    def _pair(self, obstacle=None):
        envs = [DinoEnv(frame_skip=2, seed=0), DinoEnv(frame_skip=2, seed=0)]
        for env in envs:
            env.reset()
            if obstacle is not None:
                env.physics._obstacles.append(Obstacle(**obstacle))
        return envs

    def test_survival_and_progress(self):
        """An idle step earns survival per frame plus score progress."""
        env = DinoEnv(frame_skip=2, seed=0)
        env.reset()
        _, reward, _, _, info = env.step(Action.IDLE)
        rs = RewardShaping()
        assert info["score"] == 2
        assert reward == pytest.approx(rs.survive * 2 + rs.progress_scale * 2)

    def test_jump_far_from_obstacle_penalized(self):
        """Jumping with nothing nearby costs the far-jump penalty."""
        idle_env, jump_env = self._pair()
        _, idle_reward, _, _, _ = idle_env.step(Action.IDLE)
        _, jump_reward, _, _, info = jump_env.step(Action.JUMP)
        assert not info["near_obstacle"]
        assert jump_reward - idle_reward == pytest.approx(RewardShaping().jump_far_penalty)

    def test_jump_near_obstacle_rewarded(self):
        """Jumping with an obstacle inside the proximity window earns the bonus."""
        idle_env, jump_env = self._pair(dict(x=180, width=10, height=20))
        _, idle_reward, _, _, _ = idle_env.step(Action.IDLE)
        _, jump_reward, _, _, info = jump_env.step(Action.JUMP)
        assert info["near_obstacle"]
        assert jump_reward - idle_reward == pytest.approx(RewardShaping().jump_proximity_bonus)

    def test_clear_bonus(self):
        """Passing an obstacle adds the clear bonus for that step."""
        env = DinoEnv(frame_skip=1, seed=0)
        env.reset()
        env.step(Action.JUMP)
        for _ in range(7):
            env.step(Action.IDLE)

        env.physics._obstacles.append(Obstacle(x=75, width=10, height=20))
        _, reward, terminated, _, info = env.step(Action.IDLE)
        assert not terminated
        assert info["cleared_delta"] == 1
        assert 2.0 < reward < 2.01


class TestFactory:
    def test_make_dino_env_overrides(self):
        env = make_dino_env(frame_skip=3, reward={"clear_bonus": 5.0}, seed=1)
        assert env.frame_skip == 3
        assert env.reward_shaping.clear_bonus == 5.0
        assert env.reward_shaping.survive == RewardShaping().survive

    def test_unknown_reward_key_raises(self):
        with pytest.raises(ValueError):
            make_dino_env(reward={"bogus": 1.0})

    def test_invalid_frame_skip_raises(self):
        with pytest.raises(ValueError):
            DinoEnv(frame_skip=0)

    def test_frame_state_keys(self):
        """frame_state() exposes everything a renderer needs."""
        env = DinoEnv(seed=0)
        env.reset()
        env.physics._obstacles.append(Obstacle(x=300, width=20, height=40))
        state = env.frame_state()
        assert state["dinoX"] == 80
        assert state["groundY"] == 160
        assert state["obstacles"] == [{"x": 300, "width": 20, "height": 40}]
        assert state["done"] is False
