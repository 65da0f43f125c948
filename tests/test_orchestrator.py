"""Tests for training/orchestrator.py: runs, stop, autosave, evaluation, threading."""

import queue

import pytest

from dino_rl.training import (
    TrainingWorker,
    StartCommand,
    StopCommand,
    EvaluateCommand,
    ProgressEvent,
    FrameEvent,
    AutosavedEvent,
    SaveFailedEvent,
    EvalResultEvent,
    DoneEvent,
    linear_epsilon,
)
from dino_rl.utils.config_schema import ConfigValidationError, load_config


def drain(worker):
    events = []
    while True:
        try:
            events.append(worker.events.get_nowait())
        except queue.Empty:
            return events


def of_type(events, cls):
    return [e for e in events if isinstance(e, cls)]


class TestLinearEpsilon:
    def test_schedule(self):
        """Epsilon goes from start to end over the horizon and holds."""
        assert linear_epsilon(0, 1.0, 0.1, 200) == pytest.approx(1.0)
        assert linear_epsilon(100, 1.0, 0.1, 200) == pytest.approx(0.55)
        assert linear_epsilon(200, 1.0, 0.1, 200) == pytest.approx(0.1)
        assert linear_epsilon(400, 1.0, 0.1, 200) == pytest.approx(0.1)

    def test_zero_horizon(self):
        assert linear_epsilon(1, 1.0, 0.05, 0) == pytest.approx(0.05)


class TestWorkerConstruction:
    def test_capacity_below_warmup_rejected(self, tmp_path):
        """A buffer that can never reach warmup is refused up front."""
        config = load_config([
            f"model_dir={tmp_path}",
            "device=cpu",
            "agent.warmup=16",
            "buffer.capacity=10",
        ])
        with pytest.raises(ConfigValidationError, match=r"\[buffer\]"):
            TrainingWorker(config)

    def test_invalid_frame_skip_rejected(self, small_config):
        small_config.env.frame_skip = 0
        with pytest.raises(ConfigValidationError, match=r"\[env\]"):
            TrainingWorker(small_config)


class TestTrainingRun:
    def test_progress_per_episode(self, small_config):
        """Each episode emits one progress event, then done."""
        worker = TrainingWorker(small_config)
        worker.handle(StartCommand(episodes=3, max_steps=40, epsilon_start=1.0, epsilon_end=0.0))
        events = drain(worker)

        progress = of_type(events, ProgressEvent)
        assert [e.episode for e in progress] == [1, 2, 3]
        assert all(1 <= e.steps <= 40 for e in progress)
        assert [e.epsilon for e in progress] == pytest.approx([2 / 3, 1 / 3, 0.0])
        best = [e.best_score for e in progress]
        assert best == sorted(best)
        assert isinstance(events[-1], DoneEvent)

    def test_stop_before_first_episode(self, small_config):
        """A stop queued with the start ends the run with at most one progress."""
        worker = TrainingWorker(small_config)
        worker.send({"type": "stop"})
        worker.handle(StartCommand(episodes=5, max_steps=50))
        events = drain(worker)

        assert len(of_type(events, ProgressEvent)) <= 1
        assert isinstance(events[-1], DoneEvent)

    def test_other_commands_deferred(self, small_config):
        """Commands arriving mid-run wait until the run is over."""
        worker = TrainingWorker(small_config)
        worker.send(EvaluateCommand(episodes=1, max_steps=10))
        worker.handle(StartCommand(episodes=1, max_steps=10))
        events = drain(worker)

        assert not of_type(events, EvalResultEvent)
        assert len(worker._pending) == 1
        assert isinstance(worker._pending[0], EvaluateCommand)

    def test_autosave_fires_once(self, small_config, tmp_path):
        """Meeting the threshold saves the model exactly once per run."""
        worker = TrainingWorker(small_config)
        worker.handle(StartCommand(episodes=3, max_steps=30, autosave_threshold=0))
        events = drain(worker)

        saved = of_type(events, AutosavedEvent)
        assert len(saved) == 1
        assert saved[0].best_score == 0
        assert worker.store.exists(small_config.model_name)
        assert len(of_type(events, ProgressEvent)) == 3

    def test_no_autosave_without_threshold(self, small_config):
        worker = TrainingWorker(small_config)
        worker.handle(StartCommand(episodes=2, max_steps=20))
        events = drain(worker)
        assert not of_type(events, AutosavedEvent)
        assert not worker.store.exists(small_config.model_name)

    def test_save_failure_reported(self, small_config, tmp_path):
        """An unwritable model directory is reported and the run continues."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        config = load_config([
            f"model_dir={blocker}",
            "device=cpu",
            "agent.hidden_sizes=[16]",
            "agent.warmup=16",
            "agent.batch_size=8",
            "buffer.capacity=1000",
            "training.emit_frames=false",
        ])
        worker = TrainingWorker(config)
        worker.handle(StartCommand(episodes=2, max_steps=20, autosave_threshold=0))
        events = drain(worker)

        assert len(of_type(events, SaveFailedEvent)) == 1
        assert not of_type(events, AutosavedEvent)
        assert len(of_type(events, ProgressEvent)) == 2
        assert isinstance(events[-1], DoneEvent)

    def test_frames_unthrottled(self, small_config):
        """With a zero interval every step produces a frame."""
        small_config.training.emit_frames = True
        small_config.training.frame_interval_ms = 0
        worker = TrainingWorker(small_config)
        worker.handle(StartCommand(episodes=2, max_steps=15))
        events = drain(worker)

        frames = of_type(events, FrameEvent)
        progress = of_type(events, ProgressEvent)
        assert len(frames) == sum(e.steps for e in progress)
        assert set(frames[0].state) >= {"dinoX", "dinoY", "obstacles", "score"}

    def test_frames_disabled(self, small_config):
        worker = TrainingWorker(small_config)
        worker.handle(StartCommand(episodes=1, max_steps=15))
        assert not of_type(drain(worker), FrameEvent)


class TestEvaluation:
    def test_random_evaluation(self, small_config):
        """Random-policy evaluation reports every episode within the step cap."""
        worker = TrainingWorker(small_config)
        worker.handle(EvaluateCommand(episodes=5, max_steps=4000))
        events = drain(worker)

        results = of_type(events, EvalResultEvent)
        assert [e.episode for e in results] == [1, 2, 3, 4, 5]
        assert all(1 <= e.steps <= 4000 for e in results)
        assert isinstance(events[-1], DoneEvent)

    def test_greedy_evaluation_without_model(self, small_config):
        """Greedy evaluation falls back to fresh parameters when nothing is saved."""
        worker = TrainingWorker(small_config)
        worker.handle(EvaluateCommand(episodes=2, max_steps=100, policy="greedy"))
        events = drain(worker)

        results = of_type(events, EvalResultEvent)
        assert len(results) == 2
        assert all(1 <= e.steps <= 100 for e in results)

    def test_greedy_evaluation_after_training(self, small_config):
        worker = TrainingWorker(small_config)
        worker.handle(StartCommand(episodes=1, max_steps=30, autosave_threshold=0))
        worker.handle(EvaluateCommand(episodes=1, max_steps=50, policy="greedy"))
        events = drain(worker)
        assert len(of_type(events, EvalResultEvent)) == 1

    def test_evaluation_does_not_save(self, small_config):
        worker = TrainingWorker(small_config)
        worker.handle(EvaluateCommand(episodes=1, max_steps=50))
        assert not worker.store.exists(small_config.model_name)


class TestWorkerThread:
    def test_start_then_evaluate(self, small_config):
        """Commands sent to the running thread are handled in order."""
        with TrainingWorker(small_config) as worker:
            worker.send({"type": "start", "episodes": 2, "maxSteps": 20})
            worker.send({"type": "eval", "episodes": 2, "maxSteps": 30})

            training = list(worker.iter_events(timeout=60))
            evaluation = list(worker.iter_events(timeout=60))

        assert len(of_type(training, ProgressEvent)) == 2
        assert isinstance(training[-1], DoneEvent)
        assert len(of_type(evaluation, EvalResultEvent)) == 2
        assert isinstance(evaluation[-1], DoneEvent)

    def test_stop_long_run(self, small_config):
        """Stop ends a long run early with a done event."""
        with TrainingWorker(small_config) as worker:
            worker.send(StartCommand(episodes=10_000, max_steps=2000))
            first = worker.get_event(timeout=60)
            worker.send(StopCommand())
            rest = list(worker.iter_events(timeout=60))

        events = [first] + rest
        assert isinstance(events[-1], DoneEvent)
        assert len(of_type(events, ProgressEvent)) < 10_000

    def test_start_twice_raises(self, small_config):
        worker = TrainingWorker(small_config)
        worker.start()
        try:
            with pytest.raises(RuntimeError):
                worker.start()
        finally:
            worker.close(timeout=10)

    def test_send_rejects_invalid_start(self, small_config):
        """A bad start dict fails in send() and never reaches the thread."""
        with TrainingWorker(small_config) as worker:
            with pytest.raises(ValueError, match="frame_skip"):
                worker.send({"type": "start", "frameSkip": 0, "episodes": 1})
            worker.send({"type": "eval", "episodes": 1, "maxSteps": 20})
            events = list(worker.iter_events(timeout=60))

        assert len(of_type(events, EvalResultEvent)) == 1
        assert isinstance(events[-1], DoneEvent)

    def test_close_idle_worker(self, small_config):
        worker = TrainingWorker(small_config)
        worker.start()
        worker.close(timeout=10)
        assert worker._thread is None
