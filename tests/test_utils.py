"""Tests for utils/: logging helpers, model store, seeding."""

import csv
from pathlib import Path

import numpy as np
import pytest
import torch

from dino_rl.training.messages import ProgressEvent
from dino_rl.utils.logging import (
    EPISODE_FIELDS,
    EpisodeCSVLogger,
    MetricsTracker,
    WandbLogger,
    setup_logger,
)
from dino_rl.utils.model_store import ModelStore
from dino_rl.utils.seeding import set_seed


class TestEpisodeCSVLogger:
    def test_progress_rows(self, tmp_path):
        """Progress events are written under their wire keys."""
        path = tmp_path / "log" / "training_log.csv"
        with EpisodeCSVLogger(path, flush_every=2) as csv_log:
            csv_log.log_progress(ProgressEvent(1, 40, 0.5, 0.9, 1, 1), timeHours=0.25)
            csv_log.log({"episode": 2, "steps": 7, "ignored": True})
            assert csv_log.row_count == 2

        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            assert tuple(reader.fieldnames) == EPISODE_FIELDS
            rows = list(reader)
        assert rows[0]["return"] == "0.5"
        assert rows[0]["bestScore"] == "1"
        assert rows[0]["timeHours"] == "0.25"
        assert rows[1]["steps"] == "7"
        assert rows[1]["epsilon"] == ""

    def test_log_after_close_raises(self, tmp_path):
        csv_log = EpisodeCSVLogger(tmp_path / "a.csv", ["x"])
        csv_log.close()
        assert csv_log.closed
        with pytest.raises(RuntimeError):
            csv_log.log({"x": 1})


class TestMetricsTracker:
    def test_stats(self):
        tracker = MetricsTracker()
        for v in [1.0, 2.0, 3.0, 4.0]:
            tracker.update("return", v)
        assert tracker.get_stats("return")["mean"] == pytest.approx(2.5)
        assert tracker.get_stats("return", window=2)["mean"] == pytest.approx(3.5)
        assert tracker.get_stats("missing")["count"] == 0

    def test_history_is_bounded(self):
        """Only the newest `history` values are kept."""
        tracker = MetricsTracker(history=100)
        for v in range(10_000):
            tracker.update("loss", v)
        assert len(tracker.metrics["loss"]) == 100
        stats = tracker.get_stats("loss")
        assert stats["count"] == 100
        assert stats["min"] == 9900.0

    def test_reset(self):
        tracker = MetricsTracker()
        tracker.update("loss", 1.0)
        tracker.reset()
        assert tracker.metrics == {}


class TestWandbLogger:
    def test_disabled_is_noop(self):
        logger = WandbLogger(project="dino-rl", enabled=False)
        logger.log({"x": 1}, step=0)
        logger.finish()


class TestSetupLogger:
    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "run" / "training.log"
        logger = setup_logger("dino_rl.test", log_file=log_file, console=False)
        logger.info("hello")
        assert "hello" in log_file.read_text()


class TestModelStore:
    def test_save_and_load(self, tmp_path):
        store = ModelStore(tmp_path / "models")
        store.save("m", {"w": torch.ones(2)}, {"w": torch.zeros(2)})
        assert store.exists("m")
        assert store.path_for("m", "online").name == "m-online.pt"

        online, target = store.load("m")
        assert torch.equal(online["w"], torch.ones(2))
        assert torch.equal(target["w"], torch.zeros(2))

    def test_missing_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ModelStore(tmp_path).load("nothing")

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """A write that fails midway removes its partial temp file."""
        def failing_save(obj, f):
            Path(f).write_bytes(b"partial")
            raise RuntimeError("disk full")

        monkeypatch.setattr(torch, "save", failing_save)
        store = ModelStore(tmp_path / "models")
        with pytest.raises(RuntimeError, match="disk full"):
            store.save("m", {"w": torch.ones(2)}, {"w": torch.zeros(2)})

        assert list(store.root.iterdir()) == []
        assert not store.exists("m")

    def test_unknown_slot_raises(self, tmp_path):
        with pytest.raises(ValueError):
            ModelStore(tmp_path).path_for("m", "backup")


class TestSeeding:
    def test_set_seed_repeats(self):
        set_seed(123)
        a = (np.random.rand(), torch.rand(1).item())
        set_seed(123)
        b = (np.random.rand(), torch.rand(1).item())
        assert a == b
