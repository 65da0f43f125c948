"""
Commands and events exchanged with the training worker.

Commands arrive as plain dicts (the wire format) and are parsed into
dataclasses by `parse_command`. Events are dataclasses whose `to_dict()`
produces the outbound wire format with camelCase keys.

Example:
    >>> parse_command({"type": "start", "episodes": 10, "maxSteps": 500})
    StartCommand(episodes=10, max_steps=500, frame_skip=None, ...)
    >>> ProgressEvent(1, 120, 0.4, 0.9, 2, 2).to_dict()["type"]
    'progress'
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional, Union


EVAL_POLICIES = ("random", "greedy")


# =============================================================================
# Commands (inbound)
# =============================================================================

@dataclass(frozen=True)
class StartCommand:
    """Start a training run; unset fields fall back to training config."""
    episodes: Optional[int] = None
    max_steps: Optional[int] = None
    frame_skip: Optional[int] = None
    epsilon_start: Optional[float] = None
    epsilon_end: Optional[float] = None
    epsilon_decay_episodes: Optional[int] = None
    autosave_threshold: Optional[int] = None

    def __post_init__(self):
        for name in ("episodes", "max_steps", "frame_skip", "epsilon_decay_episodes"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")

        for name in ("epsilon_start", "epsilon_end"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        if self.autosave_threshold is not None and self.autosave_threshold < 0:
            raise ValueError(f"autosave_threshold must be >= 0, got {self.autosave_threshold}")


@dataclass(frozen=True)
class StopCommand:
    """Cooperatively stop the current run."""
    pass


@dataclass(frozen=True)
class EvaluateCommand:
    """Run evaluation episodes without learning."""
    episodes: Optional[int] = None
    max_steps: Optional[int] = None
    policy: Optional[str] = None

    def __post_init__(self):
        for name in ("episodes", "max_steps"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")

        if self.policy is not None and self.policy not in EVAL_POLICIES:
            raise ValueError(f"policy must be one of {EVAL_POLICIES}, got '{self.policy}'")


Command = Union[StartCommand, StopCommand, EvaluateCommand]


def _opt_int(msg: Mapping[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        if msg.get(key) is not None:
            return int(msg[key])
    return None


def _opt_float(msg: Mapping[str, Any], key: str) -> Optional[float]:
    value = msg.get(key)
    return None if value is None else float(value)


def parse_command(msg: Mapping[str, Any]) -> Command:
    """
    Parse an inbound wire dict into a command.

    Args:
        msg: Dict with a "type" key of "start", "stop", "evaluate" or "eval"

    Returns:
        The matching command dataclass

    Raises:
        ValueError: If the type is unknown or a field is malformed
    """
    kind = msg.get("type")

    if kind == "start":
        return StartCommand(
            episodes=_opt_int(msg, "episodes"),
            max_steps=_opt_int(msg, "maxSteps"),
            frame_skip=_opt_int(msg, "frameSkip"),
            epsilon_start=_opt_float(msg, "epsilonStart"),
            epsilon_end=_opt_float(msg, "epsilonEnd"),
            epsilon_decay_episodes=_opt_int(msg, "epsilonDecayEpisodes"),
            autosave_threshold=_opt_int(msg, "autosaveThreshold", "highScoreSaveThreshold"),
        )

    if kind == "stop":
        return StopCommand()

    if kind in ("evaluate", "eval"):
        return EvaluateCommand(
            episodes=_opt_int(msg, "episodes"),
            max_steps=_opt_int(msg, "maxSteps"),
            policy=msg.get("policy"),
        )

    raise ValueError(f"Unknown command type: {kind!r}")


# =============================================================================
# Events (outbound)
# =============================================================================

@dataclass(frozen=True)
class ProgressEvent:
    """Emitted after every training episode."""
    type: ClassVar[str] = "progress"

    episode: int
    steps: int
    episode_return: float
    epsilon: float
    best_score: int
    episode_cleared: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "episode": self.episode,
            "steps": self.steps,
            "return": self.episode_return,
            "epsilon": self.epsilon,
            "bestScore": self.best_score,
            "episodeCleared": self.episode_cleared,
        }


@dataclass(frozen=True)
class FrameEvent:
    """Throttled snapshot of the running episode for live display."""
    type: ClassVar[str] = "frame"

    episode: int
    step: int
    epsilon: float
    state: Dict[str, Any] = field(default_factory=dict)
    best_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "episode": self.episode,
            "step": self.step,
            "epsilon": self.epsilon,
            "state": self.state,
            "bestScore": self.best_score,
        }


@dataclass(frozen=True)
class AutosavedEvent:
    type: ClassVar[str] = "autosaved"

    best_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "bestScore": self.best_score}


@dataclass(frozen=True)
class SaveFailedEvent:
    """The autosave raised; training continues."""
    type: ClassVar[str] = "saveFailed"

    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "error": self.error}


@dataclass(frozen=True)
class EvalResultEvent:
    type: ClassVar[str] = "evalResult"

    episode: int
    steps: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "episode": self.episode, "steps": self.steps}


@dataclass(frozen=True)
class DoneEvent:
    type: ClassVar[str] = "done"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True)
class ErrorEvent:
    """An unexpected exception ended the worker."""
    type: ClassVar[str] = "error"

    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "error": self.error}


Event = Union[
    ProgressEvent,
    FrameEvent,
    AutosavedEvent,
    SaveFailedEvent,
    EvalResultEvent,
    DoneEvent,
    ErrorEvent,
]
