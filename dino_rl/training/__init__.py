"""
Training orchestration.

Provides:
- TrainingWorker: threaded, queue-driven training and evaluation
- Command and event messages with their wire format
"""

from .messages import (
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
from .orchestrator import TrainingWorker, linear_epsilon

__all__ = [
    "TrainingWorker",
    "linear_epsilon",
    "parse_command",
    "StartCommand",
    "StopCommand",
    "EvaluateCommand",
    "ProgressEvent",
    "FrameEvent",
    "AutosavedEvent",
    "SaveFailedEvent",
    "EvalResultEvent",
    "DoneEvent",
    "ErrorEvent",
]
