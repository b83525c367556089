"""Rollout runtime: trial runner, seeding, trajectory log, batch driver."""

from .batch import BatchConfig, BatchSummary, TrialOutcome, run_batch
from .seeding import SeedController
from .trajectory_log import DEFAULT_FLUSH_INTERVAL, DEFAULT_OUTPUT_PATH, TrajectoryLogger, format_value
from .trial import Trial, TrialStep, run_trial

__all__ = [
    "BatchConfig",
    "BatchSummary",
    "DEFAULT_FLUSH_INTERVAL",
    "DEFAULT_OUTPUT_PATH",
    "SeedController",
    "Trial",
    "TrialOutcome",
    "TrialStep",
    "TrajectoryLogger",
    "format_value",
    "run_batch",
    "run_trial",
]
