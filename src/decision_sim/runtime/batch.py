"""Batch driver: many independent trials against one decision model."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from decision_sim.core.contracts import DecisionModel, Policy, Visualizer
from decision_sim.core.errors import TrialError
from decision_sim.core.instance import DecisionProcessInstance
from decision_sim.runtime.seeding import SeedController
from decision_sim.runtime.trajectory_log import (
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_OUTPUT_PATH,
    TrajectoryLogger,
)
from decision_sim.runtime.trial import run_trial
from decision_sim.visualizers import NullVisualizer

logger = logging.getLogger(__name__)

PolicyFactory = Callable[..., Policy]
VisualizerFactory = Callable[[], Visualizer]


@dataclass(frozen=True, slots=True)
class BatchConfig:
    """Runtime configuration for one batch.

    Parameters
    ----------
    trial_count : int, optional
        Number of trials to run.
    base_seed : int | None, optional
        Seed all trial streams derive from. ``None`` uses fresh entropy.
    output_path : str | pathlib.Path, optional
        Trajectory log path.
    flush_interval : int, optional
        Trials between trajectory log flushes.
    resume : bool, optional
        Append to an existing trajectory log instead of truncating it.
    stop_on_error : bool, optional
        Abort the batch on the first failed trial. Completed trials are still
        flushed.

    Raises
    ------
    ValueError
        If ``trial_count`` is negative or ``flush_interval`` is not positive.
    """

    trial_count: int = 1
    base_seed: int | None = None
    output_path: str | Path = DEFAULT_OUTPUT_PATH
    flush_interval: int = DEFAULT_FLUSH_INTERVAL
    resume: bool = False
    stop_on_error: bool = False

    def __post_init__(self) -> None:
        if self.trial_count < 0:
            raise ValueError("trial_count must be >= 0")
        if self.flush_interval < 1:
            raise ValueError("flush_interval must be >= 1")


@dataclass(frozen=True, slots=True)
class TrialOutcome:
    """Result of one trial as seen by the batch.

    Parameters
    ----------
    trial_index : int
        One-based trial index.
    status : {"completed", "failed"}
        Whether the trial finished.
    accumulated_return : float | None
        Discounted return of completed trials.
    rewards : tuple[float, ...]
        Per-epoch rewards of completed trials.
    error : str | None
        Error message of failed trials.
    error_type : str | None
        Error class name of failed trials.
    """

    trial_index: int
    status: str
    accumulated_return: float | None = None
    rewards: tuple[float, ...] = ()
    error: str | None = None
    error_type: str | None = None


@dataclass(frozen=True, slots=True)
class BatchSummary:
    """Aggregate result of a batch.

    Parameters
    ----------
    instance_name : str
        Simulated instance.
    outcomes : tuple[TrialOutcome, ...]
        Outcome per trial in execution order.
    entropy : int
        Seed entropy the trial streams were derived from.
    flush_count : int
        Trajectory log flushes performed, including the final one.
    aborted : bool
        Whether the batch stopped at a failed trial.
    """

    instance_name: str
    outcomes: tuple[TrialOutcome, ...]
    entropy: int
    flush_count: int = 0
    aborted: bool = False

    @property
    def completed(self) -> tuple[TrialOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.status == "completed")

    @property
    def failed(self) -> tuple[TrialOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.status == "failed")

    @property
    def returns(self) -> tuple[float, ...]:
        return tuple(float(outcome.accumulated_return) for outcome in self.completed)

    @property
    def mean_return(self) -> float:
        """Mean discounted return of completed trials (``nan`` if none)."""

        if not self.returns:
            return math.nan
        return float(np.mean(self.returns))

    @property
    def std_error(self) -> float:
        """Standard error of the mean return (``nan`` below two trials)."""

        if len(self.returns) < 2:
            return math.nan
        return float(np.std(self.returns, ddof=1) / math.sqrt(len(self.returns)))


def run_batch(
    *,
    model: DecisionModel[Any],
    instance: DecisionProcessInstance,
    policy_factory: PolicyFactory,
    visualizer_factory: VisualizerFactory | None = None,
    config: BatchConfig | None = None,
    on_outcome: Callable[[TrialOutcome], None] | None = None,
) -> BatchSummary:
    """Run ``config.trial_count`` trials back to back.

    Parameters
    ----------
    model : DecisionModel
        Decision model shared by every trial; it is reset per trial.
    instance : DecisionProcessInstance
        Simulated instance.
    policy_factory : Callable[..., Policy]
        Called as ``policy_factory(instance_name=..., seed=...)`` once per
        trial.
    visualizer_factory : Callable[[], Visualizer] | None, optional
        Called once per trial. Defaults to :class:`NullVisualizer`.
    config : BatchConfig | None, optional
        Batch options.
    on_outcome : Callable[[TrialOutcome], None] | None, optional
        Called with each outcome as soon as its trial ends.

    Returns
    -------
    BatchSummary
        Per-trial outcomes and return statistics.

    Notes
    -----
    Invariant violations, illegal actions, and policy failures end only
    their own trial. With ``config.stop_on_error`` the first failure stops
    the batch and the summary is marked ``aborted``. The trajectory log is
    always flushed and closed, also when an unexpected exception propagates.
    """

    config = config or BatchConfig()
    make_visualizer = visualizer_factory or NullVisualizer
    seeds = SeedController(config.base_seed)
    outcomes: list[TrialOutcome] = []
    aborted = False

    logger.info(
        "running %d trials of %s (seed entropy %d)",
        config.trial_count,
        instance.name,
        seeds.entropy,
    )
    trajectory_log = TrajectoryLogger(
        config.output_path,
        model=model,
        flush_interval=config.flush_interval,
        resume=config.resume,
    )
    with trajectory_log:
        for trial_index in range(1, config.trial_count + 1):
            policy = policy_factory(instance_name=instance.name, seed=seeds.policy_seed_for(trial_index))
            visualizer = make_visualizer()
            try:
                trial = run_trial(
                    model=model,
                    instance=instance,
                    policy=policy,
                    visualizer=visualizer,
                    rng=seeds.seed_for(trial_index),
                    trial_index=trial_index,
                )
            except TrialError as exc:
                logger.error("trial %d failed: %s", trial_index, exc)
                outcome = TrialOutcome(
                    trial_index=trial_index,
                    status="failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            else:
                trajectory_log.record(trial)
                logger.info("trial %d: accumulated return %s", trial_index, trial.accumulated_return)
                outcome = TrialOutcome(
                    trial_index=trial_index,
                    status="completed",
                    accumulated_return=trial.accumulated_return,
                    rewards=trial.rewards,
                )

            outcomes.append(outcome)
            if on_outcome is not None:
                on_outcome(outcome)
            if outcome.status == "failed" and config.stop_on_error:
                aborted = True
                logger.error("stopping batch after trial %d", trial_index)
                break

    return BatchSummary(
        instance_name=instance.name,
        outcomes=tuple(outcomes),
        entropy=seeds.entropy,
        flush_count=trajectory_log.flush_count,
        aborted=aborted,
    )


__all__ = [
    "BatchConfig",
    "BatchSummary",
    "PolicyFactory",
    "TrialOutcome",
    "VisualizerFactory",
    "run_batch",
]
