"""Trial runner: one episode under the per-epoch protocol.

Each epoch runs strictly in this order::

    invariants -> observe -> select actions -> legality -> sample next state
    -> reward -> record -> advance -> termination check

The policy never sees the sampled state before choosing its actions, and
rewards are computed from the sampled state before it is advanced.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from decision_sim.core.contracts import DecisionModel, Policy, Visualizer
from decision_sim.core.errors import PolicyError, TrialError
from decision_sim.core.instance import DecisionProcessInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrialStep:
    """One recorded epoch.

    Parameters
    ----------
    epoch : int
        Zero-based epoch index.
    state : Any
        State sampled from the epoch's actions, before it was advanced.
    actions : Mapping[str, Any]
        Action set the policy chose.
    reward : float
        Reward of ``state``.
    """

    epoch: int
    state: Any
    actions: Mapping[str, Any]
    reward: float


@dataclass(frozen=True, slots=True)
class Trial:
    """Finalized episode.

    Parameters
    ----------
    trial_index : int
        One-based trial index within the batch.
    steps : tuple[TrialStep, ...]
        Recorded epochs in order.
    accumulated_return : float
        Discounted return ``sum(discount**t * reward_t)``.
    """

    trial_index: int
    steps: tuple[TrialStep, ...]
    accumulated_return: float

    @property
    def rewards(self) -> tuple[float, ...]:
        """Per-epoch rewards in order."""

        return tuple(step.reward for step in self.steps)

    @property
    def length(self) -> int:
        """Number of recorded epochs."""

        return len(self.steps)


def run_trial(
    *,
    model: DecisionModel[Any],
    instance: DecisionProcessInstance,
    policy: Policy,
    visualizer: Visualizer,
    rng: np.random.Generator,
    trial_index: int,
) -> Trial:
    """Run one episode and return its finalized trajectory.

    Parameters
    ----------
    model : DecisionModel
        Decision model of ``instance``. It is reset at the start of the trial.
    instance : DecisionProcessInstance
        Horizon, discount, termination, and observability settings.
    policy : Policy
        Fresh policy for this trial.
    visualizer : Visualizer
        Notified once when the episode ends.
    rng : numpy.random.Generator
        The trial's model random source.
    trial_index : int
        One-based trial index, used for error context.

    Returns
    -------
    Trial
        Frozen trajectory with discounted return.

    Raises
    ------
    InvariantViolationError
        If a state invariant fails; annotated with trial and epoch.
    IllegalActionError
        If the policy's action set is illegal; annotated with trial and
        epoch.
    PolicyError
        If the policy raises while choosing actions; annotated with trial
        and epoch.
    """

    steps: list[TrialStep] = []
    accumulated_return = 0.0
    discount_factor = 1.0
    discount = float(instance.discount)

    try:
        state = model.reset()
        for epoch in _epochs(instance):
            try:
                model.check_invariants(state)

                if instance.partially_observed and epoch == 0:
                    observation = None
                else:
                    observation = model.observe(state)
                actions = _select_actions(policy, observation)

                model.check_action_legality(state, actions)
                next_state = model.sample_next_state(state, actions, rng)
            except TrialError as exc:
                raise exc.with_context(trial_index=trial_index, epoch=epoch) from exc

            reward = float(model.evaluate_reward(next_state))
            steps.append(TrialStep(epoch=epoch, state=next_state, actions=actions, reward=reward))
            accumulated_return += discount_factor * reward
            discount_factor *= discount
            logger.debug(
                "trial %d epoch %d: actions=%r reward=%s return=%s",
                trial_index,
                epoch,
                actions,
                reward,
                accumulated_return,
            )

            state = model.advance(next_state, clear_observations=False)

            if instance.terminate_when is not None and model.check_termination(state):
                logger.debug("trial %d terminated after epoch %d", trial_index, epoch)
                break
    finally:
        visualizer.on_episode_end()

    return Trial(trial_index=trial_index, steps=tuple(steps), accumulated_return=accumulated_return)


def _select_actions(policy: Policy, observation: Any) -> dict[str, Any]:
    try:
        return dict(policy.select_actions(observation))
    except TrialError:
        raise
    except Exception as exc:
        raise PolicyError(f"{type(policy).__name__} raised {type(exc).__name__}: {exc}") from exc


def _epochs(instance: DecisionProcessInstance) -> Iterator[int]:
    if instance.horizon is None:
        return itertools.count()
    return iter(range(int(instance.horizon)))


__all__ = ["Trial", "TrialStep", "run_trial"]
