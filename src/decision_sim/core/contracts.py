"""Protocol contracts for decision models, policies, and visualizers.

The runtime only talks to these interfaces. How a model represents its
state, samples distributions, or evaluates expressions is its own concern;
how a policy picks actions is opaque to the engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

import numpy as np

StateT = TypeVar("StateT")

ActionSet = Mapping[str, Any]
"""Ground action-fluent name to value. Omitted fluents keep their default."""

Observation = Mapping[str, Any]
"""Ground fluent name to value, as visible to the policy."""


@runtime_checkable
class DecisionModel(Protocol[StateT]):
    """Interface of a decision model consumed by the trial runner.

    Notes
    -----
    States returned by :meth:`reset`, :meth:`sample_next_state` and
    :meth:`advance` must not be mutated afterwards, since the runner keeps
    references to every epoch's state in the trajectory.
    """

    def reset(self) -> StateT:
        """Return the initial state of a fresh trial."""

    def check_invariants(self, state: StateT) -> None:
        """Validate state invariants.

        Raises
        ------
        decision_sim.core.errors.InvariantViolationError
            If an invariant does not hold.
        """

    def check_action_legality(self, state: StateT, actions: ActionSet) -> None:
        """Validate an action set against the current state.

        Raises
        ------
        decision_sim.core.errors.IllegalActionError
            If the action set violates a legality constraint.
        """

    def sample_next_state(
        self,
        state: StateT,
        actions: ActionSet,
        rng: np.random.Generator,
    ) -> StateT:
        """Sample the next epoch's hidden and observation fluents.

        Parameters
        ----------
        state : StateT
            Current committed state.
        actions : ActionSet
            Validated action set.
        rng : numpy.random.Generator
            The trial's model random source. The model must not consume any
            other randomness.
        """

    def advance(self, state: StateT, *, clear_observations: bool = False) -> StateT:
        """Commit a sampled state as the current one.

        Parameters
        ----------
        state : StateT
            State returned by :meth:`sample_next_state`.
        clear_observations : bool, optional
            Whether observation history is discarded. The runner never
            clears it.
        """

    def evaluate_reward(self, state: StateT) -> float:
        """Return the scalar reward of a sampled state."""

    def check_termination(self, state: StateT) -> bool:
        """Return whether the instance's termination predicate holds."""

    def observe(self, state: StateT) -> Observation:
        """Return the observation view handed to the policy."""

    def enumerate_observable_columns(self, state: StateT) -> list[tuple[str, Any]]:
        """Return logging columns as ordered ``(name, value)`` pairs."""


@runtime_checkable
class Policy(Protocol):
    """Interface for pluggable decision-making policies.

    Notes
    -----
    Policies are constructed once per trial by a factory called as
    ``factory(instance_name=..., seed=...)``, so per-trial state never leaks
    into the next trial.
    """

    def select_actions(self, observation: Observation | None) -> ActionSet:
        """Choose the action set for the current epoch.

        Parameters
        ----------
        observation : Observation | None
            Observable state, or ``None`` on epoch 0 of a partially observed
            process.
        """


@runtime_checkable
class Visualizer(Protocol):
    """Optional episode observer."""

    def on_episode_end(self) -> None:
        """Called once when a trial ends, successfully or not."""


__all__ = [
    "ActionSet",
    "DecisionModel",
    "Observation",
    "Policy",
    "StateT",
    "Visualizer",
]
