"""Baseline policies: no-op and uniformly random boolean actions."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from decision_sim.core.contracts import Observation
from decision_sim.plugins import ComponentManifest

logger = logging.getLogger(__name__)


class NoopPolicy:
    """Policy that always returns the empty action set.

    Every action fluent therefore keeps its default value.
    """

    def __init__(self, instance_name: str) -> None:
        self.instance_name = instance_name

    def select_actions(self, observation: Observation | None) -> dict[str, Any]:
        del observation
        return {}


class RandomBooleanPolicy:
    """Turn on a random subset of boolean action groundings each epoch.

    Parameters
    ----------
    instance_name : str
        Instance the policy acts on.
    action_names : Sequence[str]
        Ground names of boolean action fluents that may be switched on.
    max_actions : int | None, optional
        Upper bound of actions switched on per epoch. ``None`` allows all.
    seed : int | None, optional
        Seed of the policy's own random generator. It is independent of the
        model's random source.
    """

    def __init__(
        self,
        instance_name: str,
        action_names: tuple[str, ...] | list[str],
        *,
        max_actions: int | None = None,
        seed: int | None = None,
    ) -> None:
        self.instance_name = instance_name
        self._action_names = tuple(action_names)
        limit = len(self._action_names) if max_actions is None else int(max_actions)
        self._max_actions = min(limit, len(self._action_names))
        self._rng = np.random.default_rng(seed)

    def select_actions(self, observation: Observation | None) -> dict[str, bool]:
        del observation
        if self._max_actions == 0:
            return {}
        n_actions = int(self._rng.integers(0, self._max_actions + 1))
        chosen = self._rng.choice(len(self._action_names), size=n_actions, replace=False)
        return {self._action_names[int(index)]: True for index in sorted(chosen)}


def create_noop_policy(*, instance_name: str, seed: int | None = None, model: Any = None) -> NoopPolicy:
    """Factory used by plugin discovery."""

    del seed, model
    return NoopPolicy(instance_name)


def create_random_boolean_policy(
    *,
    instance_name: str,
    model: Any,
    seed: int | None = None,
    max_actions: int | None = None,
) -> RandomBooleanPolicy:
    """Factory used by plugin discovery.

    Parameters
    ----------
    instance_name : str
        Instance the policy acts on.
    model : FactoredDecisionModel
        Model providing action groundings and the instance's
        ``max_nondef_actions`` bound.
    seed : int | None, optional
        Policy seed.
    max_actions : int | None, optional
        Overrides the instance's non-default action bound.

    Returns
    -------
    RandomBooleanPolicy
        Configured policy.
    """

    action_names = tuple(name for name, fluent in model.action_groundings() if fluent.value_type == "bool")
    if max_actions is None:
        max_actions = model.instance.max_nondef_actions
    logger.debug("random policy for %s over %d boolean actions", instance_name, len(action_names))
    return RandomBooleanPolicy(instance_name, action_names, max_actions=max_actions, seed=seed)


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="policy",
        component_id="noop",
        factory=create_noop_policy,
        description="Always keep every action at its default value",
    ),
    ComponentManifest(
        kind="policy",
        component_id="random_boolean",
        factory=create_random_boolean_policy,
        description="Switch on a random subset of boolean actions within the action budget",
    ),
]
