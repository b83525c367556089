"""Immutable state values for the factored decision model."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class FactoredState:
    """Fluent assignments at one decision epoch.

    Parameters
    ----------
    values : Mapping[str, Mapping[tuple[str, ...], Any]]
        Value table per fluent. After sampling it also holds the bound
        actions, intermediate values, and fresh observations.
    next_values : Mapping[str, Mapping[tuple[str, ...], Any]], optional
        Sampled next-state tables per state fluent.
    epoch : int, optional
        Zero-based decision epoch this state belongs to.
    sampled : bool, optional
        Whether the state was produced by ``sample_next_state`` and has not
        been advanced yet.

    Notes
    -----
    The model builds new tables for every state it returns, so earlier states
    in a trajectory keep their values after the episode moves on.
    """

    values: Mapping[str, Mapping[tuple[str, ...], Any]]
    next_values: Mapping[str, Mapping[tuple[str, ...], Any]] = field(default_factory=dict)
    epoch: int = 0
    sampled: bool = False

    def value(self, name: str, *args: str) -> Any:
        """Return the current value of one grounding."""

        return self.values[name][tuple(args)]


__all__ = ["FactoredState"]
