"""Decision process instance definition."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class DecisionProcessInstance:
    """Fully parameterised scenario over a domain.

    Parameters
    ----------
    name : str
        Instance identifier.
    domain : str
        Name of the domain the instance is defined over.
    non_fluents : str | None, optional
        Name of the non-fluent set providing objects and constants.
    horizon : int | None, optional
        Maximum number of decision epochs. ``None`` means unbounded, which
        requires ``terminate_when``.
    discount : float, optional
        Discount factor in ``(0, 1]``.
    terminate_when : str | None, optional
        Name of the domain termination predicate checked after each advance.
    partially_observed : bool, optional
        Whether the policy only sees observation fluents.
    max_nondef_actions : int | None, optional
        Upper bound on non-default action values per epoch. ``None`` means
        unlimited.
    init_state : Mapping[str, Any], optional
        Ground state-fluent overrides for the initial state.
    objects : Mapping[str, tuple[str, ...]], optional
        Instance-level objects added to the non-fluent objects.

    Raises
    ------
    ValueError
        If any numeric field is out of range.
    """

    name: str
    domain: str
    non_fluents: str | None = None
    horizon: int | None = 40
    discount: float = 1.0
    terminate_when: str | None = None
    partially_observed: bool = False
    max_nondef_actions: int | None = None
    init_state: Mapping[str, Any] = field(default_factory=dict)
    objects: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("instance name must be non-empty")
        if self.horizon is not None and int(self.horizon) < 1:
            raise ValueError(f"horizon must be >= 1 or None, got {self.horizon!r}")
        discount = float(self.discount)
        if not math.isfinite(discount) or discount <= 0.0 or discount > 1.0:
            raise ValueError(f"discount must be in (0, 1], got {self.discount!r}")
        if self.max_nondef_actions is not None and int(self.max_nondef_actions) < 0:
            raise ValueError("max_nondef_actions must be >= 0 or None")
        if self.horizon is None and self.terminate_when is None:
            raise ValueError("an unbounded horizon requires a terminate_when predicate")

    @property
    def is_bounded(self) -> bool:
        """Whether the instance has a finite horizon."""

        return self.horizon is not None


__all__ = ["DecisionProcessInstance"]
