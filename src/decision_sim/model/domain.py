"""Factored domain declarations with Python-callable dynamics.

A :class:`FactoredDomain` is the in-memory counterpart of a relational
planning domain: typed fluent declarations plus conditional probability
functions (CPFs), a reward function, and named constraint predicates. The
callables receive a :class:`FluentView` and never touch state tables
directly.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from decision_sim.core.variables import FluentDef, VariableCategory

Cpf = Callable[["FluentView", tuple[str, ...], np.random.Generator], Any]
Predicate = Callable[["FluentView"], bool]
RewardFn = Callable[["FluentView"], float]

ValueTable = dict[tuple[str, ...], Any]


class FluentView:
    """Read-only access to fluent values during one evaluation.

    Parameters
    ----------
    values : Mapping[str, Mapping[tuple[str, ...], Any]]
        Current values by fluent, including bound actions and any
        intermediate or observation values computed so far.
    next_values : Mapping[str, Mapping[tuple[str, ...], Any]]
        Sampled next-state values by state fluent. Empty before sampling.
    objects : Mapping[str, tuple[str, ...]]
        Objects by type name.
    """

    __slots__ = ("_values", "_next_values", "_objects")

    def __init__(
        self,
        values: Mapping[str, Mapping[tuple[str, ...], Any]],
        next_values: Mapping[str, Mapping[tuple[str, ...], Any]],
        objects: Mapping[str, tuple[str, ...]],
    ) -> None:
        self._values = values
        self._next_values = next_values
        self._objects = objects

    def __call__(self, name: str, *args: str) -> Any:
        return _lookup(self._values, name, args, label="fluent")

    def next(self, name: str, *args: str) -> Any:
        """Return the sampled next-state value of a state fluent."""

        return _lookup(self._next_values, name, args, label="next-state fluent")

    def table(self, name: str) -> Mapping[tuple[str, ...], Any]:
        """Return every grounding of ``name`` with its current value."""

        if name not in self._values:
            raise KeyError(f"unknown fluent {name!r}")
        return self._values[name]

    def groundings(self, name: str) -> tuple[tuple[str, ...], ...]:
        """Return the argument tuples of every grounding of ``name``."""

        return tuple(self.table(name))

    def objects(self, type_name: str) -> tuple[str, ...]:
        """Return the objects of ``type_name`` in declaration order."""

        try:
            return self._objects[type_name]
        except KeyError:
            raise KeyError(f"unknown object type {type_name!r}") from None

    def count(self, name: str) -> int:
        """Return how many groundings of a fluent are truthy."""

        return sum(1 for value in self.table(name).values() if value)


def _lookup(
    tables: Mapping[str, Mapping[tuple[str, ...], Any]],
    name: str,
    args: tuple[str, ...],
    *,
    label: str,
) -> Any:
    table = tables.get(name)
    if table is None:
        raise KeyError(f"unknown {label} {name!r}")
    try:
        return table[tuple(args)]
    except KeyError:
        raise KeyError(f"{label} {name!r} has no grounding {tuple(args)!r}") from None


@dataclass(frozen=True)
class FactoredDomain:
    """Declaration of a factored decision domain.

    Parameters
    ----------
    name : str
        Domain name.
    fluents : tuple[FluentDef, ...]
        Fluent declarations. Declaration order fixes evaluation order of
        intermediate fluents and the column order of trajectory logs.
    cpfs : Mapping[str, Cpf]
        One CPF per state, observation, derived, and intermediate fluent.
        State-fluent CPFs produce the next-state value.
    reward : RewardFn
        Reward of a sampled state.
    invariants : Mapping[str, Predicate], optional
        Named state invariants.
    preconditions : Mapping[str, Predicate], optional
        Named action preconditions; evaluated with actions bound.
    terminations : Mapping[str, Predicate], optional
        Named termination predicates an instance may select.
    types : tuple[str, ...], optional
        Object type names. Defaults to the types used by fluent parameters.

    Raises
    ------
    ValueError
        If fluent names repeat, a CPF is missing or unexpected, an
        observation channel targets an unknown fluent, or a parameter uses an
        undeclared type.
    """

    name: str
    fluents: tuple[FluentDef, ...]
    cpfs: Mapping[str, Cpf]
    reward: RewardFn
    invariants: Mapping[str, Predicate] = field(default_factory=dict)
    preconditions: Mapping[str, Predicate] = field(default_factory=dict)
    terminations: Mapping[str, Predicate] = field(default_factory=dict)
    types: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fluents", tuple(self.fluents))
        names = [fluent.name for fluent in self.fluents]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"domain {self.name!r} declares duplicate fluents: {duplicates}")

        used_types = []
        for fluent in self.fluents:
            for type_name in fluent.params:
                if type_name not in used_types:
                    used_types.append(type_name)
        if self.types:
            undeclared = sorted(set(used_types) - set(self.types))
            if undeclared:
                raise ValueError(f"domain {self.name!r} uses undeclared object types: {undeclared}")
        else:
            object.__setattr__(self, "types", tuple(used_types))

        needs_cpf = {
            fluent.name
            for fluent in self.fluents
            if fluent.category not in (VariableCategory.ACTION, VariableCategory.CONSTANT)
        }
        missing = sorted(needs_cpf - set(self.cpfs))
        if missing:
            raise ValueError(f"domain {self.name!r} is missing CPFs for: {missing}")
        unexpected = sorted(set(self.cpfs) - needs_cpf)
        if unexpected:
            raise ValueError(
                f"domain {self.name!r} defines CPFs for unknown, action, or constant fluents: {unexpected}"
            )

        for fluent in self.fluents:
            if fluent.observes is not None and fluent.observes not in names:
                raise ValueError(
                    f"observation fluent {fluent.name!r} observes unknown fluent {fluent.observes!r}"
                )

    def fluent(self, name: str) -> FluentDef:
        """Return the declaration of ``name``."""

        for fluent in self.fluents:
            if fluent.name == name:
                return fluent
        raise KeyError(f"domain {self.name!r} has no fluent {name!r}")

    def by_category(self, *categories: VariableCategory) -> tuple[FluentDef, ...]:
        """Return fluents of the given categories in declaration order."""

        wanted = set(categories)
        return tuple(fluent for fluent in self.fluents if fluent.category in wanted)

    @property
    def has_observations(self) -> bool:
        """Whether the domain declares observation fluents."""

        return bool(self.by_category(VariableCategory.OBSERVATION))


__all__ = [
    "Cpf",
    "FactoredDomain",
    "FluentView",
    "Predicate",
    "RewardFn",
    "ValueTable",
]
