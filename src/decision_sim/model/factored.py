"""Decision model over a :class:`~decision_sim.model.domain.FactoredDomain`.

The model grounds every fluent over the instance objects, applies constant
values and the instance's initial state, and implements the
:class:`~decision_sim.core.contracts.DecisionModel` protocol with immutable
:class:`~decision_sim.model.state.FactoredState` values.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping
from typing import Any

import numpy as np

from decision_sim.core.contracts import ActionSet
from decision_sim.core.errors import ConfigurationError, IllegalActionError, InvariantViolationError
from decision_sim.core.instance import DecisionProcessInstance
from decision_sim.core.variables import FluentDef, VariableCategory, ground_name, parse_ground_name
from decision_sim.model.domain import FactoredDomain, FluentView, ValueTable
from decision_sim.model.state import FactoredState

logger = logging.getLogger(__name__)

_COLUMN_ORDER: tuple[VariableCategory, ...] = (
    VariableCategory.STATE,
    VariableCategory.ACTION,
    VariableCategory.DERIVED,
    VariableCategory.OBSERVATION,
)

_UNSET_CATEGORIES = frozenset(
    {
        VariableCategory.OBSERVATION,
        VariableCategory.DERIVED,
        VariableCategory.INTERMEDIATE,
    }
)


class FactoredDecisionModel:
    """Grounded decision model for one instance of a factored domain.

    Parameters
    ----------
    domain : FactoredDomain
        Domain declaration with dynamics.
    instance : DecisionProcessInstance
        Instance providing horizon settings, initial state, and the
        observability flag.
    objects : Mapping[str, Sequence[str]] | None, optional
        Objects by type, typically from the non-fluent set. Instance objects
        are appended.
    constants : Mapping[str, Any] | None, optional
        Ground constant-fluent values keyed by ground name.

    Raises
    ------
    ConfigurationError
        If objects, constants, initial state, or termination name do not
        match the domain.
    """

    def __init__(
        self,
        domain: FactoredDomain,
        instance: DecisionProcessInstance,
        *,
        objects: Mapping[str, Any] | None = None,
        constants: Mapping[str, Any] | None = None,
    ) -> None:
        if instance.domain != domain.name:
            raise ConfigurationError(
                f"instance {instance.name!r} targets domain {instance.domain!r}, "
                f"got domain {domain.name!r}"
            )
        if instance.terminate_when is not None and instance.terminate_when not in domain.terminations:
            raise ConfigurationError(
                f"termination {instance.terminate_when!r} not found in domain {domain.name!r}, "
                f"choices are {sorted(domain.terminations)}"
            )

        self._domain = domain
        self._instance = instance
        self._objects = _merge_objects(domain, objects or {}, instance.objects)
        self._groundings = {
            fluent.name: tuple(itertools.product(*(self._objects[t] for t in fluent.params)))
            for fluent in domain.fluents
        }
        self._observation_channels: dict[str, list[FluentDef]] = {}
        for fluent in domain.by_category(VariableCategory.OBSERVATION):
            if fluent.observes is not None:
                self._observation_channels.setdefault(fluent.observes, []).append(fluent)

        self._initial = self._build_initial_tables(constants or {}, instance.init_state)

    @property
    def domain(self) -> FactoredDomain:
        return self._domain

    @property
    def instance(self) -> DecisionProcessInstance:
        return self._instance

    @property
    def objects(self) -> Mapping[str, tuple[str, ...]]:
        return dict(self._objects)

    @property
    def partially_observed(self) -> bool:
        return bool(self._instance.partially_observed)

    def groundings(self, name: str) -> tuple[tuple[str, ...], ...]:
        """Return argument tuples of every grounding of ``name``."""

        return self._groundings[name]

    def action_groundings(self) -> tuple[tuple[str, FluentDef], ...]:
        """Return ``(ground_name, declaration)`` for every action grounding."""

        return tuple(
            (ground_name(fluent.name, args), fluent)
            for fluent in self._domain.by_category(VariableCategory.ACTION)
            for args in self._groundings[fluent.name]
        )

    # ------------------------------------------------------------------
    # DecisionModel protocol
    # ------------------------------------------------------------------

    def reset(self) -> FactoredState:
        """Return a fresh initial state with observations unset."""

        return FactoredState(values=_copy_tables(self._initial), epoch=0)

    def check_invariants(self, state: FactoredState) -> None:
        view = FluentView(state.values, {}, self._objects)
        for name, invariant in self._domain.invariants.items():
            if not bool(invariant(view)):
                raise InvariantViolationError(f"state invariant {name!r} is not satisfied")

    def check_action_legality(self, state: FactoredState, actions: ActionSet) -> None:
        action_tables = self._resolve_actions(actions)

        limit = self._instance.max_nondef_actions
        if limit is not None:
            non_default = sum(
                1
                for name, table in action_tables.items()
                for value in table.values()
                if value != self._domain.fluent(name).default
            )
            if non_default > limit:
                raise IllegalActionError(
                    f"expected at most {limit} non-default actions, got {non_default}"
                )

        tables = dict(state.values)
        tables.update(action_tables)
        view = FluentView(tables, {}, self._objects)
        for name, precondition in self._domain.preconditions.items():
            if not bool(precondition(view)):
                raise IllegalActionError(
                    f"action precondition {name!r} is not satisfied for actions {dict(actions)!r}"
                )

    def sample_next_state(
        self,
        state: FactoredState,
        actions: ActionSet,
        rng: np.random.Generator,
    ) -> FactoredState:
        tables = _copy_tables(state.values)
        tables.update(self._resolve_actions(actions))
        next_tables: dict[str, ValueTable] = {}
        view = FluentView(tables, next_tables, self._objects)

        for fluent in self._domain.by_category(VariableCategory.DERIVED, VariableCategory.INTERMEDIATE):
            tables[fluent.name] = self._evaluate_cpf(fluent, view, rng)
        for fluent in self._domain.by_category(VariableCategory.STATE):
            next_tables[fluent.name] = self._evaluate_cpf(fluent, view, rng)
        for fluent in self._domain.by_category(VariableCategory.OBSERVATION):
            tables[fluent.name] = self._evaluate_cpf(fluent, view, rng)

        return FactoredState(values=tables, next_values=next_tables, epoch=state.epoch, sampled=True)

    def advance(self, state: FactoredState, *, clear_observations: bool = False) -> FactoredState:
        if not state.sampled:
            raise ValueError("advance requires a state returned by sample_next_state")

        tables: dict[str, ValueTable] = {}
        for fluent in self._domain.fluents:
            category = fluent.category
            if category is VariableCategory.STATE:
                tables[fluent.name] = dict(state.next_values[fluent.name])
            elif category is VariableCategory.ACTION:
                tables[fluent.name] = dict(self._initial[fluent.name])
            elif category is VariableCategory.OBSERVATION and not clear_observations:
                tables[fluent.name] = dict(state.values[fluent.name])
            elif category in _UNSET_CATEGORIES:
                tables[fluent.name] = dict.fromkeys(self._groundings[fluent.name])
            else:
                tables[fluent.name] = state.values[fluent.name]
        return FactoredState(values=tables, epoch=state.epoch + 1)

    def evaluate_reward(self, state: FactoredState) -> float:
        view = FluentView(state.values, state.next_values, self._objects)
        return float(self._domain.reward(view))

    def check_termination(self, state: FactoredState) -> bool:
        name = self._instance.terminate_when
        if name is None:
            return False
        view = FluentView(state.values, state.next_values, self._objects)
        return bool(self._domain.terminations[name](view))

    def observe(self, state: FactoredState) -> dict[str, Any]:
        category = VariableCategory.OBSERVATION if self.partially_observed else VariableCategory.STATE
        return {
            ground_name(fluent.name, args): value
            for fluent in self._domain.by_category(category)
            for args, value in state.values[fluent.name].items()
        }

    def enumerate_observable_columns(self, state: FactoredState) -> list[tuple[str, Any]]:
        """Return logging columns in stable order.

        State fluents are hidden in partially observed instances and report
        their sampled next value otherwise. An observation channel follows
        the fluent it observes when that fluent is emitted.
        """

        columns: list[tuple[str, Any]] = []
        placed: set[str] = set()
        for category in _COLUMN_ORDER:
            for fluent in self._domain.by_category(category):
                if fluent.name in placed:
                    continue
                if category is VariableCategory.STATE and self.partially_observed:
                    continue
                columns.extend(self._fluent_columns(state, fluent))
                placed.add(fluent.name)
                for channel in self._observation_channels.get(fluent.name, ()):
                    if channel.name not in placed:
                        columns.extend(self._fluent_columns(state, channel))
                        placed.add(channel.name)
        return columns

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _fluent_columns(self, state: FactoredState, fluent: FluentDef) -> list[tuple[str, Any]]:
        if fluent.category is VariableCategory.STATE and state.sampled:
            table = state.next_values[fluent.name]
        else:
            table = state.values[fluent.name]
        return [(ground_name(fluent.name, args), table.get(args)) for args in self._groundings[fluent.name]]

    def _evaluate_cpf(
        self,
        fluent: FluentDef,
        view: FluentView,
        rng: np.random.Generator,
    ) -> ValueTable:
        cpf = self._domain.cpfs[fluent.name]
        return {
            args: _coerce(fluent, cpf(view, args, rng))
            for args in self._groundings[fluent.name]
        }

    def _resolve_actions(self, actions: ActionSet) -> dict[str, ValueTable]:
        """Return full action tables with defaults overridden by ``actions``."""

        tables = {
            fluent.name: dict(self._initial[fluent.name])
            for fluent in self._domain.by_category(VariableCategory.ACTION)
        }
        for key, raw_value in dict(actions).items():
            try:
                name, args = parse_ground_name(key)
            except ValueError as exc:
                raise IllegalActionError(str(exc)) from exc
            if name not in tables:
                raise IllegalActionError(
                    f"<{key}> is not a valid action fluent, must be one of {sorted(tables)}"
                )
            if args not in tables[name]:
                raise IllegalActionError(f"<{key}> does not ground action fluent {name!r} over known objects")
            fluent = self._domain.fluent(name)
            value = raw_value.item() if isinstance(raw_value, np.generic) else raw_value
            if not fluent.accepts(value):
                raise IllegalActionError(
                    f"<{key}> expects a {fluent.value_type} value, got {raw_value!r}"
                )
            tables[name][args] = value
        return tables

    def _build_initial_tables(
        self,
        constants: Mapping[str, Any],
        init_state: Mapping[str, Any],
    ) -> dict[str, ValueTable]:
        tables: dict[str, ValueTable] = {}
        for fluent in self._domain.fluents:
            groundings = self._groundings[fluent.name]
            if fluent.category in _UNSET_CATEGORIES:
                tables[fluent.name] = dict.fromkeys(groundings)
            else:
                tables[fluent.name] = dict.fromkeys(groundings, fluent.default)

        self._apply_overrides(tables, constants, category=VariableCategory.CONSTANT, label="non-fluent")
        self._apply_overrides(tables, init_state, category=VariableCategory.STATE, label="init-state")
        logger.debug(
            "grounded domain %s for instance %s: %d fluent groundings",
            self._domain.name,
            self._instance.name,
            sum(len(table) for table in tables.values()),
        )
        return tables

    def _apply_overrides(
        self,
        tables: dict[str, ValueTable],
        overrides: Mapping[str, Any],
        *,
        category: VariableCategory,
        label: str,
    ) -> None:
        for key, value in overrides.items():
            try:
                name, args = parse_ground_name(key)
                fluent = self._domain.fluent(name)
            except (KeyError, ValueError) as exc:
                raise ConfigurationError(f"{label} entry {key!r}: {exc}") from exc
            if fluent.category is not category:
                raise ConfigurationError(
                    f"{label} entry {key!r} must reference a {category.value} fluent, "
                    f"got {fluent.category.value}"
                )
            if args not in tables[name]:
                raise ConfigurationError(f"{label} entry {key!r} does not match any grounding of {name!r}")
            if not fluent.accepts(value):
                raise ConfigurationError(f"{label} entry {key!r} expects a {fluent.value_type} value, got {value!r}")
            tables[name][args] = value


def _merge_objects(
    domain: FactoredDomain,
    *sources: Mapping[str, Any],
) -> dict[str, tuple[str, ...]]:
    merged: dict[str, list[str]] = {type_name: [] for type_name in domain.types}
    for source in sources:
        for type_name, names in source.items():
            if type_name not in merged:
                raise ConfigurationError(
                    f"object type {type_name!r} is not declared by domain {domain.name!r}, "
                    f"choices are {sorted(merged)}"
                )
            for obj in names:
                if str(obj) in merged[type_name]:
                    raise ConfigurationError(f"object {obj!r} of type {type_name!r} is declared twice")
                merged[type_name].append(str(obj))
    return {type_name: tuple(names) for type_name, names in merged.items()}


def _copy_tables(tables: Mapping[str, Mapping[tuple[str, ...], Any]]) -> dict[str, ValueTable]:
    return {name: dict(table) for name, table in tables.items()}


def _coerce(fluent: FluentDef, value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if fluent.value_type == "bool":
        return bool(value)
    if fluent.value_type == "int":
        return int(value)
    if fluent.value_type == "real":
        return float(value)
    return str(value)


__all__ = ["FactoredDecisionModel"]
