"""Domain/non-fluent/instance description files.

A description file is a JSON or YAML mapping with three sections::

    domains:
      sysadmin_pomdp: {component: sysadmin, params: {partially_observed: true}}
    non_fluents:
      nf_ring_3:
        domain: sysadmin_pomdp
        objects: {computer: [c1, c2, c3]}
        values: {"CONNECTED(c1,c2)": true, REBOOT_PROB: 0.05}
    instances:
      sysadmin_pomdp_inst:
        domain: sysadmin_pomdp
        non_fluents: nf_ring_3
        horizon: 40
        discount: 0.9
        max_nondef_actions: 1

Resolving an instance builds its :class:`FactoredDecisionModel`. Every
problem surfaces as :class:`ConfigurationError` before a trial runs.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from decision_sim.core.config import (
    load_config_mapping,
    require_mapping,
    validate_allowed_keys,
    validate_required_keys,
)
from decision_sim.core.errors import ConfigurationError
from decision_sim.core.instance import DecisionProcessInstance
from decision_sim.model import FactoredDecisionModel, FactoredDomain
from decision_sim.plugins import PluginRegistry, build_default_registry

logger = logging.getLogger(__name__)

_SECTIONS = ("domains", "non_fluents", "instances")
_DOMAIN_KEYS = ("component", "params")
_NON_FLUENT_KEYS = ("domain", "objects", "values")
_INSTANCE_KEYS = (
    "domain",
    "non_fluents",
    "objects",
    "init_state",
    "horizon",
    "discount",
    "terminate_when",
    "partially_observed",
    "max_nondef_actions",
)


@dataclass(frozen=True, slots=True)
class DomainEntry:
    """Named domain built from a registered domain component."""

    name: str
    component: str
    params: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class NonFluentsEntry:
    """Named set of objects and constant values for one domain."""

    name: str
    domain: str
    objects: Mapping[str, tuple[str, ...]]
    values: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Description:
    """Parsed description file.

    Parameters
    ----------
    domains : Mapping[str, DomainEntry]
        Domains by name.
    non_fluents : Mapping[str, NonFluentsEntry]
        Non-fluent sets by name.
    instances : Mapping[str, Mapping[str, Any]]
        Raw instance mappings by name; validated when resolved.
    """

    domains: Mapping[str, DomainEntry]
    non_fluents: Mapping[str, NonFluentsEntry]
    instances: Mapping[str, Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class LoadedSimulation:
    """Resolved instance with its domain and built model."""

    instance: DecisionProcessInstance
    domain: FactoredDomain
    model: FactoredDecisionModel


def parse_description(raw: Mapping[str, Any]) -> Description:
    """Validate the structure of a description mapping.

    Raises
    ------
    ConfigurationError
        If sections or entries have unknown or missing keys.
    """

    validate_allowed_keys(raw, field_name="description", allowed_keys=_SECTIONS)
    validate_required_keys(raw, field_name="description", required_keys=("domains", "instances"))

    domains: dict[str, DomainEntry] = {}
    for name, entry in require_mapping(raw.get("domains"), field_name="domains").items():
        field_name = f"domains.{name}"
        entry = require_mapping(entry, field_name=field_name)
        validate_allowed_keys(entry, field_name=field_name, allowed_keys=_DOMAIN_KEYS)
        validate_required_keys(entry, field_name=field_name, required_keys=("component",))
        domains[str(name)] = DomainEntry(
            name=str(name),
            component=str(entry["component"]),
            params=dict(require_mapping(entry.get("params"), field_name=f"{field_name}.params")),
        )

    non_fluents: dict[str, NonFluentsEntry] = {}
    for name, entry in require_mapping(raw.get("non_fluents"), field_name="non_fluents").items():
        field_name = f"non_fluents.{name}"
        entry = require_mapping(entry, field_name=field_name)
        validate_allowed_keys(entry, field_name=field_name, allowed_keys=_NON_FLUENT_KEYS)
        validate_required_keys(entry, field_name=field_name, required_keys=("domain",))
        non_fluents[str(name)] = NonFluentsEntry(
            name=str(name),
            domain=str(entry["domain"]),
            objects=_parse_objects(entry.get("objects"), field_name=f"{field_name}.objects"),
            values=dict(require_mapping(entry.get("values"), field_name=f"{field_name}.values")),
        )

    instances: dict[str, Mapping[str, Any]] = {}
    for name, entry in require_mapping(raw.get("instances"), field_name="instances").items():
        field_name = f"instances.{name}"
        entry = require_mapping(entry, field_name=field_name)
        validate_allowed_keys(entry, field_name=field_name, allowed_keys=_INSTANCE_KEYS)
        validate_required_keys(entry, field_name=field_name, required_keys=("domain",))
        instances[str(name)] = dict(entry)

    return Description(domains=domains, non_fluents=non_fluents, instances=instances)


def load_description(path: str | Path) -> Description:
    """Load and validate a description file."""

    return parse_description(load_config_mapping(path))


def build_simulation(
    description: Description,
    instance_name: str,
    *,
    registry: PluginRegistry | None = None,
) -> LoadedSimulation:
    """Resolve one instance and build its decision model.

    Parameters
    ----------
    description : Description
        Parsed description.
    instance_name : str
        Instance to resolve.
    registry : PluginRegistry | None, optional
        Registry providing domain components. Defaults to the built-ins.

    Returns
    -------
    LoadedSimulation
        Instance, domain, and model.

    Raises
    ------
    ConfigurationError
        If the instance, its non-fluents, or its domain are unknown, the
        domain names of instance and non-fluents disagree, or any value is
        invalid.
    """

    registry = registry or build_default_registry()

    raw_instance = description.instances.get(instance_name)
    if raw_instance is None:
        raise ConfigurationError(
            f"instance {instance_name!r} not found, choices are {sorted(description.instances)}"
        )

    non_fluents = None
    non_fluents_name = raw_instance.get("non_fluents")
    if non_fluents_name is not None:
        non_fluents = description.non_fluents.get(str(non_fluents_name))
        if non_fluents is None:
            raise ConfigurationError(
                f"non-fluents {non_fluents_name!r} not found, choices are {sorted(description.non_fluents)}"
            )

    domain_name = str(raw_instance["domain"])
    domain_entry = description.domains.get(domain_name)
    if domain_entry is None:
        raise ConfigurationError(
            f"domain {domain_name!r} not found, choices are {sorted(description.domains)}"
        )
    if non_fluents is not None and non_fluents.domain != domain_name:
        raise ConfigurationError(
            "domain name of instance and non-fluents do not match: "
            f"{domain_name!r} vs. {non_fluents.domain!r}"
        )

    domain = _build_domain(domain_entry, registry)
    instance = _build_instance(instance_name, raw_instance, domain)
    model = FactoredDecisionModel(
        domain,
        instance,
        objects=non_fluents.objects if non_fluents is not None else None,
        constants=non_fluents.values if non_fluents is not None else None,
    )
    logger.info(
        "loaded instance %s (domain %s, horizon %s, discount %s, partially observed %s)",
        instance.name,
        domain.name,
        instance.horizon,
        instance.discount,
        instance.partially_observed,
    )
    return LoadedSimulation(instance=instance, domain=domain, model=model)


def load_simulation(
    path: str | Path,
    instance_name: str,
    *,
    registry: PluginRegistry | None = None,
) -> LoadedSimulation:
    """Load a description file and resolve one instance."""

    return build_simulation(load_description(path), instance_name, registry=registry)


def _build_domain(entry: DomainEntry, registry: PluginRegistry) -> FactoredDomain:
    try:
        domain = registry.create("domain", entry.component, **dict(entry.params))
    except ValueError as exc:
        raise ConfigurationError(f"domains.{entry.name}: {exc}") from exc
    if not isinstance(domain, FactoredDomain):
        raise ConfigurationError(f"domain component {entry.component!r} did not return a FactoredDomain")
    return dataclasses.replace(domain, name=entry.name)


def _build_instance(
    name: str,
    raw: Mapping[str, Any],
    domain: FactoredDomain,
) -> DecisionProcessInstance:
    horizon = raw.get("horizon", 40)
    max_nondef = raw.get("max_nondef_actions")
    terminate_when = raw.get("terminate_when")
    try:
        return DecisionProcessInstance(
            name=name,
            domain=domain.name,
            non_fluents=None if raw.get("non_fluents") is None else str(raw["non_fluents"]),
            horizon=None if horizon is None else _as_int(horizon, field_name="horizon"),
            discount=float(raw.get("discount", 1.0)),
            terminate_when=None if terminate_when is None else str(terminate_when),
            partially_observed=bool(raw.get("partially_observed", domain.has_observations)),
            max_nondef_actions=None if max_nondef is None else _as_int(max_nondef, field_name="max_nondef_actions"),
            init_state=dict(require_mapping(raw.get("init_state"), field_name=f"instances.{name}.init_state")),
            objects=_parse_objects(raw.get("objects"), field_name=f"instances.{name}.objects"),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"instances.{name}: {exc}") from exc


def _parse_objects(raw: Any, *, field_name: str) -> dict[str, tuple[str, ...]]:
    objects: dict[str, tuple[str, ...]] = {}
    for type_name, names in require_mapping(raw, field_name=field_name).items():
        if isinstance(names, (str, bytes)) or not isinstance(names, (list, tuple)):
            raise ConfigurationError(f"{field_name}.{type_name} must be a list of object names")
        objects[str(type_name)] = tuple(str(obj) for obj in names)
    return objects


def _as_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer, got {value!r}")
    return value


__all__ = [
    "Description",
    "DomainEntry",
    "LoadedSimulation",
    "NonFluentsEntry",
    "build_simulation",
    "load_description",
    "load_simulation",
    "parse_description",
]
