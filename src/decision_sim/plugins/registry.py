"""Registry of domain, policy, and visualizer factories.

Components are selected by string identifier at startup. Each plugin module
lists its factories in a ``PLUGIN_MANIFESTS`` constant, and
:meth:`PluginRegistry.discover` imports a package tree and collects them.
Unknown identifiers and factory arguments that do not fit a factory signature
are reported as :class:`~decision_sim.core.errors.ConfigurationError` before
any trial runs.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from dataclasses import dataclass
from typing import Any, Callable, Literal

from decision_sim.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ComponentKind = Literal["domain", "policy", "visualizer"]


@dataclass(frozen=True, slots=True)
class ComponentManifest:
    """Factory entry for one selectable component.

    Parameters
    ----------
    kind : {"domain", "policy", "visualizer"}
        Component category.
    component_id : str
        Identifier used on the command line and in description files.
    factory : Callable[..., Any]
        Keyword-only callable building the component.
    description : str, optional
        One-line summary shown in error messages listing choices.
    """

    kind: ComponentKind
    component_id: str
    factory: Callable[..., Any]
    description: str = ""


class PluginRegistry:
    """Identifier-to-factory lookup for each component kind."""

    def __init__(self) -> None:
        self._factories: dict[str, dict[str, ComponentManifest]] = {
            "domain": {},
            "policy": {},
            "visualizer": {},
        }

    def register(self, manifest: ComponentManifest) -> None:
        """Add ``manifest``; registering the same manifest twice is a no-op.

        Raises
        ------
        ValueError
            If the kind is unknown or another factory already uses the
            identifier.
        """

        if manifest.kind not in self._factories:
            raise ValueError(f"unknown component kind {manifest.kind!r}")
        by_id = self._factories[manifest.kind]
        existing = by_id.setdefault(manifest.component_id, manifest)
        if existing != manifest:
            raise ValueError(
                f"manifest conflict for {manifest.kind}:{manifest.component_id}; already registered"
            )

    def choices(self, kind: ComponentKind) -> list[str]:
        """Return the sorted identifiers registered for ``kind``."""

        return sorted(self._factories.get(kind, {}))

    def get(self, kind: ComponentKind, component_id: str) -> ComponentManifest:
        """Return the manifest of ``component_id``.

        Raises
        ------
        ConfigurationError
            If nothing is registered under ``(kind, component_id)``.
        """

        manifest = self._factories.get(kind, {}).get(component_id)
        if manifest is None:
            raise ConfigurationError(
                f"unknown {kind} {component_id!r}, choices are {self.choices(kind)}"
            )
        return manifest

    def list(self, kind: ComponentKind | None = None) -> tuple[ComponentManifest, ...]:
        """List manifests, optionally for one kind, ordered by identifier."""

        kinds = sorted(self._factories) if kind is None else [kind]
        return tuple(
            self._factories[name][component_id]
            for name in kinds
            for component_id in self.choices(name)
        )

    def check_arguments(self, kind: ComponentKind, component_id: str, **kwargs: Any) -> None:
        """Check that ``kwargs`` bind to the factory signature without calling it.

        Raises
        ------
        ConfigurationError
            If the identifier is unknown or the arguments do not fit.
        """

        factory = self.get(kind, component_id).factory
        try:
            inspect.signature(factory).bind(**kwargs)
        except TypeError as exc:
            raise ConfigurationError(f"invalid params for {kind} {component_id!r}: {exc}") from exc

    def create(self, kind: ComponentKind, component_id: str, **kwargs: Any) -> Any:
        """Build a component after checking its arguments.

        Raises
        ------
        ConfigurationError
            If the identifier is unknown or the arguments do not fit the
            factory signature.
        """

        self.check_arguments(kind, component_id, **kwargs)
        return self.get(kind, component_id).factory(**kwargs)

    def discover(self, package_name: str) -> tuple[ComponentManifest, ...]:
        """Import every module below ``package_name`` and register its manifests."""

        package = importlib.import_module(package_name)
        modules = [package]
        for module_info in pkgutil.walk_packages(getattr(package, "__path__", ()), prefix=f"{package_name}."):
            modules.append(importlib.import_module(module_info.name))

        discovered: list[ComponentManifest] = []
        for module in modules:
            for manifest in getattr(module, "PLUGIN_MANIFESTS", ()):
                if not isinstance(manifest, ComponentManifest):
                    raise TypeError(f"{module.__name__}.PLUGIN_MANIFESTS must contain ComponentManifest objects")
                self.register(manifest)
                discovered.append(manifest)
        logger.debug(
            "discovered %d components in %s: %s",
            len(discovered),
            package_name,
            [f"{item.kind}:{item.component_id}" for item in discovered],
        )
        return tuple(discovered)


def build_default_registry() -> PluginRegistry:
    """Return a registry holding the built-in domains, policies, and visualizers."""

    registry = PluginRegistry()
    for package_name in ("decision_sim.domains", "decision_sim.policies", "decision_sim.visualizers"):
        registry.discover(package_name)
    return registry
