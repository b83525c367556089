"""Visualizers that need no display backend."""

from __future__ import annotations

import logging

from decision_sim.plugins import ComponentManifest

logger = logging.getLogger(__name__)


class NullVisualizer:
    """Visualizer that ignores every hook."""

    def on_episode_end(self) -> None:
        """No-op."""


class TextVisualizer:
    """Report episode ends through :mod:`logging`.

    Parameters
    ----------
    label : str, optional
        Prefix used in log messages.
    """

    def __init__(self, label: str = "episode") -> None:
        self.label = label
        self.episodes_closed = 0

    def on_episode_end(self) -> None:
        self.episodes_closed += 1
        logger.info("%s finished", self.label)


def create_null_visualizer() -> NullVisualizer:
    """Factory used by plugin discovery."""

    return NullVisualizer()


def create_text_visualizer(*, label: str = "episode") -> TextVisualizer:
    """Factory used by plugin discovery."""

    return TextVisualizer(label=label)


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="visualizer",
        component_id="null",
        factory=create_null_visualizer,
        description="Ignore episode hooks",
    ),
    ComponentManifest(
        kind="visualizer",
        component_id="text",
        factory=create_text_visualizer,
        description="Log a line when each episode ends",
    ),
]
