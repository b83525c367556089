"""Built-in visualizers."""

from .text import NullVisualizer, TextVisualizer, create_null_visualizer, create_text_visualizer

__all__ = [
    "NullVisualizer",
    "TextVisualizer",
    "create_null_visualizer",
    "create_text_visualizer",
]
