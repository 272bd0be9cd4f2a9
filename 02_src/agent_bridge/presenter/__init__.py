"""Presenter module: formatting and incremental card rendering."""

from .formatter import build_card
from .renderer import TurnRenderer
from .sink import IRenderSink, RenderError

__all__ = ["IRenderSink", "RenderError", "TurnRenderer", "build_card"]
