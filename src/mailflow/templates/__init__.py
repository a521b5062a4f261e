"""Template lookup, caching and rendering."""

from __future__ import annotations

from .cache import TemplateCache
from .renderer import TemplateRenderer

__all__ = ["TemplateCache", "TemplateRenderer"]
