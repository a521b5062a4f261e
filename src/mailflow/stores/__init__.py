"""Template and status store adapters."""

from __future__ import annotations

from .memory import InMemoryStatusStore, InMemoryTemplateStore
from .resql import HttpStatusStore, HttpTemplateStore, ResqlClient

__all__ = [
    "HttpStatusStore",
    "HttpTemplateStore",
    "InMemoryStatusStore",
    "InMemoryTemplateStore",
    "ResqlClient",
]
