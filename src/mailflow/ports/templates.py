"""Template store port."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Template:
    """Immutable template definition as fetched from the store."""

    template_id: str
    locale: str
    subject: str = ""
    html_body: str = ""
    text_body: str = ""
    version: int = 1


@runtime_checkable
class ITemplateStore(Protocol):
    """
    Protocol for loading templates from external sources.

    Implementations: InMemoryTemplateStore, HttpTemplateStore.
    """

    async def fetch_template(self, template_id: str, locale: str) -> Template | None:
        """Load a template by id and exact locale; ``None`` when absent."""
        ...
