"""Read-through template cache keyed by (template_id, locale)."""

from __future__ import annotations

import asyncio
import logging

from ..ports.templates import ITemplateStore, Template

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


def _consume_error(fetch: asyncio.Future[Template | None]) -> None:
    # every waiter may be gone; the error must not surface as "never retrieved"
    if not fetch.cancelled():
        fetch.exception()


class TemplateCache:
    """Caches store lookups until explicitly evicted; misses only with ``cache_misses``.

    Concurrent misses for the same key share one in-flight fetch, which runs
    to completion even when the caller that started it is cancelled. Entries are
    never refreshed on their own: a template updated in the store stays stale
    here until :meth:`evict` or :meth:`clear` is called.
    """

    def __init__(self, store: ITemplateStore, *, cache_misses: bool = False) -> None:
        self._store = store
        self._cache_misses = cache_misses
        self._entries: dict[CacheKey, Template | None] = {}
        self._inflight: dict[CacheKey, asyncio.Future[Template | None]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, template_id: str, locale: str) -> Template | None:
        key = (template_id, locale)
        if key in self._entries:
            return self._entries[key]
        fetch = self._inflight.get(key)
        if fetch is None:
            # owned by the cache: a cancelled caller only stops waiting
            fetch = asyncio.ensure_future(self._fetch(key))
            fetch.add_done_callback(_consume_error)
            self._inflight[key] = fetch
        return await asyncio.shield(fetch)

    async def _fetch(self, key: CacheKey) -> Template | None:
        try:
            template = await self._store.fetch_template(*key)
        finally:
            self._inflight.pop(key, None)
        if template is not None or self._cache_misses:
            self._entries[key] = template
        return template

    def evict(self, template_id: str, locale: str | None = None) -> int:
        """Drop one locale, or every locale of ``template_id`` when ``locale`` is None."""
        keys = [
            key
            for key in self._entries
            if key[0] == template_id and (locale is None or key[1] == locale)
        ]
        for key in keys:
            del self._entries[key]
        logger.info("Evicted %d cached template(s) for %s (%s)", len(keys), template_id, locale)
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
