"""BackoffPolicy — exponential retry delay, capped."""

from __future__ import annotations


class BackoffPolicy:
    """Exponential backoff computed from the retry count *after* increment.

    ``delay_ms(n) = min(max_delay_ms, 2**n * base_delay_ms)``, so with the
    defaults the first retry waits 2s, the second 4s, never more than 60s.
    No jitter: delays are deterministic per retry count.
    """

    def __init__(self, *, base_delay_ms: int = 1_000, max_delay_ms: int = 60_000) -> None:
        if base_delay_ms < 0 or max_delay_ms < 0:
            raise ValueError("base_delay_ms and max_delay_ms must be >= 0")
        if base_delay_ms > max_delay_ms:
            raise ValueError("base_delay_ms must be <= max_delay_ms")
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def delay_ms(self, retry_count: int) -> int:
        """Return the delay in milliseconds before redelivering retry ``retry_count``."""
        if retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        exponent = min(retry_count, 62)
        return min(self.max_delay_ms, (2**exponent) * self.base_delay_ms)


DEFAULT_BACKOFF = BackoffPolicy()
