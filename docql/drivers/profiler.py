"""Statement timing and slow-query logging."""
from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryProfiler:
    """Times driver statements and logs slow or failed ones.

    Args:
        slow_query_threshold_ms: Statements slower than this are logged at
            WARNING with their SQL and params.
        enabled: When ``False`` statements run untimed and unlogged.
        log_queries: Log every statement at DEBUG.
    """

    def __init__(
        self,
        slow_query_threshold_ms: float = 500.0,
        enabled: bool = True,
        log_queries: bool = False,
    ) -> None:
        self.slow_query_threshold_ms = slow_query_threshold_ms
        self.enabled = enabled
        self.log_queries = log_queries

    async def profile(
        self,
        sql: str,
        params: Sequence[Any],
        run: Callable[[], Awaitable[T]],
    ) -> T:
        if not self.enabled:
            return await run()

        start = time.perf_counter()
        try:
            result = await run()
        except Exception:
            logger.error("Query failed: %s params=%r", sql, params)
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        if duration_ms > self.slow_query_threshold_ms:
            logger.warning("Slow query (%.1f ms): %s params=%r", duration_ms, sql, params)
        elif self.log_queries:
            logger.debug("Query (%.1f ms): %s params=%r", duration_ms, sql, params)
        return result
