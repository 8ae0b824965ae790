"""
Single-slot cache for the most recent harvest record.

Consumers such as a dashboard endpoint hold a `RecordCache` explicitly
instead of sharing module state. A stale value is refreshed on read; if the
refresh fails the stale value is served rather than an error.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Optional

from .models import DailyHarvestRecord

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[DailyHarvestRecord]]


class RecordCache:
    def __init__(self, refresh: Refresh, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic):
        self._refresh = refresh
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[DailyHarvestRecord] = None
        self._stored_at: Optional[float] = None

    @property
    def value(self) -> Optional[DailyHarvestRecord]:
        return self._value

    def is_fresh(self) -> bool:
        if self._value is None or self._stored_at is None:
            return False
        return self._clock() - self._stored_at <= self.ttl_seconds

    def put(self, record: DailyHarvestRecord) -> None:
        self._value = record
        self._stored_at = self._clock()

    async def get(self) -> DailyHarvestRecord:
        if self.is_fresh():
            return self._value
        try:
            record = await self._refresh()
        except Exception as exc:
            if self._value is None:
                raise
            logger.warning("Refresh failed, serving cached %s: %s", self._value.run_date, exc)
            return self._value
        self.put(record)
        return record
