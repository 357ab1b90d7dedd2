"""Live crawl progress shared between the orchestrator and status readers."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Dict, Optional, Protocol

from .models import CrawlProgress

logger = logging.getLogger("brandkit_crawler.progress")


class ProgressSink(Protocol):
    """Receives an immutable progress snapshot on every observable change."""

    def publish(self, job_id: int, progress: CrawlProgress) -> None: ...


class ProgressTable:
    """Bounded, thread-safe map of job id to the latest progress snapshot.

    Each publish replaces the stored snapshot as a whole, so readers never see
    a partially updated record. When full, the least recently published job
    is evicted.
    """

    def __init__(self, capacity: int = 256) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[int, CrawlProgress]" = OrderedDict()
        self._lock = threading.Lock()

    def publish(self, job_id: int, progress: CrawlProgress) -> None:
        with self._lock:
            self._entries[job_id] = progress
            self._entries.move_to_end(job_id)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted progress for job %s", evicted)

    def get(self, job_id: int) -> Optional[CrawlProgress]:
        with self._lock:
            return self._entries.get(job_id)

    def clear(self, job_id: int) -> None:
        with self._lock:
            self._entries.pop(job_id, None)

    def snapshot(self) -> Dict[int, CrawlProgress]:
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
