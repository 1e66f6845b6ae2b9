# src/herald/commands/auditor.py

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict

logger = logging.getLogger(__name__)

AuditKey = tuple[str, str]


class RateAuditor:
    """
    Counts command uses per (user, command) in one-minute buckets.

    Only the last `backlog_minutes` buckets are kept; prune() drops the rest
    (the bot runs it as a scheduled task every minute).
    """

    def __init__(self, *, backlog_minutes: int = 10) -> None:
        self.backlog_minutes = max(1, int(backlog_minutes))
        self._buckets: dict[int, defaultdict[AuditKey, int]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _minute(now_ts: float | None) -> int:
        return int((time.time() if now_ts is None else now_ts) // 60)

    def track(self, user_id: str, command: str, *, now_ts: float | None = None) -> int:
        """Record one use and return the count for the current minute."""
        minute = self._minute(now_ts)
        with self._lock:
            bucket = self._buckets.setdefault(minute, defaultdict(int))
            bucket[(user_id, command)] += 1
            return bucket[(user_id, command)]

    def count(self, user_id: str, command: str, *, now_ts: float | None = None) -> int:
        minute = self._minute(now_ts)
        with self._lock:
            bucket = self._buckets.get(minute)
            return bucket.get((user_id, command), 0) if bucket else 0

    def permitted(
        self,
        user_id: str,
        command: str,
        threshold: int,
        *,
        now_ts: float | None = None,
    ) -> bool:
        """True if the user may run command now. threshold <= 0 means unthrottled."""
        if threshold <= 0:
            return True
        return self.count(user_id, command, now_ts=now_ts) < threshold

    def prune(self, *, now_ts: float | None = None) -> int:
        """Drop buckets older than the backlog; returns how many were dropped."""
        oldest = self._minute(now_ts) - self.backlog_minutes + 1
        with self._lock:
            stale = [m for m in self._buckets if m < oldest]
            for m in stale:
                del self._buckets[m]

        if stale:
            logger.debug("Audit prune dropped %d bucket(s).", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
