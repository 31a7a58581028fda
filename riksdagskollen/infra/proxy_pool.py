"""Proxy pool with per-endpoint health bookkeeping."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterable

from ..config import ProxyEndpoint


@dataclass
class ProxyRecord:
    """Health of one outbound route."""

    endpoint: ProxyEndpoint
    consecutive_failures: int = 0
    last_failure_at: float | None = None
    response_time: float | None = None
    usable: bool = True

    @property
    def prefix(self) -> str:
        return self.endpoint.prefix

    @property
    def label(self) -> str:
        return self.endpoint.label

    def score(self) -> float:
        return (self.response_time or 1.0) + self.consecutive_failures * 0.5


class ProxyPool:
    """Order proxies by observed health; unhealthy ones go last, never away."""

    def __init__(
        self,
        endpoints: Iterable[ProxyEndpoint] | None = None,
        max_failures: int = 3,
        retry_after: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self.max_failures = max_failures
        self.retry_after = retry_after
        self._records: list[ProxyRecord] = [
            ProxyRecord(endpoint=endpoint) for endpoint in (endpoints or [ProxyEndpoint()])
        ]

    @property
    def empty(self) -> bool:
        return not self._records

    def ordered(self) -> list[ProxyRecord]:
        now = self._clock()
        with self._lock:
            for record in self._records:
                if (
                    not record.usable
                    and record.last_failure_at is not None
                    and now - record.last_failure_at > self.retry_after
                ):
                    record.usable = True
                    record.consecutive_failures = 0
            usable = sorted((r for r in self._records if r.usable), key=ProxyRecord.score)
            benched = sorted((r for r in self._records if not r.usable), key=ProxyRecord.score)
            return usable + benched

    def mark_failure(self, record: ProxyRecord) -> None:
        with self._lock:
            record.consecutive_failures += 1
            record.last_failure_at = self._clock()
            if record.consecutive_failures >= self.max_failures:
                record.usable = False

    def mark_success(self, record: ProxyRecord, response_time: float) -> None:
        with self._lock:
            record.consecutive_failures = 0
            record.usable = True
            record.response_time = response_time

    def stats(self) -> list[ProxyRecord]:
        with self._lock:
            return list(self._records)


__all__ = ["ProxyPool", "ProxyRecord"]
