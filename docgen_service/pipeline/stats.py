"""
服务统计 - 进程级计数器

所有请求任务共享同一实例，计数通过锁保护。
peak_in_flight 用于验证准入并发上限。
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass


@dataclass
class StatsSnapshot:
    received: int = 0
    succeeded: int = 0
    failed: int = 0
    nacked: int = 0
    in_flight: int = 0
    peak_in_flight: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class ServiceStats:
    """服务统计"""

    def __init__(self):
        self._lock = threading.Lock()
        self._data = StatsSnapshot()

    def request_started(self) -> None:
        with self._lock:
            self._data.received += 1
            self._data.in_flight += 1
            if self._data.in_flight > self._data.peak_in_flight:
                self._data.peak_in_flight = self._data.in_flight

    def request_finished(self) -> None:
        with self._lock:
            self._data.in_flight -= 1

    def record_success(self) -> None:
        with self._lock:
            self._data.succeeded += 1

    def record_failure(self) -> None:
        """已发布错误响应"""
        with self._lock:
            self._data.failed += 1

    def record_nack(self) -> None:
        with self._lock:
            self._data.nacked += 1

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(**asdict(self._data))

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._data.in_flight

    @property
    def peak_in_flight(self) -> int:
        with self._lock:
            return self._data.peak_in_flight
