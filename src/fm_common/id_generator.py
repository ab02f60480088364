"""Snowflake-style ID generator for bet and period ids.

IDs are decimal strings that increase monotonically within one process, so
`ORDER BY id DESC` doubles as newest-first ordering for cursor pagination.
"""

import threading
import time


class SnowflakeIdGenerator:
    """Layout (63 bits):
      - 41 bits: milliseconds since _EPOCH_MS
      - 10 bits: worker id (0-1023)
      - 12 bits: per-millisecond sequence (0-4095)
    """

    _EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z
    _WORKER_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, worker_id: int = 0) -> None:
        if not (0 <= worker_id < (1 << self._WORKER_BITS)):
            raise ValueError(f"worker_id must be 0-{(1 << self._WORKER_BITS) - 1}")
        self._worker_id = worker_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = time.time_ns() // 1_000_000
            if now_ms < self._last_ms:
                # Clock stepped backwards: keep issuing from the last seen millisecond
                now_ms = self._last_ms
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    while now_ms <= self._last_ms:
                        now_ms = time.time_ns() // 1_000_000
            else:
                self._sequence = 0
            self._last_ms = now_ms
            value = (
                (now_ms - self._EPOCH_MS) << (self._WORKER_BITS + self._SEQUENCE_BITS)
                | self._worker_id << self._SEQUENCE_BITS
                | self._sequence
            )
            return str(value)


_default_generator = SnowflakeIdGenerator()


def generate_id() -> str:
    return _default_generator.next_id()
