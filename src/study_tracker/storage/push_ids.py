# src/study_tracker/storage/push_ids.py

from __future__ import annotations

import secrets
import threading
import time

# Sorted ASCII order, so string comparison of ids follows generation order.
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class PushIdGenerator:
    """
    20-char ids: 8 chars of millisecond timestamp + 12 random chars.

    Ids created in the same millisecond reuse the previous random part incremented by
    one, so ids from one generator are strictly increasing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_rand = [0] * 12

    def __call__(self) -> str:
        return self.next_id()

    def next_id(self) -> str:
        with self._lock:
            now = int(time.time() * 1000)
            if now <= self._last_ms:
                # Same millisecond (or clock went back): stay on the last timestamp and bump.
                now = self._last_ms
                self._increment()
            else:
                self._last_rand = [secrets.randbelow(64) for _ in range(12)]
            self._last_ms = now

            ts_chars = []
            for _ in range(8):
                ts_chars.append(PUSH_CHARS[now % 64])
                now //= 64
            prefix = "".join(reversed(ts_chars))
            return prefix + "".join(PUSH_CHARS[i] for i in self._last_rand)

    def _increment(self) -> None:
        i = 11
        while i >= 0 and self._last_rand[i] == 63:
            self._last_rand[i] = 0
            i -= 1
        if i >= 0:
            self._last_rand[i] += 1
