"""Claim ledger for mailbox message ids.

A message is claimed before anything else happens to it, so a message that
shows up unseen again (or is seen by two tenants sharing the mailbox) is
handled once.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Protocol


class DedupLedger(Protocol):
    def try_claim(self, message_id: str) -> bool: ...
    def settle(self, message_id: str) -> None: ...
    def __contains__(self, message_id: object) -> bool: ...
    def __len__(self) -> int: ...


class InMemoryDedupLedger:
    """Bounded, TTL-expiring claim set.

    A new claim is held until ``settle`` records that the message was
    flagged seen in the mailbox. Held claims never expire and are never
    evicted, since their message is still unseen and would be picked up
    again. Settled claims are dropped after ``ttl_seconds``, and the oldest
    settled claim is evicted once ``max_entries`` is reached.
    """

    def __init__(
        self,
        ttl_seconds: float = 7 * 24 * 3600,
        max_entries: int = 100_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._held: dict[str, float] = {}
        self._settled: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def try_claim(self, message_id: str) -> bool:
        key = str(message_id)
        with self._lock:
            self._expire(self._clock())
            if key in self._held or key in self._settled:
                return False
            self._held[key] = self._clock()
            self._evict()
            return True

    def settle(self, message_id: str) -> None:
        """Mark a claim as acknowledged, letting it expire from now on."""
        key = str(message_id)
        with self._lock:
            if self._held.pop(key, None) is None:
                return
            self._settled[key] = self._clock()
            self._evict()

    def _evict(self) -> None:
        while self._settled and len(self._held) + len(self._settled) > self.max_entries:
            self._settled.popitem(last=False)

    def _expire(self, now: float) -> None:
        cutoff = now - self.ttl_seconds
        while self._settled:
            oldest_key, settled_at = next(iter(self._settled.items()))
            if settled_at > cutoff:
                break
            del self._settled[oldest_key]

    def __contains__(self, message_id: object) -> bool:
        key = str(message_id)
        with self._lock:
            self._expire(self._clock())
            return key in self._held or key in self._settled

    def __len__(self) -> int:
        with self._lock:
            self._expire(self._clock())
            return len(self._held) + len(self._settled)
