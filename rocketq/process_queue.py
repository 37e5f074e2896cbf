"""The local cache of pulled messages for one message queue."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Dict, Iterable, List, Optional

from rocketq.message import MessageExt

REBALANCE_LOCK_MAX_LIVE_TIME = 30.0


class ProcessQueue:
    """Messages pulled from one queue and not yet acknowledged."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ready = threading.Condition(self._lock)
        self._cache: Dict[int, MessageExt] = {}
        self._consuming: Dict[int, MessageExt] = {}
        self._pending: deque = deque()
        self._dropped = False
        self.locked = False
        self.lock_consume = threading.Lock()
        now = time.time()
        self.last_lock_time = now
        self.last_pull_time = now
        self.last_consume_time = now
        self.try_unlock_times = 0
        self.cached_msg_count = 0
        self.cached_msg_size = 0
        self.queue_offset_max = 0

    @property
    def dropped(self) -> bool:
        return self._dropped

    @dropped.setter
    def dropped(self, value: bool) -> None:
        with self._ready:
            self._dropped = bool(value)
            self._ready.notify_all()

    def put_messages(self, msgs: Iterable[MessageExt]) -> int:
        """Cache messages not seen before and queue them for dispatch."""
        added: List[MessageExt] = []
        with self._ready:
            for msg in msgs:
                if msg.queue_offset in self._cache:
                    continue
                self._cache[msg.queue_offset] = msg
                self.cached_msg_count += 1
                self.cached_msg_size += len(msg.body)
                self.queue_offset_max = msg.queue_offset
                added.append(msg)
            if added:
                self._pending.append(added)
                self._ready.notify_all()
        return len(added)

    def get_messages(self) -> Optional[List[MessageExt]]:
        """Block until a batch is put, returning None once the queue is dropped."""
        with self._ready:
            while not self._pending and not self._dropped:
                self._ready.wait()
            if self._dropped:
                return None
            return self._pending.popleft()

    def take_messages(self, count: int) -> List[MessageExt]:
        """Move up to ``count`` lowest-offset messages into the consuming set."""
        with self._lock:
            self.last_consume_time = time.time()
            taken = []
            for offset in sorted(self._cache)[: max(count, 0)]:
                msg = self._cache.pop(offset)
                self._consuming[offset] = msg
                taken.append(msg)
            return taken

    def remove_messages(self, msgs: Iterable[MessageExt]) -> int:
        """Drop acknowledged messages and return the offset safe to commit, or -1."""
        with self._lock:
            self.last_consume_time = time.time()
            if not self._cache:
                return -1
            result = self.queue_offset_max + 1
            for msg in msgs:
                removed = self._cache.pop(msg.queue_offset, None)
                if removed is not None:
                    self.cached_msg_count -= 1
                    self.cached_msg_size -= len(removed.body)
            if self._cache:
                result = min(self._cache)
            return result

    def commit(self) -> int:
        """Acknowledge everything being consumed; return the next offset or -1."""
        with self._lock:
            if not self._consuming:
                return -1
            offset = max(self._consuming)
            self.cached_msg_count -= len(self._consuming)
            self.cached_msg_size -= sum(len(m.body) for m in self._consuming.values())
            self._consuming.clear()
            return offset + 1

    def make_messages_consume_again(self, msgs: Iterable[MessageExt]) -> None:
        """Return messages from the consuming set to the cache."""
        with self._lock:
            for msg in msgs:
                self._consuming.pop(msg.queue_offset, None)
                self._cache[msg.queue_offset] = msg

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._consuming.clear()
            self._pending.clear()
            self.cached_msg_count = 0
            self.cached_msg_size = 0
            self.queue_offset_max = 0

    def max_span(self) -> int:
        with self._lock:
            if not self._cache:
                return 0
            return max(self._cache) - min(self._cache)

    def min_offset(self) -> int:
        with self._lock:
            return min(self._cache) if self._cache else -1

    def max_offset(self) -> int:
        with self._lock:
            return max(self._cache) if self._cache else -1

    def is_lock_expired(self) -> bool:
        return time.time() - self.last_lock_time > REBALANCE_LOCK_MAX_LIVE_TIME

    def current_info(self) -> dict:
        """A snapshot of the queue's state for running-info reports."""
        with self._lock:
            return {
                "commit_offset": 0,
                "cached_msg_min_offset": self.min_offset(),
                "cached_msg_max_offset": self.max_offset(),
                "cached_msg_count": self.cached_msg_count,
                "cached_msg_size_in_mib": self.cached_msg_size // (1024 * 1024),
                "locked": self.locked,
                "try_unlock_times": self.try_unlock_times,
                "last_lock_timestamp": int(self.last_lock_time * 1000),
                "dropped": self._dropped,
                "last_pull_timestamp": int(self.last_pull_time * 1000),
                "last_consume_timestamp": int(self.last_consume_time * 1000),
            }