"""Sliding-window statistics for pull and consume activity."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

logger = logging.getLogger(__name__)

_MINUTE_WINDOW = 7
_HOUR_WINDOW = 7
_DAY_WINDOW = 25


class _CallSnapshot(NamedTuple):
    timestamp: int
    times: int
    value: int


@dataclass(frozen=True)
class StatsSnapshot:
    """Aggregate over one sampling window."""

    sum: int = 0
    tps: float = 0.0
    avgpt: float = 0.0


@dataclass
class ConsumeStatus:
    """Pull and consume figures of one topic within one group."""

    pull_rt: float = 0.0
    pull_tps: float = 0.0
    consume_rt: float = 0.0
    consume_ok_tps: float = 0.0
    consume_failed_tps: float = 0.0
    consume_failed_msgs: int = 0


def compute_stats_data(snapshots: Sequence) -> StatsSnapshot:
    """Compute sum, TPS and average per call between the first and last snapshot.

    Each snapshot is a ``(timestamp_millis, times, value)`` triple.
    """
    if not snapshots:
        return StatsSnapshot()
    first_ts, first_times, first_value = snapshots[0]
    last_ts, last_times, last_value = snapshots[-1]
    total = last_value - first_value
    elapsed = last_ts - first_ts
    if elapsed != 0:
        tps = total * 1000.0 / elapsed
    elif total == 0:
        tps = math.nan
    else:
        tps = math.copysign(math.inf, total)
    times_diff = last_times - first_times
    avgpt = total / times_diff if times_diff > 0 else 0.0
    return StatsSnapshot(sum=total, tps=tps, avgpt=avgpt)


def next_minutes_time() -> datetime:
    """The moment one minute from now."""
    return datetime.now() + timedelta(minutes=1)


def next_hour_time() -> datetime:
    """The moment one hour from now."""
    return datetime.now() + timedelta(hours=1)


def next_month_time() -> datetime:
    """The same day and time next month, overflowing days rolled forward."""
    now = datetime.now()
    year, month = divmod(now.month, 12)
    base = now.replace(year=now.year + year, month=month + 1, day=1)
    return base + timedelta(days=now.day - 1)


class StatsItem:
    """Counters for one key plus minute, hour and day sample windows."""

    def __init__(self, stats_name: str, stats_key: str) -> None:
        self.stats_name = stats_name
        self.stats_key = stats_key
        self.value = 0
        self.times = 0
        self._counter_lock = threading.Lock()
        self._window_lock = threading.Lock()
        self._minute: deque = deque(maxlen=_MINUTE_WINDOW)
        self._hour: deque = deque(maxlen=_HOUR_WINDOW)
        self._day: deque = deque(maxlen=_DAY_WINDOW)

    def add(self, inc_value: int, inc_times: int) -> None:
        with self._counter_lock:
            self.value += inc_value
            self.times += inc_times

    def _sample(self, window: deque) -> None:
        with self._counter_lock:
            snap = _CallSnapshot(
                int(datetime.now().timestamp()) * 1000, self.times, self.value
            )
        with self._window_lock:
            window.append(snap)

    def _compute(self, window: deque) -> StatsSnapshot:
        with self._window_lock:
            snapshots = list(window)
        return compute_stats_data(snapshots)

    def sampling_in_seconds(self) -> None:
        self._sample(self._minute)

    def sampling_in_minutes(self) -> None:
        self._sample(self._hour)

    def sampling_in_hour(self) -> None:
        self._sample(self._day)

    def stats_data_in_minute(self) -> StatsSnapshot:
        return self._compute(self._minute)

    def stats_data_in_hour(self) -> StatsSnapshot:
        return self._compute(self._hour)

    def stats_data_in_day(self) -> StatsSnapshot:
        return self._compute(self._day)

    def _log(self, period: str, ss: StatsSnapshot) -> None:
        logger.info(
            "Stats In One %s, statsName=%s statsKey=%s SUM: %d TPS: %.2f AVGPT: %.2f",
            period,
            self.stats_name,
            self.stats_key,
            ss.sum,
            ss.tps,
            ss.avgpt,
        )

    def print_at_minutes(self) -> None:
        self._log("Minute", self.stats_data_in_minute())

    def print_at_hour(self) -> None:
        self._log("Hour", self.stats_data_in_hour())

    def print_at_day(self) -> None:
        self._log("Day", self.stats_data_in_day())


class StatsItemSet:
    """A named family of :class:`StatsItem` keyed by ``topic@group``."""

    def __init__(self, stats_name: str, start_timers: bool = True) -> None:
        self.stats_name = stats_name
        self._items: Dict[str, StatsItem] = {}
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._threads: List[threading.Thread] = []
        if start_timers:
            self._start_timers()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _start_timers(self) -> None:
        now = datetime.now()
        schedule = [
            (10.0, 10.0, self.sampling_in_seconds),
            (600.0, 600.0, self.sampling_in_minutes),
            (3600.0, 3600.0, self.sampling_in_hour),
            ((next_minutes_time() - now).total_seconds() + 60.0, 60.0, self.print_at_minutes),
            ((next_hour_time() - now).total_seconds() + 3600.0, 3600.0, self.print_at_hour),
            ((next_month_time() - now).total_seconds() + 86400.0, 86400.0, self.print_at_day),
        ]
        for delay, interval, action in schedule:
            thread = threading.Thread(
                target=self._run_periodic,
                args=(delay, interval, action),
                name=f"stats-{self.stats_name}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

    def _run_periodic(
        self, delay: float, interval: float, action: Callable[[], None]
    ) -> None:
        wait = delay
        while not self._closed.wait(wait):
            try:
                action()
            except Exception:  # keep the timer alive
                logger.exception("stats timer failed: %s", self.stats_name)
            wait = interval

    def close(self) -> None:
        """Stop the background timers; calling again does nothing."""
        self._closed.set()
        for thread in self._threads:
            thread.join(timeout=1.0)

    def _snapshot_items(self) -> List[StatsItem]:
        with self._lock:
            return list(self._items.values())

    def add_value(self, key: str, inc_value: int, inc_times: int) -> None:
        self.get_or_create_item(key).add(inc_value, inc_times)

    def get_or_create_item(self, key: str) -> StatsItem:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                item = StatsItem(self.stats_name, key)
                self._items[key] = item
            return item

    def get_item(self, key: str) -> StatsItem:
        """Return the item for ``key``; raise KeyError if there is none."""
        with self._lock:
            return self._items[key]

    def _find(self, key: str) -> Optional[StatsItem]:
        with self._lock:
            return self._items.get(key)

    def sampling_in_seconds(self) -> None:
        for item in self._snapshot_items():
            item.sampling_in_seconds()

    def sampling_in_minutes(self) -> None:
        for item in self._snapshot_items():
            item.sampling_in_minutes()

    def sampling_in_hour(self) -> None:
        for item in self._snapshot_items():
            item.sampling_in_hour()

    def print_at_minutes(self) -> None:
        for item in self._snapshot_items():
            item.print_at_minutes()

    def print_at_hour(self) -> None:
        for item in self._snapshot_items():
            item.print_at_hour()

    def print_at_day(self) -> None:
        for item in self._snapshot_items():
            item.print_at_day()

    def stats_data_in_minute(self, key: str) -> StatsSnapshot:
        item = self._find(key)
        return item.stats_data_in_minute() if item else StatsSnapshot()

    def stats_data_in_hour(self, key: str) -> StatsSnapshot:
        item = self._find(key)
        return item.stats_data_in_hour() if item else StatsSnapshot()

    def stats_data_in_day(self, key: str) -> StatsSnapshot:
        item = self._find(key)
        return item.stats_data_in_day() if item else StatsSnapshot()


def _key(group: str, topic: str) -> str:
    return f"{topic}@{group}"


class StatsManager:
    """Tracks pull/consume response times and throughput per topic and group."""

    def __init__(self, start_timers: bool = True) -> None:
        self.consume_ok_tps = StatsItemSet("CONSUME_OK_TPS", start_timers)
        self.consume_rt = StatsItemSet("CONSUME_RT", start_timers)
        self.consume_failed_tps = StatsItemSet("CONSUME_FAILED_TPS", start_timers)
        self.pull_tps = StatsItemSet("PULL_TPS", start_timers)
        self.pull_rt = StatsItemSet("PULL_RT", start_timers)
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @property
    def sets(self) -> List[StatsItemSet]:
        return [
            self.consume_ok_tps,
            self.consume_rt,
            self.consume_failed_tps,
            self.pull_tps,
            self.pull_rt,
        ]

    def increase_pull_rt(self, group: str, topic: str, rt: int) -> None:
        self.pull_rt.add_value(_key(group, topic), rt, 1)

    def increase_pull_tps(self, group: str, topic: str, msgs: int) -> None:
        self.pull_tps.add_value(_key(group, topic), msgs, 1)

    def increase_consume_rt(self, group: str, topic: str, rt: int) -> None:
        self.consume_rt.add_value(_key(group, topic), rt, 1)

    def increase_consume_ok_tps(self, group: str, topic: str, msgs: int) -> None:
        self.consume_ok_tps.add_value(_key(group, topic), msgs, 1)

    def increase_consume_failed_tps(self, group: str, topic: str, msgs: int) -> None:
        self.consume_failed_tps.add_value(_key(group, topic), msgs, 1)

    def get_pull_rt(self, group: str, topic: str) -> StatsSnapshot:
        return self.pull_rt.stats_data_in_minute(_key(group, topic))

    def get_pull_tps(self, group: str, topic: str) -> StatsSnapshot:
        return self.pull_tps.stats_data_in_minute(_key(group, topic))

    def get_consume_rt(self, group: str, topic: str) -> StatsSnapshot:
        key = _key(group, topic)
        ss = self.consume_rt.stats_data_in_minute(key)
        if ss.sum == 0:
            return self.consume_rt.stats_data_in_hour(key)
        return ss

    def get_consume_ok_tps(self, group: str, topic: str) -> StatsSnapshot:
        return self.consume_ok_tps.stats_data_in_minute(_key(group, topic))

    def get_consume_failed_tps(self, group: str, topic: str) -> StatsSnapshot:
        return self.consume_failed_tps.stats_data_in_minute(_key(group, topic))

    def get_consume_status(self, group: str, topic: str) -> ConsumeStatus:
        return ConsumeStatus(
            pull_rt=self.get_pull_rt(group, topic).avgpt,
            pull_tps=self.get_pull_tps(group, topic).tps,
            consume_rt=self.get_consume_rt(group, topic).avgpt,
            consume_ok_tps=self.get_consume_ok_tps(group, topic).tps,
            consume_failed_tps=self.get_consume_failed_tps(group, topic).tps,
            consume_failed_msgs=self.consume_failed_tps.stats_data_in_hour(
                _key(group, topic)
            ).sum,
        )

    def shutdown(self) -> None:
        """Stop all timers; calling again does nothing."""
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True
        for item_set in self.sets:
            item_set.close()