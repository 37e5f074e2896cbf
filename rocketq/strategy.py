"""Strategies that decide which message queues a consumer takes."""

from __future__ import annotations

import bisect
import logging
import zlib
from typing import Callable, Dict, List, Optional, Sequence

from rocketq.message import MessageQueue

logger = logging.getLogger(__name__)

AllocateStrategy = Callable[
    [str, str, Sequence[MessageQueue], Sequence[str]], Optional[List[MessageQueue]]
]


def _hash(key: str) -> int:
    return zlib.crc32(key.encode("utf-8")) & 0xFFFFFFFF


class ConsistentHash:
    """A hash ring with a fixed number of virtual nodes per member."""

    def __init__(self, replicas: int = 20) -> None:
        self.replicas = replicas
        self._circle: Dict[int, str] = {}
        self._sorted: List[int] = []
        self._members: set = set()

    @property
    def members(self) -> frozenset:
        return frozenset(self._members)

    def add(self, member: str) -> None:
        for idx in range(self.replicas):
            self._circle[_hash(f"{idx}{member}")] = member
        self._members.add(member)
        self._sorted = sorted(self._circle)

    def get(self, key: str) -> str:
        """Return the member owning ``key``; raise LookupError on an empty ring."""
        if not self._circle:
            raise LookupError("empty circle")
        pos = bisect.bisect_right(self._sorted, _hash(key))
        if pos >= len(self._sorted):
            pos = 0
        return self._circle[self._sorted[pos]]


def _index_of(consumer_group: str, current_cid: str, mq_all, cid_all) -> Optional[int]:
    if not current_cid or not mq_all or not cid_all:
        return None
    try:
        return list(cid_all).index(current_cid)
    except ValueError:
        logger.warning(
            "[BUG] ConsumerId not in cidAll: group=%s consumerId=%s cidAll=%s",
            consumer_group,
            current_cid,
            list(cid_all),
        )
        return None


def allocate_by_averagely(
    consumer_group: str,
    current_cid: str,
    mq_all: Sequence[MessageQueue],
    cid_all: Sequence[str],
) -> Optional[List[MessageQueue]]:
    """Give each consumer a contiguous block of queues of near-equal size."""
    index = _index_of(consumer_group, current_cid, mq_all, cid_all)
    if index is None:
        return None

    mq_size, cid_size = len(mq_all), len(cid_all)
    mod = mq_size % cid_size
    if mq_size <= cid_size:
        average = 1
    elif mod > 0 and index < mod:
        average = mq_size // cid_size + 1
    else:
        average = mq_size // cid_size

    if mod > 0 and index < mod:
        start = index * average
    else:
        start = index * average + mod

    num = min(average, mq_size - start)
    return [mq_all[(start + i) % mq_size] for i in range(num)]


def allocate_by_averagely_circle(
    consumer_group: str,
    current_cid: str,
    mq_all: Sequence[MessageQueue],
    cid_all: Sequence[str],
) -> Optional[List[MessageQueue]]:
    """Deal queues out to consumers in turn, like cards."""
    index = _index_of(consumer_group, current_cid, mq_all, cid_all)
    if index is None:
        return None
    return list(mq_all[index :: len(cid_all)])


def allocate_by_machine_nearby(
    consumer_group: str,
    current_cid: str,
    mq_all: Sequence[MessageQueue],
    cid_all: Sequence[str],
) -> Optional[List[MessageQueue]]:
    """Machine-room proximity allocation; currently the average strategy."""
    return allocate_by_averagely(consumer_group, current_cid, mq_all, cid_all)


def allocate_by_config(queues: Sequence[MessageQueue]) -> AllocateStrategy:
    """Always hand out the configured queues, whatever the consumers are."""
    fixed = tuple(queues)

    def strategy(consumer_group, current_cid, mq_all, cid_all):
        # A fresh list each time, so callers cannot alter the configuration.
        return list(fixed)

    return strategy


def allocate_by_machine_room(consumer_idcs: Sequence[str]) -> AllocateStrategy:
    """Allocate among queues whose broker name is ``<idc>@<name>`` for a known idc."""
    idcs = list(consumer_idcs)

    def strategy(consumer_group, current_cid, mq_all, cid_all):
        index = _index_of(consumer_group, current_cid, mq_all, cid_all)
        if index is None:
            return None

        pre_mq_all = []
        for mq in mq_all:
            parts = mq.broker_name.split("@")
            if len(parts) == 2:
                pre_mq_all.extend(mq for idc in idcs if idc == parts[0])

        mod, rem = divmod(len(pre_mq_all), len(cid_all))
        start = mod * index
        result = list(mq_all[start : start + mod])
        if rem > index:
            result.append(pre_mq_all[index + mod * len(cid_all)])
        return result

    return strategy


def allocate_by_consistent_hash(virtual_node_cnt: int) -> AllocateStrategy:
    """Assign each queue to the consumer owning it on a consistent hash ring."""

    def strategy(consumer_group, current_cid, mq_all, cid_all):
        if _index_of(consumer_group, current_cid, mq_all, cid_all) is None:
            return None
        ring = ConsistentHash(virtual_node_cnt)
        for cid in cid_all:
            ring.add(cid)
        result = []
        for mq in mq_all:
            try:
                node = ring.get(str(mq))
            except LookupError as exc:
                logger.warning("[BUG] AllocateByConsistentHash err: %s", exc)
                continue
            if node == current_cid:
                result.append(mq)
        return result

    return strategy