# rocketq

Building blocks for the consuming side of a message queue client. The package
is plain Python and needs nothing outside the standard library.

- `rocketq.errors`: `ErrorCode` lists the failures the client knows about.
  `ClientError` is the exception that carries one of them.
- `rocketq.message`: `MessageQueue`, `MessageExt`, the contexts given to
  consume callbacks and filter hooks, and `apply_filter_hooks`.
- `rocketq.strategy`: strategies that split a topic's queues among the
  consumers of a group, and a `ConsistentHash` ring.
- `rocketq.statistics`: `StatsManager` records pull and consume response
  times and throughput for each topic and group, over rolling windows.
- `rocketq.process_queue`: `ProcessQueue` caches the messages pulled from
  one queue and works out which offsets can be committed.

## Installation

```
pip install .
```

## Messages and errors

```python
from rocketq.errors import ClientError, ErrorCode
from rocketq.message import MessageExt, MessageQueue

mq = MessageQueue(topic="orders", broker_name="broker-a", queue_id=3)
str(mq)  # "MessageQueue [topic=orders, brokerName=broker-a, queueId=3]"

msg = MessageExt(topic="orders", body=b"hello", queue_offset=7)
msg.with_property("RETRY_TOPIC", "orders")
msg.get_property("RETRY_TOPIC")  # "orders"; missing properties give ""

try:
    raise ClientError(ErrorCode.EMPTY_TOPIC)
except ClientError as exc:
    exc.code, str(exc)  # (ErrorCode.EMPTY_TOPIC, "empty topic")
```

`MessageQueue` is frozen and hashable, so it can be used as a dictionary key.
`apply_filter_hooks(hooks, ctx)` runs each hook on a `FilterMessageContext` in
turn. Each hook sees the messages that the hook before it kept, and the function
returns the messages left at the end.

## Allocating queues

Every strategy is a callable that takes
`(consumer_group, current_cid, mq_all, cid_all)` and returns the queues owned by
`current_cid`.

```python
from rocketq.message import MessageQueue
from rocketq.strategy import allocate_by_averagely, allocate_by_consistent_hash

queues = [MessageQueue(topic="orders", broker_name="broker-a", queue_id=i) for i in range(6)]
consumers = ["10.0.0.1@default", "10.0.0.2@default"]

allocate_by_averagely("group", "10.0.0.1@default", queues, consumers)
# queues 0, 1 and 2

by_ring = allocate_by_consistent_hash(10)
by_ring("group", "10.0.0.2@default", queues, consumers)
```

- `allocate_by_averagely`: each consumer gets a contiguous block of queues,
  and the blocks differ in size by at most one.
- `allocate_by_averagely_circle`: queues are dealt to the consumers in turn.
- `allocate_by_machine_nearby`: currently the same as `allocate_by_averagely`.
- `allocate_by_config(queues)`: always returns a fresh copy of the given
  queues.
- `allocate_by_machine_room(consumer_idcs)`: counts the queues whose broker
  name has the form `<idc>@<name>` for one of the given idcs.
- `allocate_by_consistent_hash(virtual_node_cnt)`: builds a `ConsistentHash`
  ring with that many virtual nodes per consumer and keeps the queues that
  hash to `current_cid`.

Every strategy except `allocate_by_config` returns `None` when
`current_cid` is empty, when either list is empty, or when `current_cid` is not
in `cid_all`. A `ConsistentHash` ring can also be used on its own. `add(member)`
puts a member on the ring, and `get(key)` returns the member that owns the key.
`get` raises `LookupError` when the ring is empty.

## Statistics

```python
from rocketq.statistics import StatsManager

stats = StatsManager(start_timers=False)
stats.increase_pull_tps("group", "orders", 32)
stats.pull_tps.sampling_in_seconds()
stats.get_pull_tps("group", "orders").sum
status = stats.get_consume_status("group", "orders")
stats.shutdown()
```

The manager keeps one `StatsItemSet` for each measure: `pull_rt`, `pull_tps`,
`consume_rt`, `consume_ok_tps` and `consume_failed_tps`. Each set holds one
`StatsItem` per `topic@group` key. A sample is written to the minute window by
`sampling_in_seconds`, to the hour window by `sampling_in_minutes`, and to the
day window by `sampling_in_hour`. The minute and hour windows keep the last 7
samples and the day window keeps the last 25. `compute_stats_data` reports the
sum, the TPS and the average per call between the first and the last sample of
a window. `get_consume_status` collects all of these into a `ConsumeStatus`.

With `start_timers=True`, background threads take samples every 10 seconds,
every 10 minutes and every hour, and log summaries through the standard
`logging` module. `shutdown()` stops the threads. Calling it again does nothing.

## Process queues

```python
from rocketq.message import MessageExt
from rocketq.process_queue import ProcessQueue

pq = ProcessQueue()
m0, m1 = MessageExt(queue_offset=0), MessageExt(queue_offset=1)
pq.put_messages([m0, m1])     # 2; offsets already cached are skipped
batch = pq.get_messages()     # [m0, m1]; blocks until a batch arrives
pq.remove_messages([m0])      # 1, the lowest offset still cached
```

`get_messages` returns `None` once `pq.dropped` is set. For ordered
consumption, `take_messages(n)` moves the `n` messages with the lowest offsets
into a consuming set. `commit()` then acknowledges that set and returns the next
offset, or -1 if the set is empty. `make_messages_consume_again` puts messages
from the set back into the cache. `max_span`, `min_offset`, `max_offset`,
`is_lock_expired` (the lock lives 30 seconds) and `current_info` report the
queue's state.

## What this package does not do

The package has no network layer. It does not connect to a name server or a
broker, so it cannot pull messages, send failed messages back, or store
offsets. It also has no consumer or producer that runs the pieces above as a
service. Those parts are left to the application, which builds on these
modules.

## Running the tests

```
pip install .[test]
pytest
```