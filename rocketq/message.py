"""Messages, queues and the contexts handed to consume callbacks and hooks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

PROPERTY_RETRY_TOPIC = "RETRY_TOPIC"
PROPERTY_CONSUME_START_TIME = "CONSUME_START_TIME"
PROPERTY_RECONSUME_TIME = "RECONSUME_TIME"

CTX_TYPE_KEY = "ConsumeContextType"
SUCCESS_RETURN = "SUCCESS"
TIMEOUT_RETURN = "TIMEOUT"
EXCEPTION_RETURN = "EXCEPTION"
FAILED_RETURN = "FAILED"


@dataclass(frozen=True)
class MessageQueue:
    """A single queue of a topic hosted on a broker."""

    topic: str = ""
    broker_name: str = ""
    queue_id: int = 0

    def __str__(self) -> str:
        return (
            f"MessageQueue [topic={self.topic}, brokerName={self.broker_name}, "
            f"queueId={self.queue_id}]"
        )


@dataclass
class MessageExt:
    """A message as delivered by a broker."""

    topic: str = ""
    body: bytes = b""
    properties: dict = field(default_factory=dict)
    msg_id: str = ""
    queue: MessageQueue = field(default_factory=MessageQueue)
    queue_offset: int = 0
    commit_log_offset: int = 0
    reconsume_times: int = 0
    store_host: str = ""
    born_timestamp: int = 0
    store_size: int = 0
    transaction_id: str = ""

    def get_property(self, name: str) -> str:
        return self.properties.get(name, "")

    def with_property(self, name: str, value: str) -> None:
        self.properties[name] = value


@dataclass
class FilterMessageContext:
    """What a filter hook sees when deciding which messages to keep."""

    consumer_group: str = ""
    msgs: List[MessageExt] = field(default_factory=list)
    mq: Optional[MessageQueue] = None
    arg: Any = None
    unit_mode: bool = False


FilterMessageHook = Callable[[FilterMessageContext], List[MessageExt]]


def apply_filter_hooks(
    hooks: Iterable[FilterMessageHook], ctx: FilterMessageContext
) -> List[MessageExt]:
    """Run hooks in order, each one seeing the messages the previous one kept."""
    for hook in hooks:
        ctx.msgs = list(hook(ctx))
    return ctx.msgs


@dataclass
class CheckTransactionStateCallback:
    """A broker's request to check the state of a half transaction."""

    addr: str
    msg: MessageExt
    header: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class ConsumeMessageContext:
    """Per-call information shared with interceptors."""

    consumer_group: str = ""
    mq: Optional[MessageQueue] = None
    msgs: Sequence[MessageExt] = field(default_factory=list)
    properties: dict = field(default_factory=dict)
    success: bool = False


@dataclass
class ConsumeConcurrentlyContext:
    """Context passed to a concurrent consume callback."""

    mq: MessageQueue = field(default_factory=MessageQueue)
    delay_level_when_next_consume: int = 0
    ack_index: int = 0


@dataclass
class ConsumeOrderlyContext:
    """Context passed to an orderly consume callback."""

    mq: MessageQueue = field(default_factory=MessageQueue)
    auto_commit: bool = True
    suspend_current_queue_time_millis: int = -1