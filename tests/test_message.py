import pytest

from rocketq.message import (
    PROPERTY_RETRY_TOPIC,
    CheckTransactionStateCallback,
    ConsumeConcurrentlyContext,
    ConsumeMessageContext,
    ConsumeOrderlyContext,
    FilterMessageContext,
    MessageExt,
    MessageQueue,
    apply_filter_hooks,
)


def test_queue_str_mentions_all_fields():
    mq = MessageQueue(topic="TopicTest", broker_name="broker-a", queue_id=3)
    text = str(mq)
    assert "TopicTest" in text
    assert "broker-a" in text
    assert "3" in text


def test_queue_str_differs_by_queue_id():
    a = MessageQueue("t", "b", 1)
    b = MessageQueue("t", "b", 2)
    assert str(a) != str(b)
    assert a != b


def test_queue_is_hashable_and_equal_by_value():
    table = {MessageQueue("t", "b", 1): 10}
    assert table[MessageQueue("t", "b", 1)] == 10


def test_property_round_trip():
    msg = MessageExt(topic="t")
    msg.with_property(PROPERTY_RETRY_TOPIC, "origin")
    assert msg.get_property(PROPERTY_RETRY_TOPIC) == "origin"


def test_missing_property_is_empty():
    assert MessageExt().get_property("nothing") == ""


def test_messages_do_not_share_properties():
    a, b = MessageExt(), MessageExt()
    a.with_property("k", "v")
    assert b.get_property("k") == ""


def test_filter_hooks_run_in_order():
    msgs = [MessageExt(topic="t", queue_offset=i) for i in range(6)]
    ctx = FilterMessageContext(consumer_group="g", msgs=msgs)
    seen = []

    def even(c):
        seen.append(len(c.msgs))
        return [m for m in c.msgs if m.queue_offset % 2 == 0]

    def above_one(c):
        seen.append(len(c.msgs))
        return [m for m in c.msgs if m.queue_offset > 1]

    result = apply_filter_hooks([even, above_one], ctx)
    assert [m.queue_offset for m in result] == [2, 4]
    assert seen == [6, 3]
    assert ctx.msgs == result


def test_filter_hooks_none_keeps_messages():
    msgs = [MessageExt(topic="t")]
    assert apply_filter_hooks([], FilterMessageContext(msgs=msgs)) == msgs


def test_filter_hook_error_propagates():
    def broken(_):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        apply_filter_hooks([broken], FilterMessageContext())


def test_context_defaults():
    orderly = ConsumeOrderlyContext()
    assert orderly.auto_commit is True
    assert orderly.suspend_current_queue_time_millis == -1
    assert ConsumeConcurrentlyContext().delay_level_when_next_consume == 0


def test_consume_message_context_properties_independent():
    a, b = ConsumeMessageContext(), ConsumeMessageContext()
    a.properties["x"] = "y"
    assert b.properties == {}


def test_check_transaction_callback_holds_message():
    msg = MessageExt(topic="t", transaction_id="tx")
    cb = CheckTransactionStateCallback(addr="localhost:10911", msg=msg)
    assert cb.msg.transaction_id == "tx"
    assert cb.header == {}