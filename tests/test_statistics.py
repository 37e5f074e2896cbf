import math
from datetime import datetime

import pytest

from rocketq.statistics import (
    ConsumeStatus,
    StatsItem,
    StatsItemSet,
    StatsManager,
    StatsSnapshot,
    compute_stats_data,
    next_hour_time,
    next_minutes_time,
    next_month_time,
)

EXPECTED_SUMS = [0, 1, 2, 3, 4, 5, 6, 6]


@pytest.fixture
def mgr():
    manager = StatsManager(start_timers=False)
    yield manager
    manager.shutdown()


def test_next_minute_time():
    elapse = (next_minutes_time() - datetime.now()).total_seconds() / 60
    assert elapse == pytest.approx(1.0, rel=0.01)


def test_next_hour_time():
    elapse = (next_hour_time() - datetime.now()).total_seconds() / 3600
    assert elapse == pytest.approx(1.0, rel=0.01)


def test_next_month_time_is_one_month_ahead():
    days = (next_month_time() - datetime.now()).total_seconds() / 86400
    assert 27.9 <= days <= 31.1


def test_pull_rt_sum(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_pull_rt("rocketmq", "default", 1)
        mgr.pull_rt.sampling_in_seconds()
        assert mgr.get_pull_rt("rocketmq", "default").sum == expected


def test_pull_tps_sum(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_pull_tps("rocketmq", "default", 1)
        mgr.pull_tps.sampling_in_seconds()
        assert mgr.get_pull_tps("rocketmq", "default").sum == expected


def test_consume_ok_tps_sum(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_consume_ok_tps("rocketmq", "default", 1)
        mgr.consume_ok_tps.sampling_in_seconds()
        assert mgr.get_consume_ok_tps("rocketmq", "default").sum == expected


def test_consume_failed_tps_sum(mgr):
    for expected in EXPECTED_SUMS:
        mgr.increase_consume_failed_tps("rocketmq", "default", 1)
        mgr.consume_failed_tps.sampling_in_seconds()
        assert mgr.get_consume_failed_tps("rocketmq", "default").sum == expected


def test_consume_status_failed_msgs(mgr):
    group, topic = "rocketmq", "default"
    for expected in [0, 1, 2, 3, 4]:
        mgr.increase_pull_rt(group, topic, 1)
        mgr.increase_pull_tps(group, topic, 1)
        mgr.increase_consume_rt(group, topic, 1)
        mgr.increase_consume_ok_tps(group, topic, 1)
        mgr.increase_consume_failed_tps(group, topic, 1)
        mgr.pull_rt.sampling_in_seconds()
        mgr.pull_tps.sampling_in_seconds()
        mgr.consume_rt.sampling_in_minutes()
        mgr.consume_ok_tps.sampling_in_seconds()
        mgr.consume_failed_tps.sampling_in_minutes()
        status = mgr.get_consume_status(group, topic)
        assert status.consume_failed_msgs == expected


def test_consume_status_unknown_key_is_zero(mgr):
    assert mgr.get_consume_status("g", "t") == ConsumeStatus()


def test_consume_rt_falls_back_to_hour(mgr):
    for _ in range(3):
        mgr.increase_consume_rt("g", "t", 4)
        mgr.consume_rt.sampling_in_minutes()
    ss = mgr.get_consume_rt("g", "t")
    assert ss.sum == 8
    assert ss.avgpt == 4.0


def test_compute_stats_data_empty():
    assert compute_stats_data([]) == StatsSnapshot(sum=0, tps=0.0, avgpt=0.0)


def test_compute_stats_data_two_snapshots():
    ss = compute_stats_data([(0, 0, 0), (10000, 5, 50)])
    assert ss.sum == 50
    assert ss.tps == 5.0
    assert ss.avgpt == 10.0


def test_compute_stats_data_single_snapshot_has_undefined_tps():
    ss = compute_stats_data([(1000, 3, 7)])
    assert ss.sum == 0
    assert math.isnan(ss.tps)
    assert ss.avgpt == 0.0


def test_stats_item_windows_are_capped():
    item = StatsItem("TEST", "k")
    for _ in range(30):
        item.add(1, 1)
        item.sampling_in_seconds()
        item.sampling_in_minutes()
        item.sampling_in_hour()
    assert item.stats_data_in_minute().sum == 6
    assert item.stats_data_in_hour().sum == 6
    assert item.stats_data_in_day().sum == 24


def test_stats_item_counters():
    item = StatsItem("TEST", "k")
    item.add(5, 2)
    item.add(3, 1)
    assert (item.value, item.times) == (8, 3)


def test_item_set_missing_key():
    item_set = StatsItemSet("TEST", start_timers=False)
    assert item_set.stats_data_in_minute("none") == StatsSnapshot()
    assert item_set.stats_data_in_hour("none") == StatsSnapshot()
    assert item_set.stats_data_in_day("none") == StatsSnapshot()
    with pytest.raises(KeyError):
        item_set.get_item("none")


def test_item_set_reuses_items():
    item_set = StatsItemSet("TEST", start_timers=False)
    item_set.add_value("a", 2, 1)
    item_set.add_value("a", 3, 1)
    item = item_set.get_item("a")
    assert item is item_set.get_or_create_item("a")
    assert item.value == 5
    assert item.stats_key == "a"


def test_manager_with_timers_shuts_down():
    manager = StatsManager()
    manager.increase_pull_tps("rocketmq", "default", 1)
    manager.shutdown()
    manager.shutdown()
    assert all(s.closed for s in manager.sets)
    assert manager.pull_tps.get_item("default@rocketmq").value == 1