"""Tests for BoundedBuffer: blocking, capacity, ordering and interrupts."""

import threading
import time
from collections import Counter

import pytest

from conftest import start_thread, wait_until
from handoff.buffer import EMPTY, BoundedBuffer
from handoff.errors import ConfigurationError, WaitInterrupted
from handoff.telemetry.metrics import Metrics


@pytest.mark.parametrize("capacity", [0, -1, 1.5, True, "3", None])
def test_rejects_invalid_capacity(capacity):
    with pytest.raises(ConfigurationError):
        BoundedBuffer(capacity)


def test_basic_put_take_and_size():
    buffer = BoundedBuffer(5)
    buffer.put(1)
    buffer.put(2)
    assert buffer.size() == 2
    assert len(buffer) == 2

    assert buffer.take() == 1
    assert buffer.size() == 1
    assert buffer.take() == 2
    assert buffer.size() == 0


def test_capacity_is_fixed():
    buffer = BoundedBuffer(3)
    assert buffer.capacity == 3
    with pytest.raises(AttributeError):
        buffer.capacity = 4


def test_fifo_order_single_thread():
    buffer = BoundedBuffer(10)
    for i in range(10):
        buffer.put(i)
    assert [buffer.take() for _ in range(10)] == list(range(10))


def test_try_take_times_out_with_empty_marker():
    buffer = BoundedBuffer(2)
    start = time.monotonic()
    assert buffer.try_take(0.05) is EMPTY
    assert time.monotonic() - start >= 0.04


def test_try_take_returns_available_item():
    buffer = BoundedBuffer(2)
    buffer.put("a")
    assert buffer.try_take(0.05) == "a"


def test_try_take_zero_timeout_does_not_block():
    buffer = BoundedBuffer(1)
    assert buffer.try_take(0) is EMPTY


def test_offer_times_out_when_full():
    buffer = BoundedBuffer(1)
    assert buffer.offer(1, 0.05) is True
    assert buffer.offer(2, 0.05) is False
    assert buffer.size() == 1
    assert buffer.take() == 1


def test_put_blocks_when_full_and_resumes_after_take():
    buffer = BoundedBuffer(2)
    done = threading.Event()

    def produce():
        buffer.put(1)
        buffer.put(2)
        buffer.put(3)
        done.set()

    t = start_thread(produce)
    assert wait_until(lambda: buffer.size() == 2)
    time.sleep(0.2)
    # third put is parked, not dropped
    assert buffer.size() == 2
    assert not done.is_set()

    assert buffer.take() == 1
    t.join(2.0)
    assert done.is_set()
    assert buffer.take() == 2
    assert buffer.take() == 3


def test_capacity_plus_one_puts_stabilize_at_capacity():
    capacity = 4
    buffer = BoundedBuffer(capacity)
    t = start_thread(lambda: [buffer.put(i) for i in range(capacity + 1)])

    assert wait_until(lambda: buffer.size() == capacity)
    time.sleep(0.2)
    assert buffer.size() == capacity
    assert t.is_alive()

    buffer.take()
    t.join(2.0)
    assert not t.is_alive()
    assert buffer.size() == capacity


def test_take_blocks_when_empty():
    buffer = BoundedBuffer(5)
    consumed = []
    t = start_thread(lambda: consumed.append(buffer.take()))

    time.sleep(0.2)
    assert buffer.size() == 0
    assert consumed == []

    buffer.put(42)
    t.join(2.0)
    assert consumed == [42]


def test_interrupt_aborts_blocked_take():
    buffer = BoundedBuffer(2)
    errors = []

    def consume():
        try:
            buffer.take()
        except WaitInterrupted as exc:
            errors.append(exc)

    t = start_thread(consume)
    time.sleep(0.1)
    buffer.interrupt(t)
    t.join(2.0)

    assert not t.is_alive()
    assert len(errors) == 1
    assert buffer.size() == 0


def test_interrupt_aborts_blocked_put_without_touching_contents():
    buffer = BoundedBuffer(1)
    buffer.put("kept")
    errors = []

    def produce():
        try:
            buffer.put("lost")
        except WaitInterrupted as exc:
            errors.append(exc)

    t = start_thread(produce)
    time.sleep(0.1)
    buffer.interrupt(t)
    t.join(2.0)

    assert len(errors) == 1
    assert buffer.size() == 1
    assert buffer.take() == "kept"


def test_interrupt_only_hits_target_thread():
    buffer = BoundedBuffer(1)
    results = {}

    def consume(key):
        try:
            results[key] = buffer.take()
        except WaitInterrupted:
            results[key] = "interrupted"

    victim = start_thread(consume, "victim")
    bystander = start_thread(consume, "bystander")
    time.sleep(0.1)

    buffer.interrupt(victim)
    victim.join(2.0)
    assert results == {"victim": "interrupted"}

    buffer.put("item")
    bystander.join(2.0)
    assert results["bystander"] == "item"


def test_interrupt_ignores_thread_not_started():
    buffer = BoundedBuffer(1)
    buffer.interrupt(threading.Thread(target=lambda: None))
    buffer.put(1)
    assert buffer.take() == 1


def test_clear_interrupt_drops_pending_mark():
    buffer = BoundedBuffer(1)
    buffer.interrupt(threading.current_thread())
    buffer.clear_interrupt()
    buffer.put(1)
    assert buffer.take() == 1


def test_pending_interrupt_raises_on_next_call():
    buffer = BoundedBuffer(1)
    buffer.interrupt(threading.current_thread())
    with pytest.raises(WaitInterrupted):
        buffer.put(1)
    # mark is consumed by the raise
    buffer.put(1)
    assert buffer.size() == 1


def test_mark_left_by_exited_thread_does_not_hit_a_later_thread():
    buffer = BoundedBuffer(1)
    errors = []

    def use_buffer():
        try:
            buffer.put("x")
            buffer.take()
        except WaitInterrupted as exc:
            errors.append(exc)

    for _ in range(20):
        release = threading.Event()
        marked = start_thread(release.wait)
        buffer.interrupt(marked)
        release.set()
        marked.join(2.0)
        assert not marked.is_alive()

        # a fresh thread is likely to be handed the exited thread's ident
        t = start_thread(use_buffer)
        t.join(2.0)
        assert not t.is_alive()

    assert errors == []
    assert buffer.size() == 0


def test_many_producers_and_consumers_no_loss_no_duplication():
    capacity = 3
    metrics = Metrics()
    buffer = BoundedBuffer(capacity, metrics=metrics)
    n_producers, n_consumers, per_producer = 4, 4, 250
    taken = [[] for _ in range(n_consumers)]

    def produce(pid):
        for i in range(per_producer):
            buffer.put((pid, i))

    def consume(cid):
        for _ in range(per_producer):
            taken[cid].append(buffer.take())

    threads = [start_thread(produce, p) for p in range(n_producers)]
    threads += [start_thread(consume, c) for c in range(n_consumers)]
    for t in threads:
        t.join(10.0)
        assert not t.is_alive()

    everything = [item for chunk in taken for item in chunk]
    expected = [(p, i) for p in range(n_producers) for i in range(per_producer)]
    assert Counter(everything) == Counter(expected)
    assert buffer.size() == 0
    assert 1 <= metrics.buffer_high_water <= capacity


def test_single_consumer_sees_each_producer_in_order():
    buffer = BoundedBuffer(2)
    out = []

    def produce(pid):
        for i in range(50):
            buffer.put((pid, i))

    producers = [start_thread(produce, p) for p in range(3)]
    for _ in range(150):
        out.append(buffer.take())
    for t in producers:
        t.join(2.0)

    for pid in range(3):
        assert [i for p, i in out if p == pid] == list(range(50))


def test_size_never_exceeds_capacity_under_contention():
    capacity = 2
    buffer = BoundedBuffer(capacity)
    stop = threading.Event()
    observed = []

    def watch():
        while not stop.is_set():
            observed.append(buffer.size())

    def produce():
        for i in range(300):
            buffer.put(i)

    watcher = start_thread(watch)
    producers = [start_thread(produce) for _ in range(2)]
    for _ in range(600):
        buffer.take()
    for t in producers:
        t.join(2.0)
    stop.set()
    watcher.join(2.0)

    assert observed
    assert max(observed) <= capacity


def test_metrics_record_waits():
    metrics = Metrics()
    buffer = BoundedBuffer(1, metrics=metrics)
    t = start_thread(buffer.take)
    time.sleep(0.05)
    buffer.put(1)
    t.join(2.0)
    assert metrics.stage_percentile("take_wait", 50) > 0
    assert metrics.buffer_high_water == 1
