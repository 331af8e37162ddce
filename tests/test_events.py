"""Tests for the event bus and subscribers."""
import threading
import time

import pytest

from s3box.core.events import EventBus, EventType, GenericEvent, Subscriber, is_, is_one_of

PING = EventType("test.ping")
PONG = EventType("test.pong")


def _ping(n=0):
    evt = GenericEvent(event_type=PING)
    evt.n = n
    return evt


class TestEventType:
    def test_outcomes(self):
        assert PING.as_success() == "test.ping.success"
        assert PING.as_failure() == "test.ping.failure"
        assert PING.as_success().status == "success"
        assert PING.as_failure().status == "failure"
        assert PING.status == "request"


class TestSubscriber:
    def test_duplicate_matcher_keeps_first_callback(self):
        calls = []
        sub = Subscriber()
        sub.on(is_(PING), lambda e: calls.append("first"))
        sub.on(is_(PING), lambda e: calls.append("second"))
        assert len(sub._registered) == 1

    def test_register_after_listen_raises(self):
        sub = Subscriber().listen_with_workers(1)
        with pytest.raises(RuntimeError):
            sub.on(is_(PING), lambda e: None)
        sub.close()

    def test_accept(self):
        sub = Subscriber().on(is_one_of(PING, PONG), lambda e: None)
        assert sub.accept(_ping())
        assert not sub.accept(GenericEvent(event_type=EventType("other")))

    def test_close_is_idempotent(self):
        sub = Subscriber()
        assert sub.close() is True
        assert sub.close() is False
        assert sub.receive() is None


class TestEventBus:
    def test_delivers_in_publish_order(self, bus, wait_until):
        received = []
        bus.subscribe("ordered").on(is_(PING), lambda e: received.append(e.n)).listen_with_workers(1)
        for i in range(50):
            bus.publish(_ping(i))
        assert wait_until(lambda: len(received) == 50)
        assert received == list(range(50))

    def test_only_matching_events_reach_callback(self, bus, wait_until):
        pings, pongs = [], []
        bus.subscribe("a").on(is_(PING), pings.append).on(is_(PONG), pongs.append).listen_with_workers(1)
        bus.publish(_ping())
        bus.publish(GenericEvent(event_type=PONG))
        bus.publish(GenericEvent(event_type=EventType("ignored")))
        assert wait_until(lambda: len(pings) == 1 and len(pongs) == 1)

    def test_every_subscriber_receives(self, bus, wait_until):
        counts = {"a": 0, "b": 0}
        lock = threading.Lock()

        def count(name):
            def inc(evt):
                with lock:
                    counts[name] += 1
            return inc

        for name in counts:
            bus.subscribe(name).on(is_(PING), count(name)).listen_with_workers(1)
        for i in range(5):
            bus.publish(_ping(i))
        assert wait_until(lambda: counts == {"a": 5, "b": 5})

    def test_failing_callback_does_not_stop_listener(self, bus, wait_until):
        received = []

        def flaky(evt):
            if evt.n == 0:
                raise ValueError("boom")
            received.append(evt.n)

        bus.subscribe("flaky").on(is_(PING), flaky).listen_with_workers(1)
        bus.publish(_ping(0))
        bus.publish(_ping(1))
        assert wait_until(lambda: received == [1])

    def test_close_closes_subscribers_and_drops_publishes(self, wait_until):
        bus = EventBus(workers=2)
        received = []
        sub = bus.subscribe("late").on(is_(PING), received.append).listen_with_workers(1)
        bus.close()
        assert wait_until(lambda: sub.closed)
        bus.publish(_ping())
        time.sleep(0.1)
        assert received == []
        assert bus.subscribe("after").closed

    def test_non_blocking_listener(self, bus, wait_until):
        received = []
        bus.subscribe("spawn").on(is_(PING), received.append).listen_non_blocking()
        bus.publish(_ping())
        assert wait_until(lambda: len(received) == 1)

    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            EventBus(workers=0)
