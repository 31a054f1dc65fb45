"""Tests for devrp.sweeper."""

import threading

import pytest

from devrp.registry import ClientRegistry
from devrp.sweeper import ExpirySweeper


@pytest.fixture
def registry(clock) -> ClientRegistry:
    return ClientRegistry(clock=clock)


class TestSweep:
    def test_evicts_and_notifies(self, registry, clock):
        calls = []
        sweeper = ExpirySweeper(registry, timeout=30, on_evict=calls.append)
        registry.register("myapp", 3000)
        clock.advance(31)

        assert sweeper.sweep() == ["myapp"]
        assert calls == [["myapp"]]
        assert registry.count() == 0

    def test_no_callback_when_nothing_expired(self, registry, clock):
        calls = []
        sweeper = ExpirySweeper(registry, timeout=30, on_evict=calls.append)
        registry.register("myapp", 3000)
        clock.advance(10)

        assert sweeper.sweep() == []
        assert calls == []

    def test_interval_must_be_shorter_than_timeout(self, registry):
        with pytest.raises(ValueError):
            ExpirySweeper(registry, timeout=5, on_evict=lambda ids: None, interval=5)


class TestLifecycle:
    def test_background_thread_evicts(self, registry, clock):
        evicted = threading.Event()
        sweeper = ExpirySweeper(
            registry, timeout=1.0, on_evict=lambda ids: evicted.set(), interval=0.05,
        )
        registry.register("myapp", 3000)
        clock.advance(2)

        sweeper.start()
        try:
            assert evicted.wait(2)
        finally:
            sweeper.stop(timeout=2)
        assert registry.count() == 0

    def test_stop_joins_thread(self, registry):
        sweeper = ExpirySweeper(registry, timeout=1.0, on_evict=lambda ids: None, interval=0.05)
        sweeper.start()
        assert sweeper.running
        sweeper.stop(timeout=2)
        assert not sweeper.running

    def test_callback_error_does_not_kill_loop(self, registry, clock):
        seen = []
        done = threading.Event()

        def on_evict(ids):
            seen.append(ids)
            if len(seen) == 1:
                raise RuntimeError("boom")
            done.set()

        sweeper = ExpirySweeper(registry, timeout=1.0, on_evict=on_evict, interval=0.05)
        registry.register("first", 3000)
        clock.advance(2)
        sweeper.start()
        try:
            for _ in range(40):
                if seen:
                    break
                threading.Event().wait(0.05)
            registry.register("second", 3001)
            clock.advance(2)
            assert done.wait(2)
        finally:
            sweeper.stop(timeout=2)
        assert seen == [["first"], ["second"]]
