"""Unit tests for the tournament lock, dedup cache and coordinator."""

import threading

import pytest

from tallyboard.coordination import (
    ConcurrencyCoordinator,
    InProcessLock,
    ProcessedEventCache,
    advisory_lock_key,
    build_tournament_lock,
)
from tallyboard.errors import Busy, InvalidTransition
from tallyboard.match_statuses import TOP
from tallyboard.results import CommandResult


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestProcessedEventCache:
    """Tests for the TTL set of handled event ids."""

    def test_marked_id_is_seen_until_expiry(self):
        clock = FakeClock()
        cache = ProcessedEventCache(ttl_seconds=60.0, clock=clock)

        cache.mark("evt-1")
        clock.advance(59.9)
        assert cache.seen("evt-1")

        clock.advance(0.2)
        assert not cache.seen("evt-1")
        assert len(cache) == 0

    def test_unmarked_id_not_seen(self):
        cache = ProcessedEventCache(clock=FakeClock())
        cache.mark("evt-1")
        assert not cache.seen("evt-2")
        assert len(cache) == 1

    def test_empty_ids_are_never_duplicates(self):
        cache = ProcessedEventCache(clock=FakeClock())
        cache.mark(None)
        cache.mark("")
        assert not cache.seen(None)
        assert not cache.seen("")
        assert len(cache) == 0

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            ProcessedEventCache(ttl_seconds=0)


class TestInProcessLock:
    def test_hold_releases_on_exit(self):
        lock = InProcessLock()
        with lock.hold(0.1) as acquired:
            assert acquired
            with pytest.raises(Busy):
                with lock.hold(0.01):
                    pass
        with lock.hold(0.01) as reacquired:
            assert reacquired

    def test_hold_releases_on_error(self):
        lock = InProcessLock()
        with pytest.raises(RuntimeError):
            with lock.hold(0.1):
                raise RuntimeError("boom")
        with lock.hold(0.01) as reacquired:
            assert reacquired

    def test_timeout_raises_busy(self):
        lock = InProcessLock()
        held = threading.Event()
        release = threading.Event()

        def holder():
            with lock.hold(1.0):
                held.set()
                release.wait(5.0)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert held.wait(5.0)
            with pytest.raises(Busy) as excinfo:
                with lock.hold(0.05):
                    pass
            assert excinfo.value.transient
        finally:
            release.set()
            thread.join(5.0)


class TestConcurrencyCoordinator:
    """Tests for dedup plus lock around one operation."""

    def test_runs_operation_and_marks_id(self):
        coordinator = ConcurrencyCoordinator(lock_timeout_seconds=0.1)
        calls = []

        result = coordinator.run("evt-1", lambda: calls.append(1) or CommandResult.success("ok"))

        assert result.ok
        assert calls == [1]
        assert coordinator.is_duplicate("evt-1")

    def test_duplicate_is_dropped(self):
        coordinator = ConcurrencyCoordinator(lock_timeout_seconds=0.1)
        calls = []

        def operation():
            calls.append(1)
            return CommandResult.success("ok")

        coordinator.run("evt-1", operation)
        assert coordinator.run("evt-1", operation) is None
        assert calls == [1]

    def test_failed_result_not_marked(self):
        """A rejected command can be resent with the same id."""
        coordinator = ConcurrencyCoordinator(lock_timeout_seconds=0.1)

        result = coordinator.run(
            "evt-1", lambda: CommandResult.failure(InvalidTransition("not yet"))
        )

        assert not result.ok
        assert not coordinator.is_duplicate("evt-1")

    def test_engine_error_becomes_failure(self):
        coordinator = ConcurrencyCoordinator(lock_timeout_seconds=0.1)

        def operation():
            raise InvalidTransition("nope")

        result = coordinator.run("evt-1", operation)

        assert result.error_code == "invalid_transition"
        assert not coordinator.is_duplicate("evt-1")

    def test_busy_when_lock_held(self):
        lock = InProcessLock()
        coordinator = ConcurrencyCoordinator(lock=lock, lock_timeout_seconds=0.05)
        calls = []

        with lock.hold(0.1):
            result = coordinator.run("evt-1", lambda: calls.append(1) or CommandResult.success("ok"))

        assert calls == []
        assert not result.ok
        assert result.error_code == "busy"
        assert result.to_dict()["retry"] is True
        assert not coordinator.is_duplicate("evt-1")

    def test_duplicate_applied_while_waiting_is_dropped(self):
        """An id marked while a redelivery waits on the lock is not applied twice."""
        lock = InProcessLock()
        coordinator = ConcurrencyCoordinator(lock=lock, lock_timeout_seconds=5.0)
        calls = []
        results = []

        def operation():
            calls.append(1)
            return CommandResult.success("ok")

        with lock.hold(0.1):
            waiter = threading.Thread(
                target=lambda: results.append(coordinator.run("evt-1", operation))
            )
            waiter.start()
            coordinator.cache.mark("evt-1")
        waiter.join(5.0)

        assert results == [None]
        assert calls == []

    def test_concurrent_redeliveries_mutate_once(self, service):
        service.handle_event("evt-start", "A 1 start Red Blue")
        barrier = threading.Barrier(8)
        results = []

        def deliver():
            barrier.wait(5.0)
            results.append(service.handle_event("evt-score", "A 1 1Top 3"))

        threads = [threading.Thread(target=deliver) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5.0)

        applied = [r for r in results if r is not None and r.ok]
        assert len(applied) == 1
        match = service.registry.get("A", 1)
        assert service.ledger.total(match, TOP) == 3
        assert [row["kind"] for row in service.store.read_log()] == ["start", "score"]


def test_advisory_lock_key_is_stable_64bit_int():
    key_a1 = advisory_lock_key("tallyboard_tournament")
    key_a2 = advisory_lock_key("tallyboard_tournament")
    key_b = advisory_lock_key("other_tournament")

    assert key_a1 == key_a2
    assert key_a1 != key_b
    assert -(2**63) <= key_a1 < 2**63


def test_build_tournament_lock_defaults_to_in_process(test_engine):
    assert isinstance(build_tournament_lock(), InProcessLock)
    assert isinstance(build_tournament_lock(test_engine), InProcessLock)
