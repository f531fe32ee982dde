"""Tests for the debounced watch loop."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from file_secret_sync.core import (
    DebounceTimer,
    SnapshotReadError,
    SyncAction,
    SyncEngine,
    SyncResult,
    TimerState,
    WatchLoop
)
from file_secret_sync.stores import SecretStoreError
from file_secret_sync.watcher import EventKind, NotifierError, WatchEvent


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_engine_mock(side_effect=None):
    engine = Mock(spec=SyncEngine)
    engine.secret_identity = "test-namespace/test-secret"
    engine.reconcile_once = AsyncMock(
        return_value=SyncResult(SyncAction.UNCHANGED, "test-namespace", "test-secret", keys=1),
        side_effect=side_effect
    )
    return engine


def file_event(path, kind=EventKind.MODIFIED):
    return WatchEvent(str(path), kind, is_directory=False)


def dir_event(path, kind=EventKind.CREATED):
    return WatchEvent(str(path), kind, is_directory=True)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestDebounceTimer:
    """Test the two-state debounce timer."""

    def test_starts_idle(self):
        timer = DebounceTimer(1.0, FakeClock())

        assert timer.state is TimerState.IDLE
        assert timer.remaining() is None
        assert timer.expired() is False

    def test_arm_sets_deadline(self):
        clock = FakeClock(10.0)
        timer = DebounceTimer(1.0, clock)

        timer.arm()

        assert timer.state is TimerState.ARMED
        assert timer.deadline == 11.0
        assert timer.remaining() == 1.0

    def test_rearm_replaces_deadline(self):
        clock = FakeClock()
        timer = DebounceTimer(1.0, clock)

        timer.arm()
        clock.advance(0.6)
        timer.arm()

        assert timer.deadline == pytest.approx(1.6)
        clock.advance(0.5)
        assert timer.expired() is False
        clock.advance(0.5)
        assert timer.expired() is True

    def test_remaining_never_negative(self):
        clock = FakeClock()
        timer = DebounceTimer(1.0, clock)
        timer.arm()

        clock.advance(5.0)

        assert timer.remaining() == 0.0

    def test_disarm_returns_to_idle(self):
        timer = DebounceTimer(1.0, FakeClock())
        timer.arm()

        timer.disarm()

        assert timer.state is TimerState.IDLE
        assert timer.expired() is False

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            DebounceTimer(0)


class TestWatchSubscription:
    """Test which directories the loop watches."""

    def test_subscribe_watches_root_and_subdirectories(self, tmp_path, notifier):
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "c").mkdir()
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)

        loop.subscribe()

        expected = {str(tmp_path), str(tmp_path / "a"), str(tmp_path / "a" / "b"), str(tmp_path / "c")}
        assert loop.watched == expected
        assert set(notifier.watched) == expected

    def test_subscribe_failure_raises(self, tmp_path, notifier_factory):
        notifier = notifier_factory(fail_on=[tmp_path])
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)

        with pytest.raises(NotifierError):
            loop.subscribe()

    def test_subscribe_missing_root_raises(self, tmp_path, notifier):
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path / "missing")

        with pytest.raises(OSError):
            loop.subscribe()

    def test_new_directory_is_watched_with_its_children(self, tmp_path, notifier):
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)
        loop.subscribe()
        (tmp_path / "new" / "nested").mkdir(parents=True)

        loop.on_change(dir_event(tmp_path / "new"))

        assert str(tmp_path / "new") in loop.watched
        assert str(tmp_path / "new" / "nested") in loop.watched
        assert loop.state is TimerState.ARMED

    def test_directory_is_not_watched_twice(self, tmp_path, notifier):
        (tmp_path / "sub").mkdir()
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)
        loop.subscribe()

        loop.on_change(dir_event(tmp_path / "sub"))

        assert notifier.watched.count(str(tmp_path / "sub")) == 1

    def test_file_event_only_arms_timer(self, tmp_path, notifier):
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)
        loop.subscribe()

        loop.on_change(file_event(tmp_path / "a.txt", EventKind.CREATED))

        assert loop.watched == {str(tmp_path)}
        assert loop.state is TimerState.ARMED

    def test_removed_directory_is_forgotten(self, tmp_path, notifier):
        (tmp_path / "sub" / "deeper").mkdir(parents=True)
        (tmp_path / "subling").mkdir()
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)
        loop.subscribe()

        loop.on_change(dir_event(tmp_path / "sub", EventKind.REMOVED))

        assert loop.watched == {str(tmp_path), str(tmp_path / "subling")}
        assert set(notifier.unwatched) == {str(tmp_path / "sub"), str(tmp_path / "sub" / "deeper")}
        assert loop.state is TimerState.ARMED

    def test_recreated_directory_is_watched_again(self, tmp_path, notifier):
        (tmp_path / "sub").mkdir()
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)
        loop.subscribe()

        loop.on_change(dir_event(tmp_path / "sub", EventKind.REMOVED))
        loop.on_change(dir_event(tmp_path / "sub", EventKind.CREATED))

        assert str(tmp_path / "sub") in loop.watched
        assert notifier.watched.count(str(tmp_path / "sub")) == 2

    def test_unwatchable_new_directory_still_arms_timer(self, tmp_path, notifier_factory):
        (tmp_path / "flaky").mkdir()
        notifier = notifier_factory(fail_on=[tmp_path / "flaky"])
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)

        loop.on_change(dir_event(tmp_path / "flaky"))

        assert str(tmp_path / "flaky") not in loop.watched
        assert isinstance(notifier._queue.get_nowait(), NotifierError)
        assert loop.state is TimerState.ARMED

    def test_vanished_new_directory_is_tolerated(self, tmp_path, notifier):
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)

        loop.on_change(dir_event(tmp_path / "gone"))

        assert loop.watched == frozenset()
        assert loop.state is TimerState.ARMED


class TestTransitions:
    """Test timer expiry handling without running the loop."""

    @pytest.mark.asyncio
    async def test_expiry_runs_one_pass_and_goes_idle(self, tmp_path, notifier):
        engine = make_engine_mock()
        loop = WatchLoop(engine, notifier, tmp_path)
        loop.on_change(file_event(tmp_path / "a"))

        await loop.on_timer_expired()

        assert loop.state is TimerState.IDLE
        engine.reconcile_once.assert_awaited_once()
        assert loop.passes == 1
        assert loop.last_result.action is SyncAction.UNCHANGED

    @pytest.mark.asyncio
    async def test_failed_pass_is_recorded_not_raised(self, tmp_path, notifier):
        engine = make_engine_mock(side_effect=SecretStoreError("unavailable", status=503))
        loop = WatchLoop(engine, notifier, tmp_path)

        await loop.on_timer_expired()

        assert loop.passes == 1
        assert loop.failed_passes == 1

    @pytest.mark.asyncio
    async def test_read_error_is_recorded_not_raised(self, tmp_path, notifier):
        engine = make_engine_mock(side_effect=SnapshotReadError("gone"))
        loop = WatchLoop(engine, notifier, tmp_path)

        await loop.on_timer_expired()

        assert loop.failed_passes == 1


class TestRunLoop:
    """Test the running loop with a short debounce window."""

    @pytest.mark.asyncio
    async def test_burst_of_events_runs_one_pass(self, tmp_path, notifier):
        engine = make_engine_mock()
        loop = WatchLoop(engine, notifier, tmp_path, debounce_seconds=0.1)
        task = asyncio.create_task(loop.run())

        for i in range(5):
            notifier.emit_event(file_event(tmp_path / f"file{i}.txt"))
            await asyncio.sleep(0.01)

        await wait_until(lambda: engine.reconcile_once.await_count >= 1)
        await asyncio.sleep(0.3)

        assert engine.reconcile_once.await_count == 1
        assert loop.state is TimerState.IDLE

        notifier.close()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_pass_waits_for_quiet_period(self, tmp_path, notifier):
        engine = make_engine_mock()
        loop = WatchLoop(engine, notifier, tmp_path, debounce_seconds=0.2)
        task = asyncio.create_task(loop.run())

        # Keep events coming faster than the window for longer than the window
        for i in range(6):
            notifier.emit_event(file_event(tmp_path / "busy.txt"))
            await asyncio.sleep(0.08)

        assert engine.reconcile_once.await_count == 0

        await wait_until(lambda: engine.reconcile_once.await_count == 1)

        notifier.close()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_no_pass_without_events(self, tmp_path, notifier):
        engine = make_engine_mock()
        loop = WatchLoop(engine, notifier, tmp_path, debounce_seconds=0.05)
        task = asyncio.create_task(loop.run())

        await asyncio.sleep(0.2)

        engine.reconcile_once.assert_not_awaited()
        notifier.close()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_failure_then_new_change_triggers_new_pass(self, tmp_path, notifier):
        engine = make_engine_mock(side_effect=[
            SecretStoreError("API error", status=500),
            SyncResult(SyncAction.CREATED, "test-namespace", "test-secret", keys=1),
        ])
        loop = WatchLoop(engine, notifier, tmp_path, debounce_seconds=0.05)
        task = asyncio.create_task(loop.run())

        notifier.emit_event(file_event(tmp_path / "a.txt"))
        await wait_until(lambda: loop.passes == 1)
        assert loop.failed_passes == 1

        notifier.emit_event(file_event(tmp_path / "unrelated.txt"))
        await wait_until(lambda: loop.passes == 2)

        assert loop.failed_passes == 1
        assert loop.last_result.action is SyncAction.CREATED

        notifier.close()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_notifier_error_does_not_stop_loop(self, tmp_path, notifier):
        engine = make_engine_mock()
        loop = WatchLoop(engine, notifier, tmp_path, debounce_seconds=0.05)
        task = asyncio.create_task(loop.run())

        notifier.emit_error(NotifierError("queue overflow"))
        await asyncio.sleep(0.1)
        assert not task.done()
        engine.reconcile_once.assert_not_awaited()

        notifier.emit_event(file_event(tmp_path / "a.txt"))
        await wait_until(lambda: engine.reconcile_once.await_count == 1)

        notifier.close()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_close_ends_loop(self, tmp_path, notifier):
        loop = WatchLoop(make_engine_mock(), notifier, tmp_path)
        task = asyncio.create_task(loop.run())

        notifier.close()

        await asyncio.wait_for(task, timeout=2)
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_periodic_resync_runs_without_events(self, tmp_path, notifier):
        engine = make_engine_mock()
        loop = WatchLoop(
            engine,
            notifier,
            tmp_path,
            debounce_seconds=10.0,
            resync_interval_seconds=0.05
        )
        task = asyncio.create_task(loop.run())

        await wait_until(lambda: engine.reconcile_once.await_count >= 2)

        notifier.close()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_end_to_end_with_real_engine(self, tmp_path, write_tree, store, notifier):
        folder = tmp_path / "credentials"
        folder.mkdir()
        engine = SyncEngine(store, folder, "test-namespace", "test-secret")
        loop = WatchLoop(engine, notifier, folder, debounce_seconds=0.05)
        loop.subscribe()
        task = asyncio.create_task(loop.run())

        write_tree(folder, {"token": "v1"})
        notifier.emit_event(file_event(folder / "token", EventKind.CREATED))
        await wait_until(lambda: loop.passes == 1)

        write_tree(folder, {"token": "v2"})
        for _ in range(5):
            notifier.emit_event(file_event(folder / "token"))
        await wait_until(lambda: loop.passes == 2)

        secret = await store.get("test-namespace", "test-secret")
        assert secret.data == {"token": b"v2"}
        assert [call[0] for call in store.writes()] == ["create", "update"]

        notifier.close()
        await asyncio.wait_for(task, timeout=2)
