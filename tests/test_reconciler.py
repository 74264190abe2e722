"""Tests for the TreeReconciler polling loop."""

from contextlib import contextmanager

import psutil
import pytest

from pyjobmon.models import Process
from pyjobmon.reconciler import TreeReconciler, kill_and_reap


class ScriptedSource:
    """Listing source that replays one prepared listing per cycle."""

    def __init__(self, listings):
        self._listings = list(listings)
        self.opened = 0
        self.closed = 0

    @contextmanager
    def rows(self):
        listing = self._listings[min(self.opened, len(self._listings) - 1)]
        self.opened += 1
        try:
            yield iter(listing)
        finally:
            self.closed += 1


def generation_rows(*pids):
    """Rows for a chain where each pid's parent is the pid listed before it."""
    rows = []
    parent = 0
    for pid in pids:
        rows.append((pid, parent, f"proc-{pid}"))
        parent = pid
    return rows


class Recorder:
    def __init__(self):
        self.terminated: list[Process] = []
        self.reports: list[tuple[int, list[int]]] = []
        self.sleeps: list[float] = []

    def terminate(self, proc):
        self.terminated.append(proc)

    def report(self, cycle, members):
        self.reports.append((cycle, [proc.pid for proc in members]))

    def sleep(self, seconds):
        self.sleeps.append(seconds)


def make_reconciler(listings, target=1, interval=3.0):
    recorder = Recorder()
    source = ScriptedSource(listings)
    reconciler = TreeReconciler(
        target,
        source,
        interval=interval,
        report=recorder.report,
        terminate=recorder.terminate,
        sleep=recorder.sleep,
    )
    return reconciler, source, recorder


def test_termination_detected_at_disappearance():
    """Test G1={1,2}, G2={1,2}, G3={2}: detection at G2 -> G3, cleanup of {2}."""
    g1 = [(1, 0, "target"), (2, 1, "child")]
    g3 = [(2, 77, "child")]  # Re-parented once the target is gone
    reconciler, source, recorder = make_reconciler([g1, g1, g3])

    assert reconciler.poll_once() is False
    assert reconciler.poll_once() is False
    assert reconciler.poll_once() is True

    assert set(reconciler.previous_generation) == {1, 2}
    cleaned = reconciler.cleanup()
    assert [proc.pid for proc in cleaned] == [2]
    assert [proc.pid for proc in recorder.terminated] == [2]


def test_run_loops_until_target_exits():
    """Test run() sleeps between cycles and cleans up after detection."""
    alive = generation_rows(1, 2, 3)
    reconciler, source, recorder = make_reconciler([alive, alive, alive, [(2, 0, "x")]])

    cleaned = reconciler.run()

    assert [proc.pid for proc in cleaned] == [2, 3]
    assert recorder.sleeps == [3.0, 3.0, 3.0]
    assert reconciler.cycle == 4
    assert source.opened == source.closed == 4


def test_report_excludes_target():
    """Test each cycle reports every tracked pid except the target."""
    reconciler, _, recorder = make_reconciler([generation_rows(1, 2, 3)])

    reconciler.poll_once()
    reconciler.poll_once()

    assert recorder.reports == [(0, [2, 3]), (1, [2, 3])]


def test_absent_target_on_first_cycle_is_not_termination():
    """Test a target that was never seen is not considered terminated."""
    reconciler, _, recorder = make_reconciler([[(5, 0, "other")], generation_rows(1, 2)])

    assert reconciler.poll_once() is False
    assert reconciler.poll_once() is False
    assert recorder.terminated == []


def test_cleanup_uses_last_generation_with_target():
    """Test descendants born after the last live sighting are not touched."""
    reconciler, _, recorder = make_reconciler(
        [
            generation_rows(1, 2),
            generation_rows(1, 2, 3),
            [(2, 0, "orphan"), (3, 2, "grandchild"), (4, 3, "new")],
        ]
    )

    reconciler.run()

    assert [proc.pid for proc in recorder.terminated] == [2, 3]


def test_target_without_descendants():
    """Test cleanup does nothing when the target had no children."""
    reconciler, _, recorder = make_reconciler([[(1, 0, "target")], []])

    assert reconciler.run() == []
    assert recorder.terminated == []


def test_source_closed_when_listing_fails():
    """Test the listing is released even if reading it raises."""

    class FailingSource(ScriptedSource):
        @contextmanager
        def rows(self):
            self.opened += 1
            try:
                yield self._broken()
            finally:
                self.closed += 1

        def _broken(self):
            yield (1, 0, "target")
            raise OSError("read failed")

    source = FailingSource([])
    reconciler = TreeReconciler(1, source, sleep=lambda _: None)

    with pytest.raises(OSError):
        reconciler.poll_once()
    assert source.closed == 1


def test_interval_has_minimum():
    """Test the polling interval is clamped to a minimum."""
    reconciler = TreeReconciler(1, ScriptedSource([[]]), interval=0.001)

    assert reconciler.interval >= 0.1


class TestKillAndReap:
    """Tests for kill_and_reap."""

    def test_missing_process_is_skipped(self, monkeypatch):
        def gone(pid):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(psutil, "Process", gone)

        assert kill_and_reap(Process(pid=999999, parent_pid=1, command="gone")) is None

    def test_access_denied_does_not_raise(self, monkeypatch):
        class Locked:
            def __init__(self, pid):
                self.pid = pid

            def kill(self):
                raise psutil.AccessDenied(self.pid)

        monkeypatch.setattr(psutil, "Process", Locked)

        assert kill_and_reap(Process(pid=1, parent_pid=0, command="init")) is None

    def test_reap_timeout_does_not_raise(self, monkeypatch):
        class Stubborn:
            def __init__(self, pid):
                self.pid = pid
                self.killed = False

            def kill(self):
                self.killed = True

            def wait(self, timeout=None):
                raise psutil.TimeoutExpired(timeout, self.pid)

        monkeypatch.setattr(psutil, "Process", Stubborn)

        assert kill_and_reap(Process(pid=5, parent_pid=1, command="stuck"), timeout=0.1) is None
