"""Polling watchdog that supervises the descendant tree of a target process."""

import logging
import time
from collections.abc import Callable
from types import MappingProxyType

import psutil

from pyjobmon.models import Generation, Process
from pyjobmon.settings import DEFAULT_INTERVAL, MIN_INTERVAL, REAP_TIMEOUT
from pyjobmon.snapshot import take_generation
from pyjobmon.sources import ListingSource

log = logging.getLogger(__name__)

Report = Callable[[int, list[Process]], None]


def kill_and_reap(process: Process, timeout: float | None = REAP_TIMEOUT) -> int | None:
    """
    Send SIGKILL to a process and wait for it to go away.

    Processes that are already gone are skipped. Access errors and reap
    timeouts are logged and do not raise, so one stubborn process cannot stop
    the rest of a cleanup.

    Returns:
        The exit status when the process was our child, otherwise None.
    """
    try:
        proc = psutil.Process(process.pid)
        proc.kill()
        return proc.wait(timeout=timeout)
    except psutil.NoSuchProcess:
        log.debug("Process %d already gone", process.pid)
    except psutil.AccessDenied:
        log.warning("Not permitted to kill process %d (%s)", process.pid, process.command)
    except psutil.TimeoutExpired:
        log.warning("Process %d did not exit within %.1fs of SIGKILL", process.pid, timeout)
    return None


class TreeReconciler:
    """
    Tracks the descendants of a target process by repeated snapshots.

    Each cycle rebuilds the target's descendant set from a fresh listing and
    compares it with the previous cycle's. Once the target has been seen and
    then disappears, every process of the last generation in which it was
    alive is killed and reaped.

    The target must be alive when supervision starts: a target that is never
    seen is never considered terminated, and the loop keeps polling.
    """

    def __init__(
        self,
        target_pid: int,
        source: ListingSource,
        interval: float = DEFAULT_INTERVAL,
        report: Report | None = None,
        terminate: Callable[[Process], object] = kill_and_reap,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the TreeReconciler.

        Args:
            target_pid: Pid of the process whose tree is supervised.
            source: Listing source read once per cycle.
            interval: Seconds to wait between cycles.
            report: Called each cycle with the cycle counter and the tracked
                processes, target excluded.
            terminate: Kills and reaps one process during cleanup.
            sleep: Blocks for the given number of seconds.
        """
        self._target_pid = target_pid
        self._source = source
        self._interval = max(MIN_INTERVAL, interval)
        self._report = report
        self._terminate = terminate
        self._sleep = sleep
        self._cycle = 0
        self._previous: Generation = MappingProxyType({})

    @property
    def target_pid(self) -> int:
        return self._target_pid

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def cycle(self) -> int:
        """Number of completed polling cycles."""
        return self._cycle

    @property
    def previous_generation(self) -> Generation:
        """The last generation in which the target was not found missing."""
        return self._previous

    def poll_once(self) -> bool:
        """
        Run one polling cycle.

        Returns:
            True if the target was present in the previous generation and is
            absent now.
        """
        with self._source.rows() as rows:
            current = take_generation(rows, self._target_pid)

        if self._report is not None:
            members = [proc for pid, proc in current.items() if pid != self._target_pid]
            self._report(self._cycle, members)
        self._cycle += 1

        if self._target_pid in self._previous and self._target_pid not in current:
            log.info("Target %d appears to have terminated; cleaning up", self._target_pid)
            return True

        self._previous = current
        return False

    def run(self) -> list[Process]:
        """
        Poll until the target terminates, then clean up its descendants.

        Returns:
            The processes cleanup was applied to.
        """
        log.info("Supervising pid %d every %.1fs", self._target_pid, self._interval)
        while not self.poll_once():
            self._sleep(self._interval)
        return self.cleanup()

    def cleanup(self) -> list[Process]:
        """
        Kill and reap every tracked descendant of the target.

        Processes are handled in listing order, not leaves first, so a parent
        can die before its children; those children may be re-parented
        before their own SIGKILL arrives.
        """
        members = [proc for pid, proc in self._previous.items() if pid != self._target_pid]
        for proc in members:
            log.debug("Terminating [%d, %s]", proc.pid, proc.command)
            self._terminate(proc)
        return members
