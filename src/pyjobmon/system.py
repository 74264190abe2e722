"""Process-wide resource limit and session timing."""

import logging
import os
import resource
import time

from pyjobmon.errors import ResourceLimitError
from pyjobmon.models import SessionTimes
from pyjobmon.settings import CPU_LIMIT_SECONDS

log = logging.getLogger(__name__)


def set_cpu_limit(seconds: int = CPU_LIMIT_SECONDS) -> None:
    """
    Lower the soft CPU time limit of this process.

    Exceeding the limit is left to the OS; nothing here handles SIGXCPU.

    Raises:
        ResourceLimitError: The current limit could not be queried.
    """
    try:
        _, hard = resource.getrlimit(resource.RLIMIT_CPU)
    except (OSError, ValueError) as exc:
        raise ResourceLimitError(f"getrlimit error: {exc}") from exc

    soft = seconds if hard == resource.RLIM_INFINITY else min(seconds, hard)
    try:
        resource.setrlimit(resource.RLIMIT_CPU, (soft, hard))
    except (OSError, ValueError) as exc:
        log.warning("Could not set CPU limit to %ds: %s", soft, exc)


class SessionClock:
    """Measures real time and CPU time used since the session started."""

    def __init__(self) -> None:
        self._real_start = time.perf_counter()
        self._start = os.times()

    def elapsed(self) -> SessionTimes:
        """Times consumed by this process and its reaped children so far."""
        now = os.times()
        return SessionTimes(
            real=time.perf_counter() - self._real_start,
            user=now.user - self._start.user,
            system=now.system - self._start.system,
            child_user=now.children_user - self._start.children_user,
            child_system=now.children_system - self._start.children_system,
        )


def format_times(times: SessionTimes) -> str:
    """Format session times as one ``label: seconds`` line per figure."""
    return (
        f"real: {times.real:.2f}\n"
        f"user: {times.user:.2f}\n"
        f"sys: {times.system:.2f}\n"
        f"child user: {times.child_user:.2f}\n"
        f"child sys: {times.child_system:.2f}"
    )
