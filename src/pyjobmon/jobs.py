"""Job table and signal-driven job control for pyjobmon."""

import logging
import signal
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import psutil

from pyjobmon.errors import (
    AdmissionError,
    NonNumericHandle,
    StartError,
    UnknownHandle,
)
from pyjobmon.models import Job
from pyjobmon.settings import MAX_JOBS

log = logging.getLogger(__name__)


class JobTable:
    """
    Append-only registry of jobs.

    A job's handle is its index in the table. Entries are never removed, so
    the table length only grows and handles are never reused.
    """

    def __init__(self) -> None:
        self._jobs: list[Job] = []

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(self._jobs)

    def append(self, process: Any, command: Sequence[str]) -> Job:
        """Register a started process and return its job."""
        job = Job(handle=len(self._jobs), process=process, command=tuple(command))
        self._jobs.append(job)
        return job

    def resolve(self, handle: int | str) -> Job:
        """
        Look up a job by handle.

        Args:
            handle: An integer handle, or the text the user typed for it.

        Raises:
            NonNumericHandle: ``handle`` is not an integer.
            UnknownHandle: ``handle`` is outside ``[0, len(table))``.
        """
        try:
            index = int(handle)
        except (TypeError, ValueError):
            raise NonNumericHandle(str(handle)) from None

        if not 0 <= index < len(self._jobs):
            raise UnknownHandle(index)
        return self._jobs[index]


class JobController:
    """
    Starts, signals and reaps the jobs of one session.

    Commands run strictly one after another; only ``terminate`` blocks, until
    the killed head process has been reaped.
    """

    def __init__(
        self,
        max_jobs: int = MAX_JOBS,
        launcher: Callable[..., Any] = psutil.Popen,
        **popen_kwargs: Any,
    ) -> None:
        """
        Initialize the JobController.

        Args:
            max_jobs: Admission capacity of the table, terminated jobs included.
            launcher: Popen-compatible factory used to start jobs.
            popen_kwargs: Extra keyword arguments passed to ``launcher``.
        """
        self._max_jobs = max_jobs
        self._launcher = launcher
        self._popen_kwargs = popen_kwargs
        self._table = JobTable()

    @property
    def table(self) -> JobTable:
        return self._table

    @property
    def max_jobs(self) -> int:
        return self._max_jobs

    def spawn(self, command: Sequence[str]) -> int:
        """
        Start ``command`` and register it as a new job.

        The first element is the executable, the rest are its arguments. No
        shell is involved.

        Returns:
            The handle of the new job.

        Raises:
            AdmissionError: The table already holds ``max_jobs`` entries.
            StartError: The process could not be created.
        """
        if len(self._table) >= self._max_jobs:
            raise AdmissionError(self._max_jobs)
        if not command:
            raise StartError("error: no command entered")

        try:
            process = self._launcher(list(command), **self._popen_kwargs)
        except OSError as exc:
            log.debug("Failed to start %r: %s", command, exc)
            raise StartError(f"error: could not start {command[0]}: {exc.strerror or exc}") from exc

        job = self._table.append(process, command)
        log.info("Started job %d (pid %d): %s", job.handle, job.head_process, job.command_line)
        return job.handle

    def suspend(self, handle: int | str) -> Job:
        """Send SIGSTOP to the head process of a job."""
        return self._signal(handle, signal.SIGSTOP)

    def resume(self, handle: int | str) -> Job:
        """Send SIGCONT to the head process of a job."""
        return self._signal(handle, signal.SIGCONT)

    def _signal(self, handle: int | str, signum: signal.Signals) -> Job:
        job = self._table.resolve(handle)
        try:
            job.process.send_signal(signum)
        except psutil.NoSuchProcess:
            # Already reaped; nothing left to signal
            log.warning("Job %d (pid %d) no longer exists", job.handle, job.head_process)
        return job

    def terminate(self, handle: int | str) -> int | None:
        """
        Kill a job and reap its head process.

        Terminating an already terminated job does nothing and returns None:
        no signal is sent and the process is not reaped a second time.

        Returns:
            The exit status of the reaped head process, or None.
        """
        job = self._table.resolve(handle)
        if job.terminated:
            return None

        try:
            job.process.kill()
        except psutil.NoSuchProcess:
            log.debug("Job %d (pid %d) exited before kill", job.handle, job.head_process)
        job.terminated = True
        status = job.process.wait()
        log.info("Terminated job %d (pid %d), status %s", job.handle, job.head_process, status)
        return status

    def terminate_all(self) -> list[tuple[Job, int | None]]:
        """
        Terminate every job in handle order.

        Already terminated jobs go through ``terminate`` as no-ops.

        Returns:
            ``(job, status)`` for each job this call actually killed.
        """
        killed = []
        for job in list(self._table):
            was_live = not job.terminated
            status = self.terminate(job.handle)
            if was_live:
                killed.append((job, status))
        return killed

    def list(self) -> Iterator[Job]:
        """Yield the jobs that have not been terminated, by ascending handle."""
        return (job for job in self._table if not job.terminated)
