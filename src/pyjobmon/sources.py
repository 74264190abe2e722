"""Process listing sources for the watchdog."""

import getpass
import logging
import signal
import subprocess
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

import psutil

from pyjobmon.errors import SourceUnavailable
from pyjobmon.snapshot import split_ps_line

log = logging.getLogger(__name__)

Row = tuple[object, ...]


class ListingSource(Protocol):
    """Produces one process listing per call, oldest process first."""

    def rows(self) -> AbstractContextManager[Iterator[Row]]: ...


class PsutilSource:
    """
    Process listing read through psutil.

    Rows are ``(pid, ppid, command)`` ordered by process start time. Values
    psutil could not read (AccessDenied) come through as None, which makes
    the row malformed.
    """

    _ATTRS = ["pid", "ppid", "name", "username", "cmdline", "create_time"]

    def __init__(self, user: str | None = None) -> None:
        """
        Initialize the PsutilSource.

        Args:
            user: Only list processes owned by this user. Default: all users.
        """
        self._user = user

    @contextmanager
    def rows(self) -> Iterator[Iterator[Row]]:
        try:
            procs = [proc.info for proc in psutil.process_iter(attrs=self._ATTRS)]
        except psutil.Error as exc:
            raise SourceUnavailable(f"could not read the process table: {exc}") from exc

        if self._user is not None:
            procs = [info for info in procs if info.get("username") == self._user]
        # create_time has clock-tick resolution; the pid tie-break is best-effort
        # and can put a child first when it shares a tick with its parent
        procs.sort(key=lambda info: (info.get("create_time") or 0.0, info.get("pid") or 0))

        yield (self._row(info) for info in procs)

    @staticmethod
    def _row(info: dict) -> Row:
        cmdline = info.get("cmdline") or []
        command = " ".join(cmdline) if cmdline else info.get("name") or ""
        return info.get("pid"), info.get("ppid"), command


class PsCommandSource:
    """
    Process listing read from the ``ps`` utility.

    The command is started once per cycle and its output consumed line by
    line. The pipe is closed and the child waited for when the cycle ends,
    whether or not every line was read. A non-zero exit status means the
    listing is unusable and raises SourceUnavailable. There is no timeout on
    the read.
    """

    def __init__(self, user: str | None = None, command: list[str] | None = None) -> None:
        """
        Initialize the PsCommandSource.

        Args:
            user: Owner of the listed processes. Default: the current user.
            command: Full listing command, overriding the ``ps`` invocation.
        """
        self._user = user or getpass.getuser()
        self._command = command or [
            "ps",
            "-u",
            self._user,
            "ww",
            "-o",
            "user,pid,ppid,state,start_time,args,etimes,tty",
            "--sort",
            "start_time",
        ]

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @contextmanager
    def rows(self) -> Iterator[Iterator[Row]]:
        try:
            proc = subprocess.Popen(
                self._command,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
            )
        except OSError as exc:
            raise SourceUnavailable(f"could not open {self._command[0]}: {exc}") from exc

        try:
            yield (split_ps_line(line) for line in proc.stdout)
        finally:
            proc.stdout.close()
            status = proc.wait()
            # -SIGPIPE: the listing was closed before it was fully read
            if status not in (0, -signal.SIGPIPE):
                raise SourceUnavailable(f"{self._command[0]} exited with status {status}")
