"""Data models for pyjobmon."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class Job:
    """A spawned command registered in the job table."""

    handle: int
    process: Any  # Popen-like: pid, send_signal(), kill(), wait()
    command: tuple[str, ...]
    terminated: bool = False

    @property
    def head_process(self) -> int:
        """Pid of the job's root process."""
        return self.process.pid

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


@dataclass(slots=True, frozen=True)
class Process:
    """One row of a process listing."""

    pid: int
    parent_pid: int
    command: str


# pid -> Process for one polling cycle, target included
Generation = Mapping[int, Process]


@dataclass(slots=True, frozen=True)
class SessionTimes:
    """Elapsed real and CPU time of a session, in seconds."""

    real: float
    user: float
    system: float
    child_user: float
    child_system: float
