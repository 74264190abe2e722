"""Line-oriented command surface of the job shell."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from pyjobmon.errors import JobError
from pyjobmon.jobs import JobController
from pyjobmon.models import Job
from pyjobmon.settings import MAX_ARGS

log = logging.getLogger(__name__)

TAB = "   "


@dataclass(slots=True)
class ShellResult:
    """Output of one command line."""

    lines: list[str] = field(default_factory=list)
    finished: bool = False  # Session should end after this command


def format_job(job: Job) -> str:
    return f"{job.handle:2d}: (pid = {job.head_process:5d}, cmd = {job.command_line})"


class JobShell:
    """
    Parses and executes job shell commands.

    Commands: ``list``, ``run <program> [args...]``, ``suspend <handle>``,
    ``resume <handle>``, ``terminate <handle>``, ``exit`` and ``quit``.
    Recoverable errors are reported in the result, never raised.
    """

    def __init__(self, controller: JobController, max_args: int = MAX_ARGS) -> None:
        self._controller = controller
        self._max_args = max_args
        self._commands: dict[str, Callable[[list[str]], ShellResult]] = {
            "list": self._list,
            "run": self._run,
            "suspend": self._suspend,
            "resume": self._resume,
            "terminate": self._terminate,
            "exit": self._exit,
            "quit": self._quit,
        }

    @property
    def controller(self) -> JobController:
        return self._controller

    def execute(self, line: str) -> ShellResult:
        """Execute one command line."""
        tokens = line.split()
        if not tokens:
            return ShellResult()

        handler = self._commands.get(tokens[0])
        if handler is None:
            return ShellResult([f"{TAB}Invalid command '{tokens[0]}'"])

        try:
            return handler(tokens[1:])
        except JobError as exc:
            log.debug("Command %r failed: %s", line, exc)
            return ShellResult([f"{TAB}{exc}"])

    def _list(self, args: list[str]) -> ShellResult:
        return ShellResult([format_job(job) for job in self._controller.list()])

    def _run(self, args: list[str]) -> ShellResult:
        if not args:
            return ShellResult([f"{TAB}error: no command entered"])
        if len(args) - 1 > self._max_args:
            return ShellResult(
                [f"{TAB}Too many arguments -- only {self._max_args} arguments allowed."]
            )

        handle = self._controller.spawn(args)
        job = self._controller.table.resolve(handle)
        return ShellResult([f"{TAB}started {job.head_process} as job {handle}"])

    def _suspend(self, args: list[str]) -> ShellResult:
        if len(args) != 1:
            return ShellResult([f"{TAB}usage: suspend <jobno>"])
        job = self._controller.suspend(args[0])
        return ShellResult([f"{TAB}suspended {job.head_process}"])

    def _resume(self, args: list[str]) -> ShellResult:
        if len(args) != 1:
            return ShellResult([f"{TAB}usage: resume <jobno>"])
        job = self._controller.resume(args[0])
        return ShellResult([f"{TAB}resumed {job.head_process}"])

    def _terminate(self, args: list[str]) -> ShellResult:
        if len(args) != 1:
            return ShellResult([f"{TAB}usage: terminate <jobno>"])
        job = self._controller.table.resolve(args[0])
        if job.terminated:
            return ShellResult([f"{TAB}job {job.handle} is already terminated"])
        self._controller.terminate(job.handle)
        return ShellResult([f"{TAB}terminated {job.head_process}"])

    def _exit(self, args: list[str]) -> ShellResult:
        killed = self._controller.terminate_all()
        return ShellResult(
            [f"{TAB}terminated {job.head_process}" for job, _ in killed],
            finished=True,
        )

    def _quit(self, args: list[str]) -> ShellResult:
        return ShellResult(finished=True)


def run_repl(
    shell: JobShell,
    prompt: str,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """
    Read and execute commands until ``exit``, ``quit`` or end of input.

    End of input is handled like ``exit`` so no job outlives the session.
    """
    while True:
        try:
            line = read_line(prompt)
        except EOFError:
            write("")
            line = "exit"

        result = shell.execute(line)
        for output in result.lines:
            write(output)
        if result.finished:
            return
