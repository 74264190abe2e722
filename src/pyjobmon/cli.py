"""Command line entry points: ``pyjobs`` and ``pymon``."""

import logging
import os
import subprocess
import sys

import click
import psutil
from rich.console import Console
from rich.table import Table
from rich.text import Text
from textual.logging import TextualHandler

from pyjobmon.app import JobsApp
from pyjobmon.errors import ResourceLimitError, SourceUnavailable
from pyjobmon.jobs import JobController
from pyjobmon.models import Process
from pyjobmon.reconciler import TreeReconciler, kill_and_reap
from pyjobmon.settings import CPU_LIMIT_SECONDS, DEFAULT_INTERVAL, MAX_JOBS, REAP_TIMEOUT
from pyjobmon.shell import JobShell, run_repl
from pyjobmon.sources import PsCommandSource, PsutilSource
from pyjobmon.system import SessionClock, format_times, set_cpu_limit

log = logging.getLogger(__name__)

MON_USAGE = "usage: pymon TARGET_PID [INTERVAL]"

console = Console(highlight=False)


def setup_logging(name: str, verbose: int, default: int, handler: logging.Handler | None = None):
    """Setup logging for one of the programs."""
    level = default if verbose == 0 else (logging.INFO if verbose == 1 else logging.DEBUG)
    logging.basicConfig(
        level=level,
        format=f"%(asctime)s - {name} - %(levelname)s - %(message)s",
        handlers=[handler or logging.StreamHandler(sys.stderr)],
        force=True,
    )


def install_cpu_limit(seconds: int) -> None:
    try:
        set_cpu_limit(seconds)
    except ResourceLimitError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


@click.command()
@click.option("--plain", is_flag=True, help="Use a line prompt instead of the full-screen UI.")
@click.option(
    "--max-jobs",
    type=click.IntRange(min=1),
    default=MAX_JOBS,
    envvar="PYJOBMON_MAX_JOBS",
    show_default=True,
    help="Maximum number of jobs a session may start.",
)
@click.option(
    "--cpu-limit",
    type=click.IntRange(min=1),
    default=CPU_LIMIT_SECONDS,
    envvar="PYJOBMON_CPU_LIMIT",
    show_default=True,
    help="CPU time limit in seconds.",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity.")
def pyjobs(plain, max_jobs, cpu_limit, verbose):
    """Interactive job control shell."""
    plain = plain or not sys.stdin.isatty()
    setup_logging("pyjobs", verbose, logging.WARNING, None if plain else TextualHandler())
    install_cpu_limit(cpu_limit)

    clock = SessionClock()
    if plain:
        shell = JobShell(JobController(max_jobs=max_jobs))
        run_repl(shell, f"pyjobs[{os.getpid()}]: ", write=click.echo)
    else:
        controller = JobController(
            max_jobs=max_jobs,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        JobsApp(JobShell(controller)).run()

    click.echo()
    click.echo(format_times(clock.elapsed()))


def print_cycle(cycle: int, target_pid: int, interval: float, members: list[Process]) -> None:
    """Print the header and the monitored processes of one cycle."""
    console.print(
        f"pymon [counter={cycle:2d}, pid={os.getpid():5d}, "
        f"target_pid={target_pid:5d}, interval={interval:g} sec]:",
        markup=False,
    )
    table = Table(title="List of monitored processes", title_justify="left")
    table.add_column("PID", justify="right")
    table.add_column("Command")
    for proc in members:
        table.add_row(str(proc.pid), Text(proc.command))
    console.print(table)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("target_pid", required=False)
@click.argument("interval", required=False, envvar="PYJOBMON_INTERVAL")
@click.option(
    "--source",
    type=click.Choice(["psutil", "ps"]),
    default="psutil",
    show_default=True,
    help="Where the process listing comes from.",
)
@click.option(
    "--cpu-limit",
    type=click.IntRange(min=1),
    default=CPU_LIMIT_SECONDS,
    envvar="PYJOBMON_CPU_LIMIT",
    show_default=True,
    help="CPU time limit in seconds.",
)
@click.option(
    "--reap-timeout",
    type=click.FloatRange(min=0),
    default=REAP_TIMEOUT,
    show_default=True,
    help="Seconds to wait for each killed process to exit.",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity.")
def pymon(target_pid, interval, source, cpu_limit, reap_timeout, verbose):
    """Supervise TARGET_PID and kill its descendants once it terminates."""
    try:
        target = int(target_pid)
        seconds = DEFAULT_INTERVAL if interval is None else float(interval)
    except (TypeError, ValueError):
        click.echo(MON_USAGE, err=True)
        sys.exit(1)

    setup_logging("pymon", verbose, logging.INFO)
    install_cpu_limit(cpu_limit)

    if not psutil.pid_exists(target):
        click.echo(f"error: no process with pid {target}", err=True)
        sys.exit(1)

    def report(cycle: int, members: list[Process]) -> None:
        print_cycle(cycle, target, reconciler.interval, members)

    def terminate(proc: Process) -> None:
        console.print(f"terminating [ {proc.pid}, {proc.command}]", markup=False)
        kill_and_reap(proc, timeout=reap_timeout)

    listing = PsutilSource() if source == "psutil" else PsCommandSource()
    reconciler = TreeReconciler(
        target,
        listing,
        interval=seconds,
        report=report,
        terminate=terminate,
    )

    try:
        reconciler.run()
    except SourceUnavailable as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(1)

    click.echo("exiting pymon")


if __name__ == "__main__":
    pymon()
