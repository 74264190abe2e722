"""pyjobs - Textual front end for the job shell."""

import os

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Input, RichLog

from pyjobmon.models import Job
from pyjobmon.shell import JobShell


class JobList(Container):
    """Container for the table of live jobs."""

    DEFAULT_CSS = """
    JobList {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize JobList."""
        super().__init__(*args, **kwargs)
        self._current_handles: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the job table."""
        yield DataTable(id="job-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#job-table", DataTable)
        table.cursor_type = "row"

        table.add_column("JOB", key="handle", width=5)
        table.add_column("PID", key="pid", width=8)
        table.add_column("Command", key="command")

    def update_jobs(self, jobs: list[Job]) -> None:
        """
        Show ``jobs`` in the table.

        Existing rows are updated in place; rows of jobs that are no longer
        listed are removed.
        """
        table = self.query_one("#job-table", DataTable)
        new_handles = {job.handle for job in jobs}

        for handle in self._current_handles - new_handles:
            table.remove_row(str(handle))

        for job in jobs:
            row_key = str(job.handle)
            if job.handle in self._current_handles:
                table.update_cell(row_key, "pid", str(job.head_process))
                table.update_cell(row_key, "command", job.command_line)
            else:
                table.add_row(str(job.handle), str(job.head_process), job.command_line, key=row_key)

        self._current_handles = new_handles


class JobsApp(App):
    """Interactive job shell."""

    TITLE = "pyjobs"
    SUB_TITLE = "Job Control Shell"

    CSS = """
    Screen {
        layout: vertical;
    }

    #transcript {
        height: 1fr;
        border: solid $secondary;
    }

    #prompt {
        dock: bottom;
    }
    """

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, shell: JobShell) -> None:
        """Initialize the JobsApp."""
        super().__init__()
        self._shell = shell
        self._prompt = f"pyjobs[{os.getpid()}]: "

    @property
    def shell(self) -> JobShell:
        return self._shell

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield JobList()
        yield RichLog(id="transcript", wrap=True)
        yield Input(placeholder=f"{self._prompt}list | run <program> [args] | exit", id="prompt")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#prompt", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Execute the submitted command line."""
        line = event.value
        event.input.value = ""
        if not line.strip():
            return

        transcript = self.query_one("#transcript", RichLog)
        transcript.write(self._prompt + line)

        result = self._shell.execute(line)
        for output in result.lines:
            transcript.write(output)

        self.query_one(JobList).update_jobs(list(self._shell.controller.list()))

        if result.finished:
            self.exit()

    def action_quit(self) -> None:
        """Leave the session without terminating jobs, like ``quit``."""
        self._shell.execute("quit")
        self.exit()
