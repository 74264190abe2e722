"""Exceptions raised by pyjobmon."""


class JobError(Exception):
    """Recoverable error raised by a job shell command."""


class AdmissionError(JobError):
    """The job table is at capacity."""

    def __init__(self, max_jobs: int) -> None:
        super().__init__(
            f"error: could not admit job -- the maximum {max_jobs} jobs are already registered!"
        )
        self.max_jobs = max_jobs


class StartError(JobError):
    """The job's process could not be created."""


class InvalidHandle(JobError):
    """A handle does not name a job in the table."""

    def __init__(self, message: str, value: str) -> None:
        super().__init__(message)
        self.value = value


class NonNumericHandle(InvalidHandle):
    """The handle is not an integer."""

    def __init__(self, value: str) -> None:
        super().__init__(f"error: invalid job number {value}", value)


class UnknownHandle(InvalidHandle):
    """The handle is an integer outside the table."""

    def __init__(self, handle: int) -> None:
        super().__init__(f"error: job {handle} does not exist", str(handle))
        self.handle = handle


class SourceUnavailable(Exception):
    """The process listing could not be obtained."""


class ResourceLimitError(Exception):
    """The CPU time limit could not be queried or installed."""
