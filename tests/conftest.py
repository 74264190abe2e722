"""Shared fixtures for pyjobmon tests."""

import itertools

import pytest

from pyjobmon.jobs import JobController

_pids = itertools.count(4000)


class FakeProcess:
    """Popen stand-in that records signals, kills and reaps."""

    def __init__(self, args, **kwargs):
        self.args = args
        self.kwargs = kwargs
        self.pid = next(_pids)
        self.signals = []
        self.kill_calls = 0
        self.wait_calls = 0

    def send_signal(self, signum):
        self.signals.append(signum)

    def kill(self):
        self.kill_calls += 1

    def wait(self, timeout=None):
        self.wait_calls += 1
        return -9


class FakeLauncher:
    """Records every process it creates; fails for programs named in ``missing``."""

    def __init__(self, missing=()):
        self.missing = set(missing)
        self.processes: list[FakeProcess] = []

    def __call__(self, args, **kwargs):
        if args[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        proc = FakeProcess(args, **kwargs)
        self.processes.append(proc)
        return proc


@pytest.fixture
def launcher():
    return FakeLauncher(missing={"no-such-program"})


@pytest.fixture
def controller(launcher):
    return JobController(max_jobs=32, launcher=launcher)
