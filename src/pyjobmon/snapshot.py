"""Descendant-tree reconstruction from a flat process listing."""

import logging
from collections.abc import Iterable, Sequence
from types import MappingProxyType

from pyjobmon.models import Generation, Process

log = logging.getLogger(__name__)


def split_ps_line(line: str) -> tuple[str, ...]:
    """
    Split one line of ``ps`` output into ``(pid, ppid, command)``.

    Field 2 is the pid and field 3 the parent pid. The command is fields 6
    up to, but excluding, the last two, joined with single spaces. Lines
    with fewer than eight fields do not have that shape; they come back
    unchanged and ``parse_row`` skips them.
    """
    fields = line.split()
    if len(fields) < 8:
        return tuple(fields)
    return fields[1], fields[2], " ".join(fields[5:-2])


def parse_row(row: Sequence[object]) -> Process | None:
    """Build a Process from a ``(pid, ppid, command)`` row, or None if malformed."""
    try:
        pid, parent_pid, command = row
        return Process(pid=int(pid), parent_pid=int(parent_pid), command=str(command))
    except (TypeError, ValueError):
        return None


def take_generation(rows: Iterable[Sequence[object]], target_pid: int) -> Generation:
    """
    Collect ``target_pid`` and all of its descendants in one forward pass.

    ``rows`` must be ordered by process start time, oldest first. A child
    always starts after its parent, so by the time a descendant's row is
    read its parent has already been accepted. A descendant listed before
    its parent is therefore not accepted.

    Malformed rows are skipped without ending the pass.

    Returns:
        A read-only ``pid -> Process`` mapping, in listing order.
    """
    accepted: dict[int, Process] = {}

    for row in rows:
        proc = parse_row(row)
        if proc is None:
            log.debug("Skipping malformed row %r", row)
            continue

        if proc.pid == target_pid or proc.parent_pid in accepted:
            accepted[proc.pid] = proc

    return MappingProxyType(accepted)
