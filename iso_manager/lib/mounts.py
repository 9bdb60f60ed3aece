from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Protocol

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

Runner = Callable[..., CmdResult]


@dataclass(frozen=True)
class MountEntry:
    filesystem_type: str
    options: FrozenSet[str]


class MountTable(Protocol):
    """Narrow view of the host mount subsystem."""

    def query(self, path: str) -> Optional[MountEntry]:
        ...

    def attach(self, source: str, target: str, filesystem_type: str) -> None:
        ...


def parse_findmnt(stdout: str) -> Optional[MountEntry]:
    """Parse ``findmnt -n -r -o FSTYPE,OPTIONS`` output.

    With stacked mounts findmnt prints one line per layer; the last one is
    what is visible at the path.
    """

    lines = [ln for ln in stdout.splitlines() if ln.strip()]
    if not lines:
        return None
    parts = lines[-1].split(None, 1)
    fstype = parts[0]
    options = frozenset(o for o in (parts[1].split(",") if len(parts) > 1 else []) if o)
    return MountEntry(filesystem_type=fstype, options=options)


class HostMountTable:
    """Mount table backed by util-linux ``findmnt`` and ``mount``."""

    def __init__(self, *, runner: Runner = run_cmd, dry_run: bool = False) -> None:
        self._run = runner
        self.dry_run = dry_run

    def query(self, path: str) -> Optional[MountEntry]:
        # Read-only query, executed even in dry-run mode.
        r = self._run(
            ["findmnt", "-n", "-r", "-o", "FSTYPE,OPTIONS", "--mountpoint", path],
            check=False,
        )
        if r.returncode != 0:
            return None
        return parse_findmnt(r.stdout)

    def attach(self, source: str, target: str, filesystem_type: str) -> None:
        self._run(
            ["mount", "-t", filesystem_type, "-o", "loop,ro", source, target],
            dry_run=self.dry_run,
        )
