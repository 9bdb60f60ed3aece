from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from .errors import MountFailed, UnexpectedMountState
from .lib.command import CommandError
from .lib.mounts import MountTable
from .lib.perms import DIR_MODE, ensure_dir

logger = logging.getLogger(__name__)

DEFAULT_FILESYSTEM = "iso9660"


@dataclass(frozen=True)
class MountState:
    path: str
    mounted: bool
    filesystem_type: Optional[str] = None
    options: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_read_only(self) -> bool:
        return "ro" in self.options

    def satisfies(self, filesystem_type: str) -> bool:
        return self.mounted and self.filesystem_type == filesystem_type and self.is_read_only


@dataclass(frozen=True)
class MountOutcome:
    state: MountState
    attached: bool


class MountManager:
    """Mount-point directories and read-only loopback mounts.

    Provisioning only: nothing here ever unmounts.
    """

    def __init__(self, *, table: MountTable, uid: int = 0, gid: int = 0, dry_run: bool = False) -> None:
        self.table = table
        self.uid = uid
        self.gid = gid
        self.dry_run = dry_run

    def ensure_mount_root(self, path: str) -> None:
        ensure_dir(Path(path), uid=self.uid, gid=self.gid, mode=DIR_MODE, dry_run=self.dry_run)

    def ensure_mount_point_dir(self, root: str, name: str) -> str:
        p = Path(root) / name
        if p.is_dir() and os.path.ismount(p):
            # The mounted filesystem's root owns the mode now.
            return str(p)
        ensure_dir(p, uid=self.uid, gid=self.gid, mode=DIR_MODE, dry_run=self.dry_run)
        return str(p)

    def observe_mount(self, path: str) -> MountState:
        entry = self.table.query(path)
        if entry is None:
            return MountState(path=path, mounted=False)
        return MountState(
            path=path,
            mounted=True,
            filesystem_type=entry.filesystem_type,
            options=entry.options,
        )

    def ensure_mounted(
        self,
        artifact_path: str,
        mount_path: str,
        filesystem_type: str = DEFAULT_FILESYSTEM,
    ) -> MountOutcome:
        current = self.observe_mount(mount_path)
        if current.satisfies(filesystem_type):
            logger.info("%s already mounted (%s, ro)", mount_path, filesystem_type)
            return MountOutcome(state=current, attached=False)
        if current.mounted:
            raise UnexpectedMountState(mount_path, current.filesystem_type, current.options)

        try:
            self.table.attach(artifact_path, mount_path, filesystem_type)
        except CommandError as e:
            raise MountFailed(mount_path, (e.stderr or "").strip() or f"exit status {e.returncode}") from e

        if self.dry_run:
            return MountOutcome(state=current, attached=True)

        after = self.observe_mount(mount_path)
        if not after.satisfies(filesystem_type):
            raise MountFailed(
                mount_path,
                f"mount succeeded but table reports {after.filesystem_type or 'nothing'} "
                f"({','.join(sorted(after.options)) or '-'})",
            )
        logger.info("Mounted %s at %s (%s, ro)", artifact_path, mount_path, filesystem_type)
        return MountOutcome(state=after, attached=True)
