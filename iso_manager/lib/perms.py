from __future__ import annotations

import grp
import logging
import os
import pwd
import stat
from pathlib import Path
from typing import List, Union

from ..errors import PermissionDenied

logger = logging.getLogger(__name__)

DIR_MODE = 0o755
FILE_MODE = 0o644

UNSAFE_BITS = stat.S_IWOTH | stat.S_ISUID | stat.S_ISGID


def resolve_uid(owner: Union[str, int]) -> int:
    if isinstance(owner, int):
        return owner
    if owner.isdigit():
        return int(owner)
    return pwd.getpwnam(owner).pw_uid


def resolve_gid(group: Union[str, int]) -> int:
    if isinstance(group, int):
        return group
    if group.isdigit():
        return int(group)
    return grp.getgrnam(group).gr_gid


def has_unsafe_bits(mode: int) -> bool:
    return bool(mode & UNSAFE_BITS)


def enforce_mode_owner(path: Path, *, mode: int, uid: int, gid: int, dry_run: bool = False) -> bool:
    """Force mode and ownership on an existing path.

    Returns True when something had to change.
    """

    st = path.lstat()
    changed = False

    if st.st_uid != uid or st.st_gid != gid:
        changed = True
        if dry_run:
            logger.info("Would chown %s to %d:%d", str(path), uid, gid)
        else:
            try:
                os.chown(path, uid, gid)
            except PermissionError as e:
                raise PermissionDenied(
                    str(path), f"cannot chown from {st.st_uid}:{st.st_gid} to {uid}:{gid} ({e.strerror})"
                ) from e
            logger.info("chown %s %d:%d", str(path), uid, gid)

    if stat.S_IMODE(st.st_mode) != mode:
        changed = True
        if dry_run:
            logger.info("Would chmod %s to %04o", str(path), mode)
        else:
            try:
                os.chmod(path, mode)
            except PermissionError as e:
                raise PermissionDenied(str(path), f"cannot chmod to {mode:04o} ({e.strerror})") from e
            logger.info("chmod %s %04o (was %04o)", str(path), mode, stat.S_IMODE(st.st_mode))

    return changed


def ensure_dir(path: Path, *, uid: int, gid: int, mode: int = DIR_MODE, dry_run: bool = False) -> None:
    """Create a directory if missing and force its mode/ownership.

    Safe to call concurrently: a concurrent creator simply wins the race.
    """

    if not path.exists():
        if dry_run:
            logger.info("Would create directory %s", str(path))
            return
        try:
            path.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionDenied(str(path), f"cannot create directory ({e.strerror})") from e
        logger.info("Created directory %s", str(path))

    if not path.is_dir():
        raise PermissionDenied(str(path), "exists but is not a directory")

    enforce_mode_owner(path, mode=mode, uid=uid, gid=gid, dry_run=dry_run)


def _is_unsafe(p: Path) -> bool:
    mode = p.lstat().st_mode
    # Symlink modes are always 0777 on Linux and carry no meaning.
    return not stat.S_ISLNK(mode) and has_unsafe_bits(mode)


def scan_unsafe(*roots: Path) -> List[str]:
    """Return files and directories under roots with world-write or set-uid/set-gid bits.

    Symlinks are ignored. Active mount points are checked themselves but
    never descended into: their contents belong to the mounted image.
    """

    found: List[str] = []
    for root in roots:
        if not root.exists():
            continue
        if _is_unsafe(root):
            found.append(str(root))
        for dirpath, dirnames, filenames in os.walk(root):
            keep = []
            for d in dirnames:
                p = Path(dirpath) / d
                if _is_unsafe(p):
                    found.append(str(p))
                if not os.path.ismount(p):
                    keep.append(d)
            dirnames[:] = keep
            for f in filenames:
                p = Path(dirpath) / f
                if _is_unsafe(p):
                    found.append(str(p))
    return found
