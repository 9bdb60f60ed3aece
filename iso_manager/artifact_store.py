from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .catalog import CatalogEntry
from .errors import IntegrityCheckFailed, PermissionDenied
from .lib.fetch import Fetcher
from .lib.perms import DIR_MODE, FILE_MODE, enforce_mode_owner, ensure_dir, has_unsafe_bits

logger = logging.getLogger(__name__)

DEFAULT_MIN_SIZE_BYTES = 1024 * 1024
PARTIAL_SUFFIX = ".part"


@dataclass(frozen=True)
class ArtifactState:
    path: str
    exists: bool
    size_bytes: int = 0
    mode: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None

    def is_plausible(self, min_size_bytes: int) -> bool:
        return self.exists and self.size_bytes > 0 and self.size_bytes >= min_size_bytes

    @property
    def has_unsafe_mode(self) -> bool:
        return self.mode is not None and has_unsafe_bits(self.mode)


@dataclass(frozen=True)
class FetchOutcome:
    state: ArtifactState
    downloaded: bool


class ArtifactStore:
    """Fetched image files under a storage root.

    Holds no state of its own: every call re-reads the filesystem.
    """

    def __init__(
        self,
        *,
        fetcher: Fetcher,
        uid: int = 0,
        gid: int = 0,
        min_size_bytes: int = DEFAULT_MIN_SIZE_BYTES,
        dry_run: bool = False,
    ) -> None:
        self.fetcher = fetcher
        self.uid = uid
        self.gid = gid
        self.min_size_bytes = min_size_bytes
        self.dry_run = dry_run

    def ensure_storage_root(self, path: str) -> None:
        ensure_dir(Path(path), uid=self.uid, gid=self.gid, mode=DIR_MODE, dry_run=self.dry_run)

    def observe(self, root: str, name: str, extension: str = ".iso") -> ArtifactState:
        p = Path(root) / f"{name}{extension}"
        try:
            st = p.stat()
        except FileNotFoundError:
            return ArtifactState(path=str(p), exists=False)
        if not stat.S_ISREG(st.st_mode):
            # A directory or device squatting on the name is not an artifact.
            return ArtifactState(path=str(p), exists=False)
        return ArtifactState(
            path=str(p),
            exists=True,
            size_bytes=st.st_size,
            mode=stat.S_IMODE(st.st_mode),
            uid=st.st_uid,
            gid=st.st_gid,
        )

    def ensure_fetched(self, root: str, entry: CatalogEntry) -> FetchOutcome:
        current = self.observe(root, entry.name, entry.extension)

        if current.is_plausible(self.min_size_bytes) and not current.has_unsafe_mode:
            enforce_mode_owner(
                Path(current.path), mode=FILE_MODE, uid=self.uid, gid=self.gid, dry_run=self.dry_run
            )
            logger.info("[%s] present (%d bytes), no download needed", entry.name, current.size_bytes)
            return FetchOutcome(state=self.observe(root, entry.name, entry.extension), downloaded=False)

        if current.exists:
            logger.warning(
                "[%s] existing %s rejected (size=%d mode=%s); re-fetching",
                entry.name,
                current.path,
                current.size_bytes,
                oct(current.mode) if current.mode is not None else "-",
            )

        if self.dry_run:
            logger.info("[%s] Would download %s -> %s", entry.name, entry.url, current.path)
            return FetchOutcome(state=current, downloaded=True)

        self._remove_partials(Path(root), entry)
        self._download(Path(root), entry, Path(current.path))

        placed = self.observe(root, entry.name, entry.extension)
        if not placed.is_plausible(self.min_size_bytes):
            raise IntegrityCheckFailed(placed.path, placed.size_bytes, self.min_size_bytes)
        return FetchOutcome(state=placed, downloaded=True)

    def _download(self, root: Path, entry: CatalogEntry, final: Path) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(dir=root, prefix=f".{entry.filename}.", suffix=PARTIAL_SUFFIX)
        except PermissionError as e:
            raise PermissionDenied(str(root), f"cannot create temporary file ({e.strerror})") from e
        os.close(fd)
        tmp = Path(tmp_name)

        try:
            self.fetcher.fetch(entry.url, tmp)
            size = tmp.stat().st_size
            if size <= 0 or size < self.min_size_bytes:
                raise IntegrityCheckFailed(str(final), size, self.min_size_bytes)
            enforce_mode_owner(tmp, mode=FILE_MODE, uid=self.uid, gid=self.gid)
            os.replace(tmp, final)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        logger.info("[%s] placed %s", entry.name, str(final))

    def _remove_partials(self, root: Path, entry: CatalogEntry) -> None:
        for stale in root.glob(f".{entry.filename}.*{PARTIAL_SUFFIX}"):
            logger.info("[%s] removing stale partial download %s", entry.name, str(stale))
            stale.unlink(missing_ok=True)
