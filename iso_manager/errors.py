"""Error kinds raised by the reconciliation core.

Every error carries a stable ``kind`` string which ends up in run reports and
the CLI summary, plus a human readable cause.
"""

from __future__ import annotations

from typing import Iterable, Optional


class IsoManagerError(Exception):
    kind = "IsoManagerError"

    @property
    def cause(self) -> str:
        return str(self)


class ConfigError(ValueError):
    """Malformed configuration file or CLI overrides."""


class InvalidCatalogEntry(IsoManagerError):
    kind = "InvalidCatalogEntry"

    def __init__(self, name: str, field: str, reason: str) -> None:
        super().__init__(f"catalog entry {name!r}: invalid {field}: {reason}")
        self.name = name
        self.field = field
        self.reason = reason


class UnknownImage(IsoManagerError):
    kind = "UnknownImage"

    def __init__(self, name: str) -> None:
        super().__init__(f"image {name!r} is not in the catalog and no url was given")
        self.name = name


class PermissionDenied(IsoManagerError):
    kind = "PermissionDenied"

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path


class FetchFailed(IsoManagerError):
    kind = "FetchFailed"

    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    HTTP_ERROR = "http_error"

    def __init__(self, url: str, reason: str, detail: str) -> None:
        super().__init__(f"{reason} fetching {url}: {detail}")
        self.url = url
        self.reason = reason


class IntegrityCheckFailed(IsoManagerError):
    kind = "IntegrityCheckFailed"

    def __init__(self, path: str, size_bytes: int, min_size_bytes: int) -> None:
        super().__init__(
            f"{path}: size {size_bytes} bytes is below the plausible minimum of {min_size_bytes}"
        )
        self.path = path
        self.size_bytes = size_bytes
        self.min_size_bytes = min_size_bytes


class MountFailed(IsoManagerError):
    kind = "MountFailed"

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"mount at {path} failed: {detail}")
        self.path = path


class UnexpectedMountState(IsoManagerError):
    kind = "UnexpectedMountState"

    def __init__(self, path: str, filesystem_type: Optional[str], options: Iterable[str]) -> None:
        opts = ",".join(sorted(options)) or "-"
        super().__init__(
            f"{path} is already mounted as {filesystem_type or 'unknown'} ({opts}); refusing to remount"
        )
        self.path = path


class UnsafePermissionsDetected(IsoManagerError):
    kind = "UnsafePermissionsDetected"

    def __init__(self, paths: Iterable[str]) -> None:
        self.paths = sorted(paths)
        shown = ", ".join(self.paths[:10])
        more = f" (+{len(self.paths) - 10} more)" if len(self.paths) > 10 else ""
        super().__init__(f"world-writable or set-uid/set-gid entries: {shown}{more}")
