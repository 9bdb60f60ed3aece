"""Top-level reconciliation loop.

Each desired image walks ``pending -> fetched -> mounted`` (or ``failed``)
independently of the others. Storage and mount roots are prepared once per
run, and a permission sweep over both roots runs after every image has been
processed.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .artifact_store import ArtifactState, ArtifactStore
from .catalog import Catalog, DesiredImageRef
from .errors import IsoManagerError, UnsafePermissionsDetected
from .lib.perms import scan_unsafe
from .mount_manager import MountManager, MountState

logger = logging.getLogger(__name__)

PENDING = "pending"
FETCHED = "fetched"
MOUNTED = "mounted"
FAILED = "failed"

DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class ReconcileSettings:
    storage_root: str
    mount_root: str
    mount_enabled: bool = True
    workers: int = DEFAULT_WORKERS


@dataclass
class ReconciliationResult:
    name: str
    phase: str = PENDING
    fetched: bool = False
    mounted: bool = False
    downloaded: bool = False
    attached: bool = False
    artifact_path: Optional[str] = None
    mount_path: Optional[str] = None
    error: Optional[str] = None
    cause: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def fail(self, kind: str, cause: str) -> None:
        self.phase = FAILED
        self.error = kind
        self.cause = cause


@dataclass
class RunReport:
    results: List[ReconciliationResult] = field(default_factory=list)
    run_error: Optional[str] = None
    run_cause: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.run_error is None and all(r.ok for r in self.results)

    @property
    def exit_status(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "exit_status": self.exit_status,
            "run_error": self.run_error,
            "run_cause": self.run_cause,
            "images": [asdict(r) for r in self.results],
        }


@dataclass(frozen=True)
class ImageStatus:
    name: str
    artifact: Optional[ArtifactState]
    mount: Optional[MountState]
    error: Optional[str] = None
    converged: bool = False


class Reconciler:
    def __init__(
        self,
        *,
        catalog: Catalog,
        store: ArtifactStore,
        mounts: MountManager,
        settings: ReconcileSettings,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.mounts = mounts
        self.settings = settings

    def run(self, desired: Sequence[DesiredImageRef]) -> RunReport:
        s = self.settings
        report = RunReport(results=[ReconciliationResult(name=ref.name) for ref in desired])
        logger.info(
            "Reconciling %d image(s) storage=%s mount_root=%s mount_enabled=%s",
            len(desired),
            s.storage_root,
            s.mount_root,
            s.mount_enabled,
        )

        try:
            self.store.ensure_storage_root(s.storage_root)
            if s.mount_enabled:
                self.mounts.ensure_mount_root(s.mount_root)
        except IsoManagerError as e:
            logger.error("Cannot prepare roots: %s", e)
            report.run_error = e.kind
            report.run_cause = e.cause
            for r in report.results:
                r.fail(e.kind, e.cause)
            return report

        workers = max(1, min(s.workers, len(desired) or 1))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="iso") as pool:
            futures = [pool.submit(self._reconcile_one, ref, res) for ref, res in zip(desired, report.results)]
            for f in futures:
                f.result()

        self._sweep(report)

        for r in report.results:
            if r.ok:
                logger.info("[%s] converged: %s", r.name, r.phase)
            else:
                logger.error("[%s] failed: %s: %s", r.name, r.error, r.cause)
        return report

    def _reconcile_one(self, ref: DesiredImageRef, result: ReconciliationResult) -> None:
        s = self.settings
        try:
            entry = self.catalog.resolve_one(ref)

            fetched = self.store.ensure_fetched(s.storage_root, entry)
            result.artifact_path = fetched.state.path
            result.downloaded = fetched.downloaded
            result.fetched = True
            result.phase = FETCHED

            if not s.mount_enabled:
                return

            mount_path = self.mounts.ensure_mount_point_dir(s.mount_root, entry.name)
            result.mount_path = mount_path
            mounted = self.mounts.ensure_mounted(fetched.state.path, mount_path, entry.filesystem_type)
            result.attached = mounted.attached
            result.mounted = True
            result.phase = MOUNTED
        except IsoManagerError as e:
            result.fail(e.kind, e.cause)
        except Exception as e:
            # Recorded against this image only; the other images keep going.
            logger.exception("[%s] unexpected error", ref.name)
            result.fail(type(e).__name__, str(e))

    def _sweep(self, report: RunReport) -> None:
        s = self.settings
        unsafe = scan_unsafe(Path(s.storage_root), Path(s.mount_root))
        if unsafe:
            err = UnsafePermissionsDetected(unsafe)
            logger.error("%s", err)
            report.run_error = err.kind
            report.run_cause = err.cause

    def observe(self, desired: Sequence[DesiredImageRef]) -> List[ImageStatus]:
        """Report host state for each desired image without changing anything.

        An image is converged when its file is plausible with a safe mode and,
        if mounting is enabled, it is mounted read-only with the right type.
        """

        s = self.settings
        out: List[ImageStatus] = []
        for ref in desired:
            try:
                entry = self.catalog.resolve_one(ref)
            except IsoManagerError as e:
                out.append(ImageStatus(name=ref.name, artifact=None, mount=None, error=e.kind))
                continue
            artifact = self.store.observe(s.storage_root, entry.name, entry.extension)
            mount = self.mounts.observe_mount(str(Path(s.mount_root) / entry.name))
            converged = artifact.is_plausible(self.store.min_size_bytes) and not artifact.has_unsafe_mode
            if s.mount_enabled:
                converged = converged and mount.satisfies(entry.filesystem_type)
            out.append(ImageStatus(name=entry.name, artifact=artifact, mount=mount, converged=converged))
        return out
