from __future__ import annotations

import argparse
import logging
from typing import Optional

from .artifact_store import ArtifactStore
from .catalog import DesiredImageRef
from .config import ManagerConfig, load_config
from .errors import ConfigError
from .lib.fetch import HttpFetcher
from .lib.mounts import HostMountTable
from .lib.perms import resolve_gid, resolve_uid
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .mount_manager import MountManager
from .reconciler import Reconciler, ReconcileSettings, RunReport
from .report import save_report, status_lines, summarize

logger = logging.getLogger(__name__)


def build_reconciler(cfg: ManagerConfig, *, dry_run: bool = False) -> Reconciler:
    uid = resolve_uid(cfg.owner)
    gid = resolve_gid(cfg.group)
    store = ArtifactStore(
        fetcher=HttpFetcher(timeout_s=cfg.fetch_timeout),
        uid=uid,
        gid=gid,
        min_size_bytes=cfg.min_size_bytes,
        dry_run=dry_run,
    )
    mounts = MountManager(table=HostMountTable(dry_run=dry_run), uid=uid, gid=gid, dry_run=dry_run)
    settings = ReconcileSettings(
        storage_root=cfg.storage_root,
        mount_root=cfg.mount_root,
        mount_enabled=cfg.mount_enabled,
        workers=cfg.workers,
    )
    return Reconciler(catalog=cfg.catalog, store=store, mounts=mounts, settings=settings)


def run(
    *,
    cfg: ManagerConfig,
    images: Optional[list[str]] = None,
    dry_run: bool = False,
    report_path: Optional[str] = None,
) -> RunReport:
    """Reconcile the host against the configured catalog selection."""

    reconciler = build_reconciler(cfg, dry_run=dry_run)
    desired = [DesiredImageRef(name=n) for n in images] if images else cfg.desired(reconciler.catalog)

    report = reconciler.run(desired)
    for line in summarize(report, dry_run=dry_run):
        print(line)

    if report_path:
        save_report(report_path, report.to_dict())
    return report


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="iso-manager")
    p.add_argument("--config", default=None, help="Path to YAML config (default /etc/iso-manager/config.yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to log file")
    p.add_argument("--image", action="append", dest="images", help="Only reconcile this image (repeatable)")
    p.add_argument("--storage-root", default=None, help="Override iso_storage_path")
    p.add_argument("--mount-root", default=None, help="Override iso_mount_root")
    p.add_argument("--no-mount", action="store_true", help="Fetch only, do not mount")
    p.add_argument("--workers", type=int, default=None, help="Images processed concurrently")
    p.add_argument("--timeout", type=float, default=None, help="Download timeout in seconds")
    p.add_argument("--report", default=None, help="Write run report (json|yaml)")
    p.add_argument("--status", action="store_true", help="Show observed state and exit")
    p.add_argument("--dry-run", action="store_true")

    args = p.parse_args(argv)

    configure_logging(log_path=args.log)

    try:
        cfg = load_config(args.config).with_overrides(
            iso_storage_path=args.storage_root,
            iso_mount_root=args.mount_root,
            iso_mount_enabled=False if args.no_mount else None,
            iso_workers=args.workers,
            iso_fetch_timeout=args.timeout,
        )
        if args.status:
            reconciler = build_reconciler(cfg, dry_run=True)
            desired = (
                [DesiredImageRef(name=n) for n in args.images]
                if args.images
                else cfg.desired(reconciler.catalog)
            )
            statuses = reconciler.observe(desired)
            for line in status_lines(statuses):
                print(line)
            return 0 if all(st.converged for st in statuses) else 1

        report = run(cfg=cfg, images=args.images, dry_run=bool(args.dry_run), report_path=args.report)
    except (ConfigError, FileNotFoundError, KeyError) as e:
        logger.error("Configuration error: %s", e)
        return 2

    return report.exit_status


if __name__ == "__main__":
    raise SystemExit(main())
