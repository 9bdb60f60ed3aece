from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import pytest

from iso_manager.artifact_store import ArtifactStore
from iso_manager.catalog import Catalog
from iso_manager.mount_manager import MountManager
from iso_manager.reconciler import Reconciler, ReconcileSettings
from tests.support.fakes import ALPINE_URL, MIN_SIZE, FakeFetcher, FakeMountTable


@pytest.fixture
def owner() -> Tuple[int, int]:
    return os.getuid(), os.getgid()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def table() -> FakeMountTable:
    return FakeMountTable()


@pytest.fixture
def store(fetcher: FakeFetcher, owner: Tuple[int, int]) -> ArtifactStore:
    uid, gid = owner
    return ArtifactStore(fetcher=fetcher, uid=uid, gid=gid, min_size_bytes=MIN_SIZE)


@pytest.fixture
def mounts(table: FakeMountTable, owner: Tuple[int, int]) -> MountManager:
    uid, gid = owner
    return MountManager(table=table, uid=uid, gid=gid)


@pytest.fixture
def roots(tmp_path: Path) -> Tuple[Path, Path]:
    return tmp_path / "isos", tmp_path / "iso_mounts"


@pytest.fixture
def make_reconciler(
    store: ArtifactStore,
    mounts: MountManager,
    roots: Tuple[Path, Path],
) -> Callable[..., Reconciler]:
    storage_root, mount_root = roots

    def factory(
        catalog: Optional[Dict[str, str]] = None,
        *,
        mount_enabled: bool = True,
        workers: int = 4,
    ) -> Reconciler:
        entries = catalog if catalog is not None else {"alpine-3.23": ALPINE_URL}
        settings = ReconcileSettings(
            storage_root=str(storage_root),
            mount_root=str(mount_root),
            mount_enabled=mount_enabled,
            workers=workers,
        )
        return Reconciler(catalog=Catalog(entries), store=store, mounts=mounts, settings=settings)

    return factory
