from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from .artifact_store import DEFAULT_MIN_SIZE_BYTES
from .catalog import Catalog, DesiredImageRef, select_all
from .errors import ConfigError
from .lib.env import PATHS
from .lib.fetch import DEFAULT_TIMEOUT_S
from .reconciler import DEFAULT_WORKERS

BUNDLED_CATALOG = Path(__file__).resolve().parent / "manifests" / "catalog.yaml"


def _load_yaml_mapping(p: Path, what: str) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{what} {p} is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{what} {p} must contain a mapping/object")
    return raw


def _number(raw: Dict[str, Any], key: str, default: Any, kind: Callable[[Any], Any]) -> Any:
    value = raw.get(key)
    if value is None:
        return default
    # YAML booleans are ints in Python; never accept them as numbers.
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number")
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        what = "an integer" if kind is int else "a number"
        raise ConfigError(f"{key} must be {what}, got {value!r}") from e


def load_bundled_catalog() -> Catalog:
    raw = _load_yaml_mapping(BUNDLED_CATALOG, "catalog")
    return Catalog.from_mapping(raw.get("iso_catalog") or {})


@dataclass(frozen=True)
class ManagerConfig:
    raw: Dict[str, Any]

    @property
    def storage_root(self) -> str:
        return str(self.raw.get("iso_storage_path") or PATHS.storage_root)

    @property
    def mount_root(self) -> str:
        return str(self.raw.get("iso_mount_root") or PATHS.mount_root)

    @property
    def mount_enabled(self) -> bool:
        value = self.raw.get("iso_mount_enabled", True)
        if not isinstance(value, bool):
            raise ConfigError("iso_mount_enabled must be a boolean")
        return value

    @property
    def fetch_timeout(self) -> float:
        value = _number(self.raw, "iso_fetch_timeout", DEFAULT_TIMEOUT_S, float)
        if value <= 0:
            raise ConfigError("iso_fetch_timeout must be positive")
        return value

    @property
    def workers(self) -> int:
        value = _number(self.raw, "iso_workers", DEFAULT_WORKERS, int)
        if value < 1:
            raise ConfigError("iso_workers must be at least 1")
        return value

    @property
    def min_size_bytes(self) -> int:
        value = _number(self.raw, "iso_min_size_bytes", DEFAULT_MIN_SIZE_BYTES, int)
        if value < 0:
            raise ConfigError("iso_min_size_bytes must not be negative")
        return value

    @property
    def owner(self) -> Union[str, int]:
        return self.raw.get("iso_owner", "root")

    @property
    def group(self) -> Union[str, int]:
        return self.raw.get("iso_group", "root")

    @property
    def catalog(self) -> Catalog:
        raw = self.raw.get("iso_catalog")
        if raw is None:
            return load_bundled_catalog()
        if not isinstance(raw, dict):
            raise ConfigError("iso_catalog must be a mapping of name -> {url}")
        return Catalog.from_mapping(raw)

    def desired(self, catalog: Optional[Catalog] = None) -> List[DesiredImageRef]:
        raw = self.raw.get("iso_images")
        if raw is None:
            return list(select_all(catalog or self.catalog))
        if not isinstance(raw, list):
            raise ConfigError("iso_images must be a list")
        return [DesiredImageRef.from_raw(item) for item in raw]

    def with_overrides(self, **overrides: Any) -> "ManagerConfig":
        raw = dict(self.raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return ManagerConfig(raw=raw)


def load_config(path: Optional[str]) -> ManagerConfig:
    """Load the YAML config; a missing default path yields an empty config."""

    if path is None:
        p = Path(PATHS.config_default)
        if not p.exists():
            return ManagerConfig(raw={})
    else:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("config must be YAML")

    return ManagerConfig(raw=_load_yaml_mapping(p, "config"))
