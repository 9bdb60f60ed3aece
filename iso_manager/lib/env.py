from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    storage_root: str = "/var/lib/isos"
    mount_root: str = "/var/lib/iso_mounts"
    config_default: str = "/etc/iso-manager/config.yaml"
    log_default: str = "/var/log/iso-manager.log"


PATHS = Paths()
