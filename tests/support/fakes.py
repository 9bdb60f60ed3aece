from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from iso_manager.errors import FetchFailed
from iso_manager.lib.command import CmdResult, CommandError
from iso_manager.lib.mounts import MountEntry

MIN_SIZE = 16
PAYLOAD = b"\x00CD001" + b"x" * 58

ALPINE_URL = "https://dl-cdn.alpinelinux.org/alpine/v3.23/releases/x86_64/alpine-standard-3.23.0-x86_64.iso"
DEBIAN_URL = "https://cdimage.debian.org/debian-cd/current/amd64/iso-cd/debian-13.1.0-amd64-netinst.iso"


class FakeFetcher:
    """Serves canned payloads; a FetchFailed value is raised instead."""

    def __init__(self, payloads: Optional[Dict[str, Union[bytes, FetchFailed]]] = None) -> None:
        self.payloads: Dict[str, Union[bytes, FetchFailed]] = dict(payloads or {})
        self.calls: List[str] = []

    def fetch(self, url: str, dest: Path) -> int:
        self.calls.append(url)
        payload = self.payloads.get(url, PAYLOAD)
        if isinstance(payload, FetchFailed):
            raise payload
        dest.write_bytes(payload)
        return len(payload)


class FakeMountTable:
    """In-memory mount table; ``attach`` behaves like a successful loop mount."""

    def __init__(self) -> None:
        self.entries: Dict[str, MountEntry] = {}
        self.attached: List[Tuple[str, str, str]] = []
        self.fail_sources: Dict[str, str] = {}
        self.silent = False

    def query(self, path: str) -> Optional[MountEntry]:
        return self.entries.get(path)

    def attach(self, source: str, target: str, filesystem_type: str) -> None:
        self.attached.append((source, target, filesystem_type))
        if source in self.fail_sources:
            argv = ["mount", "-t", filesystem_type, "-o", "loop,ro", source, target]
            raise CommandError(CmdResult(argv=argv, returncode=32, stdout="", stderr=self.fail_sources[source]))
        if not self.silent:
            self.entries[target] = MountEntry(
                filesystem_type=filesystem_type, options=frozenset({"ro", "relatime", "nojoliet"})
            )
