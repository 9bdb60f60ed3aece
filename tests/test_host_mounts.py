from __future__ import annotations

from typing import Any, List, Sequence

from iso_manager.lib.command import CmdResult
from iso_manager.lib.mounts import HostMountTable, MountEntry, parse_findmnt


class RecordingRunner:
    def __init__(self, result: CmdResult | None = None) -> None:
        self.result = result
        self.calls: List[tuple[list[str], dict[str, Any]]] = []

    def __call__(self, argv: Sequence[str], **kwargs: Any) -> CmdResult:
        self.calls.append((list(argv), kwargs))
        if self.result is not None:
            return self.result
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")


def test_parse_findmnt_last_line_wins() -> None:
    out = "ext4 rw,relatime\niso9660 ro,relatime,nojoliet,check=s,map=n,blocksize=2048\n"

    entry = parse_findmnt(out)

    assert entry == MountEntry(
        "iso9660", frozenset({"ro", "relatime", "nojoliet", "check=s", "map=n", "blocksize=2048"})
    )


def test_parse_findmnt_empty() -> None:
    assert parse_findmnt("\n") is None


def test_query_not_mounted() -> None:
    runner = RecordingRunner(CmdResult(argv=[], returncode=1, stdout="", stderr=""))
    table = HostMountTable(runner=runner)

    assert table.query("/var/lib/iso_mounts/alpine-3.23") is None
    argv, kwargs = runner.calls[0]
    assert argv[0] == "findmnt"
    assert argv[-2:] == ["--mountpoint", "/var/lib/iso_mounts/alpine-3.23"]
    assert kwargs == {"check": False}


def test_query_mounted() -> None:
    runner = RecordingRunner(CmdResult(argv=[], returncode=0, stdout="iso9660 ro,relatime\n", stderr=""))

    entry = HostMountTable(runner=runner).query("/m/a-1")

    assert entry is not None
    assert entry.filesystem_type == "iso9660"
    assert "ro" in entry.options


def test_attach_uses_loop_ro() -> None:
    runner = RecordingRunner()

    HostMountTable(runner=runner, dry_run=True).attach("/s/a-1.iso", "/m/a-1", "iso9660")

    argv, kwargs = runner.calls[0]
    assert argv == ["mount", "-t", "iso9660", "-o", "loop,ro", "/s/a-1.iso", "/m/a-1"]
    assert kwargs == {"dry_run": True}
