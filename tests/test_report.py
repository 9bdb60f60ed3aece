from __future__ import annotations

import json
from pathlib import Path

import yaml

from iso_manager.reconciler import MOUNTED, ReconciliationResult, RunReport
from iso_manager.report import save_report, summarize


def _report() -> RunReport:
    ok = ReconciliationResult(name="alpine-3.23", phase=MOUNTED, fetched=True, mounted=True)
    bad = ReconciliationResult(name="debian-13.1")
    bad.fail("FetchFailed", "timeout fetching https://example.org/debian-13.1.iso: read timed out")
    return RunReport(results=[ok, bad])


def test_summary_lists_each_image_and_verdict() -> None:
    lines = summarize(_report())

    assert lines[0] == "alpine-3.23: mounted"
    assert lines[1].startswith("debian-13.1: FAILED FetchFailed: timeout")
    assert lines[-1] == "1/2 images ok, not converged"


def test_run_error_is_reported() -> None:
    report = RunReport(results=[ReconciliationResult(name="a-1", phase=MOUNTED)])
    report.run_error = "UnsafePermissionsDetected"
    report.run_cause = "world-writable or set-uid/set-gid entries: /var/lib/isos/x"

    lines = summarize(report, dry_run=True)

    assert report.exit_status == 1
    assert lines[-2].startswith("run: FAILED UnsafePermissionsDetected")
    assert lines[-1].startswith("[dry-run] 1/1 images ok")


def test_save_report_json_and_yaml(tmp_path: Path) -> None:
    data = _report().to_dict()

    save_report(str(tmp_path / "r.json"), data)
    save_report(str(tmp_path / "nested" / "r.yaml"), data)

    assert json.loads((tmp_path / "r.json").read_text())["exit_status"] == 1
    loaded = yaml.safe_load((tmp_path / "nested" / "r.yaml").read_text())
    assert [i["error"] for i in loaded["images"]] == [None, "FetchFailed"]
