from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .reconciler import ImageStatus, RunReport

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def save_report(path: str, data: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.info("Wrote report %s", str(p))


def summarize(report: RunReport, *, dry_run: bool = False) -> List[str]:
    """Human readable summary, one line per image plus a verdict."""

    lines: List[str] = []
    for r in report.results:
        if r.ok:
            notes = []
            if r.downloaded:
                notes.append("downloaded")
            if r.attached:
                notes.append("attached")
            extra = f" ({', '.join(notes)})" if notes else ""
            lines.append(f"{r.name}: {r.phase}{extra}")
        else:
            lines.append(f"{r.name}: FAILED {r.error}: {r.cause}")

    if report.run_error:
        lines.append(f"run: FAILED {report.run_error}: {report.run_cause}")

    verdict = "converged" if report.ok else "not converged"
    prefix = "[dry-run] " if dry_run else ""
    lines.append(f"{prefix}{sum(r.ok for r in report.results)}/{len(report.results)} images ok, {verdict}")
    return lines


def status_lines(statuses: List[ImageStatus]) -> List[str]:
    lines: List[str] = []
    for st in statuses:
        if st.error:
            lines.append(f"{st.name}: {st.error}")
            continue
        a = st.artifact
        m = st.mount
        file_part = f"file={a.size_bytes}B mode={a.mode:04o}" if a and a.exists and a.mode is not None else "file=absent"
        if m and m.mounted:
            mount_part = f"mount={m.filesystem_type}({','.join(sorted(m.options))})"
        else:
            mount_part = "mount=none"
        lines.append(f"{st.name}: {file_part} {mount_part}")
    return lines
