from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import IO, List, Optional

from .model import RunReport, StepStatus


class Colors:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class _NoColors:
    GREEN = YELLOW = RED = CYAN = BOLD = RESET = ""


_STATUS_COLOR = {
    StepStatus.APPLIED: "GREEN",
    StepStatus.SKIPPED: "CYAN",
    StepStatus.FAILED: "RED",
    StepStatus.BLOCKED: "YELLOW",
}


def _wants_color(stream: IO[str]) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def format_report(report: RunReport, *, color: bool = False) -> str:
    c = Colors if color else _NoColors

    lines: List[str] = [f"{c.BOLD}Provisioning summary{c.RESET}", "=" * 40]
    width = max((len(r.name) for r in report.results), default=0)

    for r in report.results:
        tint = getattr(c, _STATUS_COLOR[r.status])
        label = f"{tint}{r.status.value.upper():<8}{c.RESET}"
        fatal = " [fatal]" if r.fatal else ""
        detail = f" - {r.detail}" if r.detail else ""
        lines.append(f"  {label} {r.name:<{width}}{fatal}{detail}")

    if not report.results:
        lines.append("  (no steps)")

    counts = report.counts()
    lines.append("")
    lines.append(
        "applied={applied} skipped={skipped} failed={failed} blocked={blocked}".format(**counts)
    )
    if report.success:
        lines.append(f"{c.GREEN}{c.BOLD}Provisioning complete.{c.RESET}")
    else:
        lines.append(f"{c.RED}{c.BOLD}Provisioning failed: a fatal step did not succeed.{c.RESET}")
    return "\n".join(lines)


def render(report: RunReport, *, color: Optional[bool] = None, stream: Optional[IO[str]] = None) -> None:
    """Print the report for the operator. Color follows the stream's TTY status by default."""

    out = stream if stream is not None else sys.stdout
    use_color = _wants_color(out) if color is None else color
    out.write(format_report(report, color=use_color) + "\n")


def write_summary(directory: Path, report: RunReport) -> None:
    directory.mkdir(parents=True, exist_ok=True)

    json_path = directory / "provision-summary.json"
    md_path = directory / "provision-summary.md"

    json_path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")

    counts = report.counts()
    lines: List[str] = []
    lines.append("# Provisioning summary")
    lines.append("")
    lines.append(f"- Passed: {'yes' if report.success else 'no'}")
    lines.append(f"- Started: {report.started_at}")
    lines.append(f"- Finished: {report.finished_at}")
    lines.append(
        f"- Applied: {counts['applied']}, skipped: {counts['skipped']}, "
        f"failed: {counts['failed']}, blocked: {counts['blocked']}"
    )
    lines.append("")
    lines.append("| Step | Status | Fatal | Duration | Detail |")
    lines.append("|---|---|---|---:|---|")

    for r in report.results:
        detail = r.detail.replace("|", "\\|").replace("\n", " ")
        lines.append(
            f"| {r.name} | {r.status.value} | {'yes' if r.fatal else 'no'} | {r.duration_s:.1f}s | {detail} |"
        )

    md_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def exit_code(report: RunReport) -> int:
    return 0 if report.success else 1
