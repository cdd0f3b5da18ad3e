from __future__ import annotations

import io
import json

from workstation_provisioner.model import RunReport, StepResult, StepStatus
from workstation_provisioner.report import Colors, exit_code, format_report, render, write_summary


def _report(*results):
    return RunReport(results=tuple(results), started_at="t0", finished_at="t1")


def test_success_flag_only_tracks_fatal_failures():
    ok = _report(
        StepResult("editor", StepStatus.FAILED, "mirror down", fatal=False),
        StepResult("docker", StepStatus.APPLIED, fatal=True),
    )
    bad = _report(StepResult("docker", StepStatus.FAILED, "apt failed", fatal=True))

    assert ok.success and exit_code(ok) == 0
    assert not bad.success and exit_code(bad) == 1


def test_counts_include_every_status():
    r = _report(
        StepResult("a", StepStatus.APPLIED),
        StepResult("b", StepStatus.SKIPPED),
        StepResult("c", StepStatus.BLOCKED),
    )

    assert r.counts() == {"skipped": 1, "applied": 1, "failed": 0, "blocked": 1}
    assert [x.name for x in r.by_status(StepStatus.BLOCKED)] == ["c"]
    assert r.result_for("missing") is None


def test_plain_format_has_no_escape_codes():
    text = format_report(
        _report(StepResult("docker", StepStatus.FAILED, "apt failed", fatal=True)),
        color=False,
    )

    assert "\033[" not in text
    assert "FAILED" in text
    assert "docker [fatal] - apt failed" in text
    assert "Provisioning failed" in text


def test_colored_format_tints_status():
    text = format_report(_report(StepResult("docker", StepStatus.APPLIED)), color=True)

    assert Colors.GREEN in text
    assert "Provisioning complete." in text


def test_render_defaults_to_plain_for_non_tty():
    buf = io.StringIO()

    render(_report(StepResult("a", StepStatus.SKIPPED, "already satisfied")), stream=buf)

    out = buf.getvalue()
    assert "\033[" not in out
    assert "SKIPPED" in out


def test_write_summary(tmp_path):
    report = _report(
        StepResult("docker", StepStatus.APPLIED, "ran 2 command(s)", fatal=True, duration_s=1.3),
        StepResult("extensions", StepStatus.FAILED, "a|b", fatal=False),
    )

    write_summary(tmp_path / "out", report)

    data = json.loads((tmp_path / "out" / "provision-summary.json").read_text(encoding="utf-8"))
    assert data["success"] is True
    assert [s["status"] for s in data["steps"]] == ["applied", "failed"]

    md = (tmp_path / "out" / "provision-summary.md").read_text(encoding="utf-8")
    assert "| docker | applied | yes | 1.3s | ran 2 command(s) |" in md
    assert "a\\|b" in md
