from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .model import RunReport

logger = logging.getLogger(__name__)

STATE_VERSION = 1
DEFAULT_MAX_RUNS = 20


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    fmt = _detect_format(p)
    data: Any
    if fmt in {"yaml", "yml"}:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        text = yaml.safe_dump(state, sort_keys=False)
    else:
        text = json.dumps(state, indent=2, sort_keys=True) + "\n"

    # Write-then-rename so an interrupted save never leaves a truncated file.
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(p)


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with defaults (without overriding existing values)."""

    state.setdefault("version", STATE_VERSION)
    state.setdefault("runs", [])
    state.setdefault("errors", [])
    return state


def record_run(
    state: Dict[str, Any],
    report: RunReport,
    *,
    plan: Optional[str] = None,
    max_runs: int = DEFAULT_MAX_RUNS,
) -> None:
    entry = report.to_dict()
    if plan is not None:
        entry["plan"] = plan

    runs = state.setdefault("runs", [])
    runs.append(entry)
    if max_runs > 0 and len(runs) > max_runs:
        del runs[: len(runs) - max_runs]


def record_error(state: Dict[str, Any], error: str, *, plan: Optional[str] = None) -> None:
    state.setdefault("errors", []).append({"plan": plan, "error": error})


def last_run(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    runs = state.get("runs") or []
    return runs[-1] if runs else None
