from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StepStatus(str, Enum):
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Step:
    """A single idempotent unit of provisioning work.

    probe() returns True when the goal state already holds; apply() establishes
    it and raises on failure. Both may block on external processes.
    """

    name: str
    probe: Callable[[], bool]
    apply: Callable[[], Any]
    fatal: bool = False
    depends_on: Tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        # Accept any iterable of names but store a tuple so Step stays hashable.
        # A bare string is one dependency, not a sequence of characters.
        deps = self.depends_on
        if isinstance(deps, str):
            deps = (deps,)
        object.__setattr__(self, "depends_on", tuple(deps))


@dataclass(frozen=True)
class StepResult:
    name: str
    status: StepStatus
    detail: str = ""
    timestamp: str = field(default_factory=iso_now)
    fatal: bool = False
    duration_s: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "detail": self.detail,
            "timestamp": self.timestamp,
            "fatal": self.fatal,
            "duration_s": round(self.duration_s, 3),
        }


@dataclass(frozen=True)
class RunReport:
    results: Tuple[StepResult, ...]
    started_at: str
    finished_at: str

    @property
    def success(self) -> bool:
        return not any(r.fatal and r.status is StepStatus.FAILED for r in self.results)

    def result_for(self, name: str) -> Optional[StepResult]:
        for r in self.results:
            if r.name == name:
                return r
        return None

    def by_status(self, status: StepStatus) -> Tuple[StepResult, ...]:
        return tuple(r for r in self.results if r.status is status)

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in StepStatus}
        for r in self.results:
            out[r.status.value] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "counts": self.counts(),
            "steps": [r.to_dict() for r in self.results],
        }
