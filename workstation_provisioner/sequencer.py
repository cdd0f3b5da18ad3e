from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Set

from .errors import ApplyError, OperatorDeclined, ProbeError
from .graph import dependents_of, topological_order, validate
from .model import RunReport, Step, StepResult, StepStatus, iso_now

logger = logging.getLogger(__name__)

ResultCallback = Callable[[StepResult], None]


def _probe(step: Step) -> bool:
    try:
        return bool(step.probe())
    except ProbeError as e:
        logger.warning("Probe for %s could not determine state (%s); will apply", step.name, e)
    except Exception as e:
        logger.warning(
            "Probe for %s raised %s: %s; will apply", step.name, type(e).__name__, e
        )
    return False


def _describe_failure(e: Exception) -> str:
    if isinstance(e, OperatorDeclined):
        return f"operator declined: {e}" if str(e) else "operator declined"
    if isinstance(e, ApplyError):
        return str(e) or type(e).__name__
    return f"{type(e).__name__}: {e}" if str(e) else type(e).__name__


def run(
    steps: Sequence[Step],
    *,
    force: bool = False,
    on_result: Optional[ResultCallback] = None,
) -> RunReport:
    """Run steps in dependency order with probe-before-apply semantics.

    A failed fatal step blocks every step that transitively depends on it;
    steps on independent branches still run. A failed non-fatal step is only
    recorded. With force=True probes are not consulted and every runnable
    step is applied.

    Raises ConfigurationError (before anything executes) on duplicate names,
    unknown dependencies or cycles.
    """

    validate(steps)
    ordered = topological_order(steps)

    started_at = iso_now()
    results: List[StepResult] = []
    # blocked step name -> name of the fatal step whose failure blocked it
    blocked_by: Dict[str, str] = {}

    def _record(result: StepResult) -> None:
        results.append(result)
        if on_result is not None:
            on_result(result)

    for step in ordered:
        if step.name in blocked_by:
            root = blocked_by[step.name]
            logger.warning("Step %s: blocked (fatal step %s failed)", step.name, root)
            _record(
                StepResult(
                    name=step.name,
                    status=StepStatus.BLOCKED,
                    detail=f"blocked by failed fatal step {root}",
                    fatal=step.fatal,
                )
            )
            continue

        start = time.monotonic()

        if not force and _probe(step):
            logger.info("Step %s: skipped (already satisfied)", step.name)
            _record(
                StepResult(
                    name=step.name,
                    status=StepStatus.SKIPPED,
                    detail="already satisfied",
                    fatal=step.fatal,
                    duration_s=time.monotonic() - start,
                )
            )
            continue

        logger.info("Step %s: applying%s", step.name, " (forced)" if force else "")
        try:
            out = step.apply()
        except Exception as e:
            detail = _describe_failure(e)
            duration = time.monotonic() - start
            if step.fatal:
                logger.error("Step %s: failed (fatal): %s", step.name, detail)
                downstream: Set[str] = dependents_of(steps, step.name)
                for name in downstream:
                    blocked_by.setdefault(name, step.name)
            else:
                logger.warning("Step %s: failed (continuing): %s", step.name, detail)
            _record(
                StepResult(
                    name=step.name,
                    status=StepStatus.FAILED,
                    detail=detail,
                    fatal=step.fatal,
                    duration_s=duration,
                )
            )
            continue

        detail = out.strip() if isinstance(out, str) and out.strip() else "applied"
        logger.info("Step %s: applied", step.name)
        _record(
            StepResult(
                name=step.name,
                status=StepStatus.APPLIED,
                detail=detail,
                fatal=step.fatal,
                duration_s=time.monotonic() - start,
            )
        )

    report = RunReport(results=tuple(results), started_at=started_at, finished_at=iso_now())
    counts = report.counts()
    logger.info(
        "Run finished success=%s applied=%d skipped=%d failed=%d blocked=%d",
        report.success,
        counts["applied"],
        counts["skipped"],
        counts["failed"],
        counts["blocked"],
    )
    return report
