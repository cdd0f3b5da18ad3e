from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from .errors import ConfigurationError
from .graph import topological_order, validate
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .model import RunReport, Step
from .plan import build_steps, load_plan
from .report import exit_code, render, write_summary
from .sequencer import run as run_sequence
from .state_store import ensure_defaults, load_state, record_error, record_run, save_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Paths:
    state_default: str = str(Path.home() / ".local/state/workstation-provisioner/state.json")
    log_default: str = DEFAULT_LOG_PATH


PATHS = Paths()


def run(
    *,
    plan_path: str,
    state_path: str = PATHS.state_default,
    log_path: str = PATHS.log_default,
    summary_dir: Optional[str] = None,
    force: bool = False,
    dry_run: bool = False,
    assume_yes: bool = False,
) -> RunReport:
    """Run a plan, persisting the outcome to the state file.

    ConfigurationError and a missing plan propagate (after being recorded) and
    no report exists. An unreadable state file is replaced with a fresh one.
    """

    actual_log_path = configure_logging(log_path=log_path)

    # Run history is diagnostic only; a damaged file must not stop provisioning.
    try:
        state = ensure_defaults(load_state(state_path))
    except (ValueError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable state file %s: %s", state_path, e)
        state = ensure_defaults({})
    state["log_path"] = actual_log_path

    try:
        cfg = load_plan(plan_path)
        steps = build_steps(cfg, dry_run=dry_run, assume_yes=assume_yes)
        report = run_sequence(steps, force=force)
        record_run(state, report, plan=plan_path)
        if summary_dir:
            write_summary(Path(summary_dir), report)
        return report
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error("Cannot use plan %s: %s", plan_path, e)
        record_error(state, str(e), plan=plan_path)
        raise
    except Exception as e:
        logger.exception("Provisioning aborted")
        record_error(state, str(e), plan=plan_path)
        raise
    finally:
        save_state(state_path, state)


def list_steps(steps: List[Step]) -> List[str]:
    validate(steps)
    lines: List[str] = []
    for i, s in enumerate(topological_order(steps), start=1):
        deps = f" (after {', '.join(s.depends_on)})" if s.depends_on else ""
        fatal = " [fatal]" if s.fatal else ""
        desc = f" - {s.description}" if s.description else ""
        lines.append(f"  {i:>2}  {s.name}{fatal}{deps}{desc}")
    return lines


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="workstation-provisioner")
    p.add_argument("--plan", required=True, help="Path to the YAML plan manifest")
    p.add_argument("--state", default=PATHS.state_default, help="Path to run history (json|yaml)")
    p.add_argument("--log", default=PATHS.log_default, help="Path to provisioning log")
    p.add_argument("--summary-dir", default=None, help="Write provision-summary.{json,md} here")
    p.add_argument("--force", action="store_true", help="Apply steps even if their probe is satisfied")
    p.add_argument("--dry-run", action="store_true", help="Log commands instead of running them")
    p.add_argument("--yes", action="store_true", help="Answer yes to operator prompts")
    p.add_argument("--list-steps", action="store_true", help="Print steps in execution order and exit")
    p.add_argument("--no-color", action="store_true", help="Disable colored output")

    args = p.parse_args(argv)

    if args.list_steps:
        try:
            steps = build_steps(load_plan(args.plan))
            lines = list_steps(steps)
        except ConfigurationError as e:
            print(f"Invalid plan: {e}", file=sys.stderr)
            return 2
        except FileNotFoundError:
            print(f"Plan not found: {args.plan}", file=sys.stderr)
            return 2
        print("\n".join(lines) if lines else "No steps defined.")
        return 0

    try:
        report = run(
            plan_path=args.plan,
            state_path=args.state,
            log_path=args.log,
            summary_dir=args.summary_dir,
            force=bool(args.force),
            dry_run=bool(args.dry_run),
            assume_yes=bool(args.yes),
        )
    except ConfigurationError as e:
        print(f"Invalid plan: {e}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Plan not found: {args.plan}", file=sys.stderr)
        return 2

    render(report, color=False if args.no_color else None)
    return exit_code(report)


if __name__ == "__main__":
    raise SystemExit(main())
