from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from .errors import ApplyError, ConfigurationError
from .lib import probes
from .lib.command import run_cmd
from .lib.prompt import InputFn, confirm_step
from .model import Step

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 1800.0

_PROBE_KINDS = ("path", "binary", "command", "package", "os_release", "not_root", "always", "never", "all")
_APPLY_KINDS = ("commands", "confirm", "abort")


def _flag(where: str, value: Any, default: bool) -> bool:
    # YAML quoting turns `"false"` into a truthy string; only real booleans count.
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"{where} must be true or false, got {value!r}")
    return value


def _timeout(where: str, value: Any, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(f"{where} must be a positive number of seconds, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class PlanConfig:
    raw: Dict[str, Any]

    @property
    def name(self) -> str:
        return str(self.raw.get("name") or "workstation")

    @property
    def defaults(self) -> Dict[str, Any]:
        d = self.raw.get("defaults") or {}
        if not isinstance(d, dict):
            raise ConfigurationError("plan: defaults must be a mapping")
        return d

    @property
    def default_fatal(self) -> bool:
        return _flag("defaults.fatal", self.defaults.get("fatal"), False)

    @property
    def default_timeout(self) -> float:
        return _timeout("defaults.timeout", self.defaults.get("timeout"), DEFAULT_TIMEOUT_S)

    @property
    def step_entries(self) -> List[Dict[str, Any]]:
        entries = self.raw.get("steps") or []
        if not isinstance(entries, list):
            raise ConfigurationError("plan: steps must be a list")
        for i, e in enumerate(entries):
            if not isinstance(e, dict):
                raise ConfigurationError(f"plan: steps[{i}] must be a mapping")
        return entries


def load_plan(path: str) -> PlanConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigurationError("plan must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"plan {p} is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("plan must contain a mapping/object")

    return PlanConfig(raw=raw)


def _build_probe(name: str, probe_cfg: Any) -> probes.Probe:
    if probe_cfg is None:
        return probes.never()
    if not isinstance(probe_cfg, dict) or len(probe_cfg) != 1:
        raise ConfigurationError(f"step {name}: probe must be a mapping with exactly one of {', '.join(_PROBE_KINDS)}")

    kind, arg = next(iter(probe_cfg.items()))
    if kind == "path":
        return probes.path_exists(str(arg))
    if kind == "binary":
        return probes.binary_on_path(str(arg))
    if kind == "command":
        if not isinstance(arg, list) or not arg:
            raise ConfigurationError(f"step {name}: probe.command must be a non-empty argv list")
        return probes.command_succeeds([str(a) for a in arg])
    if kind == "package":
        return probes.package_installed(str(arg))
    if kind == "os_release":
        return probes.os_release_matches(str(arg))
    if kind == "not_root":
        return probes.not_root()
    if kind == "always":
        return probes.always()
    if kind == "never":
        return probes.never()
    if kind == "all":
        if not isinstance(arg, list) or not arg:
            raise ConfigurationError(f"step {name}: probe.all must be a non-empty list of probes")
        return probes.all_of(*(_build_probe(name, sub) for sub in arg))
    raise ConfigurationError(f"step {name}: unknown probe kind {kind!r}")


def _commands_apply(
    name: str,
    commands: Any,
    *,
    env: Optional[Dict[str, str]],
    cwd: Optional[str],
    timeout: float,
    dry_run: bool,
) -> Callable[[], str]:
    if not isinstance(commands, list) or not commands:
        raise ConfigurationError(f"step {name}: apply.commands must be a non-empty list")

    argvs: List[List[str]] = []
    for i, c in enumerate(commands):
        if not isinstance(c, list) or not c:
            raise ConfigurationError(f"step {name}: apply.commands[{i}] must be a non-empty argv list")
        argvs.append([str(a) for a in c])

    def _apply() -> str:
        for argv in argvs:
            run_cmd(argv, env=env, cwd=cwd, timeout=timeout, dry_run=dry_run)
        return f"ran {len(argvs)} command(s)" + (" (dry-run)" if dry_run else "")

    return _apply


def _abort_apply(name: str, message: Any) -> Callable[[], str]:
    text = str(message or "").strip()
    if not text:
        raise ConfigurationError(f"step {name}: apply.abort needs a message")

    def _apply() -> str:
        raise ApplyError(text)

    return _apply


def build_steps(
    cfg: PlanConfig,
    *,
    dry_run: bool = False,
    assume_yes: bool = False,
    input_fn: Optional[InputFn] = None,
) -> List[Step]:
    """Turn plan entries into Steps. Graph checks happen later, in the sequencer."""

    out: List[Step] = []
    for i, entry in enumerate(cfg.step_entries):
        name = str(entry.get("name") or "").strip()
        if not name:
            raise ConfigurationError(f"plan: steps[{i}] has no name")

        depends_on = entry.get("depends_on") or []
        if not isinstance(depends_on, list):
            raise ConfigurationError(f"step {name}: depends_on must be a list")

        description = str(entry.get("description") or "")
        probe = _build_probe(name, entry.get("probe"))

        apply_cfg = entry.get("apply")
        if not isinstance(apply_cfg, dict):
            raise ConfigurationError(f"step {name}: apply must be a mapping")
        kinds = [k for k in _APPLY_KINDS if k in apply_cfg]
        if len(kinds) != 1:
            raise ConfigurationError(f"step {name}: apply needs exactly one of {', '.join(_APPLY_KINDS)}")
        kind = kinds[0]

        # Prompts and stops guard everything after them, so they default to fatal.
        default_fatal = cfg.default_fatal if kind == "commands" else True
        fatal = _flag(f"step {name}: fatal", entry.get("fatal"), default_fatal)

        if kind == "confirm":
            out.append(
                confirm_step(
                    name,
                    str(apply_cfg["confirm"]),
                    probe=probe,
                    fatal=fatal,
                    depends_on=[str(d) for d in depends_on],
                    description=description,
                    assume_yes=assume_yes,
                    input_fn=input_fn,
                )
            )
            continue

        if kind == "abort":
            apply_fn = _abort_apply(name, apply_cfg["abort"])
        else:
            env = apply_cfg.get("env")
            if env is not None and not isinstance(env, dict):
                raise ConfigurationError(f"step {name}: apply.env must be a mapping")
            cwd = apply_cfg.get("cwd")

            apply_fn = _commands_apply(
                name,
                apply_cfg["commands"],
                env={str(k): str(v) for k, v in env.items()} if env else None,
                cwd=str(Path(str(cwd)).expanduser()) if cwd else None,
                timeout=_timeout(f"step {name}: apply.timeout", apply_cfg.get("timeout"), cfg.default_timeout),
                dry_run=dry_run,
            )

        out.append(
            Step(
                name=name,
                probe=probe,
                apply=apply_fn,
                fatal=fatal,
                depends_on=tuple(str(d) for d in depends_on),
                description=description,
            )
        )

    logger.info("Plan %s: %d step(s)", cfg.name, len(out))
    return out
