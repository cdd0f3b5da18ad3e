"""Reusable probes.

Each factory returns a zero-argument callable suitable for Step.probe.
Probes are read-only. When a probe cannot tell (permission denied, timeout)
it raises ProbeError so the sequencer errs toward applying.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from ..errors import CommandError, ProbeError
from .command import run_cmd

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]

OS_RELEASE_PATH = "/etc/os-release"


def always() -> Probe:
    return lambda: True


def never() -> Probe:
    return lambda: False


def path_exists(path: str) -> Probe:
    p = Path(os.path.expanduser(path))

    def _probe() -> bool:
        try:
            return p.exists()
        except PermissionError as e:
            raise ProbeError(f"Permission denied checking {p}") from e

    return _probe


def binary_on_path(name: str, *, path: Optional[str] = None) -> Probe:
    def _probe() -> bool:
        return shutil.which(name, path=path) is not None

    return _probe


def command_succeeds(
    argv: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    timeout: float = 30.0,
) -> Probe:
    """Satisfied when the command exits 0. A missing executable counts as not satisfied."""

    argv_list = list(argv)

    def _probe() -> bool:
        if shutil.which(argv_list[0]) is None:
            return False
        try:
            r = run_cmd(argv_list, check=False, env=env, timeout=timeout)
        except CommandError as e:
            raise ProbeError(str(e)) from e
        return r.returncode == 0

    return _probe


def package_installed(package: str) -> Probe:
    """Debian package status as reported by dpkg-query."""

    def _probe() -> bool:
        try:
            r = run_cmd(
                ["dpkg-query", "-W", "-f=${Status}", package],
                check=False,
                timeout=30.0,
            )
        except CommandError as e:
            raise ProbeError(str(e)) from e
        return r.returncode == 0 and r.stdout.strip().endswith("install ok installed")

    return _probe


def read_os_release(path: str = OS_RELEASE_PATH) -> dict[str, str]:
    out: dict[str, str] = {}
    try:
        text = Path(path).read_text(encoding="utf-8", errors="ignore")
    except FileNotFoundError:
        return out
    except PermissionError as e:
        raise ProbeError(f"Permission denied reading {path}") from e

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        out[key.strip()] = value.strip().strip('"').strip("'")
    return out


def os_release_matches(needle: str, *, path: str = OS_RELEASE_PATH) -> Probe:
    """Satisfied when ID, ID_LIKE, NAME or PRETTY_NAME mentions `needle` (case-insensitive)."""

    want = needle.lower()

    def _probe() -> bool:
        info = read_os_release(path)
        for key in ("ID", "ID_LIKE", "NAME", "PRETTY_NAME"):
            if want in info.get(key, "").lower():
                return True
        logger.info("os-release does not mention %s (NAME=%s)", needle, info.get("NAME"))
        return False

    return _probe


def not_root() -> Probe:
    def _probe() -> bool:
        geteuid = getattr(os, "geteuid", None)
        if geteuid is None:
            return True
        return geteuid() != 0

    return _probe


def all_of(*probes: Probe) -> Probe:
    return lambda: all(p() for p in probes)
