from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import pytest

from workstation_provisioner.model import Step


@dataclass
class FakeTarget:
    """In-memory stand-in for a tool on disk: probe reads it, apply sets it."""

    name: str
    installed: bool = False
    fail_with: Optional[BaseException] = None
    probe_error: Optional[BaseException] = None
    calls: List[str] = field(default_factory=list)

    def probe(self) -> bool:
        self.calls.append("probe")
        if self.probe_error is not None:
            raise self.probe_error
        return self.installed

    def apply(self) -> None:
        self.calls.append("apply")
        if self.fail_with is not None:
            raise self.fail_with
        self.installed = True


class Workstation:
    """A set of FakeTargets plus helpers to build Steps from them."""

    def __init__(self) -> None:
        self.targets: dict[str, FakeTarget] = {}
        self.apply_order: List[str] = []

    def target(self, name: str) -> FakeTarget:
        return self.targets.setdefault(name, FakeTarget(name=name))

    def step(
        self,
        name: str,
        *,
        fatal: bool = False,
        depends_on: Sequence[str] = (),
        installed: bool = False,
        fail_with: Optional[BaseException] = None,
    ) -> Step:
        t = self.target(name)
        t.installed = installed
        t.fail_with = fail_with

        def _apply() -> None:
            self.apply_order.append(name)
            t.apply()

        return Step(name=name, probe=t.probe, apply=_apply, fatal=fatal, depends_on=tuple(depends_on))


@pytest.fixture
def ws() -> Workstation:
    return Workstation()


@pytest.fixture
def answers() -> Callable[..., Callable[[str], str]]:
    """Build an input() replacement that replays canned replies."""

    def _make(*replies: str) -> Callable[[str], str]:
        it = iter(replies)

        def _input(prompt: str) -> str:
            try:
                return next(it)
            except StopIteration:
                raise EOFError
        return _input

    return _make


@pytest.fixture
def isolated_logging():
    """configure_logging() attaches handlers to the root logger; undo that per test."""

    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield root
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    for attr in ("_provisioner_configured", "_provisioner_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
    root.setLevel(level)
