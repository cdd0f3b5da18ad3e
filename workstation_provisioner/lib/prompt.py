from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from ..errors import OperatorDeclined
from ..model import Step
from .probes import Probe

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]


def confirm(question: str, *, assume_yes: bool = False, input_fn: Optional[InputFn] = None) -> bool:
    """Ask a y/n question. EOF (no terminal) counts as "no"."""

    if assume_yes:
        logger.info("Prompt auto-accepted: %s", question)
        return True

    ask = input_fn if input_fn is not None else input
    try:
        reply = ask(f"{question} (y/n) ")
    except EOFError:
        logger.warning("Prompt got EOF, treating as declined: %s", question)
        return False

    accepted = reply.strip().lower() in {"y", "yes"}
    logger.info("Prompt %r answered %s", question, "yes" if accepted else "no")
    return accepted


def confirm_step(
    name: str,
    question: str,
    *,
    probe: Probe,
    fatal: bool = True,
    depends_on: Iterable[str] = (),
    description: str = "",
    assume_yes: bool = False,
    input_fn: Optional[InputFn] = None,
) -> Step:
    """A step whose apply asks the operator and raises OperatorDeclined on "no".

    Typical use: probe checks a precondition (supported OS, not root); when it
    does not hold, the operator decides whether to continue.
    """

    def _apply() -> str:
        if not confirm(question, assume_yes=assume_yes, input_fn=input_fn):
            raise OperatorDeclined(question)
        return "operator accepted"

    return Step(
        name=name,
        probe=probe,
        apply=_apply,
        fatal=fatal,
        depends_on=tuple(depends_on),
        description=description or question,
    )
