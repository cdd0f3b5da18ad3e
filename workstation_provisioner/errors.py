from __future__ import annotations

from typing import Optional, Sequence


class ProvisionerError(Exception):
    pass


class ConfigurationError(ProvisionerError):
    """Malformed step graph or plan manifest. Raised before any step runs."""


class ProbeError(ProvisionerError):
    """A probe could not determine whether its goal state holds."""


class ApplyError(ProvisionerError):
    """An installation action failed."""


class CommandError(ApplyError):
    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


class OperatorDeclined(ApplyError):
    """The operator refused a required interactive action."""
