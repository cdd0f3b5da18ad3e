"""Workstation provisioner (probe-first, dependency-ordered).

Core design goals:
- Idempotent steps: probe before apply
- Explicit dependency order between steps
- Per-step fatality instead of abort-on-first-error
- A complete, immutable record of every run
- Centralized logging
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
