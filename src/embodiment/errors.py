# src/embodiment/errors.py
"""
Domain errors for the embodiment layer.

- PreconditionError: embodiment, pose or client missing. Timer-driven paths
  log and abort; direct API calls let it propagate to the caller.
- TransientIOError: a send/upload failed; the caller may retry.
- SessionError: connect/disconnect failures of the WorldSession. Raised only
  after partial state has been torn down.

Numeric degeneracy and jump/crouch conflicts are deliberately NOT errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


class PreconditionError(RuntimeError):
    """A required collaborator or embodiment state is not available."""


class TransientIOError(IOError):
    """A network send failed; safe to retry later."""


@dataclass
class SessionError(RuntimeError):
    """
    Domain-level error raised by WorldSession for lifecycle failures.

    Examples:
        - failed to connect (after full teardown)
        - control surface used while disconnected
    """

    code: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"SessionError(code={self.code!r}, details={self.details!r})"


__all__ = ["PreconditionError", "TransientIOError", "SessionError"]
