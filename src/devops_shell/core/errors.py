"""Exception hierarchy for devops-shell.

Per-unit failures (a stage or task that could not start or exited non-zero)
are contained and reported where they happen. Only ``InfrastructureError``
is expected to cross a pipeline or batch call boundary.
"""

from __future__ import annotations


class ShellError(Exception):
    """Base exception for devops-shell errors."""

    pass


class SpawnError(ShellError):
    """Raised when an external program cannot be started.

    Covers binary-not-found and permission-denied. No wait is ever started
    for a command that raised this.
    """

    def __init__(self, argv: list[str], reason: str):
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"error starting command {self.argv}: {reason}")


class InfrastructureError(ShellError):
    """Raised when inter-stage pipe handling fails."""

    pass


class InvalidTransitionError(ShellError):
    """Raised when a task status would move backwards or skip a state."""

    pass


class ShellConfigError(ShellError):
    """Raised when config.yaml cannot be parsed or validated."""

    pass


__all__ = [
    "ShellError",
    "SpawnError",
    "InfrastructureError",
    "InvalidTransitionError",
    "ShellConfigError",
]
