"""Exception hierarchy for RepoForge.

Stage actions raise these; ``Stage.execute`` converts every one of them into
a ``StageResult`` so nothing escapes past the pipeline orchestrator.
"""

from __future__ import annotations


class RepoForgeError(Exception):
    """Base class for all RepoForge errors."""


class StageError(RepoForgeError):
    """Raised inside a stage action when the stage cannot complete.

    Attributes:
        reason: Short machine-friendly reason (e.g. ``"transient-exhausted"``).
        recoverable: Whether the orchestrator may continue after this failure.
    """

    def __init__(self, reason: str, message: str = "", *, recoverable: bool = False) -> None:
        self.reason = reason
        self.recoverable = recoverable
        super().__init__(f"{reason}: {message}" if message else reason)


class StandardsError(RepoForgeError):
    """Raised when the standards corpus cannot be loaded completely."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        self.missing = missing or []
        super().__init__(message)


class WriteError(RepoForgeError):
    """Raised when the filesystem writer cannot apply an entry."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class PathTraversalError(WriteError):
    """Raised when a write targets a path outside the project base directory."""

    def __init__(self, path: str, base: str) -> None:
        self.base = base
        super().__init__(f"Refusing to write outside {base}: {path}", path=path)
