from __future__ import annotations


class GitStatsError(Exception):
    """Base class for every error raised by the statistics engine."""


class PathNotFound(GitStatsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Path does not exist: {path}")
        self.path = path


class NotARepository(GitStatsError):
    def __init__(self, path: str) -> None:
        super().__init__(f"No git history store at: {path}")
        self.path = path


class UnknownCommit(GitStatsError):
    def __init__(self, commit: str) -> None:
        super().__init__(f"Cannot resolve commit: {commit}")
        self.commit = commit


class CorruptHistory(GitStatsError):
    """A commit references history that cannot be read."""

    def __init__(self, commit: str, reason: str = "") -> None:
        message = f"Corrupt history at {commit}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.commit = commit
        self.reason = reason


class OperationCancelled(GitStatsError):
    def __init__(self) -> None:
        super().__init__("Operation cancelled")
