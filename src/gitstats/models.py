from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass(frozen=True)
class AuthorIdentity:
    name: str
    email: str


@dataclass(frozen=True)
class FileChange:
    path: str
    lines_added: int = 0
    lines_removed: int = 0
    kind: ChangeKind = ChangeKind.MODIFIED
    old_path: str | None = None
    binary: bool = False


@dataclass(frozen=True)
class Commit:
    hash: str
    author: AuthorIdentity
    timestamp: datetime  # committer time, UTC
    parents: tuple[str, ...] = ()
    changes: tuple[FileChange, ...] = ()

    @property
    def is_merge(self) -> bool:
        return len(self.parents) >= 2


@dataclass(frozen=True)
class AuthorStats:
    key: str
    name: str
    email: str
    commits: int
    lines_added: int
    lines_removed: int
    first_commit: datetime
    last_commit: datetime
    files_touched: int = 0


@dataclass(frozen=True)
class TimeSeriesPoint:
    start: date
    commits: int
    lines_added: int = 0
    lines_removed: int = 0

    @property
    def lines_changed(self) -> int:
        return self.lines_added + self.lines_removed


@dataclass(frozen=True)
class FileChurn:
    path: str
    commits: int
    lines_added: int
    lines_removed: int
    owner: str | None = None


@dataclass(frozen=True)
class RepoStats:
    path: str
    total_commits: int = 0
    authors: Mapping[str, AuthorStats] = field(default_factory=dict)
    time_series: tuple[TimeSeriesPoint, ...] = ()
    files: Mapping[str, FileChurn] = field(default_factory=dict)
    head: str | None = None
    merge_commits: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    first_commit: datetime | None = None
    last_commit: datetime | None = None
    bucket: str = "day"
