from __future__ import annotations

from collections import Counter
import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from gitstats.config import BUCKETS, DateRange, parse_date_bound
from gitstats.models import AuthorIdentity, Commit


def normalize_identity(author: AuthorIdentity, aliases: dict[str, str] | None = None) -> str:
    """Key an author by lower-cased email, falling back to lower-cased name."""
    key = author.email.strip().lower() or author.name.strip().lower()
    if aliases:
        key = aliases.get(key, key)
    return key


def bucket_start(ts: datetime, bucket: str) -> date:
    day = ts.date()
    if bucket == "day":
        return day
    if bucket == "week":
        return day - timedelta(days=day.weekday())
    if bucket == "month":
        return day.replace(day=1)
    raise ValueError(f"Unknown bucket {bucket!r}, expected one of {', '.join(BUCKETS)}")


def in_date_range(ts: datetime, date_range: DateRange | None) -> bool:
    if date_range is None:
        return True
    start_dt = parse_date_bound(date_range.start)
    if start_dt and ts < start_dt:
        return False
    end_dt = parse_date_bound(date_range.end, end=True)
    if end_dt and ts > end_dt:
        return False
    return True


@dataclass
class AuthorTally:
    name: str
    email: str
    latest: tuple[datetime, str]  # (timestamp, hash) the name was taken from
    first_commit: datetime
    last_commit: datetime
    commits: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    paths: set[str] = field(default_factory=set)

    def merge(self, other: AuthorTally) -> None:
        if other.latest > self.latest:
            self.name, self.email, self.latest = other.name, other.email, other.latest
        self.first_commit = min(self.first_commit, other.first_commit)
        self.last_commit = max(self.last_commit, other.last_commit)
        self.commits += other.commits
        self.lines_added += other.lines_added
        self.lines_removed += other.lines_removed
        self.paths |= other.paths


@dataclass
class BucketTally:
    commits: int = 0
    lines_added: int = 0
    lines_removed: int = 0

    def merge(self, other: BucketTally) -> None:
        self.commits += other.commits
        self.lines_added += other.lines_added
        self.lines_removed += other.lines_removed


@dataclass
class FileTally:
    commits: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    added_by: Counter = field(default_factory=Counter)

    def merge(self, other: FileTally) -> None:
        self.commits += other.commits
        self.lines_added += other.lines_added
        self.lines_removed += other.lines_removed
        self.added_by.update(other.added_by)


class Aggregator:
    """Partial statistics over a set of commits.

    Every quantity is a sum, a min/max or a set union, so partial
    aggregators built over disjoint commits can be merged in any order.
    """

    def __init__(
        self,
        bucket: str = "day",
        aliases: dict[str, str] | None = None,
        date_range: DateRange | None = None,
    ) -> None:
        if bucket not in BUCKETS:
            raise ValueError(f"Unknown bucket {bucket!r}, expected one of {', '.join(BUCKETS)}")
        self.bucket = bucket
        self.aliases = aliases or {}
        self.date_range = date_range
        self.commits = 0
        self.merge_commits = 0
        self.skipped = 0
        self.authors: dict[str, AuthorTally] = {}
        self.buckets: dict[date, BucketTally] = {}
        self.files: dict[str, FileTally] = {}

    def spawn(self) -> Aggregator:
        """Return an empty aggregator with the same settings."""
        return Aggregator(self.bucket, self.aliases, self.date_range)

    def add(self, commit: Commit) -> bool:
        """Fold one commit in; returns False if it falls outside the date range."""
        if not in_date_range(commit.timestamp, self.date_range):
            self.skipped += 1
            return False

        added = sum(c.lines_added for c in commit.changes)
        removed = sum(c.lines_removed for c in commit.changes)
        self.commits += 1
        if commit.is_merge:
            self.merge_commits += 1

        key = normalize_identity(commit.author, self.aliases)
        stamp = (commit.timestamp, commit.hash)
        tally = self.authors.get(key)
        if tally is None:
            tally = AuthorTally(
                name=commit.author.name,
                email=commit.author.email,
                latest=stamp,
                first_commit=commit.timestamp,
                last_commit=commit.timestamp,
            )
            self.authors[key] = tally
        else:
            if stamp > tally.latest:
                tally.name, tally.email, tally.latest = commit.author.name, commit.author.email, stamp
            tally.first_commit = min(tally.first_commit, commit.timestamp)
            tally.last_commit = max(tally.last_commit, commit.timestamp)
        tally.commits += 1
        tally.lines_added += added
        tally.lines_removed += removed
        tally.paths.update(c.path for c in commit.changes)

        point = self.buckets.setdefault(bucket_start(commit.timestamp, self.bucket), BucketTally())
        point.commits += 1
        point.lines_added += added
        point.lines_removed += removed

        for change in commit.changes:
            churn = self.files.setdefault(change.path, FileTally())
            churn.commits += 1
            churn.lines_added += change.lines_added
            churn.lines_removed += change.lines_removed
            if change.lines_added:
                churn.added_by[key] += change.lines_added
        return True

    def merge(self, other: Aggregator) -> None:
        self.commits += other.commits
        self.merge_commits += other.merge_commits
        self.skipped += other.skipped
        for key, tally in other.authors.items():
            if key in self.authors:
                self.authors[key].merge(tally)
            else:
                self.authors[key] = dataclasses.replace(tally, paths=set(tally.paths))
        for start, point in other.buckets.items():
            self.buckets.setdefault(start, BucketTally()).merge(point)
        for path, churn in other.files.items():
            self.files.setdefault(path, FileTally()).merge(churn)
