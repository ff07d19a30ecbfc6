from __future__ import annotations

from types import MappingProxyType

from gitstats.models import AuthorStats, FileChurn, RepoStats, TimeSeriesPoint
from gitstats.sources.stats import Aggregator


def _owner(added_by) -> str | None:
    if not added_by:
        return None
    # Most added lines wins; ties go to the lowest key.
    return min(added_by.items(), key=lambda kv: (-kv[1], kv[0]))[0]


def assemble(path: str, agg: Aggregator, head: str | None = None) -> RepoStats:
    """Freeze a finished aggregator into a RepoStats."""
    authors = {
        key: AuthorStats(
            key=key,
            name=t.name,
            email=t.email,
            commits=t.commits,
            lines_added=t.lines_added,
            lines_removed=t.lines_removed,
            first_commit=t.first_commit,
            last_commit=t.last_commit,
            files_touched=len(t.paths),
        )
        for key, t in sorted(agg.authors.items(), key=lambda kv: (-kv[1].commits, kv[0]))
    }

    time_series = tuple(
        TimeSeriesPoint(
            start=start,
            commits=p.commits,
            lines_added=p.lines_added,
            lines_removed=p.lines_removed,
        )
        for start, p in sorted(agg.buckets.items())
    )

    files = {
        file_path: FileChurn(
            path=file_path,
            commits=f.commits,
            lines_added=f.lines_added,
            lines_removed=f.lines_removed,
            owner=_owner(f.added_by),
        )
        for file_path, f in sorted(agg.files.items())
    }

    return RepoStats(
        path=path,
        total_commits=agg.commits,
        authors=MappingProxyType(authors),
        time_series=time_series,
        files=MappingProxyType(files),
        head=head,
        merge_commits=agg.merge_commits,
        lines_added=sum(a.lines_added for a in authors.values()),
        lines_removed=sum(a.lines_removed for a in authors.values()),
        first_commit=min((a.first_commit for a in authors.values()), default=None),
        last_commit=max((a.last_commit for a in authors.values()), default=None),
        bucket=agg.bucket,
    )
