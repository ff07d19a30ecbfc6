from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import asdict
from datetime import date, datetime
from enum import Enum
from pathlib import Path

from gitstats.models import RepoStats


def _plain(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def to_dict(stats: RepoStats) -> dict:
    return {
        "path": stats.path,
        "head": stats.head,
        "bucket": stats.bucket,
        "total_commits": stats.total_commits,
        "merge_commits": stats.merge_commits,
        "lines_added": stats.lines_added,
        "lines_removed": stats.lines_removed,
        "first_commit": _plain(stats.first_commit),
        "last_commit": _plain(stats.last_commit),
        "authors": {key: _plain(asdict(a)) for key, a in stats.authors.items()},
        "time_series": [
            {**_plain(asdict(p)), "lines_changed": p.lines_changed} for p in stats.time_series
        ],
        "files": {path: _plain(asdict(f)) for path, f in stats.files.items()},
    }


def serialize(stats: RepoStats, output_path: str | Path) -> None:
    output_path = Path(output_path)
    with output_path.open("w") as f:
        json.dump(to_dict(stats), f, indent=2)
