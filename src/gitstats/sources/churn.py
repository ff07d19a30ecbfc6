from __future__ import annotations

import dataclasses

from gitstats.logging import get_logger
from gitstats.models import ChangeKind, Commit, FileChange
from gitstats.sources.git import RepositoryHandle

logger = get_logger("churn")

_STATUS_TO_KIND: dict[str, ChangeKind] = {
    "A": ChangeKind.ADDED,
    "C": ChangeKind.ADDED,  # copies only appear with -C, count them as new files
    "D": ChangeKind.DELETED,
    "M": ChangeKind.MODIFIED,
    "T": ChangeKind.MODIFIED,
    "R": ChangeKind.RENAMED,
}


def _parse_count(value: str) -> int | None:
    """Numstat prints ``-`` for binary files."""
    if value == "-":
        return None
    return int(value)


def parse_diff_tree(output: str) -> list[FileChange]:
    """Parse ``git diff-tree -z --raw --numstat`` output into file changes.

    Raw records give the change kind and paths, numstat records give the
    line counts; both are keyed on the post-change path.
    """
    tokens = [t for t in output.split("\0") if t]
    raw: list[tuple[str, str, str | None]] = []  # (status, path, old_path)
    numstat: dict[str, tuple[int | None, int | None]] = {}

    i = 0
    while i < len(tokens):
        token = tokens[i].lstrip("\n")
        if token.startswith(":"):
            status = token.split()[-1][0]
            if status in ("R", "C"):
                old_path, path = tokens[i + 1], tokens[i + 2]
                raw.append((status, path, old_path))
                i += 3
            else:
                raw.append((status, tokens[i + 1], None))
                i += 2
            continue

        added, removed, path = token.split("\t", 2)
        if path == "":
            # Renames put "old\0new" after an empty path field.
            path = tokens[i + 2]
            i += 3
        else:
            i += 1
        numstat[path] = (_parse_count(added), _parse_count(removed))

    changes: list[FileChange] = []
    for status, path, old_path in raw:
        added, removed = numstat.get(path, (0, 0))
        binary = added is None or removed is None
        changes.append(
            FileChange(
                path=path,
                lines_added=added or 0,
                lines_removed=removed or 0,
                kind=_STATUS_TO_KIND.get(status, ChangeKind.MODIFIED),
                old_path=old_path if status == "R" else None,
                binary=binary,
            )
        )
    return changes


def compute_changes(
    handle: RepositoryHandle,
    commit: Commit,
    rename_threshold: int = 50,
) -> Commit:
    """Return ``commit`` with its file changes filled in.

    The tree is compared against the first parent only, so a merge commit
    contributes just what it brought into the first-parent line. Root
    commits are compared against the empty tree.
    """
    parent = commit.parents[0] if commit.parents else None
    output = handle.diff_tree(commit.hash, parent, rename_threshold)
    changes = parse_diff_tree(output)
    logger.debug("%s: %d files changed", commit.hash[:10], len(changes))
    return dataclasses.replace(commit, changes=tuple(changes))
