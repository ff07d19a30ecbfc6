from __future__ import annotations

import heapq
import time
from collections.abc import Iterable, Iterator

from gitstats.cancel import CancelToken
from gitstats.errors import CorruptHistory, UnknownCommit
from gitstats.logging import get_logger
from gitstats.models import Commit
from gitstats.sources.git import RepositoryHandle

logger = get_logger("walker")


def _heap_entry(commit: Commit) -> tuple[float, str, Commit]:
    # Negated timestamp turns heapq's min-heap into newest-first.
    return (-commit.timestamp.timestamp(), commit.hash, commit)


def walk_history(
    handle: RepositoryHandle,
    starts: Iterable[Commit],
    cancel: CancelToken | None = None,
) -> Iterator[Commit]:
    """Yield every commit reachable from ``starts`` exactly once.

    Commits come out newest first by committer time; equal timestamps are
    ordered by hash. A parent that cannot be read raises ``CorruptHistory``.
    The iterator is lazy and cannot be restarted.
    """
    seen: set[str] = set()
    heap: list[tuple[float, str, Commit]] = []
    for commit in starts:
        if commit.hash not in seen:
            seen.add(commit.hash)
            heapq.heappush(heap, _heap_entry(commit))

    yielded = 0
    t0 = time.monotonic()
    last_progress_time = t0

    while heap:
        if cancel is not None:
            cancel.raise_if_cancelled()

        _, _, commit = heapq.heappop(heap)
        for parent_hash in commit.parents:
            if parent_hash in seen:
                continue
            seen.add(parent_hash)
            try:
                parent = handle.resolve(parent_hash)
            except UnknownCommit as exc:
                raise CorruptHistory(commit.hash, f"missing parent {parent_hash}") from exc
            heapq.heappush(heap, _heap_entry(parent))

        yielded += 1
        now = time.monotonic()
        if yielded % 500 == 0 and now - last_progress_time > 0.5:
            logger.info("Walked %d commits, %d queued [%.0fs]", yielded, len(heap), now - t0)
            last_progress_time = now
        yield commit

    logger.debug("Walk finished: %d commits [%.2fs]", yielded, time.monotonic() - t0)
