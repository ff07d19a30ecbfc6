from __future__ import annotations

import time
from collections import deque
from collections.abc import Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from itertools import islice
from pathlib import Path

from gitstats.assembler import assemble
from gitstats.cancel import CancelToken
from gitstats.config import Config
from gitstats.errors import UnknownCommit
from gitstats.logging import get_logger
from gitstats.models import Commit, RepoStats
from gitstats.sources.churn import compute_changes
from gitstats.sources.git import RepositoryHandle, open_repository
from gitstats.sources.stats import Aggregator, in_date_range
from gitstats.sources.walker import walk_history

logger = get_logger("engine")


def _batched(commits: Iterable[Commit], size: int) -> Iterator[list[Commit]]:
    it = iter(commits)
    while True:
        batch = list(islice(it, size))
        if not batch:
            return
        yield batch


def _fold_batch(
    handle: RepositoryHandle,
    commits: Iterable[Commit],
    template: Aggregator,
    rename_threshold: int,
    cancel: CancelToken | None,
) -> Aggregator:
    partial = template.spawn()
    for commit in commits:
        if cancel is not None:
            cancel.raise_if_cancelled()
        # Out-of-range commits are still counted as skipped, just not diffed.
        if in_date_range(commit.timestamp, template.date_range):
            commit = compute_changes(handle, commit, rename_threshold)
        partial.add(commit)
    return partial


def _fold_parallel(
    handle: RepositoryHandle,
    commits: Iterable[Commit],
    agg: Aggregator,
    config: Config,
    cancel: CancelToken | None,
) -> None:
    """Diff and fold commits in worker threads, merging partials in order.

    The walk itself stays on the calling thread; workers only run
    ``git diff-tree`` subprocesses and fold into their own Aggregator.
    """
    workers = config.performance.workers
    threshold = config.aggregation.rename_threshold
    pending: deque[Future[Aggregator]] = deque()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        try:
            for batch in _batched(commits, config.performance.batch_size):
                pending.append(pool.submit(_fold_batch, handle, batch, agg, threshold, cancel))
                # Bound memory: don't let the walk run far ahead of the workers.
                if len(pending) >= workers * 2:
                    agg.merge(pending.popleft().result())
            while pending:
                agg.merge(pending.popleft().result())
        except BaseException:
            for future in pending:
                future.cancel()
            raise


def get_repo_stats(
    path: str | Path,
    config: Config | None = None,
    cancel: CancelToken | None = None,
) -> RepoStats:
    """Walk the history at ``path`` and return its statistics.

    Either a fully assembled RepoStats is returned or a GitStatsError is
    raised; a partial result is never produced.
    """
    config = config or Config()
    config.validate()
    t0 = time.monotonic()

    agg = Aggregator(
        bucket=config.aggregation.bucket,
        aliases=config.aggregation.author_aliases,
        date_range=config.date_range,
    )

    with open_repository(path) as handle:
        starts = handle.start_points(config.traversal.all_refs)
        try:
            head = handle.head_commit().hash
        except UnknownCommit:
            head = None
        logger.info(
            "Collecting stats for %s from %d start point(s) [%d workers]",
            handle.path,
            len(starts),
            config.performance.workers,
        )

        commits = walk_history(handle, starts, cancel)
        if config.performance.workers <= 1:
            agg.merge(_fold_batch(handle, commits, agg, config.aggregation.rename_threshold, cancel))
        else:
            _fold_parallel(handle, commits, agg, config, cancel)
        repo_path = handle.path

    stats = assemble(repo_path, agg, head)
    logger.info(
        "%d commits, %d authors, %d files [%.2fs]",
        stats.total_commits,
        len(stats.authors),
        len(stats.files),
        time.monotonic() - t0,
    )
    if agg.skipped:
        logger.debug("%d commits outside the date range were not counted", agg.skipped)
    return stats
