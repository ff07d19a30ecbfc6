from __future__ import annotations

import sys
import time
from pathlib import Path

import click

from gitstats.config import BUCKETS, load_config
from gitstats.engine import get_repo_stats
from gitstats.errors import GitStatsError
from gitstats.logging import configure_logging
from gitstats.output import serialize

LOAD_FAILED = "Could not load repository from given path"


@click.group()
def main() -> None:
    """gitstats: Commit, author and churn statistics for a git repository."""


@main.command()
@click.argument("repo_path")
@click.option("--config", "config_path", default=None, help="Path to gitstats.yaml")
@click.option("--output", "output_path", default=None, help="Write the full result as JSON")
@click.option("--all-refs", is_flag=True, help="Walk every ref instead of HEAD only")
@click.option("--bucket", type=click.Choice(BUCKETS), default=None, help="Time series granularity")
@click.option("--workers", type=int, default=None, help="Worker threads for diffing")
@click.option("--top", default=10, show_default=True, help="Number of authors to list")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def stats(
    repo_path: str,
    config_path: str | None,
    output_path: str | None,
    all_refs: bool,
    bucket: str | None,
    workers: int | None,
    top: int,
    verbose: bool,
) -> None:
    """Compute statistics for the repository at REPO_PATH."""
    logger = configure_logging(verbose=verbose)
    total_start = time.monotonic()

    config = load_config(config_path)
    if all_refs:
        config.traversal.all_refs = True
    if bucket:
        config.aggregation.bucket = bucket
    if workers is not None:
        config.performance.workers = workers

    click.echo(f"Collecting git stats from {repo_path}...")
    try:
        result = get_repo_stats(repo_path, config)
    except GitStatsError as exc:
        logger.debug("Loading %s failed: %s", repo_path, exc)
        click.echo(LOAD_FAILED, err=True)
        sys.exit(1)

    click.echo(
        f"  {result.total_commits} commits ({result.merge_commits} merges), "
        f"{len(result.authors)} authors, {len(result.files)} files"
    )
    click.echo(f"  +{result.lines_added} / -{result.lines_removed} lines")
    if result.first_commit and result.last_commit:
        click.echo(
            f"  {result.first_commit.date().isoformat()} .. {result.last_commit.date().isoformat()}, "
            f"{len(result.time_series)} active {result.bucket}(s)"
        )

    if result.authors:
        click.echo("Top authors:")
        for author in list(result.authors.values())[:top]:
            click.echo(
                f"  {author.commits:>6}  +{author.lines_added:<8} -{author.lines_removed:<8} "
                f"{author.name} <{author.email}>"
            )

    if output_path:
        t0 = time.monotonic()
        output = Path(output_path)
        serialize(result, output)
        click.echo(f"Data written to {output} [{time.monotonic() - t0:.2f}s]")

    click.echo(f"Total elapsed: {time.monotonic() - total_start:.2f}s")


if __name__ == "__main__":
    main()
