"""End-to-end behaviour of get_repo_stats."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest

from gitstats.cancel import CancelToken
from gitstats.config import Config
from gitstats.engine import get_repo_stats
from gitstats.errors import CorruptHistory, NotARepository, OperationCancelled, PathNotFound
from gitstats.output import to_dict
from gitstats.sources.git import RepositoryHandle
from tests._fixtures.repo_builder import ALICE, BOB, EPOCH, RepoBuilder


def _build_history(builder: RepoBuilder) -> None:
    builder.write({"a.txt": "one\n"})
    builder.commit("root", when=EPOCH)
    main = builder.current_branch()
    builder.branch("side")
    builder.write({"b.txt": "x\n" * 5})
    builder.commit("side work", author=BOB, when=EPOCH + timedelta(hours=1))
    builder.checkout(main)
    builder.write({"a.txt": "one\ntwo\n"})
    builder.commit("main work", when=EPOCH + timedelta(days=1))
    builder.merge("side", "merge side", when=EPOCH + timedelta(days=2))
    for i in range(6):
        builder.write({f"src/m{i}.py": f"value = {i}\n"})
        builder.commit(f"module {i}", author=BOB if i % 2 else ALICE, when=EPOCH + timedelta(days=3 + i))


def test_single_commit_repository(repo_builder: RepoBuilder, sequential_config: Config) -> None:
    repo_builder.write({"x.txt": "line\n" * 10})
    sha = repo_builder.commit("add x", author=ALICE, when=EPOCH)

    stats = get_repo_stats(repo_builder.path(), sequential_config)

    assert stats.total_commits == 1
    assert stats.head == sha
    assert stats.path == str(repo_builder.path().resolve())
    author = stats.authors["alice@example.com"]
    assert author.commits == 1
    assert author.lines_added == 10
    assert len(stats.time_series) == 1
    assert stats.time_series[0].commits == 1
    assert stats.time_series[0].start == date(2024, 3, 4)
    assert stats.files["x.txt"].lines_added == 10


def test_merge_is_counted_once_and_diffed_against_first_parent(
    repo_builder: RepoBuilder, sequential_config: Config
) -> None:
    _build_history(repo_builder)

    stats = get_repo_stats(repo_builder.path(), sequential_config)

    reachable = repo_builder.repo.git.rev_list("HEAD").split()
    assert stats.total_commits == len(set(reachable)) == 10
    assert stats.merge_commits == 1
    assert sum(a.commits for a in stats.authors.values()) == stats.total_commits
    # Side commit plus the merge's first-parent diff.
    assert stats.files["b.txt"].commits == 2
    assert stats.files["b.txt"].lines_added == 10
    assert stats.files["a.txt"].lines_added == 2


def test_time_series_is_strictly_ascending(repo_builder: RepoBuilder, sequential_config: Config) -> None:
    for offset in (5, 1, 3, 3):
        repo_builder.write({"f.txt": f"{offset}\n"})
        repo_builder.commit(f"day {offset}", when=EPOCH + timedelta(days=offset))

    stats = get_repo_stats(repo_builder.path(), sequential_config)

    starts = [p.start for p in stats.time_series]
    assert starts == sorted(set(starts))
    assert len(starts) == 3
    assert sum(p.commits for p in stats.time_series) == 4


def test_results_are_deterministic_across_runs_and_worker_counts(repo_builder: RepoBuilder) -> None:
    _build_history(repo_builder)
    sequential = Config()
    sequential.performance.workers = 1
    parallel = Config()
    parallel.performance.workers = 4
    parallel.performance.batch_size = 2

    first = get_repo_stats(repo_builder.path(), sequential)
    second = get_repo_stats(repo_builder.path(), sequential)
    threaded = get_repo_stats(repo_builder.path(), parallel)

    assert to_dict(first) == to_dict(second)
    assert to_dict(first) == to_dict(threaded)
    assert list(first.authors) == list(threaded.authors)


def test_all_refs_option(repo_builder: RepoBuilder, sequential_config: Config) -> None:
    repo_builder.write({"a.txt": "a\n"})
    repo_builder.commit("root")
    main = repo_builder.current_branch()
    repo_builder.branch("feature")
    repo_builder.write({"b.txt": "b\n"})
    repo_builder.commit("feature")
    repo_builder.checkout(main)

    assert get_repo_stats(repo_builder.path(), sequential_config).total_commits == 1
    sequential_config.traversal.all_refs = True
    assert get_repo_stats(repo_builder.path(), sequential_config).total_commits == 2


def test_empty_repository_yields_empty_stats(repo_builder: RepoBuilder) -> None:
    stats = get_repo_stats(repo_builder.path())
    assert stats.total_commits == 0
    assert stats.head is None
    assert stats.time_series == ()


def test_missing_path(tmp_path: Path) -> None:
    with pytest.raises(PathNotFound):
        get_repo_stats(tmp_path / "nowhere")


def test_directory_without_history(tmp_path: Path) -> None:
    with pytest.raises(NotARepository):
        get_repo_stats(tmp_path)


def test_corrupt_history_propagates(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a.txt": "a\n"})
    first = repo_builder.commit("first")
    repo_builder.write({"a.txt": "b\n"})
    repo_builder.commit("second")
    repo_builder.object_file(first).unlink()

    with pytest.raises(CorruptHistory):
        get_repo_stats(repo_builder.path())


@pytest.mark.parametrize("workers", [1, 3])
def test_cancellation_releases_repository(
    repo_builder: RepoBuilder, monkeypatch: pytest.MonkeyPatch, workers: int
) -> None:
    _build_history(repo_builder)
    closed: list[str] = []
    original_close = RepositoryHandle.close

    def recording_close(self: RepositoryHandle) -> None:
        closed.append(self.path)
        original_close(self)

    monkeypatch.setattr(RepositoryHandle, "close", recording_close)
    token = CancelToken()
    token.cancel()
    config = Config()
    config.performance.workers = workers

    with pytest.raises(OperationCancelled):
        get_repo_stats(repo_builder.path(), config, cancel=token)
    assert closed == [str(repo_builder.path().resolve())]


def test_invalid_bucket_is_rejected_before_opening(tmp_path: Path) -> None:
    config = Config()
    config.aggregation.bucket = "fortnight"
    with pytest.raises(ValueError):
        get_repo_stats(tmp_path / "nowhere", config)


def test_missing_head_object_raises_instead_of_empty_stats(
    repo_builder: RepoBuilder, sequential_config: Config
) -> None:
    repo_builder.write({"a.txt": "a\n"})
    only = repo_builder.commit("only")
    repo_builder.object_file(only).unlink()

    with pytest.raises(CorruptHistory) as info:
        get_repo_stats(repo_builder.path(), sequential_config)
    assert info.value.commit == only


def test_unreadable_branch_fails_all_refs_walk(repo_builder: RepoBuilder, sequential_config: Config) -> None:
    repo_builder.write({"a.txt": "a\n"})
    repo_builder.commit("root")
    main = repo_builder.current_branch()
    repo_builder.branch("feature")
    repo_builder.write({"b.txt": "b\n"})
    feature = repo_builder.commit("feature")
    repo_builder.checkout(main)
    repo_builder.object_file(feature).unlink()

    # HEAD alone never reaches the damaged branch.
    assert get_repo_stats(repo_builder.path(), sequential_config).total_commits == 1

    sequential_config.traversal.all_refs = True
    with pytest.raises(CorruptHistory) as info:
        get_repo_stats(repo_builder.path(), sequential_config)
    assert info.value.commit == feature


def test_head_stays_none_when_head_is_unborn_but_branches_exist(
    repo_builder: RepoBuilder, sequential_config: Config
) -> None:
    repo_builder.write({"a.txt": "a\n"})
    repo_builder.commit("root")
    repo_builder.repo.git.symbolic_ref("HEAD", "refs/heads/orphan")

    head_only = get_repo_stats(repo_builder.path(), sequential_config)
    assert head_only.total_commits == 0
    assert head_only.head is None

    sequential_config.traversal.all_refs = True
    every_ref = get_repo_stats(repo_builder.path(), sequential_config)
    assert every_ref.total_commits == 1
    assert every_ref.head is None
