from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from git import Repo
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from gitstats.errors import CorruptHistory, NotARepository, PathNotFound, UnknownCommit
from gitstats.logging import get_logger
from gitstats.models import AuthorIdentity, Commit

logger = get_logger("reader")

# Errors GitPython raises when an object is missing or not a commit.
_LOOKUP_ERRORS = (BadName, BadObject, ValueError)


def _commit_timestamp(commit) -> datetime:
    return commit.committed_datetime.astimezone(timezone.utc)


class RepositoryHandle:
    """Read-only view of one repository's history store.

    Owns the GitPython ``Repo`` (and its persistent ``git cat-file``
    processes) until :meth:`close` is called; use it as a context manager.
    Not safe to share across threads except for :meth:`diff_tree`, which
    spawns its own subprocess per call.
    """

    def __init__(self, repo: Repo, path: str) -> None:
        self._repo = repo
        self.path = path
        self._shallow = self._read_shallow()

    def __enter__(self) -> RepositoryHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._repo.close()

    def _read_shallow(self) -> frozenset[str]:
        shallow_file = Path(self._repo.git_dir) / "shallow"
        if not shallow_file.exists():
            return frozenset()
        return frozenset(line.strip() for line in shallow_file.read_text().splitlines() if line.strip())

    def _to_commit(self, c) -> Commit:
        # Shallow boundaries keep their parent ids, but the objects are absent.
        parents = () if c.hexsha in self._shallow else tuple(p.hexsha for p in c.parents)
        return Commit(
            hash=c.hexsha,
            author=AuthorIdentity(name=c.author.name or "", email=c.author.email or ""),
            timestamp=_commit_timestamp(c),
            parents=parents,
        )

    def _head_hexsha(self) -> str | None:
        """Return the hash HEAD points at without reading the object; None if unborn."""
        head = self._repo.head
        try:
            return head.dereference_recursive(self._repo, head.path)
        except ValueError:
            return None

    def _read_commit(self, commit_hash: str, where: str) -> Commit:
        try:
            return self._to_commit(self._repo.commit(commit_hash))
        except _LOOKUP_ERRORS as exc:
            raise CorruptHistory(commit_hash, f"{where} points at an unreadable commit") from exc

    def head_commit(self) -> Commit:
        commit_hash = self._head_hexsha()
        if commit_hash is None:
            raise UnknownCommit("HEAD")
        return self._read_commit(commit_hash, "HEAD")

    def resolve(self, commit_hash: str) -> Commit:
        try:
            c = self._repo.commit(commit_hash)
            # Force the object read so a missing object fails here.
            return self._to_commit(c)
        except _LOOKUP_ERRORS as exc:
            raise UnknownCommit(commit_hash) from exc

    def _ref_target(self, ref) -> Commit | None:
        """Peel a ref to its commit; None for dangling refs and non-commit tags."""
        try:
            commit_hash = ref.dereference_recursive(self._repo, ref.path)
        except ValueError:
            logger.debug("Skipping dangling ref %s", ref.path)
            return None
        try:
            obj = self._repo.rev_parse(commit_hash)
            while obj.type == "tag":
                obj = obj.object
        except _LOOKUP_ERRORS as exc:
            raise CorruptHistory(commit_hash, f"{ref.path} points at an unreadable object") from exc
        if obj.type != "commit":
            logger.debug("Skipping ref %s: points at a %s", ref.path, obj.type)
            return None
        return self._read_commit(obj.hexsha, ref.path)

    def start_points(self, all_refs: bool = False) -> list[Commit]:
        """Return the commits a traversal starts from, deduplicated.

        An unborn HEAD contributes nothing; a ref whose commit cannot be
        read raises ``CorruptHistory``.
        """
        starts: list[Commit] = []
        if self._head_hexsha() is not None:
            starts.append(self.head_commit())
        elif not all_refs:
            logger.debug("HEAD of %s is unborn, nothing to walk", self.path)
        if not all_refs:
            return starts

        seen = {c.hash for c in starts}
        for ref in self._repo.references:
            target = self._ref_target(ref)
            if target is None or target.hash in seen:
                continue
            seen.add(target.hash)
            starts.append(target)
        return starts

    def diff_tree(self, commit_hash: str, parent_hash: str | None, rename_threshold: int = 50) -> str:
        """Return ``git diff-tree`` raw+numstat output of a commit against a parent.

        With no parent the commit is compared to the empty tree.
        """
        args = ["-r", "-z", "--raw", "--numstat", "--no-commit-id", f"-M{rename_threshold}%"]
        if parent_hash is None:
            args += ["--root", commit_hash]
        else:
            args += [parent_hash, commit_hash]
        try:
            return self._repo.git.diff_tree(*args)
        except GitCommandError as exc:
            raise CorruptHistory(commit_hash, f"diff failed: {exc.stderr.strip() if exc.stderr else exc}") from exc


def open_repository(path: str | Path) -> RepositoryHandle:
    repo_path = Path(path).expanduser()
    if not repo_path.exists():
        raise PathNotFound(str(path))
    if not repo_path.is_dir():
        raise NotARepository(str(path))
    try:
        repo = Repo(repo_path)
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        raise NotARepository(str(path)) from exc
    logger.debug("Opened repository %s (git dir %s)", repo_path, repo.git_dir)
    try:
        return RepositoryHandle(repo, str(repo_path.resolve()))
    except BaseException:
        repo.close()
        raise
