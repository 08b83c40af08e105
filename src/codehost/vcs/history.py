"""Commit history queries against bare repositories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import git
from git.exc import BadName, ODBError

from codehost.mod.pseudo import REV_LENGTH, RevInfo, pseudo_version
from codehost.vcs.runner import run

MASTER = "master"
UNKNOWN_REVISION_EXIT = 128


class HistoryError(Exception):
    """Raised when git reports an unexpected failure."""


async def list_master_commits(git_dir: Path) -> list[RevInfo]:
    """Return a RevInfo for every commit on master, most recent first.

    An empty list is returned if master doesn't exist.
    """
    result = await run(
        ["git", "log", "--format=tformat:%H%x00%ct", "-z", MASTER],
        cwd=git_dir,
        benign_exit_codes=(UNKNOWN_REVISION_EXIT,),
    )
    if not result.ok:
        raise HistoryError(result.error())
    if result.returncode == UNKNOWN_REVISION_EXIT:
        return []

    fields = result.stdout.decode().split("\x00")
    revs = []
    # Fields match exactly what is specified in --format.
    for commit_hash, committer_date in zip(fields[0::2], fields[1::2]):
        try:
            t = datetime.fromtimestamp(int(committer_date), tz=timezone.utc)
        except ValueError as exc:
            raise HistoryError(f"invalid time from git log: {exc}") from None
        revs.append(RevInfo(Version=pseudo_version(t, commit_hash[:REV_LENGTH]), Time=t))
    return revs


def commit_time(commit: git.Commit) -> datetime:
    """Return the committer time of a commit in UTC, at second precision."""
    return datetime.fromtimestamp(commit.committed_date, tz=timezone.utc)


def resolve_commit(repo: git.Repo, rev: str) -> git.Commit | None:
    """Resolve an abbreviated commit hash to a commit, or None if there isn't one."""
    try:
        obj = repo.rev_parse(rev)
    except (BadName, ODBError, ValueError):
        return None
    if obj.type != "commit" or not obj.hexsha.startswith(rev):
        return None
    return obj


def on_master(repo: git.Repo, commit: git.Commit) -> bool:
    """Report whether commit is master or one of its ancestors."""
    try:
        master = repo.heads[MASTER].commit
    except (IndexError, ValueError):
        return False
    return repo.is_ancestor(commit, master)


@dataclass(slots=True)
class CommitSummary:
    sha: str
    message: str
    author_name: str
    author_email: str


def list_commits_between(git_dir: Path, base: str, head: str) -> list[CommitSummary]:
    """Return commits reachable from head but not base, oldest first."""
    with git.Repo(git_dir) as repo:
        commits = list(repo.iter_commits(f"{base}..{head}"))
        return [
            CommitSummary(
                sha=c.hexsha,
                message=c.message,
                author_name=c.author.name or "",
                author_email=c.author.email or "",
            )
            for c in reversed(commits)
        ]
