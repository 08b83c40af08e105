"""Code index over a repository store."""

from __future__ import annotations

import heapq
import logging
import threading
from pathlib import Path
from typing import NamedTuple, Sequence

from codehost.index.discover import discover, is_bare_repo, walk_repository
from codehost.index.golang import DEFAULT_CONTEXT, BuildContext
from codehost.models import Directory

LOGGER = logging.getLogger(__name__)


class _Catalog(NamedTuple):
    dirs: tuple[Directory, ...]  # Sorted by import path.
    by_import_path: dict[str, Directory]


def _catalog(dirs: Sequence[Directory]) -> _Catalog:
    return _Catalog(tuple(dirs), {d.import_path: d for d in dirs})


def replace_dirs(
    dirs: Sequence[Directory], repo_root: str, new_dirs: Sequence[Directory]
) -> tuple[list[Directory], list[Directory]]:
    """Replace all directories of repository repo_root with new_dirs.

    dirs must be sorted by import path. Returns the updated sorted list and
    the removed directories. Entries of other repositories keep their
    relative order.
    """
    old_dirs = [d for d in dirs if d.repo_root == repo_root]
    rest = [d for d in dirs if d.repo_root != repo_root]
    added = sorted(new_dirs, key=lambda d: d.import_path)
    merged = list(heapq.merge(rest, added, key=lambda d: d.import_path))
    return merged, old_dirs


class CodeService:
    """Go code service backed by a repository store.

    Readers always see a complete snapshot of the index. Rediscovery walks a
    repository without holding the lock and only swaps the snapshot under it.
    """

    def __init__(
        self,
        repos_dir: Path,
        *,
        ctx: BuildContext = DEFAULT_CONTEXT,
        dirs: Sequence[Directory] | None = None,
    ) -> None:
        self.repos_dir = Path(repos_dir)
        self.ctx = ctx
        if dirs is None:
            dirs = discover(self.repos_dir, ctx)
        self._catalog = _catalog(dirs)
        self._lock = threading.Lock()

    def list(self) -> list[Directory]:
        """List directories in sorted order."""
        return list(self._catalog.dirs)

    def lookup(self, import_path: str) -> Directory | None:
        """Look up a directory by import path."""
        return self._catalog.by_import_path.get(import_path)

    def repo_dir(self, repo_root: str) -> Path:
        """Return the on-disk location of the repository with the given root."""
        return self.repos_dir.joinpath(*repo_root.split("/"))

    def rediscover(self, repo_root: str | None = None) -> list[Directory]:
        """Re-walk one repository (or the whole store) and update the index.

        Returns the directories that were replaced.
        """
        if repo_root is None:
            dirs = discover(self.repos_dir, self.ctx)
            with self._lock:
                old = self._catalog
                self._catalog = _catalog(dirs)
            return list(old.dirs)

        repo_dir = self.repo_dir(repo_root)
        new_dirs: list[Directory] = []
        if is_bare_repo(repo_dir):
            new_dirs = walk_repository(repo_dir, repo_root, self.ctx)
        with self._lock:
            dirs, old_dirs = replace_dirs(self._catalog.dirs, repo_root, new_dirs)
            self._catalog = _catalog(dirs)
        LOGGER.info(
            "Rediscovered %s: %d directories replaced by %d",
            repo_root,
            len(old_dirs),
            len(new_dirs),
        )
        return old_dirs
