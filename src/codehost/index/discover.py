"""Discovery of Go code inside a store of bare git repositories."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

import git

from codehost.index.golang import DEFAULT_CONTEXT, BuildContext, load_package
from codehost.models import Directory

LOGGER = logging.getLogger(__name__)


def skip_dir(name: str) -> bool:
    """Report whether a directory is excluded, following go tool conventions."""
    return name.startswith((".", "_")) or name == "testdata"


def is_bare_repo(path: Path) -> bool:
    """Report whether path is a bare git repository (has a regular HEAD file)."""
    return (path / "HEAD").is_file()


def discover(
    repos_dir: Path, ctx: BuildContext = DEFAULT_CONTEXT
) -> list[Directory]:
    """Walk the repository store and return all directories sorted by import path."""
    repos_dir = Path(repos_dir)
    LOGGER.info("Discovering repositories in %s", repos_dir)
    dirs: list[Directory] = []
    for root, dirnames, _ in os.walk(repos_dir):
        dirnames[:] = sorted(d for d in dirnames if not skip_dir(d))
        path = Path(root)
        if path == repos_dir:
            continue
        if is_bare_repo(path):
            import_path = path.relative_to(repos_dir).as_posix()
            dirs.extend(walk_repository(path, import_path, ctx))
            # The repository's content is read from its object database.
            dirnames[:] = []
    result = sort_dirs(dirs)
    LOGGER.info("Discovered %d directories", len(result))
    return result


def sort_dirs(dirs: list[Directory]) -> list[Directory]:
    """Sort directories by import path, keeping the first of any duplicates."""
    seen: set[str] = set()
    result = []
    for d in sorted(dirs, key=lambda d: d.import_path):
        if d.import_path in seen:
            continue
        seen.add(d.import_path)
        result.append(d)
    return result


def walk_repository(
    repo_dir: Path, repo_root: str, ctx: BuildContext = DEFAULT_CONTEXT
) -> list[Directory]:
    """Return the directories of the tree at HEAD of the bare repository at repo_dir.

    A repository without commits still yields its root directory.
    """
    with git.Repo(repo_dir) as repo:
        try:
            tree = repo.head.commit.tree
        except ValueError:
            # HEAD points to a branch that doesn't exist yet.
            return [Directory(import_path=repo_root, repo_root=repo_root)]
        dirs = list(_walk_tree(tree, repo_root, repo_root, "", ctx))

    packages = sum(1 for d in dirs if d.package is not None)
    for d in dirs:
        d.repo_packages = packages
    return dirs


def _walk_tree(
    tree: git.Tree,
    import_path: str,
    repo_root: str,
    license_root: str,
    ctx: BuildContext,
) -> Iterator[Directory]:
    files = []
    for blob in tree.blobs:
        if blob.name.endswith(".go"):
            files.append((blob.name, blob.data_stream.read()))
        elif blob.name == "LICENSE":
            license_root = import_path
    yield Directory(
        import_path=import_path,
        repo_root=repo_root,
        license_root=license_root,
        package=load_package(files, ctx),
    )
    for subtree in sorted(tree.trees, key=lambda t: t.name):
        if skip_dir(subtree.name):
            continue
        yield from _walk_tree(
            subtree, f"{import_path}/{subtree.name}", repo_root, license_root, ctx
        )
