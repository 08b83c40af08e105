"""Tests for the code index service."""

from __future__ import annotations

import shutil
from pathlib import Path

from codehost.index.service import CodeService
from codehost.models import Directory

from conftest import DOMAIN, commit_all, run_git, write_files


class TestLookup:
    """Tests for reading the index."""

    def test_lookup(self, repos_dir: Path) -> None:
        service = CodeService(repos_dir)
        d = service.lookup(f"{DOMAIN}/scratch/image/jpeg")
        assert d is not None
        assert d.repo_root == f"{DOMAIN}/scratch"
        assert service.lookup(f"{DOMAIN}/scratch/testdata") is None
        assert service.lookup(f"{DOMAIN}/notes") is None

    def test_list_is_sorted(self, repos_dir: Path) -> None:
        paths = [d.import_path for d in CodeService(repos_dir).list()]
        assert paths == sorted(paths)
        assert len(paths) == 7

    def test_list_is_a_copy(self, repos_dir: Path) -> None:
        service = CodeService(repos_dir)
        service.list().clear()
        assert len(service.list()) == 7

    def test_given_dirs(self, tmp_path: Path) -> None:
        """An explicit directory list skips discovery."""
        service = CodeService(tmp_path, dirs=[Directory(import_path="example.com/a", repo_root="example.com/a")])
        assert service.lookup("example.com/a") is not None

    def test_repo_dir(self, repos_dir: Path) -> None:
        service = CodeService(repos_dir)
        assert service.repo_dir(f"{DOMAIN}/kebabcase") == repos_dir / DOMAIN / "kebabcase"


class TestRediscover:
    """Tests for updating the index after repositories change."""

    def _push_subpackage(self, repos_dir: Path, tmp_path: Path) -> None:
        work = tmp_path / "work"
        run_git(tmp_path, "clone", "-q", str(repos_dir / DOMAIN / "kebabcase"), str(work))
        write_files(work, {"words/words.go": "// Package words splits words.\npackage words\n"})
        commit_all(work, "Add words package.", "2017-09-21T00:00:00Z")
        run_git(work, "push", "-q", "origin", "master")

    def test_rediscover_repository(self, repos_dir: Path, tmp_path: Path) -> None:
        """Only the given repository's entries are replaced."""
        service = CodeService(repos_dir)
        scratch_before = service.lookup(f"{DOMAIN}/scratch/hello")
        self._push_subpackage(repos_dir, tmp_path)

        old = service.rediscover(f"{DOMAIN}/kebabcase")

        assert [d.import_path for d in old] == [f"{DOMAIN}/kebabcase"]
        words = service.lookup(f"{DOMAIN}/kebabcase/words")
        assert words is not None
        assert words.package is not None and words.package.name == "words"
        assert words.repo_packages == 2
        assert service.lookup(f"{DOMAIN}/scratch/hello") is scratch_before
        paths = [d.import_path for d in service.list()]
        assert paths == sorted(paths)

    def test_rediscover_removed_repository(self, repos_dir: Path) -> None:
        service = CodeService(repos_dir)
        shutil.rmtree(repos_dir / DOMAIN / "scratch")

        old = service.rediscover(f"{DOMAIN}/scratch")

        assert len(old) == 5
        assert service.lookup(f"{DOMAIN}/scratch") is None
        assert service.lookup(f"{DOMAIN}/kebabcase") is not None

    def test_rediscover_all(self, repos_dir: Path) -> None:
        service = CodeService(repos_dir)
        shutil.rmtree(repos_dir / DOMAIN / "emptyrepo")

        old = service.rediscover()

        assert len(old) == 7
        assert len(service.list()) == 6
        assert service.lookup(f"{DOMAIN}/emptyrepo") is None
