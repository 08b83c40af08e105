"""Shared fixtures: a repository store of bare git repositories."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

DOMAIN = "dmitri.shuralyov.com"

# Commits of the kebabcase fixture. Hashes are stable because identities,
# dates and file contents are pinned.
KEBABCASE_C1 = "800475187fb4dedff0e065425c61a19ccae372b4"
KEBABCASE_C2 = "903935f983ff40f8f9a31b2019b73be63eeee2d6"
KEBABCASE_FEATURE = "41c08798902c3294633de038725553a6bb6afe3c"
KEBABCASE_V1 = "v0.0.0-20170912031248-800475187fb4"
KEBABCASE_V2 = "v0.0.0-20170914162131-903935f983ff"
KEBABCASE_FEATURE_VERSION = "v0.0.0-20170920100000-41c08798902c"
SCRATCH_C1 = "399dd058d2d5f2350d21c9ee28533dfbf4f0b15a"

KEBABCASE_GO = """\
// Package kebabcase provides a parser for identifier names
// using kebab-case naming convention.
//
// Reference: https://en.wikipedia.org/wiki/Naming_convention_(programming)#Multiple-word_identifiers.
package kebabcase

import "strings"

// Parse parses a kebab-case name into its words.
func Parse(name string) []string {
\treturn strings.Split(name, "-")
}
"""

KEBABCASE_TEST_GO = """\
package kebabcase

import "testing"

func TestParse(t *testing.T) {
\tif got := Parse("foo-bar"); len(got) != 2 {
\t\tt.Errorf("got %v", got)
\t}
}
"""

SCRATCH_FILES = {
    "README.md": "# scratch\n",
    "hello/main.go": (
        "// Command hello prints a greeting.\npackage main\n\n"
        'import "fmt"\n\nfunc main() {\n\tfmt.Println("Hello.")\n}\n'
    ),
    "image/image.go": "// Package image is a place for image experiments.\npackage image\n",
    "image/LICENSE": "MIT License\n",
    "image/jpeg/jpeg.go": "// Package jpeg implements a JPEG image decoder.\npackage jpeg\n",
    "image/jpeg/jpeg_windows.go": "package notjpeg\n\nconst windows = true\n",
    "image/jpeg/gen.go": "//go:build ignore\n\npackage main\n",
    "image/png/README.md": "PNG notes.\n",
    "testdata/data.go": "package testdata\n",
    "_skip/skip.go": "package skip\n",
    ".hidden/hidden.go": "package hidden\n",
}


def git_env(date: str | None = None) -> dict[str, str]:
    env = dict(os.environ)
    env.update(
        GIT_CONFIG_GLOBAL=os.devnull,
        GIT_CONFIG_NOSYSTEM="1",
        GIT_AUTHOR_NAME="Gopher",
        GIT_AUTHOR_EMAIL="gopher@example.com",
        GIT_COMMITTER_NAME="Gopher",
        GIT_COMMITTER_EMAIL="gopher@example.com",
    )
    if date is not None:
        env.update(GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
    return env


def run_git(
    cwd: Path, *args: str, date: str | None = None, stdin: bytes | None = None
) -> str:
    result = subprocess.run(
        ["git", "-c", "init.defaultBranch=master", *args],
        cwd=cwd,
        env=git_env(date),
        input=stdin,
        capture_output=True,
        check=True,
    )
    return result.stdout.decode()


def write_files(root: Path, files: dict[str, str]) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode())


def commit_all(work: Path, message: str, date: str) -> None:
    run_git(work, "add", "-A")
    run_git(work, "commit", "-q", "-m", message, date=date)


def build_store(root: Path) -> Path:
    """Create a repository store with kebabcase, scratch and emptyrepo."""
    work_dir = root / "work"
    repos_dir = root / "repositories"
    domain_dir = repos_dir / DOMAIN
    domain_dir.mkdir(parents=True)

    kebabcase = work_dir / "kebabcase"
    kebabcase.mkdir(parents=True)
    run_git(kebabcase, "init", "-q")
    write_files(kebabcase, {"kebabcase.go": KEBABCASE_GO})
    commit_all(kebabcase, "Initial commit.", "2017-09-12T03:12:48Z")
    write_files(kebabcase, {"kebabcase_test.go": KEBABCASE_TEST_GO, "README.md": "# kebabcase\n"})
    commit_all(kebabcase, "Add test and README.", "2017-09-14T16:21:31Z")
    run_git(kebabcase, "checkout", "-q", "-b", "feature")
    write_files(
        kebabcase,
        {"experimental.go": "package kebabcase\n\n// Experimental is not released.\nconst Experimental = true\n"},
    )
    commit_all(kebabcase, "Add experimental constant.", "2017-09-20T10:00:00Z")
    run_git(kebabcase, "checkout", "-q", "master")

    scratch = work_dir / "scratch"
    scratch.mkdir(parents=True)
    run_git(scratch, "init", "-q")
    write_files(scratch, SCRATCH_FILES)
    commit_all(scratch, "Add scratch packages.", "2018-01-21T20:29:58Z")

    for name in ("kebabcase", "scratch"):
        run_git(root, "clone", "-q", "--bare", str(work_dir / name), str(domain_dir / name))
    run_git(root, "init", "-q", "--bare", str(domain_dir / "emptyrepo"))

    # Not repositories: a plain directory and a skipped one.
    (domain_dir / "notes").mkdir()
    (domain_dir / "notes" / "todo.txt").write_text("Nothing.\n")
    (repos_dir / ".cache").mkdir()
    return repos_dir


@pytest.fixture(scope="session")
def store_template(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return build_store(tmp_path_factory.mktemp("store"))


@pytest.fixture
def repos_dir(store_template: Path, tmp_path: Path) -> Path:
    """A private copy of the fixture repository store."""
    target = tmp_path / "repositories"
    shutil.copytree(store_template, target, symlinks=True)
    return target
