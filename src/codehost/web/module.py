"""Go module proxy serving each repository root in the index as a module.

Compared to general ``go mod download`` support this has limitations:

* Only pseudo-versions of commits on the master branch are served.
  Tags and other branches are not.
* Multi-module repositories are not supported.
"""

from __future__ import annotations

import asyncio
import io
import json
import logging
import zipfile
from dataclasses import dataclass, replace
from pathlib import Path

import git
from fastapi import HTTPException, Request, Response
from fastapi.responses import RedirectResponse

from codehost.index.service import CodeService
from codehost.mod.module import (
    ModulePathError,
    auto_quote,
    escape_path,
    escape_version,
    unescape_path,
    unescape_version,
)
from codehost.mod.pseudo import (
    REV_LENGTH,
    PseudoVersionError,
    RevInfo,
    all_hex,
    parse_pseudo_version,
    pseudo_version,
)
from codehost.vcs.history import (
    HistoryError,
    commit_time,
    list_master_commits,
    on_master,
    resolve_commit,
)
from codehost.vcs.runner import CommandNotFoundError, CommandStartError
from codehost.web.disconnect import (
    CLIENT_CLOSED_REQUEST,
    ClientDisconnected,
    until_disconnected,
)

LOGGER = logging.getLogger(__name__)

REQUEST_TYPES = ("info", "mod", "zip")


@dataclass(slots=True, frozen=True)
class ModuleProxyRequest:
    """A module proxy request. Module and version may be escaped or not."""

    module: str
    type: str  # One of "list", "info", "mod" or "zip".
    version: str = ""  # Empty when type is "list".

    @classmethod
    def parse(cls, path: str) -> ModuleProxyRequest | None:
        """Parse ``<module>/@v/<file>`` without unescaping module or version."""
        module, sep, file = path.rpartition("/@v/")
        if not sep:
            return None
        if file == "list":
            return cls(module=module, type="list")
        version, dot, ext = file.rpartition(".")
        if not dot or ext not in REQUEST_TYPES:
            return None
        return cls(module=module, type=ext, version=version)

    def decode(self) -> ModuleProxyRequest:
        """Return a copy with module path and version unescaped.

        Raises ModulePathError if either isn't validly escaped.
        """
        module = unescape_path(self.module)
        if self.type == "list":
            return replace(self, module=module)
        return replace(self, module=module, version=unescape_version(self.version))

    def encode(self) -> ModuleProxyRequest:
        """Return a copy with module path and version escaped."""
        module = escape_path(self.module)
        if self.type == "list":
            return replace(self, module=module)
        return replace(self, module=module, version=escape_version(self.version))

    def url(self) -> str:
        if self.type == "list":
            return f"{self.module}/@v/list"
        return f"{self.module}/@v/{self.version}.{self.type}"


class ModuleHandler:
    """Implements the module proxy protocol for repository roots in the index."""

    def __init__(self, service: CodeService, prefix: str) -> None:
        self.service = service
        self.prefix = prefix

    async def serve_module_maybe(self, request: Request, path: str) -> Response | None:
        """Serve a module proxy request for path, relative to the mount prefix.

        Returns None when the request isn't a module proxy request.
        """
        if request.method != "GET":
            return None
        parsed = ModuleProxyRequest.parse(path)
        if parsed is None:
            return None
        try:
            r = parsed.decode()
        except ModulePathError as decode_err:
            # Perhaps an unescaped module path or version typed by a human.
            try:
                escaped = parsed.encode()
            except ModulePathError:
                raise HTTPException(status_code=400, detail=str(decode_err)) from None
            return RedirectResponse(self.prefix + escaped.url(), status_code=303)

        directory = self.service.lookup(r.module)
        if directory is None or not directory.is_repo_root():
            raise HTTPException(status_code=404, detail="404 Not Found")
        git_dir = self.service.repo_dir(directory.repo_root)

        if r.type == "list":
            return await self._list(request, git_dir)
        return await asyncio.to_thread(self._serve_version, git_dir, r)

    async def _list(self, request: Request, git_dir: Path) -> Response:
        try:
            revs = await until_disconnected(request, list_master_commits(git_dir))
        except CommandNotFoundError as exc:
            LOGGER.warning("Listing versions in %s: %s", git_dir, exc)
            raise HTTPException(status_code=404, detail="404 Not Found") from exc
        except (HistoryError, CommandStartError) as exc:
            LOGGER.error("Listing versions in %s failed: %s", git_dir, exc)
            raise HTTPException(status_code=500, detail="Internal Server Error") from exc
        except ClientDisconnected:
            LOGGER.info("Client disconnected while listing versions in %s", git_dir)
            raise HTTPException(
                status_code=CLIENT_CLOSED_REQUEST, detail="Client closed request"
            ) from None
        # Most recent last.
        body = "".join(rev.Version + "\n" for rev in reversed(revs))
        return Response(content=body, media_type="text/plain; charset=utf-8")

    def _serve_version(self, git_dir: Path, r: ModuleProxyRequest) -> Response:
        try:
            version_time, rev = parse_pseudo_version(r.version)
        except PseudoVersionError:
            raise HTTPException(status_code=404, detail="404 Not Found") from None
        if (
            len(rev) != REV_LENGTH
            or not all_hex(rev)
            or pseudo_version(version_time, rev) != r.version
        ):
            raise HTTPException(status_code=404, detail="404 Not Found")

        try:
            repo = git.Repo(git_dir)
        except (git.NoSuchPathError, git.InvalidGitRepositoryError):
            raise HTTPException(status_code=404, detail="404 Not Found") from None
        with repo:
            commit = resolve_commit(repo, rev)
            if commit is None or commit_time(commit) != version_time:
                raise HTTPException(status_code=404, detail="404 Not Found")
            if not on_master(repo, commit):
                raise HTTPException(status_code=404, detail="404 Not Found")

            if r.type == "info":
                info = RevInfo(Version=r.version, Time=version_time)
                body = json.dumps(info.model_dump(mode="json"), indent="\t") + "\n"
                return Response(content=body, media_type="application/json")
            if r.type == "mod":
                return Response(
                    content=go_mod(commit.tree, r.module),
                    media_type="text/plain; charset=utf-8",
                )
            return Response(
                content=module_zip(commit.tree, f"{r.module}@{r.version}"),
                media_type="application/zip",
            )


def go_mod(tree: git.Tree, module_path: str) -> bytes:
    """Return the go.mod file at the root of tree, or synthesize one."""
    try:
        blob = tree / "go.mod"
    except KeyError:
        blob = None
    if blob is not None and blob.type == "blob":
        return blob.data_stream.read()
    return f"module {auto_quote(module_path)}\n".encode()


def module_zip(tree: git.Tree, prefix: str) -> bytes:
    """Return a zip archive of every file in tree, named ``<prefix>/<path>``."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for path, blob in _walk_files(tree, ""):
            z.writestr(f"{prefix}/{path}", blob.data_stream.read())
    return buf.getvalue()


def _walk_files(tree: git.Tree, base: str):
    for item in sorted(tree, key=lambda o: o.name):
        path = base + item.name
        if item.type == "tree":
            yield from _walk_files(item, path + "/")
        elif item.type == "blob":
            yield path, item
