"""Git smart HTTP transport for repositories in the code index."""

from __future__ import annotations

import asyncio
import gzip
import logging
import shutil
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

from fastapi import HTTPException, Request, Response
from starlette.background import BackgroundTask

from codehost.events import (
    DEFAULT_AVATAR_URL,
    Commit,
    Event,
    EventSink,
    Push,
    RefChange,
    classify,
    ref_payload,
)
from codehost.index.service import CodeService
from codehost.models import User
from codehost.vcs import pktline
from codehost.vcs.history import list_commits_between
from codehost.vcs.runner import (
    CommandNotFoundError,
    CommandResult,
    CommandStartError,
    run,
)
from codehost.web.auth import Authenticator
from codehost.web.disconnect import (
    CLIENT_CLOSED_REQUEST,
    ClientDisconnected,
    until_disconnected,
)

LOGGER = logging.getLogger(__name__)

UPLOAD_PACK = "git-upload-pack"
RECEIVE_PACK = "git-receive-pack"

# Exit status of git-upload-pack when the client hangs up early,
# as happens with shallow clones.
REMOTE_HUNG_UP_EXIT = 128


@dataclass(slots=True)
class RepoInfo:
    spec: str  # Import path of the repository root.
    path: str  # Domain-relative URL path of the repository root.
    dir: Path  # Location of the bare repository on disk.


class GitHandler:
    """Serves the smart HTTP endpoints of every repository root in the index."""

    def __init__(
        self,
        service: CodeService,
        *,
        domain: str,
        events: EventSink,
        authenticate: Authenticator,
        git_users: Mapping[str, User] | None = None,
        upload_pack: str = UPLOAD_PACK,
        receive_pack: str = RECEIVE_PACK,
    ) -> None:
        self.service = service
        self.domain = domain
        self.events = events
        self.authenticate = authenticate
        self.git_users = dict(git_users or {})  # Keyed by lower-case email.
        self.upload_pack = shutil.which(upload_pack) or upload_pack
        self.receive_pack = shutil.which(receive_pack) or receive_pack

    def match(self, request: Request) -> tuple[RepoInfo, str] | None:
        """Match the request against the endpoints of a known repository root.

        Returns the repository and the matched endpoint suffix.
        """
        target = request.url.path
        if request.url.query:
            target += "?" + request.url.query
        for suffix in (
            f"/info/refs?service={UPLOAD_PACK}",
            f"/{UPLOAD_PACK}",
            f"/info/refs?service={RECEIVE_PACK}",
            f"/{RECEIVE_PACK}",
        ):
            if not target.endswith(suffix):
                continue
            path = target[: -len(suffix)]
            spec = self.domain + path
            directory = self.service.lookup(spec)
            if directory is None or not directory.is_repo_root():
                return None
            repo = RepoInfo(spec=spec, path=path, dir=self.service.repo_dir(spec))
            return repo, suffix
        return None

    async def serve_git_maybe(self, request: Request) -> Response | None:
        """Serve the request if it is for a git endpoint, otherwise return None."""
        matched = self.match(request)
        if matched is None:
            return None
        repo, suffix = matched
        if suffix == f"/info/refs?service={UPLOAD_PACK}":
            return await self._advertise(request, repo, UPLOAD_PACK)
        if suffix == f"/info/refs?service={RECEIVE_PACK}":
            return await self._advertise(request, repo, RECEIVE_PACK)
        if suffix == f"/{UPLOAD_PACK}":
            return await self._upload_pack(request, repo)
        return await self._receive_pack(request, repo)

    def _require_admin(self, request: Request) -> User:
        user = self.authenticate(request)
        if user is None:
            raise HTTPException(
                status_code=401,
                detail="401 Unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="git"'},
            )
        if not user.site_admin:
            raise HTTPException(status_code=403, detail="403 Forbidden")
        return user

    async def _advertise(self, request: Request, repo: RepoInfo, service: str) -> Response:
        _require_method(request, "GET")
        if service == RECEIVE_PACK:
            self._require_admin(request)
            args = [self.receive_pack, "--advertise-refs", "."]
        else:
            args = [self.upload_pack, "--strict", "--advertise-refs", "."]

        result = await self._run(request, args, repo.dir)
        if not result.ok:
            _fail(result)
        return Response(
            content=pktline.service_announcement(service) + result.stdout,
            media_type=f"application/x-{service}-advertisement",
            headers={"Cache-Control": "no-cache"},
        )

    async def _upload_pack(self, request: Request, repo: RepoInfo) -> Response:
        _require_method(request, "POST")
        _require_content_type(request, UPLOAD_PACK)
        body = await _read_body(request)
        result = await self._run(
            request,
            [self.upload_pack, "--strict", "--stateless-rpc", "."],
            repo.dir,
            stdin=body,
            benign_exit_codes=(REMOTE_HUNG_UP_EXIT,),
        )
        if not result.ok:
            _fail(result)
        return Response(
            content=result.stdout,
            media_type=f"application/x-{UPLOAD_PACK}-result",
            headers={"Cache-Control": "no-cache"},
        )

    async def _receive_pack(self, request: Request, repo: RepoInfo) -> Response:
        _require_method(request, "POST")
        _require_content_type(request, RECEIVE_PACK)
        user = self._require_admin(request)
        body = await _read_body(request)
        try:
            updates = pktline.parse_ref_updates(body)
        except pktline.PktLineError as exc:
            LOGGER.warning("Could not parse ref updates pushed to %s: %s", repo.spec, exc)
            updates = []

        result = await self._run(
            request, [self.receive_pack, "--stateless-rpc", "."], repo.dir, stdin=body
        )
        if not result.ok:
            _fail(result)
        return Response(
            content=result.stdout,
            media_type=f"application/x-{RECEIVE_PACK}-result",
            headers={"Cache-Control": "no-cache"},
            background=BackgroundTask(self.post_receive, repo, user, updates),
        )

    async def _run(
        self,
        request: Request,
        args: Sequence[str],
        cwd: Path,
        stdin: bytes | None = None,
        benign_exit_codes: Sequence[int] = (),
    ) -> CommandResult:
        try:
            return await until_disconnected(
                request,
                run(args, cwd=cwd, stdin=stdin, benign_exit_codes=benign_exit_codes),
            )
        except CommandNotFoundError as exc:
            LOGGER.warning("%s", exc)
            raise HTTPException(status_code=404, detail="Not found.") from exc
        except CommandStartError as exc:
            LOGGER.error("%s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        except ClientDisconnected:
            LOGGER.info("Client disconnected during %s", args[0])
            raise HTTPException(
                status_code=CLIENT_CLOSED_REQUEST, detail="Client closed request"
            ) from None

    async def post_receive(
        self, repo: RepoInfo, user: User, updates: list[pktline.RefUpdate]
    ) -> None:
        """Refresh the index for the pushed repository, then log its events.

        Failures are logged and never propagated.
        """
        try:
            await asyncio.to_thread(self.service.rediscover, repo.spec)
        except Exception:
            LOGGER.exception("Rediscovering %s after push failed", repo.spec)

        now = datetime.now(timezone.utc)
        for update in updates:
            change = classify(update)
            if change is RefChange.PUSH:
                payload = Push(
                    branch=update.name,
                    head=update.new,
                    before=update.old,
                    commits=await self._list_commits(repo, update.old, update.new),
                )
            else:
                payload = ref_payload(change, update)
            if payload is None:
                LOGGER.warning("Unsupported ref update in %s: %s", repo.spec, update)
                continue
            try:
                self.events.log(
                    Event(time=now, actor=user, container=repo.spec, payload=payload)
                )
            except Exception:
                LOGGER.exception("Logging event for %s failed", repo.spec)

    async def _list_commits(self, repo: RepoInfo, base: str, head: str) -> list[Commit]:
        try:
            summaries = await asyncio.to_thread(list_commits_between, repo.dir, base, head)
        except Exception:
            LOGGER.exception("Listing commits %s..%s of %s failed", base, head, repo.spec)
            return []
        commits = []
        for c in summaries:
            user = self.git_users.get(c.author_email.lower())
            commits.append(
                Commit(
                    sha=c.sha,
                    message=c.message,
                    author_name=c.author_name,
                    author_email=c.author_email,
                    author_avatar_url=user.avatar_url if user else DEFAULT_AVATAR_URL,
                    html_url=f"{repo.path}/commit/{c.sha}",
                )
            )
        return commits


def _require_method(request: Request, method: str) -> None:
    if request.method != method:
        raise HTTPException(
            status_code=405, detail="Method Not Allowed", headers={"Allow": method}
        )


def _require_content_type(request: Request, service: str) -> None:
    content_type = request.headers.get("Content-Type")
    if content_type != f"application/x-{service}-request":
        raise HTTPException(
            status_code=400, detail=f"unexpected Content-Type: {content_type}"
        )


async def _read_body(request: Request) -> bytes:
    body = await request.body()
    if request.headers.get("Content-Encoding") == "gzip":
        try:
            body = gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as exc:
            raise HTTPException(
                status_code=400, detail=f"invalid gzip request body: {exc}"
            ) from exc
    return body


def _fail(result: CommandResult) -> None:
    name = Path(result.args[0]).name
    LOGGER.error("%s command failed: %s", name, result.error())
    raise HTTPException(status_code=500, detail=f"{name} command failed")
