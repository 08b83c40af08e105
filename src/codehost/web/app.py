"""FastAPI application serving git and module proxy requests for a repository store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from fastapi import FastAPI, HTTPException, Request, Response

from codehost.config import AppConfig
from codehost.events import EventSink, LoggingEventSink
from codehost.index.service import CodeService
from codehost.models import User
from codehost.web.auth import Authenticator, StaticUsers, UsersService, basic_authenticator
from codehost.web.git import GitHandler
from codehost.web.module import ModuleHandler

LOGGER = logging.getLogger(__name__)


def create_app(
    config: AppConfig | None = None,
    *,
    service: CodeService | None = None,
    users: UsersService | None = None,
    events: EventSink | None = None,
    authenticate: Authenticator | None = None,
    git_users: Mapping[str, User] | None = None,
) -> FastAPI:
    """Create the application. Collaborators not given are built from config."""
    config = config or AppConfig()
    if service is None:
        service = CodeService(config.resolve_repos_dir(Path.cwd()))
    if users is None:
        users = StaticUsers(config.admin_user, config.admin_password)
    if authenticate is None:
        authenticate = basic_authenticator(users)

    git_handler = GitHandler(
        service,
        domain=config.domain,
        events=events or LoggingEventSink(),
        authenticate=authenticate,
        git_users=git_users,
        upload_pack=config.git_upload_pack,
        receive_pack=config.git_receive_pack,
    )
    module_handler = ModuleHandler(service, config.module_prefix)

    app = FastAPI(title="codehost", version="0.1.0")
    app.state.config = config
    app.state.code = service
    app.state.git_handler = git_handler
    app.state.module_handler = module_handler

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def dispatch(request: Request, path: str) -> Response:
        url_path = request.url.path
        if url_path.startswith(config.module_prefix):
            response = await module_handler.serve_module_maybe(
                request, url_path[len(config.module_prefix) :]
            )
            if response is not None:
                return response
        response = await git_handler.serve_git_maybe(request)
        if response is not None:
            return response
        raise HTTPException(status_code=404, detail="404 Not Found")

    return app
