"""HTTP Basic authentication against a users service."""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
from typing import Callable, Protocol

from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param

from codehost.models import User

LOGGER = logging.getLogger(__name__)

Authenticator = Callable[[Request], "User | None"]


class UsersService(Protocol):
    def authenticate(self, username: str, password: str) -> User | None:
        """Return the user with the given credentials, or None."""
        ...


class StaticUsers:
    """Users service with a single, statically configured site administrator."""

    def __init__(self, login: str | None, password: str | None) -> None:
        self._login = login
        self._password = password

    def authenticate(self, username: str, password: str) -> User | None:
        if not self._login or not self._password:
            return None
        login_ok = hmac.compare_digest(username.encode(), self._login.encode())
        password_ok = hmac.compare_digest(password.encode(), self._password.encode())
        if not (login_ok and password_ok):
            return None
        return User(id=1, login=self._login, site_admin=True)


def parse_basic_auth(header: str | None) -> tuple[str, str] | None:
    """Return the username and password of a Basic Authorization header."""
    scheme, param = get_authorization_scheme_param(header)
    if scheme.lower() != "basic" or not param:
        return None
    try:
        decoded = base64.b64decode(param, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def basic_authenticator(users: UsersService) -> Authenticator:
    """Return an authenticator resolving the request's Basic credentials."""

    def authenticate(request: Request) -> User | None:
        credentials = parse_basic_auth(request.headers.get("Authorization"))
        if credentials is None:
            return None
        user = users.authenticate(*credentials)
        if user is None:
            LOGGER.warning("Failed authentication for user %r", credentials[0])
        return user

    return authenticate
