"""Activity events emitted after a successful push."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, Union

from codehost.models import User
from codehost.vcs.pktline import RefKind, RefUpdate

LOGGER = logging.getLogger(__name__)

DEFAULT_AVATAR_URL = "https://secure.gravatar.com/avatar?d=mm&f=y&s=96"


class RefChange(enum.Enum):
    PUSH = "push"
    BRANCH_CREATE = "branch-create"
    BRANCH_DELETE = "branch-delete"
    TAG_CREATE = "tag-create"
    TAG_DELETE = "tag-delete"
    UNRECOGNIZED = "unrecognized"


def is_zero_oid(oid: str) -> bool:
    return oid != "" and oid.strip("0") == ""


def classify(update: RefUpdate) -> RefChange:
    """Classify a ref update by its kind and which of its object ids are zero."""
    created, deleted = is_zero_oid(update.old), is_zero_oid(update.new)
    if created and deleted:
        return RefChange.UNRECOGNIZED
    if update.kind is RefKind.PUSH:
        if created:
            return RefChange.BRANCH_CREATE
        if deleted:
            return RefChange.BRANCH_DELETE
        return RefChange.PUSH
    if update.kind is RefKind.TAG:
        if created:
            return RefChange.TAG_CREATE
        if deleted:
            return RefChange.TAG_DELETE
    return RefChange.UNRECOGNIZED


@dataclass(slots=True)
class Commit:
    sha: str
    message: str
    author_name: str = ""
    author_email: str = ""
    author_avatar_url: str = DEFAULT_AVATAR_URL
    html_url: str = ""


@dataclass(slots=True)
class Push:
    branch: str
    head: str
    before: str
    commits: list[Commit] = field(default_factory=list)  # Oldest first.


@dataclass(slots=True)
class Create:
    type: str  # "branch" or "tag".
    name: str


@dataclass(slots=True)
class Delete:
    type: str  # "branch" or "tag".
    name: str


Payload = Union[Push, Create, Delete]


@dataclass(slots=True)
class Event:
    time: datetime
    actor: User
    container: str  # Import path of the repository root.
    payload: Payload


def ref_payload(change: RefChange, update: RefUpdate) -> Create | Delete | None:
    """Return the Create or Delete payload for a ref change, if it is one."""
    if change is RefChange.BRANCH_CREATE:
        return Create(type="branch", name=update.name)
    if change is RefChange.BRANCH_DELETE:
        return Delete(type="branch", name=update.name)
    if change is RefChange.TAG_CREATE:
        return Create(type="tag", name=update.name)
    if change is RefChange.TAG_DELETE:
        return Delete(type="tag", name=update.name)
    return None


class EventSink(Protocol):
    def log(self, event: Event) -> None:
        ...


class LoggingEventSink:
    """Event sink that writes every event to the log."""

    def log(self, event: Event) -> None:
        payload = event.payload
        if isinstance(payload, Push):
            LOGGER.info(
                "%s pushed %d commit(s) to %s@%s (%s..%s)",
                event.actor.login,
                len(payload.commits),
                event.container,
                payload.branch,
                payload.before[:7],
                payload.head[:7],
            )
        elif isinstance(payload, Create):
            LOGGER.info(
                "%s created %s %s in %s",
                event.actor.login,
                payload.type,
                payload.name,
                event.container,
            )
        else:
            LOGGER.info(
                "%s deleted %s %s in %s",
                event.actor.login,
                payload.type,
                payload.name,
                event.container,
            )
