"""Running native git tooling as subprocesses.

Commands run in their own process group so that cancelling the awaiting
task (a client going away) kills the whole group instead of leaving
orphaned ``git-upload-pack`` or ``git-receive-pack`` processes behind.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, Sequence

LOGGER = logging.getLogger(__name__)


class CommandNotFoundError(Exception):
    """The command binary or its working directory doesn't exist."""


class CommandStartError(Exception):
    """The command could not be started for another reason."""


class Outcome(enum.Enum):
    SUCCESS = "success"
    BENIGN_EXIT = "benign-exit"  # Non-zero exit the caller declared harmless.
    FAILURE = "failure"


@dataclass(slots=True)
class CommandResult:
    args: Sequence[str]
    returncode: int
    stdout: bytes
    stderr: bytes
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILURE

    def error(self) -> str:
        if self.returncode < 0:
            status = f"signal: {signal.Signals(-self.returncode).name}"
        else:
            status = f"exit status {self.returncode}"
        stderr = self.stderr.decode("utf-8", errors="replace").strip()
        return f"{self.args[0]}: {status}" + (f": {stderr}" if stderr else "")


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


async def run(
    args: Sequence[str],
    *,
    cwd: Path,
    stdin: bytes | None = None,
    benign_exit_codes: Collection[int] = (),
) -> CommandResult:
    """Run a command to completion and collect its output.

    Raises CommandNotFoundError when the binary or cwd is missing, and
    CommandStartError for any other failure to start the process.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise CommandNotFoundError(f"{args[0]}: {exc}") from exc
    except OSError as exc:
        raise CommandStartError(f"could not start command: {exc}") from exc

    try:
        stdout, stderr = await proc.communicate(stdin)
    except asyncio.CancelledError:
        LOGGER.info("Killing %s (pid %d): request cancelled", args[0], proc.pid)
        _kill_group(proc)
        await proc.wait()
        raise

    if proc.returncode == 0:
        outcome = Outcome.SUCCESS
    elif proc.returncode in benign_exit_codes:
        outcome = Outcome.BENIGN_EXIT
    else:
        outcome = Outcome.FAILURE
    return CommandResult(
        args=list(args),
        returncode=proc.returncode,
        stdout=stdout,
        stderr=stderr,
        outcome=outcome,
    )
