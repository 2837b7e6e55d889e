import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from shlex import join as shjoin
from shutil import which
from subprocess import PIPE, Popen

from bbblox.bbblox_log import log


@dataclass(frozen=True)
class CommandResult:
    """Exit status of a finished subprocess.

    A zero returncode only says the process exited cleanly. Callers that
    launch Windows programs must check their own post-conditions.
    """

    argv: tuple[str, ...]
    returncode: int

    @property
    def ok(self) -> bool:  # noqa: D102
        return self.returncode == 0


def find_tool(*names: str) -> tuple[str, str] | None:
    """Return the name and path of the first executable found in $PATH."""
    for name in names:
        if path := which(name):
            log.debug("Found %s: %s", name, path)
            return name, path
    return None


def as_user(
    user: str, argv: Sequence[str], env: Mapping[str, str] | None = None
) -> list[str]:
    """Wrap a command so it runs in a login shell of another user.

    The environment is passed explicitly through env(1) because su(1) resets
    it for login shells.
    """
    if not argv:
        err: str = f"Command list is empty or None: {argv}"
        raise ValueError(err)

    assignments: list[str] = [f"{key}={val}" for key, val in (env or {}).items()]
    command: list[str] = ["env", *assignments, *argv] if assignments else [*argv]

    return ["su", "-", user, "-c", shjoin(command)]


def run_command(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run a command to completion, inheriting stdin/stdout/stderr."""
    proc: Popen
    ret: int = 0

    if not argv:
        err: str = f"Command list is empty or None: {argv}"
        raise ValueError(err)

    log.debug("%s", shjoin(argv))

    with Popen(argv, env=dict(os.environ, **(env or {}))) as proc:
        ret = proc.wait()
        log.debug("Child %s exited with wait status: %s", proc.pid, ret)

    if check and ret:
        err: str = f"Command failed ({ret}): {shjoin(argv)}"
        raise RuntimeError(err)

    return CommandResult(tuple(argv), ret)


def read_command(argv: Sequence[str]) -> str:
    """Run a command and return its standard output."""
    with Popen(
        argv,
        text=True,
        encoding="utf-8",
        stdout=PIPE,
        stderr=PIPE,
        env={**os.environ, "LC_ALL": "C", "LANG": "C"},
    ) as proc:
        stdout, _ = proc.communicate()

    return stdout or ""


def chown_path(path: Path, uid: int, gid: int) -> None:  # noqa: D103
    log.debug("chown %s:%s %s", uid, gid, path)
    os.chown(path, uid, gid, follow_symlinks=False)
