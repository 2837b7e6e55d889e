import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from re import Match
from re import search as re_search

from bbblox.bbblox_consts import PACKAGE_MANAGERS, WINE_PACKAGES, WINEARCH
from bbblox.bbblox_log import log
from bbblox.bbblox_session import SessionEnv
from bbblox.bbblox_users import TargetUser
from bbblox.bbblox_util import as_user, find_tool, read_command, run_command


@dataclass(frozen=True)
class LaunchResult:
    """Outcome of running a Windows installer under Wine.

    Wine often reports a failure for programs that completed their work, so
    returncode is informational. installed is the verdict of the caller's
    post-condition check.
    """

    installer: Path
    returncode: int
    installed: bool


def install_commands(manager: str, path: str) -> list[list[str]]:
    """Return the commands that install Wine with a package manager."""
    if manager == "dnf":
        return [[path, "install", "-y", *WINE_PACKAGES]]
    if manager == "apt":
        return [[path, "update"], [path, "install", "-y", *WINE_PACKAGES]]
    if manager == "pacman":
        return [[path, "-Syu", "--noconfirm", *WINE_PACKAGES]]
    err: str = f"Unsupported package manager: '{manager}'"
    raise ValueError(err)


def ensure_wine() -> str:
    """Install Wine and winetricks when wine is not in $PATH.

    Returns the path to wine. Raises FileNotFoundError when no supported
    package manager exists.
    """
    wine: tuple[str, str] | None = find_tool("wine")
    manager: tuple[str, str] | None

    if wine:
        return wine[1]

    log.info("Installing Wine...")
    manager = find_tool(*PACKAGE_MANAGERS)
    if not manager:
        err: str = "Cannot find package manager."
        raise FileNotFoundError(err)

    for argv in install_commands(*manager):
        run_command(argv)

    wine = find_tool("wine")
    if not wine:
        err: str = f"wine not found in $PATH after installing with {manager[0]}"
        raise FileNotFoundError(err)

    return wine[1]


def parse_wine_version(text: str) -> tuple[int, int] | None:
    """Parse 'wine-9.0 (Staging)' into (9, 0)."""
    match: Match | None = re_search(r"wine-(\d+)\.(\d+)", text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def check_wine_version(wine: str, min_major: int) -> tuple[int, int] | None:
    """Warn when the installed Wine is older than min_major."""
    version: tuple[int, int] | None = parse_wine_version(
        read_command([wine, "--version"])
    )

    if not version:
        log.debug("Could not determine the version of %s", wine)
        return None

    log.debug("Wine version: %s.%s", *version)
    if version[0] < min_major:
        log.warning(
            "Wine %s.%s is older than %s.0, the client may not run",
            *version,
            min_major,
        )

    return version


def wine_env(user: TargetUser, session: SessionEnv) -> dict[str, str]:
    """Environment for Wine processes started as the target user."""
    return {
        **session.as_env(),
        "WINEPREFIX": str(user.prefix),
        "WINEARCH": WINEARCH,
    }


def init_prefix(user: TargetUser, session: SessionEnv) -> None:
    """Create or update the user's Wine prefix."""
    log.info("Preparing Wine prefix (initialization/update)...")
    run_command(as_user(user.name, ["wineboot", "-u"], wine_env(user, session)))


def run_installer(
    user: TargetUser,
    session: SessionEnv,
    installer: Path,
    postcondition: Callable[[], bool],
    settle: float = 0,
) -> LaunchResult:
    """Run a Windows installer as the user and check what it left behind."""
    result = run_command(
        as_user(user.name, ["wine", str(installer)], wine_env(user, session)),
        check=False,
    )

    if not result.ok:
        log.debug("%s exited with status %s, ignoring", installer.name, result.returncode)

    if settle:
        log.info(
            "Waiting %s seconds for installation cleanup to complete...",
            f"{settle:g}",
        )
        time.sleep(settle)

    return LaunchResult(installer, result.returncode, postcondition())
