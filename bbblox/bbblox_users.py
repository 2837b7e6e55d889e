from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from pwd import getpwnam, struct_passwd

from bbblox.bbblox_log import log


@dataclass(frozen=True)
class TargetUser:
    """The regular account the client is installed for."""

    name: str
    uid: int
    gid: int
    home: Path

    @property
    def prefix(self) -> Path:
        """Wine prefix of the user."""
        return self.home.joinpath(".wine")

    @property
    def downloads(self) -> Path:  # noqa: D102
        return self.home.joinpath("Downloads")

    @property
    def wine_user_dir(self) -> Path:
        """Profile directory of the user inside the Wine prefix."""
        return self.prefix.joinpath("drive_c", "users", self.name)


def find_candidates(
    home_root: Path, min_uid: int = 1000, admin: str = "root"
) -> list[str]:
    """Find regular users that own a directory under the home root.

    Symlinked directories, the administrative account, names unknown to the
    password database and system accounts (UID below min_uid) are skipped.
    """
    found: set[str] = set()

    if not home_root.is_dir():
        log.warning("Home directory root not found: %s", home_root)
        return []

    for path in home_root.iterdir():
        if path.is_symlink() or not path.is_dir():
            continue
        if path.name == admin:
            continue
        try:
            entry: struct_passwd = getpwnam(path.name)
        except KeyError:
            log.debug("No account for home directory: %s", path)
            continue
        if entry.pw_uid < min_uid:
            log.debug("Skipping system account '%s' (%s)", path.name, entry.pw_uid)
            continue
        found.add(path.name)

    return sorted(found)


def select_user(
    candidates: Sequence[str],
    app_name: str,
    reader: Callable[[str], str] = input,
) -> str:
    """Choose the target user, prompting only when there is more than one."""
    users: list[str] = sorted(candidates)

    if not users:
        err: str = "No suitable user directories found."
        raise RuntimeError(err)

    if len(users) == 1:
        log.info("Found single user: %s", users[0])
        return users[0]

    print(f"Multiple users found. Please choose the user to install {app_name} for:")
    for num, name in enumerate(users, start=1):
        print(f"{num}) {name}")

    while True:
        try:
            answer: str = reader("#? ").strip()
        except EOFError:
            err: str = "No user was selected."
            raise RuntimeError(err) from None
        if answer.isdigit() and 1 <= int(answer) <= len(users):
            chosen: str = users[int(answer) - 1]
            log.info("Selected user: %s", chosen)
            return chosen


def lookup_user(name: str) -> TargetUser:
    """Build the user record from the password database."""
    entry: struct_passwd = getpwnam(name)
    return TargetUser(
        name=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        home=Path(entry.pw_dir),
    )
