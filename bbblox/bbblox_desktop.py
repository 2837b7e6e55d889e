import os
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path

from bbblox.bbblox_consts import AppConfig
from bbblox.bbblox_log import log
from bbblox.bbblox_session import SessionEnv
from bbblox.bbblox_users import TargetUser
from bbblox.bbblox_util import as_user, run_command
from bbblox.bbblox_wine import wine_env


def applications_dir(user: TargetUser) -> Path:  # noqa: D103
    return user.home.joinpath(".local", "share", "applications")


def entry_path(config: AppConfig, user: TargetUser) -> Path:  # noqa: D103
    return applications_dir(user).joinpath(f"{config.app_id}.desktop")


def render_entry(config: AppConfig, user: TargetUser, exe: Path) -> str:
    """Return the desktop entry that launches exe and handles the URL scheme."""
    return (
        "[Desktop Entry]\n"
        f"Name={config.app_name}\n"
        f'Exec=env WINEPREFIX={user.prefix} wine "{exe}" %u\n'
        "Type=Application\n"
        f"Comment={config.app_comment}\n"
        "Categories=Game;\n"
        f"StartupWMClass={config.wm_class}\n"
        f"MimeType=x-scheme-handler/{config.url_scheme};\n"
    )


def _open_user_dir(user: TargetUser, parts: Sequence[str]) -> int:
    """Open a directory below the user's home without following symlinks.

    Missing directories are created and given to the user. Returns a file
    descriptor the caller must close. Raises OSError when a component is a
    symlink or not a directory.
    """
    flags: int = os.O_RDONLY | os.O_DIRECTORY | os.O_NOFOLLOW
    fd: int = os.open(user.home, flags)
    parent: int

    try:
        for part in parts:
            created = False
            try:
                os.mkdir(part, 0o755, dir_fd=fd)
                created = True
            except FileExistsError:
                log.debug("Directory exists: %s", part)
            parent = fd
            fd = os.open(part, flags, dir_fd=parent)
            os.close(parent)
            if created:
                log.debug("chown %s:%s %s", user.uid, user.gid, part)
                os.fchown(fd, user.uid, user.gid)
    except OSError:
        os.close(fd)
        raise

    return fd


def write_entry(config: AppConfig, user: TargetUser, exe: Path) -> Path:
    """Write the desktop entry, owned by the user.

    Directories created on the way are given to the user as well. The home
    belongs to the user, so symlinked directories are refused and an existing
    entry is unlinked rather than written through.
    """
    path: Path = entry_path(config, user)
    dir_fd: int

    log.info(
        "Creating desktop entry for URL protocol handler (%s://)...",
        config.url_scheme,
    )
    dir_fd = _open_user_dir(user, path.parent.relative_to(user.home).parts)

    try:
        with suppress(FileNotFoundError):
            os.unlink(path.name, dir_fd=dir_fd)
        fd: int = os.open(
            path.name,
            os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_NOFOLLOW,
            0o644,
            dir_fd=dir_fd,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            os.fchown(file.fileno(), user.uid, user.gid)
            file.write(render_entry(config, user, exe))
    finally:
        os.close(dir_fd)

    return path


def register_handler(
    config: AppConfig, user: TargetUser, session: SessionEnv
) -> bool:
    """Register the desktop entry as the URL scheme handler.

    Both steps are best effort. Returns False if either of them failed.
    """
    env: dict[str, str] = wine_env(user, session)
    mime: str = f"x-scheme-handler/{config.url_scheme}"
    ok: bool = True

    log.info("Registering '%s://' protocol handler...", config.url_scheme)

    for argv in (
        ["update-desktop-database", str(applications_dir(user))],
        ["xdg-mime", "default", f"{config.app_id}.desktop", mime],
    ):
        result = run_command(as_user(user.name, argv, env), check=False)
        if not result.ok:
            log.warning("%s exited with status %s", argv[0], result.returncode)
            ok = False

    return ok
