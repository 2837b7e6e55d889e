import os
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from Xlib import display
from Xlib.error import DisplayError, XauthError

from bbblox.bbblox_consts import RUN_USER
from bbblox.bbblox_log import log
from bbblox.bbblox_users import TargetUser


@dataclass(frozen=True)
class SessionEnv:
    """Variables that let a process of the target user reach the desktop."""

    display: str = ""
    xdg_runtime_dir: str = ""
    wayland_display: str = ""
    xauthority: Path | None = None

    def as_env(self) -> dict[str, str]:
        """Return the non-empty variables keyed by their environment name."""
        env: dict[str, str] = {
            "DISPLAY": self.display,
            "XDG_RUNTIME_DIR": self.xdg_runtime_dir,
            "WAYLAND_DISPLAY": self.wayland_display,
            "XAUTHORITY": str(self.xauthority) if self.xauthority else "",
        }
        return {key: val for key, val in env.items() if val}


def get_login_name(environ: Mapping[str, str] = os.environ) -> str:
    """Return the name of the user who invoked sudo, if it can be found."""
    try:
        return os.getlogin()
    except OSError:
        # No controlling terminal
        return environ.get("SUDO_USER", "")


def _skip_unreadable(e: OSError) -> None:
    # FUSE mounts such as gvfs refuse root
    log.debug("Skipping %s: %s", e.filename, e.strerror)


def find_xauthority(
    user: TargetUser, environ: Mapping[str, str] = os.environ
) -> Path | None:
    """Locate the X authority file of the user's session."""
    if environ.get("XAUTHORITY"):
        path: Path = Path(environ["XAUTHORITY"])
        if path.is_file():
            return path

    if user.home.joinpath(".Xauthority").is_file():
        return user.home.joinpath(".Xauthority")

    # Display managers such as GDM keep it in the runtime directory
    runtime_dir: Path = RUN_USER.joinpath(str(user.uid))
    for root, dirs, files in os.walk(runtime_dir, onerror=_skip_unreadable):
        dirs.sort()
        for name in sorted(files):
            path = Path(root, name)
            if "authority" in name.lower() and path.is_file():
                return path

    return None


def capture_session(
    user: TargetUser, environ: Mapping[str, str] = os.environ
) -> SessionEnv:
    """Capture the graphical environment to hand to the user's processes.

    The X authority file is only looked up when the installer was invoked
    from the target user's own session. Another user's cookie would not be
    readable by the target user anyway.
    """
    xauth: Path | None = None
    login: str = get_login_name(environ)

    log.info("Capturing user's graphical environment variables...")

    if not login:
        log.warning(
            "Could not determine invoking user. "
            "Falling back to simple environment pass."
        )
        login = user.name

    if environ.get("DISPLAY") and login == user.name:
        xauth = find_xauthority(user, environ)
        if xauth:
            log.info("Using XAUTHORITY: %s", xauth)

    return SessionEnv(
        display=environ.get("DISPLAY", ""),
        xdg_runtime_dir=environ.get("XDG_RUNTIME_DIR", ""),
        wayland_display=environ.get("WAYLAND_DISPLAY", ""),
        xauthority=xauth,
    )


@contextmanager
def xdisplay(session: SessionEnv) -> Generator[display.Display, None, None]:
    """Open the session's X display with its authority file."""
    d: display.Display | None = None
    saved: str | None = os.environ.get("XAUTHORITY")

    try:
        # python-xlib only reads the authority file named by $XAUTHORITY
        if session.xauthority:
            os.environ["XAUTHORITY"] = str(session.xauthority)
        d = display.Display(session.display)
        yield d
    finally:
        if d is not None:
            d.close()
        if saved is None:
            os.environ.pop("XAUTHORITY", None)
        else:
            os.environ["XAUTHORITY"] = saved


def probe_display(session: SessionEnv) -> bool:
    """Check that GUI programs started for the session will have a display."""
    if not session.display:
        if not session.wayland_display:
            log.warning("Neither DISPLAY nor WAYLAND_DISPLAY is set")
            log.warning("Installer windows may fail to open")
        return False

    try:
        with xdisplay(session) as d:
            log.debug("Connected to DISPLAY=%s", d.get_display_name())
    except (DisplayError, XauthError, OSError) as e:
        log.warning("Cannot connect to DISPLAY=%s: %s", session.display, e)
        log.warning("Installer windows may fail to open")
        return False

    return True
