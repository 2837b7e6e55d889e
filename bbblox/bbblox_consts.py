from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class HTTPMethod(Enum):
    """HTTP methods used by the installer."""

    HEAD = "HEAD"


class RuntimeChoice(Enum):
    """Provisioning paths offered when the .NET runtime is missing."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class RuntimeState(Enum):
    """Result of checking the Wine prefix for the .NET runtime."""

    PRESENT = "present"
    ABSENT = "absent"


@dataclass(frozen=True)
class AppConfig:
    """Parameters of an installation run.

    The defaults install the BubbaBlox Player. Every field can be overridden
    from the [bbblox] table of a TOML file passed with --config.
    """

    installer_url: str = "https://bt.zawg.ca/BubbaBloxInstaller.exe"
    app_name: str = "BubbaBlox Player"
    app_comment: str = "https://bbblox.org/"
    app_id: str = "bubbablox-player"
    installer_exe: str = "BubbaBloxInstaller.exe"
    # Relative to drive_c/users/<user> in the Wine prefix
    install_search_dir: str = "AppData/Local/BubbaBlox"
    url_scheme: str = "bbclient"
    wm_class: str = "BubbaBloxClient"
    min_wine_major: int = 8
    dotnet_version: str = "8.0"
    dotnet_url: str = (
        "https://aka.ms/dotnet/8.0/windowsdesktop-runtime-win-x64.exe"
    )
    dotnet_installer: str = "windowsdesktop-runtime-win-x64.exe"
    # Seconds to wait after the client installer returns
    settle_delay: float = 5.0
    min_uid: int = 1000
    home_root: str = "/home"
    admin_user: str = "root"


DEFAULT_CONFIG = AppConfig()

# Packages installed when Wine is missing
WINE_PACKAGES = ("wine", "winetricks")

# Package managers in order of preference
PACKAGE_MANAGERS = ("dnf", "apt", "pacman")

# Download tools in order of preference
DOWNLOAD_TOOLS = ("curl", "wget")

# Environment variables copied from the invoking session
SESSION_VARS = ("DISPLAY", "XDG_RUNTIME_DIR", "WAYLAND_DISPLAY")

RUN_USER: Path = Path("/run/user")

WINEARCH = "win64"

MAX_REDIRECTS = 10
