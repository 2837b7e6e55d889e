from collections.abc import Callable
from pathlib import Path
from re import escape, fullmatch

from bbblox.bbblox_consts import AppConfig, RuntimeChoice, RuntimeState
from bbblox.bbblox_dl_util import Downloader, download_as_user
from bbblox.bbblox_log import log
from bbblox.bbblox_session import SessionEnv
from bbblox.bbblox_users import TargetUser
from bbblox.bbblox_wine import LaunchResult, run_installer


def fxr_dir(user: TargetUser) -> Path:
    """Return the directory holding one hostfxr folder per installed runtime."""
    return user.wine_user_dir.joinpath(
        "AppData", "Local", "Microsoft", "dotnet", "host", "fxr"
    )


def find_runtime(user: TargetUser, version: str) -> Path | None:
    """Return the hostfxr folder of the runtime release line, if installed.

    Runtimes install as <version>.<patch>, e.g. '8.0.11' for '8.0'. Any patch
    level of the requested release line counts, other release lines do not.
    """
    path: Path = fxr_dir(user)

    if not path.is_dir():
        return None

    for child in sorted(path.iterdir()):
        if fullmatch(rf"{escape(version)}\.\d+", child.name) and child.is_dir():
            return child

    return None


def detect_runtime(user: TargetUser, version: str) -> RuntimeState:
    """Check the user's prefix for the runtime release line."""
    runtime: Path | None

    log.info("Checking for existing .NET %s runtime installation...", version)
    runtime = find_runtime(user, version)
    if runtime:
        log.info(".NET %s seems to be already installed: %s", version, runtime)
        return RuntimeState.PRESENT
    return RuntimeState.ABSENT


def prompt_choice(reader: Callable[[str], str] = input) -> RuntimeChoice:
    """Ask how the missing runtime should be installed.

    An empty answer selects the automatic install.
    """
    try:
        answer: str = reader("").strip()
    except EOFError:
        answer = ""

    if answer in {"", "1", "Y", "y"}:
        return RuntimeChoice.AUTOMATIC

    return RuntimeChoice.MANUAL


def manual_instructions(config: AppConfig, user: TargetUser) -> str:
    """Return the steps to install the runtime by hand."""
    installer: Path = user.downloads.joinpath(config.dotnet_installer)
    return "\n".join(
        [
            "",
            "Manual installation instructions:",
            "---------------------------------",
            f"1. Open a terminal as user '{user.name}'",
            "2. Run the following commands:",
            "",
            "   # Download the installer (Use 'curl -L' for reliability)",
            f'   curl -L -o "{installer}" "{config.dotnet_url}"',
            "   # If curl is not available, try:",
            f'   # wget -O "{installer}" "{config.dotnet_url}"',
            "",
            "   # Install the runtime",
            f'   export WINEPREFIX="{user.prefix}"',
            "   export WINEARCH=win64",
            f'   wine "{installer}"',
            "   # Delete the installer after use",
            f'   rm -f "{installer}"',
            "",
            "Then re-run this installer when finished.",
        ]
    )


def print_options(version: str) -> None:  # noqa: D103
    print()
    print(f"Required .NET {version} runtime is missing.")
    print("You have two options:")
    print("  1) Automatic install (opens a Wine GUI window using the official installer).")
    print("  2) Manual install (recommended if GUI fails).")
    print()


def install_runtime(
    config: AppConfig,
    user: TargetUser,
    session: SessionEnv,
    downloader: Downloader,
    url: str,
) -> LaunchResult:
    """Download and run the official runtime installer in GUI mode.

    Raises RuntimeError when the download fails. The installer's exit status
    is ignored, the runtime directory decides whether it worked.
    """
    installer: Path = user.downloads.joinpath(config.dotnet_installer)
    result: LaunchResult

    log.info("Starting GUI installation of .NET %s...", config.dotnet_version)
    log.info("Downloading .NET %s runtime installer...", config.dotnet_version)

    try:
        download_as_user(user, downloader, url, installer)
    except RuntimeError:
        log.error("Please try the manual install instructions below.")
        print(manual_instructions(config, user))
        raise

    log.info("Running .NET installer...")
    try:
        result = run_installer(
            user,
            session,
            installer,
            lambda: find_runtime(user, config.dotnet_version) is not None,
        )
    finally:
        log.info("Cleaning up .NET installer...")
        installer.unlink(missing_ok=True)

    if not result.installed:
        log.warning(
            ".NET %s was not detected in '%s' after the installer exited (%s)",
            config.dotnet_version,
            fxr_dir(user),
            result.returncode,
        )

    return result
