from argparse import Namespace
from pathlib import Path
from re import split as resplit

from bbblox.bbblox_consts import DEFAULT_CONFIG, AppConfig, RuntimeChoice, RuntimeState
from bbblox.bbblox_desktop import register_handler, write_entry
from bbblox.bbblox_dl_util import (
    Downloader,
    download_as_user,
    get_http_pool,
    prepare_url,
    select_downloader,
)
from bbblox.bbblox_dotnet import (
    detect_runtime,
    install_runtime,
    manual_instructions,
    print_options,
    prompt_choice,
)
from bbblox.bbblox_log import log
from bbblox.bbblox_plugins import set_config_toml
from bbblox.bbblox_session import SessionEnv, capture_session, probe_display
from bbblox.bbblox_users import TargetUser, find_candidates, lookup_user, select_user
from bbblox.bbblox_util import chown_path
from bbblox.bbblox_wine import (
    LaunchResult,
    check_wine_version,
    ensure_wine,
    init_prefix,
    run_installer,
)


def natural_key(path: Path) -> tuple[str | int, ...]:
    """Sort key that compares runs of digits numerically."""
    return tuple(
        int(part) if part.isdigit() else part for part in resplit(r"(\d+)", str(path))
    )


def find_executable(search_dir: Path) -> Path | None:
    """Find the client executable the installer left under search_dir.

    Installers may leave several versioned folders behind, so the last
    match in natural order is taken. Matching ignores case.
    """
    matches: list[Path]

    if not search_dir.is_dir():
        return None

    matches = [
        path
        for path in search_dir.rglob("*")
        if path.suffix.lower() == ".exe" and path.is_file()
    ]
    if not matches:
        return None

    return sorted(matches, key=natural_key)[-1]


def ensure_downloads(user: TargetUser) -> Path:
    """Create the user's download directory if it does not exist."""
    if not user.downloads.is_dir():
        user.downloads.mkdir(parents=True, exist_ok=True)
        chown_path(user.downloads, user.uid, user.gid)
    return user.downloads


def install_client(
    config: AppConfig,
    user: TargetUser,
    session: SessionEnv,
    downloader: Downloader,
) -> tuple[Path, Path]:
    """Download and run the client installer, then locate the client.

    Returns the downloaded installer and the installed executable. Raises
    FileNotFoundError when no executable was installed.
    """
    installer: Path = user.downloads.joinpath(config.installer_exe)
    search_dir: Path = user.wine_user_dir.joinpath(config.install_search_dir)
    result: LaunchResult

    log.info("Downloading installer...")
    download_as_user(user, downloader, config.installer_url, installer)

    log.info("Running %s installer...", config.app_name)
    result = run_installer(
        user,
        session,
        installer,
        lambda: find_executable(search_dir) is not None,
        settle=config.settle_delay,
    )

    log.info("Searching for installed executable...")
    exe: Path | None = find_executable(search_dir) if result.installed else None
    if not exe:
        err: str = (
            f"Could not find installed executable in {config.install_search_dir}.\n"
            "The client may have installed to a different path or failed to "
            "finish cleanly.\n"
            "You will need to manually locate the executable file."
        )
        raise FileNotFoundError(err)

    log.info("Found executable: %s", exe)
    return installer, exe


def provision_runtime(
    config: AppConfig,
    user: TargetUser,
    session: SessionEnv,
    downloader: Downloader,
) -> bool:
    """Make sure the .NET runtime is installed.

    Returns False when the user chose to install it by hand, in which case
    the installation must stop.
    """
    if detect_runtime(user, config.dotnet_version) is RuntimeState.PRESENT:
        log.info(
            ".NET %s runtime already installed - skipping.", config.dotnet_version
        )
        return True

    print_options(config.dotnet_version)
    if prompt_choice() is RuntimeChoice.MANUAL:
        print(manual_instructions(config, user))
        return False

    ensure_downloads(user)
    with get_http_pool() as http_pool:
        url: str = prepare_url(config.dotnet_url, downloader, http_pool)

    install_runtime(config, user, session, downloader, url)
    return True


def bbblox_run(args: Namespace | None = None) -> int:
    """Install the client for a regular user of this machine.

    Returns 0 on success, or when the user opted to install the .NET runtime
    manually. Fatal conditions are raised as exceptions.
    """
    config: AppConfig = DEFAULT_CONFIG
    downloader: Downloader
    user: TargetUser
    session: SessionEnv
    wine: str

    if args is not None and getattr(args, "config", None):
        config = set_config_toml(args)

    downloader = select_downloader()

    log.info("Detecting non-root users...")
    user = lookup_user(
        select_user(
            find_candidates(Path(config.home_root), config.min_uid, config.admin_user),
            config.app_name,
        )
    )
    log.debug("Target user: %s", user)

    session = capture_session(user)
    probe_display(session)

    wine = ensure_wine()
    check_wine_version(wine, config.min_wine_major)
    init_prefix(user, session)

    if not provision_runtime(config, user, session, downloader):
        return 0

    ensure_downloads(user)
    installer, exe = install_client(config, user, session, downloader)

    write_entry(config, user, exe)
    register_handler(config, user, session)

    log.info("Cleaning up installer...")
    installer.unlink(missing_ok=True)

    log.info("%s installation completed successfully.", config.app_name)
    return 0
