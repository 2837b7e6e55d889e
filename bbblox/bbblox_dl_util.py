import os
from dataclasses import dataclass
from http import HTTPStatus
from pathlib import Path
from urllib.parse import urljoin

from urllib3 import PoolManager, Retry
from urllib3.exceptions import HTTPError
from urllib3.response import BaseHTTPResponse
from urllib3.util import Timeout

from bbblox.bbblox_consts import DOWNLOAD_TOOLS, MAX_REDIRECTS, HTTPMethod
from bbblox.bbblox_log import log
from bbblox.bbblox_users import TargetUser
from bbblox.bbblox_util import as_user, find_tool, run_command

NET_TIMEOUT = 5.0

REDIRECT_STATUSES = {
    HTTPStatus.MOVED_PERMANENTLY,
    HTTPStatus.FOUND,
    HTTPStatus.SEE_OTHER,
    HTTPStatus.TEMPORARY_REDIRECT,
    HTTPStatus.PERMANENT_REDIRECT,
}


@dataclass(frozen=True)
class Downloader:
    """An HTTP fetch tool and its argument conventions."""

    name: str
    path: str
    output_flag: str
    flags: tuple[str, ...] = ()
    follows_redirects: bool = True

    def command(self, dest: Path, url: str) -> list[str]:
        """Build the command that saves url to dest."""
        return [self.path, *self.flags, self.output_flag, str(dest), url]


def make_downloader(name: str, path: str) -> Downloader:  # noqa: D103
    if name == "curl":
        return Downloader(name, path, "-o", flags=("-L", "-f"))
    if name == "wget":
        return Downloader(name, path, "-O", follows_redirects=False)
    err: str = f"Unsupported download tool: '{name}'"
    raise ValueError(err)


def select_downloader() -> Downloader:
    """Pick the first available download tool.

    Raises FileNotFoundError when none of them is installed.
    """
    tool: tuple[str, str] | None = find_tool(*DOWNLOAD_TOOLS)

    if not tool:
        err: str = "Neither curl nor wget found. Please install one to proceed."
        raise FileNotFoundError(err)

    downloader: Downloader = make_downloader(*tool)
    log.info("Using '%s' for downloads.", downloader.name)
    if not downloader.follows_redirects:
        log.warning(
            "'%s' cannot follow redirects, .NET download may fail",
            downloader.name,
        )

    return downloader


def get_http_pool() -> PoolManager:
    """Create the connection pool used to inspect download URLs.

    Requests are attempted once. Set BBBLOX_HTTP_TIMEOUT to override the
    connect and read timeouts, or to 0 to disable them.
    """
    timeouts: float | None
    if os.environ.get("BBBLOX_HTTP_TIMEOUT") == "0":
        timeouts = None
    elif "BBBLOX_HTTP_TIMEOUT" in os.environ:
        timeouts = float(os.environ["BBBLOX_HTTP_TIMEOUT"])
    else:
        timeouts = NET_TIMEOUT

    return PoolManager(
        timeout=Timeout(connect=timeouts, read=timeouts),
        retries=Retry(total=0, redirect=False, raise_on_redirect=False),
    )


def resolve_redirects(
    url: str, http_pool: PoolManager, max_redirects: int = MAX_REDIRECTS
) -> str:
    """Follow HTTP redirects and return the final location of url.

    Each hop is a HEAD request with redirects disabled, so relative Location
    headers are resolved against the URL that returned them.
    """
    resp: BaseHTTPResponse
    current: str = url

    for _ in range(max_redirects + 1):
        resp = http_pool.request(
            HTTPMethod.HEAD.value, current, redirect=False, preload_content=False
        )
        resp.release_conn()

        if resp.status not in REDIRECT_STATUSES:
            log.debug("Resolved '%s' -> '%s'", url, current)
            return current

        location: str | None = resp.headers.get("Location")
        if not location:
            err: str = f"{current} returned {resp.status} without a Location"
            raise HTTPError(err)

        current = urljoin(current, location)
        log.debug("Redirect: %s", current)

    err: str = f"Exceeded {max_redirects} redirects for '{url}'"
    raise HTTPError(err)


def prepare_url(url: str, downloader: Downloader, http_pool: PoolManager) -> str:
    """Return the URL to hand to the download tool.

    Tools that do not follow redirects receive the final location instead.
    When it cannot be resolved, the original URL is used.
    """
    if downloader.follows_redirects:
        return url

    try:
        return resolve_redirects(url, http_pool)
    except HTTPError as e:
        log.warning("Could not resolve redirects for '%s': %s", url, e)

    return url


def download_as_user(
    user: TargetUser, downloader: Downloader, url: str, dest: Path
) -> Path:
    """Download url to dest as the target user so the file is theirs.

    Raises RuntimeError when the download tool fails.
    """
    log.debug("Downloading: %s -> %s", url, dest)
    result = run_command(
        as_user(user.name, downloader.command(dest, url)), check=False
    )

    if not result.ok:
        err: str = f"Failed to download '{url}' using {downloader.name}."
        raise RuntimeError(err)

    return dest
