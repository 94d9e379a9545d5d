"""
File download primitive.

Used to retrieve a server certificate before trust has been established,
so certificate checking can be switched off for a single download.
"""

from collections.abc import Callable
from typing import TypeAlias

import httpx
from structlog import get_logger

from sysreg.config import settings
from sysreg.exceptions import FetchError

logger = get_logger(__name__)

Fetcher: TypeAlias = Callable[[str, bool], bytes]


def fetch(
    url: str,
    insecure: bool = False,
    *,
    timeout: float | None = None,
    client: httpx.Client | None = None,
) -> bytes:
    """
    Download ``url`` and return the response body.

    Args:
        url: HTTP(S) URL of the file
        insecure: Skip TLS certificate verification for this download only
        timeout: Timeout in seconds, defaults to REQUEST_TIMEOUT
        client: Preconfigured client (tests pass one with a mock transport)

    Raises:
        FetchError: On transport errors, timeouts and non-2xx responses
    """
    if insecure:
        logger.warning("certificate_check_disabled_for_download", url=url)

    owns_client = client is None
    http_client = client or httpx.Client(
        verify=not insecure,
        timeout=timeout or settings.request_timeout,
        follow_redirects=True,
    )

    try:
        logger.info("downloading_file", url=url)
        response = http_client.get(url)
        response.raise_for_status()
        logger.info("file_downloaded", url=url, size=len(response.content))
        return response.content

    except httpx.HTTPStatusError as exc:
        logger.error("download_failed", url=url, status=exc.response.status_code)
        raise FetchError(url, f"HTTP {exc.response.status_code}") from exc
    except httpx.TimeoutException as exc:
        logger.error("download_timed_out", url=url)
        raise FetchError(url, "timed out") from exc
    except httpx.HTTPError as exc:
        logger.error("download_error", url=url, error=str(exc))
        raise FetchError(url, str(exc)) from exc

    finally:
        if owns_client:
            http_client.close()
