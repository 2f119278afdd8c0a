"""HLS stream health probing.

A health check issues one GET against the manifest URL and verifies the
first bytes of the body look like an HLS playlist. It never retries; the
reconnection layer decides whether a failed probe is worth repeating.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from mts.exceptions import (
    StreamBadFormatError,
    StreamBadStatusError,
    StreamUnreachableError,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "FFmpeg/media_transcoder"
HLS_ACCEPT = "application/vnd.apple.mpegurl,application/x-mpegURL,*/*"
HLS_MARKER = b"#EXTM3U"
HLS_CONTENT_TYPES = ("mpegurl", "text/plain")

# Only the head of the manifest is inspected
PEEK_BYTES = 256


class StreamHealthChecker:
    """Probe HLS manifest URLs for availability and format.

    The checker holds no connection state between calls: each check()
    builds a short-lived httpx.Client, so it is safe to call repeatedly
    from the retry loop and from the monitor's health poller.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        origin: str | None = None,
        referer: str | None = None,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
    ) -> None:
        """Initialize the checker.

        Args:
            user_agent: User-Agent header. None or empty uses DEFAULT_USER_AGENT.
            origin: Optional Origin header.
            referer: Optional Referer header.
            client_factory: Callable building the httpx.Client (injectable
                for tests, e.g. to supply an httpx.MockTransport).
        """
        self._user_agent = (user_agent or "").strip() or DEFAULT_USER_AGENT
        self._origin = (origin or "").strip()
        self._referer = (referer or "").strip()
        self._client_factory = client_factory

    def _headers(self) -> dict[str, str]:
        """Get request headers for a manifest probe.

        Returns:
            Headers dictionary with User-Agent, Accept and any Origin/Referer.
        """
        headers = {"User-Agent": self._user_agent, "Accept": HLS_ACCEPT}
        if self._origin:
            headers["Origin"] = self._origin
        if self._referer:
            headers["Referer"] = self._referer
        return headers

    def check(self, url: str, timeout: float) -> None:
        """Verify the manifest at url is reachable and looks like HLS.

        Args:
            url: Manifest URL.
            timeout: Overall request timeout in seconds.

        Raises:
            StreamUnreachableError: On transport failure. A malformed URL is
                flagged non-recoverable.
            StreamBadStatusError: If the response status is not 2xx.
            StreamBadFormatError: If the body does not start with #EXTM3U.
        """
        logger.debug("Checking stream health: %s", url)
        try:
            with self._client_factory(
                timeout=timeout, follow_redirects=True, headers=self._headers()
            ) as client:
                with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise StreamBadStatusError(
                            f"Stream returned HTTP {response.status_code}",
                            url=url,
                            status_code=response.status_code,
                        )
                    self._check_content_type(response, url)
                    head = self._read_head(response)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise StreamUnreachableError(
                f"Malformed stream URL {url!r}: {e}", url=url, recoverable=False
            ) from e
        except httpx.TimeoutException as e:
            raise StreamUnreachableError(
                f"Stream unreachable (timeout): {e}", url=url
            ) from e
        except httpx.HTTPError as e:
            raise StreamUnreachableError(
                f"Stream unreachable (connection error): {e}", url=url
            ) from e

        if not head.startswith(HLS_MARKER):
            raise StreamBadFormatError(
                "Response is not an HLS manifest (missing #EXTM3U header)", url=url
            )
        logger.debug("Stream healthy: %s", url)

    @staticmethod
    def _check_content_type(response: httpx.Response, url: str) -> None:
        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(t in content_type for t in HLS_CONTENT_TYPES):
            logger.warning(
                "Unexpected content type %r for stream %s", content_type, url
            )

    @staticmethod
    def _read_head(response: httpx.Response) -> bytes:
        """Read at most PEEK_BYTES from the response body."""
        buffer = bytearray()
        for chunk in response.iter_bytes():
            buffer.extend(chunk)
            if len(buffer) >= PEEK_BYTES:
                break
        return bytes(buffer[:PEEK_BYTES])
