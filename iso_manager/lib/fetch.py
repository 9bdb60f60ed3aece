from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Protocol

import httpx

from ..errors import FetchFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 600.0
CHUNK_SIZE = 1024 * 1024


class Fetcher(Protocol):
    """Streams a URL to a local file or raises FetchFailed."""

    def fetch(self, url: str, dest: Path) -> int:
        ...


class HttpFetcher:
    """Streaming HTTP(S) downloader.

    ``timeout_s`` bounds each network operation and the whole transfer.
    No retries: a failed transfer is reported to the caller as-is.
    """

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout_s),
            follow_redirects=True,
            transport=self._transport,
        )

    def fetch(self, url: str, dest: Path) -> int:
        logger.info("Downloading %s -> %s", url, str(dest))
        deadline = time.monotonic() + self.timeout_s
        written = 0
        try:
            with self._client() as client, client.stream("GET", url) as resp:
                resp.raise_for_status()
                with dest.open("wb") as f:
                    for chunk in resp.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
                        if time.monotonic() > deadline:
                            raise FetchFailed(
                                url,
                                FetchFailed.TIMEOUT,
                                f"transfer exceeded {self.timeout_s:g}s after {written} bytes",
                            )
        except httpx.TimeoutException as e:
            raise FetchFailed(url, FetchFailed.TIMEOUT, str(e) or type(e).__name__) from e
        except httpx.HTTPStatusError as e:
            raise FetchFailed(url, FetchFailed.HTTP_ERROR, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchFailed(url, FetchFailed.CONNECTION_ERROR, str(e) or type(e).__name__) from e
        except httpx.InvalidURL as e:
            raise FetchFailed(url, FetchFailed.CONNECTION_ERROR, f"invalid url: {e}") from e

        logger.info("Downloaded %s (%d bytes)", url, written)
        return written
