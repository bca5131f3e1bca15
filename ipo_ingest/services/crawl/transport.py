from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import httpx

from .base import FetchError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; IPO-Ingest/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class HttpTransport:
    """Thin httpx wrapper: fetch(url, timeout_ms) -> (body, status_code).

    Every failure mode (connect error, timeout, non-2xx) is surfaced as FetchError
    so callers only deal with one error type.
    """

    def __init__(
        self,
        *,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.headers = headers or dict(DEFAULT_HEADERS)
        self._client = client

    def fetch(self, url: str, timeout_ms: int) -> Tuple[str, int]:
        timeout = max(float(timeout_ms), 1.0) / 1000.0
        try:
            if self._client is not None:
                resp = self._client.get(url, timeout=timeout)
            else:
                with httpx.Client(timeout=timeout, headers=self.headers, follow_redirects=True) as client:
                    resp = client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timed out after {timeout_ms} ms fetching {url}", url=url) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Error fetching {url}: {exc}", url=url) from exc

        if not resp.is_success:
            raise FetchError(
                f"Response status code does not indicate success: {resp.status_code} ({resp.reason_phrase})",
                url=url,
                status_code=resp.status_code,
            )
        logger.debug("Fetched %s (%d bytes)", url, len(resp.content))
        return resp.text, resp.status_code

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
