"""CDN client for module sources."""

from __future__ import annotations

import logging
import time
from typing import Protocol

import httpx

from .errors import FetchError
from .identifiers import ModuleIdentity
from .references import reference_pattern

logger = logging.getLogger(__name__)

DEFAULT_CDN_URL = "https://cdn.jsdelivr.net"


class ModuleFetcher(Protocol):
    """Anything that can return the source text of a module."""

    def fetch(self, identity: ModuleIdentity) -> str: ...


class CdnModuleFetcher:
    """Fetches ES module bundles from jsDelivr (or a compatible mirror).

    Transport failures and 5xx responses are retried with exponential
    backoff; once retries are exhausted the failure is raised as FetchError.
    Any other HTTP error, including a 4xx response, fails immediately.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_CDN_URL,
        timeout: float = 30.0,
        retries: int = 2,
        backoff: float = 0.5,
        client: httpx.Client | None = None,
    ):
        """Initialize the fetcher.

        Args:
            base_url: CDN root; module paths are appended to it
            timeout: Per-request timeout in seconds
            retries: Extra attempts after the first failure
            backoff: Delay before the first retry, doubled on each further retry
            client: Pre-configured client (tests inject one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.retries = max(retries, 0)
        self.backoff = backoff
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def url_for(self, identity: ModuleIdentity) -> str:
        return self.base_url + reference_pattern(identity.original_name, identity.version, identity.relative_path)

    def fetch(self, identity: ModuleIdentity) -> str:
        """Return the raw bundle text for ``identity``.

        Raises:
            FetchError: The request was rejected, or failed on every attempt
        """
        url = self.url_for(identity)
        last_error: httpx.HTTPError | None = None

        for attempt in range(self.retries + 1):
            if attempt:
                delay = self.backoff * (2 ** (attempt - 1))
                logger.info(f"Retrying {url} in {delay:.1f}s (attempt {attempt + 1}/{self.retries + 1})")
                time.sleep(delay)
            try:
                logger.info(f"Fetching {url}")
                response = self._client.get(url)
                response.raise_for_status()
                return response.text
            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    logger.warning(f"Request for {url} was rejected: {e}")
                    raise FetchError(identity, url, e) from e
                logger.warning(f"Request for {url} failed: {e}")
                last_error = e
            except httpx.TransportError as e:
                logger.warning(f"Request for {url} failed: {e}")
                last_error = e
            except httpx.HTTPError as e:
                raise FetchError(identity, url, e) from e

        raise FetchError(identity, url, last_error)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> CdnModuleFetcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
