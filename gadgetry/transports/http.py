"""HTTP transport implementation using httpx."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType

import httpx

from gadgetry.core.model import FetchRequest, FetchResponse

LOGGER = logging.getLogger(__name__)

_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class HttpFetcher:
    """Fetches remote content over HTTP(S).

    Transport failures never raise: they come back as a 504 (timeout) or 502
    response so callers can treat them like any other unavailable resource.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 10.0,
        max_parallel: int = 8,
        user_agent: str = "gadgetry/0.1",
        client: httpx.Client | None = None,
    ) -> None:
        self.max_parallel = max_parallel
        self._client = client or httpx.Client(
            timeout=timeout_s,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(self, request: FetchRequest) -> FetchResponse:
        headers = _NO_CACHE_HEADERS if request.ignore_cache else {}
        try:
            response = self._client.get(request.url, headers=headers)
        except httpx.TimeoutException as exc:
            LOGGER.warning("Timed out fetching %s: %s", request.url, exc)
            return FetchResponse(request_id=request.key, url=request.url, status_code=504)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.warning("Failed to fetch %s: %s", request.url, exc)
            return FetchResponse(request_id=request.key, url=request.url, status_code=502)

        LOGGER.debug("Fetched %s -> %s", request.url, response.status_code)
        return FetchResponse(
            request_id=request.key,
            url=str(response.url),
            status_code=response.status_code,
            body=response.text,
            content=response.content,
        )

    def multi_fetch(self, requests: Sequence[FetchRequest]) -> list[FetchResponse]:
        if not requests:
            return []
        if len(requests) == 1:
            return [self.fetch(requests[0])]
        with ThreadPoolExecutor(max_workers=min(self.max_parallel, len(requests))) as executor:
            return list(executor.map(self.fetch, requests))
