"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from gadgetry.core.model import FetchRequest, FetchResponse


class Fetcher(Protocol):
    def fetch(self, request: FetchRequest) -> FetchResponse:
        """Fetch a single request."""

    def multi_fetch(self, requests: Sequence[FetchRequest]) -> list[FetchResponse]:
        """Fetch all requests concurrently, returning responses in request order."""


class SigningFetcherFactory(Protocol):
    def get_signing_fetcher(self, fetcher: Fetcher) -> Fetcher:
        """Wrap fetcher so that every request it sends is signed."""
