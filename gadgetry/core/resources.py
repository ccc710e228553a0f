"""Remote resource fetching for locales, preloads and template libraries.

Requests are split into an unsigned and a signed batch. Each batch is a single
multi-fetch; responses from both are reconciled into one table keyed by the
logical request id (the URL named in the gadget spec), so a signed response is
found under the same key as its unsigned counterpart would be.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from urllib.parse import urljoin, urlsplit

from gadgetry.core.context import GadgetContext
from gadgetry.core.errors import SecurityTokenError
from gadgetry.core.locales import matches
from gadgetry.core.message_bundle import parse_message_bundle
from gadgetry.core.model import (
    AuthType,
    FetchRequest,
    FetchResponse,
    GadgetSpec,
    Locale,
    Preload,
    SecurityToken,
)
from gadgetry.transports.base import Fetcher

LOGGER = logging.getLogger(__name__)

_FETCHABLE_SCHEMES = {"http", "https"}


@dataclass(frozen=True)
class ResourceBatches:
    locales: tuple[Locale, ...]
    template_urls: tuple[str, ...]
    unsigned: tuple[FetchRequest, ...]
    signed: tuple[FetchRequest, ...]


def resolve_url(url: str, base: str) -> str | None:
    """Resolve url against base, returning None when no fetchable URL results."""
    url = url.strip()
    if not url:
        return None
    resolved = urljoin(base, url)
    parts = urlsplit(resolved)
    if parts.scheme.lower() not in _FETCHABLE_SCHEMES or not parts.netloc:
        return None
    return resolved


def _is_disabled(flag: str | None) -> bool:
    return flag is not None and flag.strip().lower() == "false"


def _dedupe(requests: Iterable[FetchRequest]) -> tuple[FetchRequest, ...]:
    seen: set[str] = set()
    unique: list[FetchRequest] = []
    for request in requests:
        if request.key in seen:
            continue
        seen.add(request.key)
        unique.append(request)
    return tuple(unique)


def build_requests(
    spec: GadgetSpec,
    context: GadgetContext,
    token: SecurityToken | None,
) -> ResourceBatches:
    """Collect every request for spec without issuing any of them.

    Raises:
        SecurityTokenError: If a signed preload is present and token is None.
    """
    unsigned: list[FetchRequest] = []
    signed: list[FetchRequest] = []

    locales: list[Locale] = []
    for locale in spec.locales:
        if not matches(locale, context.locale):
            continue
        if locale.messages:
            url = resolve_url(locale.messages, context.url)
            if url is None:
                LOGGER.debug(
                    "Dropping locale %s/%s with unresolvable messages %r",
                    locale.lang,
                    locale.country,
                    locale.messages,
                )
                continue
            locale = replace(locale, messages=url)
            unsigned.append(FetchRequest(url=url, request_id=url, ignore_cache=context.ignore_cache))
        locales.append(locale)

    template_urls: list[str] = []
    if not context.metadata:
        for preload in spec.preloads:
            if not preload.href:
                continue
            if preload.authz == AuthType.SIGNED:
                if token is None:
                    raise SecurityTokenError("Signed preloading requested, but no valid security token set")
                signed.append(
                    FetchRequest(
                        url=preload.href,
                        request_id=preload.href,
                        auth=AuthType.SIGNED,
                        token=token,
                        ignore_cache=context.ignore_cache,
                        viewer_signed=not _is_disabled(preload.sign_viewer),
                        owner_signed=not _is_disabled(preload.sign_owner),
                    )
                )
            else:
                unsigned.append(
                    FetchRequest(url=preload.href, request_id=preload.href, ignore_cache=context.ignore_cache)
                )

        for library in spec.template_libraries:
            url = resolve_url(library, context.url)
            if url is None:
                LOGGER.debug("Dropping unresolvable template library %r", library)
                continue
            template_urls.append(url)
            unsigned.append(FetchRequest(url=url, request_id=url, ignore_cache=context.ignore_cache))

    return ResourceBatches(
        locales=tuple(locales),
        template_urls=tuple(template_urls),
        unsigned=_dedupe(unsigned),
        signed=_dedupe(signed),
    )


def reconcile(
    unsigned: Sequence[FetchResponse],
    signed: Sequence[FetchResponse],
) -> dict[str, FetchResponse]:
    """Key all responses by logical request id; signed responses win on collision."""
    responses: dict[str, FetchResponse] = {}
    for response in [*unsigned, *signed]:
        responses[response.request_id] = response
    return responses


def execute_batches(
    batches: ResourceBatches,
    *,
    fetcher: Fetcher,
    signing_fetcher: Callable[[], Fetcher],
) -> dict[str, FetchResponse]:
    unsigned: list[FetchResponse] = []
    signed: list[FetchResponse] = []
    if batches.unsigned:
        LOGGER.debug("Fetching %d unsigned resources", len(batches.unsigned))
        unsigned = fetcher.multi_fetch(batches.unsigned)
    if batches.signed:
        LOGGER.debug("Fetching %d signed resources", len(batches.signed))
        signed = signing_fetcher().multi_fetch(batches.signed)
    return reconcile(unsigned, signed)


def _ok(responses: Mapping[str, FetchResponse], key: str | None) -> FetchResponse | None:
    if not key:
        return None
    response = responses.get(key)
    if response is None or not response.ok:
        if response is not None:
            LOGGER.warning("Resource %s unavailable (http %s)", key, response.status_code)
        return None
    return response


def apply_responses(
    spec: GadgetSpec,
    batches: ResourceBatches,
    responses: Mapping[str, FetchResponse],
    *,
    metadata: bool = False,
) -> GadgetSpec:
    locales: list[Locale] = []
    for locale in batches.locales:
        response = _ok(responses, locale.messages)
        if response is not None:
            locale = replace(locale, message_bundle=parse_message_bundle(response.document))
        locales.append(locale)

    if metadata:
        return replace(spec, locales=tuple(locales))

    preloads: list[Preload] = []
    for preload in spec.preloads:
        response = _ok(responses, preload.href)
        if response is not None:
            preloads.append(replace(preload, body=response.body, status=response.status_code))

    libraries: dict[str, str | None] = {}
    for url in batches.template_urls:
        response = _ok(responses, url)
        if response is not None:
            libraries[url] = response.body

    return replace(spec, locales=tuple(locales), preloads=tuple(preloads), template_libraries=libraries)


def fetch_resources(
    spec: GadgetSpec,
    context: GadgetContext,
    token: SecurityToken | None,
    *,
    fetcher: Fetcher,
    signing_fetcher: Callable[[], Fetcher],
) -> GadgetSpec:
    batches = build_requests(spec, context, token)
    responses = execute_batches(batches, fetcher=fetcher, signing_fetcher=signing_fetcher)
    return apply_responses(spec, batches, responses, metadata=context.metadata)
