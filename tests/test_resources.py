from __future__ import annotations

import pytest

from gadgetry.core.context import GadgetContext
from gadgetry.core.errors import SecurityTokenError
from gadgetry.core.model import (
    AuthType,
    FetchRequest,
    FetchResponse,
    GadgetSpec,
    Locale,
    LocaleTarget,
    Preload,
    SecurityToken,
)
from gadgetry.core.resources import build_requests, fetch_resources, reconcile, resolve_url

GADGET_URL = "http://gadgets.example.com/g/gadget.xml"
TOKEN = SecurityToken(owner_id="o", viewer_id="v", app_id="1", app_url=GADGET_URL)


class FakeFetcher:
    def __init__(self, pages: dict[str, tuple[int, str]] | None = None) -> None:
        self.pages = pages or {}
        self.batches: list[list[FetchRequest]] = []

    def fetch(self, request: FetchRequest) -> FetchResponse:
        status, body = self.pages.get(request.url, (404, ""))
        return FetchResponse(request_id=request.key, url=request.url, status_code=status, body=body)

    def multi_fetch(self, requests):
        self.batches.append(list(requests))
        return [self.fetch(request) for request in requests]


class FakeSigningFetcher(FakeFetcher):
    """Serves signed requests from an aliased URL, as a real signer would."""

    def fetch(self, request: FetchRequest) -> FetchResponse:
        status, body = self.pages.get(request.url, (404, ""))
        return FetchResponse(
            request_id=request.key,
            url=request.url + "?oauth_signature=abc",
            status_code=status,
            body=body,
        )


def _context(**kwargs) -> GadgetContext:
    return GadgetContext(
        url=GADGET_URL,
        locale=LocaleTarget(lang="en", country="US"),
        registry=None,
        http_fetcher=FakeFetcher(),
        **kwargs,
    )


def test_resolve_url() -> None:
    assert resolve_url("msgs/en.xml", GADGET_URL) == "http://gadgets.example.com/g/msgs/en.xml"
    assert resolve_url("/root.xml", GADGET_URL) == "http://gadgets.example.com/root.xml"
    assert resolve_url("https://cdn.example.com/x.xml", GADGET_URL) == "https://cdn.example.com/x.xml"
    assert resolve_url("javascript:alert(1)", GADGET_URL) is None
    assert resolve_url("ftp://example.com/x.xml", GADGET_URL) is None
    assert resolve_url("   ", GADGET_URL) is None
    assert resolve_url("relative.xml", "not-a-url") is None


def test_only_matching_locales_are_requested() -> None:
    spec = GadgetSpec(
        url=GADGET_URL,
        locales=(
            Locale(lang="en", country="US", messages="en_US.xml"),
            Locale(lang="en", country="all", messages="en_ALL.xml"),
            Locale(lang="all", country="all", messages="ALL_ALL.xml"),
            Locale(lang="fr", country="all", messages="fr_ALL.xml"),
            Locale(lang="en", country="GB", messages="en_GB.xml"),
            Locale(lang="en", country="all", message_bundle={"inline": "yes"}),
        ),
    )

    batches = build_requests(spec, _context(), None)

    assert [r.url for r in batches.unsigned] == [
        "http://gadgets.example.com/g/en_US.xml",
        "http://gadgets.example.com/g/en_ALL.xml",
        "http://gadgets.example.com/g/ALL_ALL.xml",
    ]
    assert len(batches.locales) == 4
    assert batches.locales[-1].message_bundle == {"inline": "yes"}
    assert batches.signed == ()


def test_unresolvable_locale_url_drops_entry() -> None:
    spec = GadgetSpec(url=GADGET_URL, locales=(Locale(lang="en", country="US", messages="javascript:void(0)"),))
    batches = build_requests(spec, _context(), None)
    assert batches.locales == ()
    assert batches.unsigned == ()


def test_preloads_and_libraries_are_partitioned() -> None:
    spec = GadgetSpec(
        url=GADGET_URL,
        preloads=(
            Preload(href="http://data.example.com/plain"),
            Preload(href="http://data.example.com/signed", authz=AuthType.SIGNED, sign_viewer="FALSE"),
            Preload(href="http://data.example.com/owner-off", authz=AuthType.SIGNED, sign_owner="False"),
            Preload(href="http://data.example.com/not-false", authz=AuthType.SIGNED, sign_owner="no"),
        ),
        template_libraries={"lib/templates.xml": None, "javascript:x": None},
    )

    batches = build_requests(spec, _context(ignore_cache=True), TOKEN)

    assert [r.url for r in batches.unsigned] == [
        "http://data.example.com/plain",
        "http://gadgets.example.com/g/lib/templates.xml",
    ]
    assert all(r.ignore_cache for r in batches.unsigned)
    assert batches.template_urls == ("http://gadgets.example.com/g/lib/templates.xml",)

    signed = {r.url: r for r in batches.signed}
    assert signed["http://data.example.com/signed"].viewer_signed is False
    assert signed["http://data.example.com/signed"].owner_signed is True
    assert signed["http://data.example.com/owner-off"].owner_signed is False
    assert signed["http://data.example.com/owner-off"].viewer_signed is True
    assert signed["http://data.example.com/not-false"].owner_signed is True
    assert all(r.token is TOKEN and r.auth == AuthType.SIGNED for r in batches.signed)


def test_signed_preload_without_token_fails_before_any_fetch() -> None:
    fetcher = FakeFetcher()
    signing = FakeSigningFetcher()
    spec = GadgetSpec(
        url=GADGET_URL,
        locales=(Locale(lang="en", country="US", messages="en_US.xml"),),
        preloads=(Preload(href="http://x/y", authz=AuthType.SIGNED),),
    )

    with pytest.raises(SecurityTokenError):
        fetch_resources(spec, _context(), None, fetcher=fetcher, signing_fetcher=lambda: signing)

    assert fetcher.batches == []
    assert signing.batches == []


def test_reconcile_keys_by_logical_url() -> None:
    unsigned = [FetchResponse(request_id="http://a", url="http://a", status_code=200, body="A")]
    signed = [FetchResponse(request_id="http://b", url="http://b?oauth_signature=x", status_code=200, body="B")]

    responses = reconcile(unsigned, signed)

    assert responses["http://a"].body == "A"
    assert responses["http://b"].body == "B"
    assert reconcile(unsigned, signed) == responses


def test_fetch_resources_applies_only_successful_responses() -> None:
    pages = {
        "http://gadgets.example.com/g/en_US.xml": (200, "<messagebundle><msg name='a'>1</msg></messagebundle>"),
        "http://gadgets.example.com/g/en_ALL.xml": (500, "boom"),
        "http://data.example.com/plain": (200, "plain body"),
        "http://data.example.com/gone": (404, ""),
        "http://gadgets.example.com/g/lib.xml": (200, "<Templates/>"),
    }
    fetcher = FakeFetcher(pages)
    signing = FakeSigningFetcher({"http://data.example.com/signed": (200, "signed body")})
    spec = GadgetSpec(
        url=GADGET_URL,
        locales=(
            Locale(lang="en", country="US", messages="en_US.xml"),
            Locale(lang="en", country="all", messages="en_ALL.xml"),
        ),
        preloads=(
            Preload(href="http://data.example.com/plain"),
            Preload(href="http://data.example.com/gone"),
            Preload(href="http://data.example.com/signed", authz=AuthType.SIGNED),
        ),
        template_libraries={"lib.xml": None, "missing.xml": None},
    )

    result = fetch_resources(spec, _context(), TOKEN, fetcher=fetcher, signing_fetcher=lambda: signing)

    assert len(fetcher.batches) == 1
    assert len(signing.batches) == 1
    assert [locale.message_bundle for locale in result.locales] == [{"a": "1"}, None]
    assert [(p.href, p.body, p.status) for p in result.preloads] == [
        ("http://data.example.com/plain", "plain body", 200),
        ("http://data.example.com/signed", "signed body", 200),
    ]
    assert dict(result.template_libraries) == {"http://gadgets.example.com/g/lib.xml": "<Templates/>"}


def test_metadata_context_skips_preloads_and_libraries() -> None:
    fetcher = FakeFetcher()
    spec = GadgetSpec(
        url=GADGET_URL,
        preloads=(Preload(href="http://x/y", authz=AuthType.SIGNED),),
        template_libraries={"lib.xml": None},
    )

    result = fetch_resources(
        spec,
        _context(metadata=True),
        None,
        fetcher=fetcher,
        signing_fetcher=lambda: pytest.fail("signing fetcher must not be built"),
    )

    assert fetcher.batches == []
    assert result.preloads == spec.preloads
    assert result.template_libraries == spec.template_libraries


def test_signing_fetcher_not_built_without_signed_requests() -> None:
    fetcher = FakeFetcher({"http://x/plain": (200, "ok")})
    spec = GadgetSpec(url=GADGET_URL, preloads=(Preload(href="http://x/plain"),))

    result = fetch_resources(
        spec,
        _context(),
        None,
        fetcher=fetcher,
        signing_fetcher=lambda: pytest.fail("signing fetcher must not be built"),
    )

    assert result.preloads[0].body == "ok"


def test_locale_bundle_decoded_from_raw_bytes() -> None:
    raw = '<?xml version="1.0" encoding="ISO-8859-1"?><messagebundle><msg name="a">café</msg></messagebundle>'

    class ByteFetcher(FakeFetcher):
        def fetch(self, request: FetchRequest) -> FetchResponse:
            return FetchResponse(
                request_id=request.key,
                url=request.url,
                status_code=200,
                body=raw.encode("iso-8859-1").decode("utf-8", errors="replace"),
                content=raw.encode("iso-8859-1"),
            )

    spec = GadgetSpec(url=GADGET_URL, locales=(Locale(lang="en", country="US", messages="fr.xml"),))

    result = fetch_resources(spec, _context(), None, fetcher=ByteFetcher(), signing_fetcher=lambda: None)

    assert result.locales[0].message_bundle == {"a": "café"}
