"""Service layer used by CLI and embedding applications."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import TracebackType
from typing import Any

from gadgetry.core.blacklist import FileBlacklist
from gadgetry.core.config import Settings, load_settings
from gadgetry.core.context import GadgetContext, SpecParser
from gadgetry.core.factory import GadgetFactory
from gadgetry.core.features import Feature, load_features
from gadgetry.core.model import ALL, Gadget, LocaleTarget, SecurityToken
from gadgetry.transports.base import Fetcher, SigningFetcherFactory
from gadgetry.transports.http import HttpFetcher


def locale_target(lang: str, country: str) -> LocaleTarget:
    lang = lang.strip().lower() or ALL
    country = country.strip() or ALL
    return LocaleTarget(lang=lang, country=ALL if country.lower() == ALL else country.upper())


def gadget_summary(gadget: Gadget) -> dict[str, Any]:
    """Plain-data view of an assembled gadget, suitable for YAML or JSON output."""
    spec = gadget.spec
    default_view = gadget.get_view()
    return {
        "url": spec.url,
        "title": gadget.title,
        "direction": "rtl" if gadget.right_to_left else "ltr",
        "features": list(gadget.features),
        "messages": dict(spec.messages),
        "user_prefs": {pref.name: pref.value for pref in spec.user_prefs},
        "preloads": [
            {"id": preload.href, "status": preload.status, "body": preload.body}
            for preload in spec.preloads
        ],
        "template_libraries": list(spec.template_libraries),
        "views": [view.name for view in spec.views],
        "content": default_view.body if default_view else None,
    }


class GadgetService:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        config_path: Path | None = None,
        fetcher: Fetcher | None = None,
        signing_factory: SigningFetcherFactory | None = None,
        parser: SpecParser | None = None,
    ) -> None:
        self.settings = settings or load_settings(config_path)
        loaded = load_features()
        self.registry = loaded.registry
        self.load_warnings = loaded.warnings
        self.blacklist = (
            FileBlacklist.from_file(self.settings.blacklist_file)
            if self.settings.blacklist_file is not None
            else None
        )
        self._http: HttpFetcher | None = None
        if fetcher is None:
            fetcher = self._http = HttpFetcher(
                timeout_s=self.settings.fetch_timeout_s,
                max_parallel=self.settings.max_parallel,
                user_agent=self.settings.user_agent,
            )
        self.fetcher = fetcher
        self.signing_factory = signing_factory
        self.parser = parser

    def __enter__(self) -> GadgetService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client this service created; injected fetchers stay open."""
        if self._http is not None:
            self._http.close()
            self._http = None

    def list_features(self) -> list[Feature]:
        return sorted(self.registry.features.values(), key=lambda f: f.name)

    def build_context(
        self,
        url: str,
        *,
        lang: str = ALL,
        country: str = ALL,
        params: Mapping[str, str] | None = None,
        ignore_cache: bool = False,
        metadata: bool = False,
    ) -> GadgetContext:
        return GadgetContext(
            url=url,
            locale=locale_target(lang, country),
            registry=self.registry,
            http_fetcher=self.fetcher,
            blacklist=self.blacklist,
            ignore_cache=ignore_cache,
            user_prefs=dict(params or {}),
            metadata=metadata,
        )

    def assemble(
        self,
        url: str,
        *,
        lang: str = ALL,
        country: str = ALL,
        params: Mapping[str, str] | None = None,
        token: SecurityToken | None = None,
        ignore_cache: bool = False,
        metadata: bool = False,
    ) -> Gadget:
        context = self.build_context(
            url,
            lang=lang,
            country=country,
            params=params,
            ignore_cache=ignore_cache,
            metadata=metadata,
        )
        factory = GadgetFactory(
            context,
            token,
            settings=self.settings,
            parser=self.parser,
            signing_factory=self.signing_factory,
        )
        return factory.create_gadget()
