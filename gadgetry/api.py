"""Stable public API for embedding gadgetry in a container.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import TracebackType

from gadgetry.core.config import Settings
from gadgetry.core.context import GadgetContext, SpecParser
from gadgetry.core.errors import (
    BlacklistedError,
    ConfigError,
    FeatureDefinitionError,
    FeatureResolutionError,
    FetchError,
    GadgetError,
    ParseError,
    SecurityTokenError,
)
from gadgetry.core.factory import USER_PREF_PARAM_PREFIX, GadgetFactory
from gadgetry.core.features import Feature
from gadgetry.core.model import (
    AuthType,
    EnumValue,
    Gadget,
    GadgetSpec,
    Locale,
    LocaleTarget,
    Preload,
    SecurityToken,
    UserPref,
    View,
)
from gadgetry.core.service import GadgetService
from gadgetry.core.substitutions import Substitutions
from gadgetry.transports.base import Fetcher, SigningFetcherFactory

__all__ = [
    "GadgetError",
    "BlacklistedError",
    "ConfigError",
    "FeatureDefinitionError",
    "FeatureResolutionError",
    "FetchError",
    "ParseError",
    "SecurityTokenError",
    "AuthType",
    "EnumValue",
    "Feature",
    "Gadget",
    "GadgetContext",
    "GadgetFactory",
    "GadgetSpec",
    "Locale",
    "LocaleTarget",
    "Preload",
    "SecurityToken",
    "Settings",
    "Substitutions",
    "UserPref",
    "View",
    "Client",
]


class Client:
    """Public client for assembling gadgets.

    A `Client` wraps settings, the feature registry, the blacklist and the
    HTTP fetchers behind a stable API intended for containers and scripts.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        config_path: Path | None = None,
        fetcher: Fetcher | None = None,
        signing_factory: SigningFetcherFactory | None = None,
        parser: SpecParser | None = None,
    ) -> None:
        self._service = GadgetService(
            settings=settings,
            config_path=config_path,
            fetcher=fetcher,
            signing_factory=signing_factory,
            parser=parser,
        )

    def __enter__(self) -> Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._service.close()

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_features(self) -> list[Feature]:
        return self._service.list_features()

    def assemble(
        self,
        url: str,
        *,
        lang: str = "all",
        country: str = "all",
        user_prefs: Mapping[str, str] | None = None,
        token: SecurityToken | None = None,
        ignore_cache: bool = False,
    ) -> Gadget:
        """Assemble the gadget at url; user_prefs maps preference names to values."""
        params = {USER_PREF_PARAM_PREFIX + name: value for name, value in (user_prefs or {}).items()}
        return self._service.assemble(
            url,
            lang=lang,
            country=country,
            params=params,
            token=token,
            ignore_cache=ignore_cache,
        )

    def metadata(self, url: str, *, lang: str = "all", country: str = "all") -> Gadget:
        """Assemble url for metadata only: preloads and template libraries are not fetched."""
        return self._service.assemble(url, lang=lang, country=country, metadata=True)
