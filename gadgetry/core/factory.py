"""Gadget assembly pipeline.

The factory builds a gadget for the current context and security token and
returns it fully processed and ready to be rendered: remote resources fetched,
translations merged, user prefs resolved, substitutions applied and features
resolved.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from urllib.parse import unquote_plus

from gadgetry.core.config import Settings
from gadgetry.core.context import GadgetContext, SpecParser
from gadgetry.core.errors import BlacklistedError, FetchError
from gadgetry.core.features import resolve_features
from gadgetry.core.locales import merge_locales
from gadgetry.core.model import FetchRequest, Gadget, GadgetSpec, SecurityToken
from gadgetry.core.resources import fetch_resources
from gadgetry.core.spec_parser import GadgetSpecParser
from gadgetry.core.substitutions import apply_substitutions, seed_substitutions
from gadgetry.transports.base import Fetcher, SigningFetcherFactory
from gadgetry.transports.signing import KeyFileSigningFetcherFactory

LOGGER = logging.getLogger(__name__)

USER_PREF_PARAM_PREFIX = "up_"


class GadgetFactory:
    def __init__(
        self,
        context: GadgetContext,
        token: SecurityToken | None = None,
        *,
        settings: Settings | None = None,
        parser: SpecParser | None = None,
        fetcher: Fetcher | None = None,
        signing_factory: SigningFetcherFactory | None = None,
    ) -> None:
        self.context = context
        self.token = token
        self.settings = settings or Settings()
        self.parser = parser or GadgetSpecParser()
        self.fetcher = fetcher or context.http_fetcher
        self._signing_factory = signing_factory

    def create_gadget(self) -> Gadget:
        url = self.context.url
        if self.context.blacklist is not None and self.context.blacklist.is_blacklisted(url):
            raise BlacklistedError(f"The gadget ({url}) is blacklisted and can not be rendered")

        spec = self.parser.parse(self._fetch_gadget(url), self.context)
        spec = fetch_resources(
            spec,
            self.context,
            self.token,
            fetcher=self.fetcher,
            signing_fetcher=self._signing_fetcher,
        )
        spec, right_to_left = self._merge_locales(spec)
        spec = self._parse_user_prefs(spec)
        substitutions = seed_substitutions(spec, right_to_left=right_to_left, token=self.token)
        spec = apply_substitutions(spec, substitutions)
        features = resolve_features(self.context.registry, spec.required_features, spec.optional_features)
        spec = replace(spec, required_features=(), optional_features=())

        LOGGER.info("Assembled gadget %s with features: %s", url, ", ".join(features) or "<none>")
        return Gadget(
            spec=spec,
            context=self.context,
            substitutions=substitutions,
            features=tuple(features),
            right_to_left=right_to_left,
        )

    def _fetch_gadget(self, url: str) -> str | bytes:
        request = FetchRequest(url=url, request_id=url, token=self.token, ignore_cache=self.context.ignore_cache)
        response = self.context.http_fetcher.fetch(request)
        if response.status_code != 200:
            raise FetchError(
                f"Failed to retrieve gadget content (received http code {response.status_code})",
                status_code=response.status_code,
            )
        return response.document

    def _signing_fetcher(self) -> Fetcher:
        if self._signing_factory is None:
            self._signing_factory = KeyFileSigningFetcherFactory.from_settings(self.settings)
        return self._signing_factory.get_signing_fetcher(self.fetcher)

    def _merge_locales(self, spec: GadgetSpec) -> tuple[GadgetSpec, bool]:
        messages, right_to_left = merge_locales(spec.locales, self.context.locale)
        return replace(spec, locales=(), messages=messages), right_to_left

    def _parse_user_prefs(self, spec: GadgetSpec) -> GadgetSpec:
        params = self.context.user_prefs
        prefs = []
        for pref in spec.user_prefs:
            raw = params.get(USER_PREF_PARAM_PREFIX + pref.name)
            value = unquote_plus(raw).strip() if raw is not None else pref.default_value
            prefs.append(replace(pref, value=value))
        return replace(spec, user_prefs=tuple(prefs))
