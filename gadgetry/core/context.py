"""Per-request context and the collaborator interfaces the pipeline consumes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from gadgetry.core.model import GadgetSpec, LocaleTarget
from gadgetry.transports.base import Fetcher


class FeatureRegistry(Protocol):
    def resolve_features(self, names: Sequence[str]) -> tuple[list[str], list[str]]:
        """Expand names with their dependencies, returning (found, missing)."""


class Blacklist(Protocol):
    def is_blacklisted(self, url: str) -> bool:
        """Return True when the gadget at url must not be rendered."""


class SpecParser(Protocol):
    def parse(self, raw: str | bytes, context: GadgetContext) -> GadgetSpec:
        """Parse a raw gadget definition into a GadgetSpec."""


@dataclass(frozen=True)
class GadgetContext:
    url: str
    locale: LocaleTarget
    registry: FeatureRegistry
    http_fetcher: Fetcher
    blacklist: Blacklist | None = None
    ignore_cache: bool = False
    user_prefs: Mapping[str, str] = field(default_factory=dict)
    metadata: bool = False
