"""Domain-specific errors for gadgetry."""

from __future__ import annotations

from collections.abc import Sequence


class GadgetError(Exception):
    """Base error for gadgetry."""


class ConfigError(GadgetError):
    """Raised when settings, key files or blacklist files cannot be loaded."""


class FeatureDefinitionError(GadgetError):
    """Raised when a feature file does not conform to schema or semantics."""


class BlacklistedError(GadgetError):
    """Raised when the requested gadget URL is blacklisted."""


class FetchError(GadgetError):
    """Raised when the gadget definition cannot be retrieved."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(GadgetError):
    """Raised on malformed gadget definitions or message bundles."""

    def __init__(self, message: str, *, document: str | bytes | None = None) -> None:
        super().__init__(message)
        self.document = document


class FeatureResolutionError(GadgetError):
    """Raised when a required feature cannot be resolved."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"Unknown features: {', '.join(self.missing)}")


class SecurityTokenError(GadgetError):
    """Raised when signed fetching is requested without a security token."""
