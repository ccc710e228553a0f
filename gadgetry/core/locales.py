"""Locale-to-context matching and message bundle merging."""

from __future__ import annotations

from collections.abc import Iterable

from gadgetry.core.model import ALL, Locale, LocaleTarget

FULL = 3
PARTIAL = 2
WILDCARD = 1
NO_MATCH = 0


def match_level(locale: Locale, target: LocaleTarget) -> int:
    if locale.lang == target.lang and locale.country == target.country:
        return FULL
    if locale.lang == target.lang and locale.country == ALL:
        return PARTIAL
    if locale.lang == ALL and locale.country == ALL:
        return WILDCARD
    return NO_MATCH


def matches(locale: Locale, target: LocaleTarget) -> bool:
    return match_level(locale, target) != NO_MATCH


def merge_locales(locales: Iterable[Locale], target: LocaleTarget) -> tuple[dict[str, str], bool]:
    """Merge the bundles applicable to target into one mapping.

    A full (lang and country) match overrides a lang/all match, which overrides
    all/all. The text direction comes from the full match only.

    Returns:
        (messages, right_to_left)
    """
    tiers: dict[int, dict[str, str]] = {}
    right_to_left = False
    for locale in locales:
        level = match_level(locale, target)
        if level == NO_MATCH:
            continue
        tiers[level] = dict(locale.message_bundle or {})
        if level == FULL:
            right_to_left = locale.direction == "rtl"

    merged: dict[str, str] = {}
    for level in (WILDCARD, PARTIAL, FULL):
        merged.update(tiers.get(level, {}))
    return merged, right_to_left
