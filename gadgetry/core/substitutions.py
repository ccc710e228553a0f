"""Template substitutions: the token store plus the seeding and applying stages."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import replace
from typing import overload

from gadgetry.core.model import EnumValue, GadgetSpec, Preload, SecurityToken, UserPref

MODULE = "MODULE"
BIDI = "BIDI"
USER_PREF = "UP"
MESSAGE = "MSG"


class Substitutions:
    """Store of (namespace, key) -> value pairs rendered into __NS_KEY__ tokens.

    Only registered tokens are replaced, in one left-to-right pass; any other
    double-underscore text is left as it is.
    """

    def __init__(self) -> None:
        self._values: dict[str, dict[str, str]] = {}
        self._tokens: dict[str, str] = {}
        self._pattern: re.Pattern[str] | None = None

    def add_substitution(self, namespace: str, key: str, value: object) -> None:
        value = "" if value is None else str(value)
        self._values.setdefault(namespace, {})[key] = value
        self._tokens[f"__{namespace}_{key}__"] = value
        self._pattern = None

    def add_substitutions(self, namespace: str, values: Mapping[str, object]) -> None:
        for key, value in values.items():
            self.add_substitution(namespace, key, value)

    def get(self, namespace: str, key: str) -> str | None:
        return self._values.get(namespace, {}).get(key)

    @overload
    def substitute(self, text: str) -> str: ...

    @overload
    def substitute(self, text: None) -> None: ...

    @overload
    def substitute(self, text: str | None) -> str | None: ...

    def substitute(self, text: str | None) -> str | None:
        if not text or "__" not in text or not self._tokens:
            return text
        return self._token_pattern().sub(lambda match: self._tokens[match.group(0)], text)

    def _token_pattern(self) -> re.Pattern[str]:
        if self._pattern is None:
            # Longest first so a token never loses to one of its prefixes.
            tokens = sorted(self._tokens, key=len, reverse=True)
            self._pattern = re.compile("|".join(re.escape(token) for token in tokens))
        return self._pattern


def seed_substitutions(
    spec: GadgetSpec,
    *,
    right_to_left: bool,
    token: SecurityToken | None,
) -> Substitutions:
    substitutions = Substitutions()
    substitutions.add_substitution(MODULE, "ID", token.module_id if token else 0)
    if spec.messages:
        substitutions.add_substitutions(MESSAGE, spec.messages)
    substitutions.add_substitution(BIDI, "START_EDGE", "right" if right_to_left else "left")
    substitutions.add_substitution(BIDI, "END_EDGE", "left" if right_to_left else "right")
    substitutions.add_substitution(BIDI, "DIR", "rtl" if right_to_left else "ltr")
    substitutions.add_substitution(BIDI, "REVERSE_DIR", "ltr" if right_to_left else "rtl")
    # A preference may reference entries added before it, never after.
    for pref in spec.user_prefs:
        substitutions.add_substitution(
            USER_PREF,
            substitutions.substitute(pref.name),
            substitutions.substitute(pref.value),
        )
    return substitutions


def _substitute_pref(pref: UserPref, substitutions: Substitutions) -> UserPref:
    sub = substitutions.substitute
    return UserPref(
        name=sub(pref.name),
        display_name=sub(pref.display_name),
        required=sub(pref.required),
        datatype=sub(pref.datatype),
        default_value=sub(pref.default_value),
        value=sub(pref.value),
        enum_values=tuple(
            EnumValue(value=sub(option.value), display_value=sub(option.display_value))
            for option in pref.enum_values
        ),
    )


def _substitute_preload(preload: Preload, substitutions: Substitutions) -> Preload:
    return replace(preload, body=substitutions.substitute(preload.body))


def apply_substitutions(spec: GadgetSpec, substitutions: Substitutions) -> GadgetSpec:
    """Rewrite the templated strings of user prefs and preload bodies.

    Simple fields (title, views) are substituted on access by Gadget.
    """
    return replace(
        spec,
        user_prefs=tuple(_substitute_pref(pref, substitutions) for pref in spec.user_prefs),
        preloads=tuple(_substitute_preload(preload, substitutions) for preload in spec.preloads),
    )
