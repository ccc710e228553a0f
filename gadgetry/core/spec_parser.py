"""Parser for the subset of gadget XML the assembly pipeline consumes."""

from __future__ import annotations

import logging

from lxml import etree

from gadgetry.core.context import GadgetContext
from gadgetry.core.errors import ParseError
from gadgetry.core.message_bundle import bundle_from_element, parse_xml
from gadgetry.core.model import (
    ALL,
    AuthType,
    EnumValue,
    GadgetSpec,
    Locale,
    Preload,
    UserPref,
    View,
)

LOGGER = logging.getLogger(__name__)

_TEMPLATES_FEATURE = "opensocial-templates"
_REQUIRE_LIBRARY_PARAM = "requireLibrary"


def _attr(element: etree._Element, name: str, default: str = "") -> str:
    value = element.get(name)
    return default if value is None else value.strip()


def _locale_tag(value: str, *, upper: bool) -> str:
    if not value or value.lower() == ALL:
        return ALL
    return value.upper() if upper else value.lower()



def _auth_type(value: str) -> AuthType:
    return AuthType.SIGNED if value.upper() == AuthType.SIGNED.value else AuthType.NONE

class GadgetSpecParser:
    def parse(self, raw: str | bytes, context: GadgetContext) -> GadgetSpec:
        try:
            root = parse_xml(raw)
        except etree.XMLSyntaxError as exc:
            raise ParseError(f"Error parsing gadget xml: {exc}", document=raw) from exc

        if root.tag != "Module":
            raise ParseError(f"Gadget xml root must be <Module>, got <{root.tag}>", document=raw)
        prefs = root.find("ModulePrefs")
        if prefs is None:
            raise ParseError("Gadget xml is missing <ModulePrefs>", document=raw)

        required, optional, libraries = self._features(prefs, raw)
        return GadgetSpec(
            url=context.url,
            title=_attr(prefs, "title"),
            required_features=tuple(required),
            optional_features=tuple(optional),
            locales=tuple(self._locale(node) for node in prefs.iterfind("Locale")),
            user_prefs=tuple(self._user_pref(node, raw) for node in root.iterfind("UserPref")),
            preloads=tuple(self._preloads(prefs)),
            template_libraries=dict.fromkeys(libraries),
            views=tuple(view for node in root.iterfind("Content") for view in self._views(node)),
        )

    def _features(self, prefs: etree._Element, raw: str | bytes) -> tuple[list[str], list[str], list[str]]:
        required: list[str] = []
        optional: list[str] = []
        libraries: list[str] = []
        for node in prefs:
            if node.tag not in ("Require", "Optional"):
                continue
            name = _attr(node, "feature")
            if not name:
                raise ParseError(f"<{node.tag}> is missing the feature attribute", document=raw)
            (required if node.tag == "Require" else optional).append(name)
            if name == _TEMPLATES_FEATURE:
                for param in node.iterfind("Param"):
                    if param.get("name") == _REQUIRE_LIBRARY_PARAM and param.text:
                        libraries.append(param.text.strip())
        return required, optional, libraries

    def _locale(self, node: etree._Element) -> Locale:
        messages = _attr(node, "messages") or None
        inline = bundle_from_element(node) if node.find(".//msg") is not None else None
        return Locale(
            lang=_locale_tag(_attr(node, "lang"), upper=False),
            country=_locale_tag(_attr(node, "country"), upper=True),
            direction="rtl" if _attr(node, "language_direction").lower() == "rtl" else "ltr",
            messages=messages,
            message_bundle=inline,
        )

    def _user_pref(self, node: etree._Element, raw: str | bytes) -> UserPref:
        name = _attr(node, "name")
        if not name:
            raise ParseError("<UserPref> is missing the name attribute", document=raw)
        return UserPref(
            name=name,
            display_name=_attr(node, "display_name"),
            required=_attr(node, "required", "false"),
            datatype=_attr(node, "datatype", "string"),
            default_value=_attr(node, "default_value"),
            enum_values=tuple(
                EnumValue(
                    value=_attr(option, "value"),
                    display_value=_attr(option, "display_value") or _attr(option, "value"),
                )
                for option in node.iterfind("EnumValue")
            ),
        )

    def _preloads(self, prefs: etree._Element) -> list[Preload]:
        preloads: list[Preload] = []
        for node in prefs.iterfind("Preload"):
            href = _attr(node, "href")
            if not href:
                LOGGER.debug("Skipping <Preload> without href")
                continue
            preloads.append(
                Preload(
                    href=href,
                    authz=_auth_type(_attr(node, "authz")),
                    sign_viewer=_attr(node, "sign_viewer", "true"),
                    sign_owner=_attr(node, "sign_owner", "true"),
                )
            )
        return preloads

    def _views(self, node: etree._Element) -> list[View]:
        names = [name.strip() for name in _attr(node, "view", "default").split(",") if name.strip()]
        return [
            View(
                name=name,
                type=_attr(node, "type", "html").lower(),
                href=_attr(node, "href") or None,
                body=(node.text or "").strip(),
            )
            for name in names or ["default"]
        ]
