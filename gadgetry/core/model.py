"""Core data models used across parser, pipeline stages, service, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gadgetry.core.context import GadgetContext
    from gadgetry.core.substitutions import Substitutions

ALL = "all"


class AuthType(str, Enum):
    NONE = "NONE"
    SIGNED = "SIGNED"


@dataclass(frozen=True)
class LocaleTarget:
    lang: str
    country: str


@dataclass(frozen=True)
class Locale:
    lang: str = ALL
    country: str = ALL
    direction: str = "ltr"
    messages: str | None = None
    message_bundle: Mapping[str, str] | None = None


@dataclass(frozen=True)
class EnumValue:
    value: str
    display_value: str


@dataclass(frozen=True)
class UserPref:
    name: str
    display_name: str = ""
    required: str = "false"
    datatype: str = "string"
    default_value: str = ""
    value: str | None = None
    enum_values: tuple[EnumValue, ...] = ()

    @property
    def is_required(self) -> bool:
        return self.required.strip().lower() == "true"


@dataclass(frozen=True)
class Preload:
    href: str
    authz: AuthType = AuthType.NONE
    sign_viewer: str = "true"
    sign_owner: str = "true"
    body: str | None = None
    status: int | None = None


@dataclass(frozen=True)
class View:
    name: str = "default"
    type: str = "html"
    href: str | None = None
    body: str = ""


@dataclass(frozen=True)
class GadgetSpec:
    url: str
    title: str = ""
    required_features: tuple[str, ...] = ()
    optional_features: tuple[str, ...] = ()
    locales: tuple[Locale, ...] = ()
    messages: Mapping[str, str] = field(default_factory=dict)
    user_prefs: tuple[UserPref, ...] = ()
    preloads: tuple[Preload, ...] = ()
    template_libraries: Mapping[str, str | None] = field(default_factory=dict)
    views: tuple[View, ...] = ()


@dataclass(frozen=True)
class SecurityToken:
    owner_id: str | None = None
    viewer_id: str | None = None
    app_id: str | None = None
    app_url: str | None = None
    module_id: int = 0


@dataclass(frozen=True)
class FetchRequest:
    url: str
    request_id: str = ""
    auth: AuthType = AuthType.NONE
    token: SecurityToken | None = None
    ignore_cache: bool = False
    viewer_signed: bool = True
    owner_signed: bool = True

    @property
    def key(self) -> str:
        return self.request_id or self.url


@dataclass(frozen=True)
class FetchResponse:
    request_id: str
    url: str
    status_code: int
    body: str = ""
    content: bytes | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def document(self) -> str | bytes:
        """Raw bytes when the transport kept them, so XML parsers honour the declared encoding."""
        return self.body if self.content is None else self.content


@dataclass(frozen=True)
class Gadget:
    spec: GadgetSpec
    context: GadgetContext
    substitutions: Substitutions
    features: tuple[str, ...] = ()
    right_to_left: bool = False

    @property
    def title(self) -> str:
        return self.substitutions.substitute(self.spec.title)

    def get_view(self, name: str = "default") -> View | None:
        for view in self.spec.views:
            if view.name == name:
                return View(
                    name=view.name,
                    type=view.type,
                    href=self.substitutions.substitute(view.href),
                    body=self.substitutions.substitute(view.body),
                )
        return None
