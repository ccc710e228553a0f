from __future__ import annotations

from gadgetry.core.model import AuthType, EnumValue, GadgetSpec, Preload, SecurityToken, UserPref
from gadgetry.core.substitutions import Substitutions, apply_substitutions, seed_substitutions


def test_substitute_known_and_unknown_tokens() -> None:
    subs = Substitutions()
    subs.add_substitution("MSG", "greeting", "Hi")
    subs.add_substitutions("UP", {"name": "Ada", "count": 3})

    assert subs.substitute("__MSG_greeting__, __UP_name__ (__UP_count__)") == "Hi, Ada (3)"
    assert subs.substitute("__MSG_missing__ stays") == "__MSG_missing__ stays"
    assert subs.substitute(None) is None


def test_substitute_passes_plain_text_through() -> None:
    subs = Substitutions()
    subs.add_substitution("MSG", "a", "b")
    for text in ("", "plain text", "snake_case_name", "a__b", "__lower_case__"):
        assert subs.substitute(text) == text


def test_unregistered_double_underscore_text_does_not_hide_tokens() -> None:
    subs = Substitutions()
    subs.add_substitution("MSG", "title", "Hello")

    assert subs.substitute("__X_y__MSG_title__") == "__X_yHello"
    assert subs.substitute("see __NOTE_a b__MSG_title__") == "see __NOTE_a bHello"
    assert subs.substitute("__MSG_unknown__MSG_title__") == "__MSG_unknownHello"


def test_substituted_values_are_not_rescanned() -> None:
    subs = Substitutions()
    subs.add_substitution("MSG", "a", "__MSG_b__")
    subs.add_substitution("MSG", "b", "B")
    assert subs.substitute("__MSG_a__ __MSG_b__") == "__MSG_b__ B"


def test_substitute_is_deterministic() -> None:
    subs = Substitutions()
    subs.add_substitution("BIDI", "START_EDGE", "left")
    text = "margin-__BIDI_START_EDGE__: 0"
    assert subs.substitute(text) == subs.substitute(text) == "margin-left: 0"


def test_seed_substitutions_defaults_without_token() -> None:
    subs = seed_substitutions(GadgetSpec(url="http://g/x.xml"), right_to_left=False, token=None)

    assert subs.get("MODULE", "ID") == "0"
    assert subs.get("BIDI", "START_EDGE") == "left"
    assert subs.get("BIDI", "END_EDGE") == "right"
    assert subs.get("BIDI", "DIR") == "ltr"
    assert subs.get("BIDI", "REVERSE_DIR") == "rtl"


def test_seed_substitutions_rtl_messages_and_module_id() -> None:
    spec = GadgetSpec(url="http://g/x.xml", messages={"title": "Titre"})
    subs = seed_substitutions(spec, right_to_left=True, token=SecurityToken(module_id=42))

    assert subs.get("MODULE", "ID") == "42"
    assert subs.get("MSG", "title") == "Titre"
    assert subs.get("BIDI", "START_EDGE") == "right"
    assert subs.get("BIDI", "DIR") == "rtl"
    assert subs.get("BIDI", "REVERSE_DIR") == "ltr"


def test_user_prefs_resolve_against_earlier_entries_only() -> None:
    spec = GadgetSpec(
        url="http://g/x.xml",
        messages={"color_name": "colour"},
        user_prefs=(
            UserPref(name="__MSG_color_name__", value="red"),
            UserPref(name="label", value="my __UP_colour__ and __UP_size__"),
            UserPref(name="size", value="big"),
        ),
    )
    subs = seed_substitutions(spec, right_to_left=False, token=None)

    assert subs.get("UP", "colour") == "red"
    assert subs.get("UP", "label") == "my red and __UP_size__"
    assert subs.get("UP", "size") == "big"


def test_apply_substitutions_rewrites_prefs_and_preloads() -> None:
    subs = Substitutions()
    subs.add_substitution("MSG", "x", "X")
    spec = GadgetSpec(
        url="http://g/x.xml",
        title="__MSG_x__",
        user_prefs=(
            UserPref(
                name="p",
                display_name="__MSG_x__ name",
                required="false",
                datatype="enum",
                default_value="__MSG_x__",
                value="v-__MSG_x__",
                enum_values=(EnumValue(value="__MSG_x__", display_value="show __MSG_x__"),),
            ),
        ),
        preloads=(Preload(href="http://d/1", authz=AuthType.NONE, body="body __MSG_x__", status=200),),
    )

    result = apply_substitutions(spec, subs)

    pref = result.user_prefs[0]
    assert pref.display_name == "X name"
    assert pref.default_value == "X"
    assert pref.value == "v-X"
    assert pref.enum_values == (EnumValue(value="X", display_value="show X"),)
    assert result.preloads[0].body == "body X"
    assert result.preloads[0].status == 200
    # Title is substituted lazily by Gadget, not here.
    assert result.title == "__MSG_x__"
    # Input spec is not mutated.
    assert spec.user_prefs[0].value == "v-__MSG_x__"
