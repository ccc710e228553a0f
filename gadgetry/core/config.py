"""Settings loading from packaged defaults and user YAML files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

from gadgetry.core.documents import read_yaml, validate_document
from gadgetry.core.errors import ConfigError


@dataclass(frozen=True)
class Settings:
    private_key_file: Path | None = None
    private_key_phrase: str | None = None
    private_key_name: str = "gadgetry-signing-key"
    fetch_timeout_s: float = 10.0
    max_parallel: int = 8
    user_agent: str = "gadgetry/0.1"
    blacklist_file: Path | None = None


def _user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "gadgetry/config.yaml"


def _optional_path(value: str | None, base: Path | None) -> Path | None:
    if not value:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute() and base is not None:
        path = base / path
    return path


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, later sources overriding earlier ones.

    Sources: packaged defaults, $XDG_CONFIG_HOME/gadgetry/config.yaml, then path.
    Relative file paths are resolved against the directory of the file that
    declares them.
    """
    packaged = resources.files("gadgetry.data").joinpath("config.yaml")
    merged: dict[str, Any] = read_yaml(packaged, error=ConfigError)
    validate_document(merged, "config.schema.json", packaged, error=ConfigError)
    bases: dict[str, Path | None] = {key: None for key in merged}

    sources: list[Path] = []
    user_path = _user_config_path()
    if user_path.is_file():
        sources.append(user_path)
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file {path} does not exist")
        sources.append(path)

    for source in sources:
        doc = read_yaml(source, error=ConfigError)
        validate_document(doc, "config.schema.json", source, error=ConfigError)
        merged.update(doc)
        bases.update({key: source.parent for key in doc})

    return Settings(
        private_key_file=_optional_path(merged.get("private_key_file"), bases.get("private_key_file")),
        private_key_phrase=merged.get("private_key_phrase"),
        private_key_name=merged["private_key_name"],
        fetch_timeout_s=float(merged["fetch_timeout_s"]),
        max_parallel=int(merged["max_parallel"]),
        user_agent=merged["user_agent"],
        blacklist_file=_optional_path(merged.get("blacklist_file"), bases.get("blacklist_file")),
    )
