"""Feature registry loading and the required/optional resolution policy."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

from gadgetry.core.context import FeatureRegistry as FeatureRegistryProtocol
from gadgetry.core.documents import read_yaml, validate_document
from gadgetry.core.errors import FeatureDefinitionError, FeatureResolutionError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Feature:
    name: str
    dependencies: tuple[str, ...] = ()
    description: str = ""


class FeatureRegistry:
    """In-memory registry that expands features with their dependencies."""

    def __init__(self, features: Mapping[str, Feature]) -> None:
        self.features = dict(features)

    def resolve_features(self, names: Sequence[str]) -> tuple[list[str], list[str]]:
        found: list[str] = []
        missing: list[str] = []
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in found or name in missing or name in visiting:
                return
            feature = self.features.get(name)
            if feature is None:
                missing.append(name)
                return
            visiting.add(name)
            for dependency in feature.dependencies:
                visit(dependency)
            visiting.discard(name)
            found.append(name)

        for name in names:
            visit(name)
        return found, missing


@dataclass(frozen=True)
class LoadedFeatures:
    registry: FeatureRegistry
    warnings: tuple[str, ...]


def _feature_dirs() -> tuple[Path, ...]:
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return (xdg_data / "gadgetry/features",)


def _build_features(doc: dict[str, Any], source: Path | Traversable) -> list[Feature]:
    validate_document(doc, "features.schema.json", source, error=FeatureDefinitionError)
    features: list[Feature] = []
    seen: set[str] = set()
    for entry in doc["features"]:
        name = entry["name"]
        if name in seen:
            raise FeatureDefinitionError(f"Feature '{name}' is declared twice in {source}")
        seen.add(name)
        dependencies = tuple(entry.get("dependencies", ()))
        if name in dependencies:
            raise FeatureDefinitionError(f"Feature '{name}' in {source} depends on itself")
        features.append(
            Feature(name=name, dependencies=dependencies, description=entry.get("description", ""))
        )
    return features


def _iter_packaged_feature_paths() -> list[Traversable]:
    data_root = resources.files("gadgetry.data")
    return [
        item
        for item in data_root.iterdir()
        if item.name.startswith("features") and item.name.endswith((".yml", ".yaml"))
    ]


def _iter_user_feature_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _feature_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_features() -> LoadedFeatures:
    features: dict[str, Feature] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_feature_paths(), key=lambda p: p.name):
        for feature in _build_features(read_yaml(path, error=FeatureDefinitionError), path):
            features[feature.name] = feature

    for path in _iter_user_feature_paths():
        for feature in _build_features(read_yaml(path, error=FeatureDefinitionError), path):
            if feature.name in features:
                warning = f"User feature '{feature.name}' overrides packaged feature"
                LOGGER.warning(warning)
                warnings.append(warning)
            features[feature.name] = feature

    return LoadedFeatures(registry=FeatureRegistry(features), warnings=tuple(warnings))


def resolve_features(
    registry: FeatureRegistryProtocol,
    required: Iterable[str],
    optional: Iterable[str],
) -> list[str]:
    """Resolve required and optional features against registry.

    Missing optional features are dropped from the result; any missing required
    feature aborts with every missing name listed.
    """
    required = list(required)
    found, missing = registry.resolve_features(required + list(optional))
    if missing:
        if any(name in required for name in missing):
            raise FeatureResolutionError(missing)
        LOGGER.debug("Ignoring unavailable optional features: %s", ", ".join(missing))
    return list(found)
