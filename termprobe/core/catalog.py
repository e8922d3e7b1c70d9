"""Loading and validation of the packaged feature catalog."""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from termprobe.core.errors import CatalogLoadError, CatalogValidationError
from termprobe.core.model import RESULT_FIELDS, FeatureDescriptor, LoadedCatalog

LOGGER = logging.getLogger(__name__)

CATALOG_FILE = "features.yaml"

# Minimum number of capture groups each extraction rule reads.
_REQUIRED_GROUPS = {
    "flag": 0,
    "color": 3,
    "text": 1,
    "level": 1,
    "sentinel": 0,
}


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise CatalogValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("termprobe.schemas").joinpath("feature.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogLoadError(f"Could not read catalog file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise CatalogValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise CatalogValidationError(f"Catalog file {path} must contain a mapping at root")
    return loaded


def _compile_pattern(entry: dict[str, Any]) -> re.Pattern[bytes]:
    context = f"{entry['id']}.response"
    try:
        pattern = re.compile(entry["response"].encode("latin-1"))
    except (UnicodeEncodeError, re.error) as exc:
        raise CatalogValidationError(f"{context} is not a valid pattern: {exc}") from exc

    required = _REQUIRED_GROUPS[entry["extract"]]
    if pattern.groups < required:
        raise CatalogValidationError(
            f"{context} needs at least {required} capture group(s) for '{entry['extract']}'"
        )
    return pattern


def _build_descriptor(entry: dict[str, Any]) -> FeatureDescriptor:
    field = entry.get("field")
    if field is not None and field not in RESULT_FIELDS:
        allowed = ", ".join(RESULT_FIELDS)
        raise CatalogValidationError(
            f"{entry['id']}.field '{field}' is not a result field. Allowed: {allowed}"
        )

    return FeatureDescriptor(
        id=entry["id"],
        name=entry["name"],
        query=entry["query"].encode("utf-8"),
        pattern=_compile_pattern(entry),
        extract=entry["extract"],
        field=field,
        min_level=int(entry.get("min_level", 2)),
    )


def build_catalog(doc: dict[str, Any], source: Path | Traversable | str = "<catalog>") -> LoadedCatalog:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise CatalogValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    features: list[FeatureDescriptor] = []
    seen: set[str] = set()
    for entry in doc["features"]:
        if entry["id"] in seen:
            raise CatalogValidationError(f"Duplicate feature id '{entry['id']}' in {source}")
        seen.add(entry["id"])
        features.append(_build_descriptor(entry))

    sentinels = [f for f in features if f.is_sentinel]
    if len(sentinels) != 1:
        raise CatalogValidationError(
            f"Catalog {source} must define exactly one sentinel feature, found {len(sentinels)}"
        )
    if not features[-1].is_sentinel:
        raise CatalogValidationError(
            f"Sentinel feature '{sentinels[0].id}' must be the last entry in {source}"
        )

    return LoadedCatalog(features=tuple(features))


def load_catalog_file(path: Path | Traversable) -> LoadedCatalog:
    return build_catalog(_read_yaml(path), path)


@lru_cache(maxsize=1)
def load_catalog() -> LoadedCatalog:
    """Load the packaged catalog once per process."""
    path = resources.files("termprobe.catalog").joinpath(CATALOG_FILE)
    catalog = load_catalog_file(path)
    LOGGER.debug("Loaded %d terminal features from %s", len(catalog.features), path)
    return catalog


def catalog_queries(features: tuple[FeatureDescriptor, ...]) -> bytes:
    return b"".join(feature.query for feature in features)
