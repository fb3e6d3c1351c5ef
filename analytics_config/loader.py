"""
Configuration Loader (``analytics_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen dataclasses of
``analytics_config.schema``.

Invariants enforced
-------------------
* Parse errors raise ConfigurationError naming the file and the problem;
  no silent defaults for required catalog keys.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Structurally invalid content  -> ConfigurationError.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from analytics_config.schema import (
    AnalyticsConfig,
    CatalogDefinition,
    DataSourceDef,
    FieldDef,
)
from analytics_kernel.exceptions import ConfigurationError
from analytics_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_FIELD_TYPES = frozenset({"text", "number", "date", "currency", "boolean"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top-level YAML value must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------


def parse_config(data: dict[str, Any]) -> AnalyticsConfig:
    """Parse the ``analytics`` section of a settings mapping."""
    section = data.get("analytics", data)
    if not isinstance(section, dict):
        raise ConfigurationError("analytics", "section must be a mapping")
    return AnalyticsConfig.from_dict(section)


def load_config(path: Path) -> AnalyticsConfig:
    """Load AnalyticsConfig from a YAML file."""
    data = load_yaml_file(path)
    config = parse_config(data)
    logger.info(
        "analytics_config_loaded",
        extra={"path": str(path), "checksum": compute_checksum(config.to_dict())},
    )
    return config


# ---------------------------------------------------------------------------
# Field catalog
# ---------------------------------------------------------------------------


def _parse_field(source_id: str, data: dict[str, Any]) -> FieldDef:
    try:
        field_def = FieldDef(
            id=data["id"],
            name=data.get("name", data["id"]),
            source_table=data["source_table"],
            display_name=data.get("display_name", data["id"]),
            type=data["type"],
            derived=bool(data.get("derived", False)),
        )
    except KeyError as e:
        raise ConfigurationError(
            f"catalog:{source_id}", f"field is missing required key {e.args[0]!r}"
        ) from e
    if field_def.type not in _FIELD_TYPES:
        raise ConfigurationError(
            f"catalog:{source_id}",
            f"field {field_def.id!r} has unknown type {field_def.type!r}",
        )
    return field_def


def _parse_source(data: dict[str, Any]) -> DataSourceDef:
    if "id" not in data:
        raise ConfigurationError("catalog", "data source is missing 'id'")
    source_id = data["id"]
    fields = tuple(_parse_field(source_id, f) for f in data.get("fields", []))
    if not fields:
        raise ConfigurationError(f"catalog:{source_id}", "data source declares no fields")

    ids = [f.id for f in fields]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigurationError(f"catalog:{source_id}", f"duplicate field ids {duplicates}")

    date_field = data.get("date_field")
    if date_field is not None:
        matching = [f for f in fields if f.id == date_field]
        if not matching or matching[0].type != "date":
            raise ConfigurationError(
                f"catalog:{source_id}",
                f"date_field {date_field!r} must name a date-typed field",
            )

    return DataSourceDef(
        id=source_id,
        display_name=data.get("display_name", source_id),
        fields=fields,
        date_field=date_field,
    )


def parse_catalog(data: dict[str, Any]) -> CatalogDefinition:
    """Parse a catalog mapping into a CatalogDefinition."""
    sources = tuple(_parse_source(s) for s in data.get("data_sources", []))
    ids = [s.id for s in sources]
    if len(ids) != len(set(ids)):
        raise ConfigurationError("catalog", "duplicate data source ids")
    return CatalogDefinition(
        version=int(data.get("version", 1)),
        data_sources=sources,
        checksum=compute_checksum(data),
    )


def load_catalog_file(path: Path) -> CatalogDefinition:
    """Load and parse a catalog YAML file."""
    catalog = parse_catalog(load_yaml_file(path))
    logger.info(
        "field_catalog_loaded",
        extra={
            "path": str(path),
            "data_sources": len(catalog.data_sources),
            "checksum": catalog.checksum,
        },
    )
    return catalog
