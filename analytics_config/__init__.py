"""
analytics_config -- engine settings and the declarative field catalog.

Responsibility:
    Ships the default settings (``defaults.yaml``) and field catalog
    (``catalog.yaml``) and the functions that load them into frozen
    dataclasses.

Architecture position:
    Configuration -- sits above ``analytics_kernel`` and below
    ``analytics_reports``.  Engines never import this package; the
    reporting service passes the parsed values in.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from analytics_config.loader import (
    compute_checksum,
    load_catalog_file,
    load_config,
    load_yaml_file,
    parse_catalog,
    parse_config,
)
from analytics_config.schema import (
    AnalyticsConfig,
    CatalogDefinition,
    DataSourceDef,
    FieldDef,
    PaymentWindowPolicy,
)

_PACKAGE_DIR = Path(__file__).parent
DEFAULT_SETTINGS_PATH = _PACKAGE_DIR / "defaults.yaml"
DEFAULT_CATALOG_PATH = _PACKAGE_DIR / "catalog.yaml"


@lru_cache(maxsize=1)
def get_default_config() -> AnalyticsConfig:
    """Settings shipped with the package (cached; the result is frozen)."""
    return load_config(DEFAULT_SETTINGS_PATH)


def load_catalog(path: Path | None = None) -> CatalogDefinition:
    """Load the field catalog (the packaged one unless ``path`` is given)."""
    return load_catalog_file(path or DEFAULT_CATALOG_PATH)


__all__ = [
    "AnalyticsConfig",
    "CatalogDefinition",
    "DataSourceDef",
    "DEFAULT_CATALOG_PATH",
    "DEFAULT_SETTINGS_PATH",
    "FieldDef",
    "PaymentWindowPolicy",
    "compute_checksum",
    "get_default_config",
    "load_catalog",
    "load_catalog_file",
    "load_config",
    "load_yaml_file",
    "parse_catalog",
    "parse_config",
]
