"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into ``LedgerSettings``.  Services
never call this directly; the runtime entry point is
``inventory_config.get_active_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.

Expected layout::

    database:
      url: postgresql://inventory@localhost/inventory
      lock_timeout_ms: 3000
      pool_size: 20
      max_overflow: 10
      echo: false
    sales:
      instant_payment_methods: [cash, pos]
      invoice_prefix: INV
    stock:
      batch_prefix: BATCH
      default_low_stock_threshold: 10
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import LedgerSettings

# section -> {yaml key: LedgerSettings field}
_FIELD_MAP: dict[str, dict[str, str]] = {
    "database": {
        "url": "database_url",
        "lock_timeout_ms": "lock_timeout_ms",
        "pool_size": "pool_size",
        "max_overflow": "max_overflow",
        "echo": "echo_sql",
    },
    "sales": {
        "instant_payment_methods": "instant_payment_methods",
        "invoice_prefix": "invoice_prefix",
    },
    "stock": {
        "batch_prefix": "batch_prefix",
        "default_low_stock_threshold": "default_low_stock_threshold",
    },
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_settings(data: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten a settings document into LedgerSettings keyword arguments.

    Raises:
        ValueError: on an unknown section or key.
    """
    kwargs: dict[str, Any] = {}
    for section, values in data.items():
        if section not in _FIELD_MAP:
            raise ValueError(f"Unknown settings section: {section!r}")
        if not isinstance(values, dict):
            raise ValueError(f"Settings section {section!r} must be a mapping")
        fields = _FIELD_MAP[section]
        for key, value in values.items():
            if key not in fields:
                raise ValueError(f"Unknown setting {section}.{key}")
            kwargs[fields[key]] = value

    if "instant_payment_methods" in kwargs:
        kwargs["instant_payment_methods"] = frozenset(kwargs["instant_payment_methods"])
    return kwargs


def load_settings(path: Path | str) -> LedgerSettings:
    """Load and validate settings from a YAML file."""
    return LedgerSettings(**parse_settings(load_yaml_file(Path(path))))


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a settings document, for the config trace."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
