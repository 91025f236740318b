"""
inventory_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits beside ``inventory_kernel`` and below
    ``inventory_services``.  The kernel MUST NEVER import from
    ``inventory_config``; services receive plain values from it.

Layering (later wins):
    1. ``LedgerSettings`` dataclass defaults
    2. YAML file -- explicit ``path`` argument, else ``INVENTORY_LEDGER_CONFIG``
    3. ``DATABASE_URL`` environment variable

Failure modes:
    - ``FileNotFoundError`` -- an explicit or configured file is missing.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every call emits an ``INVENTORY_CONFIG_TRACE`` log entry with the
    source file, a checksum of its contents and the effective database
    dialect (never the full URL, which may carry credentials).
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from inventory_config.loader import (
    compute_checksum,
    load_settings,
    load_yaml_file,
    parse_settings,
)
from inventory_config.schema import LedgerSettings

_logger = logging.getLogger("inventory_kernel.config")

CONFIG_ENV_VAR = "INVENTORY_LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"

__all__ = [
    "LedgerSettings",
    "get_active_settings",
    "load_settings",
]


def get_active_settings(path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Optional YAML file.  Falls back to ``$INVENTORY_LEDGER_CONFIG``.

    Returns:
        Frozen, validated ``LedgerSettings``.
    """
    source = path or os.environ.get(CONFIG_ENV_VAR)

    kwargs = {}
    checksum = None
    if source:
        data = load_yaml_file(Path(source))
        kwargs = parse_settings(data)
        checksum = compute_checksum(data)

    settings = LedgerSettings(**kwargs)

    env_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if env_url:
        settings = dataclasses.replace(settings, database_url=env_url)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "source": str(source) if source else None,
            "checksum": checksum,
            "dialect": settings.database_url.split(":", 1)[0],
            "database_url_from_env": bool(env_url),
            "lock_timeout_ms": settings.lock_timeout_ms,
        },
    )
    return settings
