"""
kiosk_config -- single public entrypoint for kiosk ledger configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``kiosk_kernel``.  The kernel never imports
    from ``kiosk_config``; ``kiosk_config.bridges`` translates settings into
    kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the selected YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or out-of-range settings.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``KIOSK_CONFIG_TRACE`` log entry with the config id, version, source
    path and checksum, tying every recorded fee back to the settings that
    produced it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from kiosk_config.loader import load_yaml_file, parse_settings
from kiosk_config.schema import FeeRuleDef, LedgerSettings, PersistenceSettings

_logger = logging.getLogger("kiosk_kernel.config")

CONFIG_ENV_VAR = "KIOSK_LEDGER_CONFIG"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerSettings:
    """
    The only public configuration entrypoint.

    Resolution order: ``config_path``, then the ``KIOSK_LEDGER_CONFIG``
    environment variable, then the packaged ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value fails validation.
    """
    path = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_PATH)
    settings = parse_settings(load_yaml_file(path))

    _logger.info(
        "KIOSK_CONFIG_TRACE",
        extra={
            "trace_type": "KIOSK_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "source": str(path),
            "checksum": settings.checksum,
            "minimum_amount": settings.minimum_amount,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "FeeRuleDef",
    "LedgerSettings",
    "PersistenceSettings",
    "get_active_config",
]
