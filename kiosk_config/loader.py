"""
Configuration Loader (``kiosk_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``kiosk_config.schema``.  Runtime callers go through
``kiosk_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every operation type has a fee rule; rates and floors are non-negative.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from kiosk_config.schema import FeeRuleDef, LedgerSettings, PersistenceSettings

OPERATION_TYPES = ("deposit", "withdrawal", "transfer")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_int(value: Any, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def parse_fee_rule(operation: str, data: dict[str, Any]) -> FeeRuleDef:
    """Parse one ``fees.<operation>`` entry."""
    try:
        rate = Decimal(str(data.get("rate", 0)))
    except InvalidOperation:
        raise ValueError(f"fees.{operation}.rate is not a number: {data.get('rate')!r}") from None
    if rate < 0:
        raise ValueError(f"fees.{operation}.rate cannot be negative, got {rate}")
    minimum = _parse_int(data.get("minimum", 0), f"fees.{operation}.minimum")
    return FeeRuleDef(rate=rate, minimum=minimum)


def parse_fees(data: dict[str, Any]) -> dict[str, FeeRuleDef]:
    """Parse the ``fees`` mapping; every operation type must be present."""
    unknown = sorted(set(data) - set(OPERATION_TYPES))
    if unknown:
        raise ValueError(f"Unknown operation type(s) in fees: {', '.join(unknown)}")
    missing = [op for op in OPERATION_TYPES if op not in data]
    if missing:
        raise ValueError(f"Missing fee rule(s) for: {', '.join(missing)}")
    return {op: parse_fee_rule(op, data[op] or {}) for op in OPERATION_TYPES}


def parse_persistence(data: dict[str, Any]) -> PersistenceSettings:
    timeout = data.get("timeout_seconds", 5)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError(f"persistence.timeout_seconds must be > 0, got {timeout!r}")
    return PersistenceSettings(
        database_url=data.get("database_url", "sqlite:///kiosk_ledger.db"),
        timeout_seconds=float(timeout),
        max_retries=_parse_int(data.get("max_retries", 1), "persistence.max_retries"),
        echo=bool(data.get("echo", False)),
    )


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse a whole settings document.

    Preconditions:
        - ``data`` contains ``config_id`` and ``fees``.
    Postconditions:
        - Returns a ``LedgerSettings`` carrying the checksum of ``data``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if a value is out of range.
    """
    ledger = data.get("ledger", {}) or {}
    return LedgerSettings(
        config_id=data["config_id"],
        version=_parse_int(data.get("version", 1), "version", minimum=1),
        minimum_amount=_parse_int(
            ledger.get("minimum_amount", 1000), "ledger.minimum_amount", minimum=1
        ),
        recent_limit=_parse_int(
            ledger.get("recent_limit", 5), "ledger.recent_limit", minimum=1
        ),
        fees=parse_fees(data["fees"] or {}),
        persistence=parse_persistence(data.get("persistence", {}) or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
