"""
Configuration Loader (``wms_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a frozen
``ReconciliationConfig``.  Runtime callers go through
``wms_config.get_active_config()``; this module is the parsing step.

Invariants enforced
-------------------
* Every value is validated before the config is built; a bad value raises
  ``ConfigurationError`` naming the offending key.
* Unknown keys are rejected rather than silently ignored.
* Numeric values are parsed through ``str`` into ``Decimal`` so YAML floats
  never leak binary rounding into tolerances.
* ``compute_checksum`` gives a deterministic SHA-256 of the parsed values.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid or unknown keys  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from wms_config.schema import ReconciliationConfig
from wms_engines.allocation import LotSelectionPolicy
from wms_kernel.exceptions import ConfigurationError

_KNOWN_KEYS = frozenset(f.name for f in fields(ReconciliationConfig))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", f"expected a mapping in {path}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(key, f"expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(key, f"expected a number, got {value!r}") from None


def _parse_text(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(key, "expected a non-empty string")
    return value


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationConfig:
    """Parse a raw mapping into a validated ReconciliationConfig."""
    section = data.get("reconciliation", data)
    if not isinstance(section, dict):
        raise ConfigurationError("reconciliation", "expected a mapping")

    unknown = set(section) - _KNOWN_KEYS
    if unknown:
        raise ConfigurationError(sorted(unknown)[0], "unknown configuration key")

    defaults = ReconciliationConfig()
    values: dict[str, Any] = {}

    if "weight_tolerance" in section:
        tolerance = _parse_decimal("weight_tolerance", section["weight_tolerance"])
        if tolerance < 0:
            raise ConfigurationError("weight_tolerance", "must be >= 0")
        values["weight_tolerance"] = tolerance

    if "negative_weight_floor" in section:
        floor = _parse_decimal("negative_weight_floor", section["negative_weight_floor"])
        if floor > 0:
            raise ConfigurationError("negative_weight_floor", "must be <= 0")
        values["negative_weight_floor"] = floor

    if "lot_selection_policy" in section:
        raw = section["lot_selection_policy"]
        try:
            values["lot_selection_policy"] = LotSelectionPolicy(raw)
        except ValueError:
            allowed = ", ".join(p.value for p in LotSelectionPolicy)
            raise ConfigurationError(
                "lot_selection_policy", f"{raw!r} is not one of: {allowed}"
            ) from None

    if "weight_decimal_places" in section:
        places = section["weight_decimal_places"]
        if isinstance(places, bool) or not isinstance(places, int) or not 0 <= places <= 9:
            raise ConfigurationError(
                "weight_decimal_places", "must be an integer between 0 and 9"
            )
        values["weight_decimal_places"] = places

    for key in (
        "default_weight_unit",
        "restored_batch_tag",
        "correction_batch_tag",
        "amend_barcode_prefix",
        "void_barcode_prefix",
    ):
        if key in section:
            values[key] = _parse_text(key, section[key])

    tolerance = values.get("weight_tolerance", defaults.weight_tolerance)
    floor = values.get("negative_weight_floor", defaults.negative_weight_floor)
    if abs(floor) > tolerance:
        raise ConfigurationError(
            "negative_weight_floor",
            f"floor {floor} lies outside weight_tolerance {tolerance}",
        )

    return ReconciliationConfig(**values)


def load_reconciliation_config(path: Path) -> ReconciliationConfig:
    """Load and validate one configuration file."""
    return parse_reconciliation(load_yaml_file(path))
