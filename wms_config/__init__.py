"""
wms_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive a ``ReconciliationConfig``
    by injection; they never read YAML or environment variables.

Architecture position:
    Configuration -- sits above ``wms_kernel`` and ``wms_engines`` and below
    ``wms_services``.  The kernel MUST NEVER import from ``wms_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Every value is validated before a config is returned.
    - Same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- explicit path does not exist.
    - ``ConfigurationError`` -- invalid or unknown values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``WMS_CONFIG_TRACE`` log entry with the source path, checksum and
    tolerance values, tying every lot correction to the configuration that
    governed it.
"""

from __future__ import annotations

from pathlib import Path

from wms_config.loader import compute_checksum, load_reconciliation_config
from wms_config.schema import ReconciliationConfig
from wms_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> ReconciliationConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override YAML file. Defaults to wms_config/defaults.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If validation fails.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_reconciliation_config(source)

    _logger.info(
        "WMS_CONFIG_TRACE",
        extra={
            "trace_type": "WMS_CONFIG_TRACE",
            "source": str(source),
            "checksum": compute_checksum(config.to_dict()),
            "weight_tolerance": str(config.weight_tolerance),
            "negative_weight_floor": str(config.negative_weight_floor),
            "lot_selection_policy": config.lot_selection_policy.value,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ReconciliationConfig",
    "get_active_config",
]
