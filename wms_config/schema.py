"""
ReconciliationConfig schema.

The runtime artifact handed to the amendment and void engines. YAML is
parsed into this type by the loader; nothing else constructs it from files.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from wms_engines.allocation import LotSelectionPolicy
from wms_kernel.db.types import (
    DEFAULT_NEGATIVE_WEIGHT_FLOOR,
    DEFAULT_WEIGHT_TOLERANCE,
    WEIGHT_DECIMAL_PLACES,
)


@dataclass(frozen=True)
class ReconciliationConfig:
    """Tolerances, lot policy and tagging used when lots are corrected."""

    weight_tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE
    negative_weight_floor: Decimal = DEFAULT_NEGATIVE_WEIGHT_FLOOR
    default_weight_unit: str = "KG"
    lot_selection_policy: LotSelectionPolicy = LotSelectionPolicy.LARGEST_FIRST

    # Batch numbers of lots created by restore paths
    restored_batch_tag: str = "RESTORED"
    correction_batch_tag: str = "CORRECTION"

    # Barcode prefixes of lots created by restore paths
    amend_barcode_prefix: str = "LPN-AMEND-"
    void_barcode_prefix: str = "LPN-VOID-"

    weight_decimal_places: int = WEIGHT_DECIMAL_PLACES

    def to_dict(self) -> dict[str, str | int]:
        return {
            "weight_tolerance": str(self.weight_tolerance),
            "negative_weight_floor": str(self.negative_weight_floor),
            "default_weight_unit": self.default_weight_unit,
            "lot_selection_policy": self.lot_selection_policy.value,
            "restored_batch_tag": self.restored_batch_tag,
            "correction_batch_tag": self.correction_batch_tag,
            "amend_barcode_prefix": self.amend_barcode_prefix,
            "void_barcode_prefix": self.void_barcode_prefix,
            "weight_decimal_places": self.weight_decimal_places,
        }
