"""ORM models for the reconciliation kernel."""

from wms_kernel.models.audit import InventoryAdjustment, VasTransactionAmendment
from wms_kernel.models.inventory_lot import InventoryLot
from wms_kernel.models.vas_transaction import VasTransaction, VasTransactionLine

__all__ = [
    "InventoryLot",
    "VasTransaction",
    "VasTransactionLine",
    "InventoryAdjustment",
    "VasTransactionAmendment",
]
