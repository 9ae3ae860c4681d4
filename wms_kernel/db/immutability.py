"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Amendments and voids never rewrite history: they add corrective lot
movements and append audit rows.  These listeners make the ORM refuse any
flush that would edit or remove that history through Python code.

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete()
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                    | When Immutable                  | Why
--------------------------|---------------------------------|-------------------------------
InventoryAdjustment       | ALWAYS (from creation)          | Audit trail
VasTransactionAmendment   | ALWAYS (from creation)          | Audit trail
VasTransaction            | After is_voided = True          | Void is one-way and final
VasTransactionLine        | When parent transaction voided  | Lines are part of the void
InventoryLot              | Never deleted (updates allowed) | Drained lots stay as history

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by_id may change on frozen rows; they are audit
   metadata, not ledger data.

2. "WAS voided", not "IS voided": the void itself must be able to flip
   is_voided False -> True.  Attribute history tells the two apart.

3. Inline model imports avoid circular imports (models import db).

===============================================================================
USAGE
===============================================================================

    init_engine_from_url() in db/engine.py registers them, so every process
    that opens the database runs with them on.  Registration is idempotent.

Tests that must deliberately violate a rule call
unregister_immutability_listeners() and re-register afterwards.
"""

from sqlalchemy import event, inspect, select

from wms_kernel.exceptions import ImmutabilityViolationError
from wms_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata that may change on otherwise frozen rows
_AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> set[str]:
    """Column attributes with pending changes, excluding audit metadata."""
    state = inspect(target)
    changed = set()
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.add(attr.key)
    return changed - _AUDIT_METADATA_FIELDS


def _block(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


# =============================================================================
# Audit records: always immutable
# =============================================================================


def _check_inventory_adjustment_immutability(mapper, connection, target):
    _block(
        "InventoryAdjustment", target.id, "UPDATE",
        "Inventory adjustments are immutable and cannot be modified",
    )


def _check_inventory_adjustment_delete(mapper, connection, target):
    _block(
        "InventoryAdjustment", target.id, "DELETE",
        "Inventory adjustments cannot be deleted",
    )


def _check_amendment_immutability(mapper, connection, target):
    _block(
        "VasTransactionAmendment", target.id, "UPDATE",
        "Transaction amendments are immutable and cannot be modified",
    )


def _check_amendment_delete(mapper, connection, target):
    _block(
        "VasTransactionAmendment", target.id, "DELETE",
        "Transaction amendments cannot be deleted",
    )


# =============================================================================
# VAS transactions: frozen once voided
# =============================================================================


def _check_vas_transaction_immutability(mapper, connection, target):
    """Block changes to a transaction that was already voided before this flush."""
    history = inspect(target).attrs.is_voided.history
    was_voided = bool(history.deleted[0]) if history.deleted else bool(target.is_voided)
    if not was_voided:
        return

    changed = _changed_fields(target)
    if changed:
        _block(
            "VasTransaction", target.id, "UPDATE",
            f"Voided transactions are frozen (attempted to change {sorted(changed)})",
        )


def _check_vas_transaction_delete(mapper, connection, target):
    _block(
        "VasTransaction", target.id, "DELETE",
        "VAS transactions cannot be deleted; void them instead",
    )


def _check_vas_line_immutability(mapper, connection, target):
    """Block line changes when the parent transaction is voided in the database."""
    from wms_kernel.models.vas_transaction import VasTransaction

    if not _changed_fields(target):
        return

    parent_voided = connection.execute(
        select(VasTransaction.is_voided).where(
            VasTransaction.id == target.transaction_id
        )
    ).scalar()
    if parent_voided:
        _block(
            "VasTransactionLine", target.id, "UPDATE",
            "Lines of a voided transaction are frozen",
        )


def _check_vas_line_delete(mapper, connection, target):
    _block(
        "VasTransactionLine", target.id, "DELETE",
        "VAS transaction lines cannot be deleted",
    )


# =============================================================================
# Inventory lots: never deleted
# =============================================================================


def _check_inventory_lot_delete(mapper, connection, target):
    _block(
        "InventoryLot", target.id, "DELETE",
        "Inventory lots are never deleted; a drained lot stays at quantity 0",
    )


def _listener_table():
    from wms_kernel.models.audit import InventoryAdjustment, VasTransactionAmendment
    from wms_kernel.models.inventory_lot import InventoryLot
    from wms_kernel.models.vas_transaction import VasTransaction, VasTransactionLine

    return (
        (InventoryAdjustment, "before_update", _check_inventory_adjustment_immutability),
        (InventoryAdjustment, "before_delete", _check_inventory_adjustment_delete),
        (VasTransactionAmendment, "before_update", _check_amendment_immutability),
        (VasTransactionAmendment, "before_delete", _check_amendment_delete),
        (VasTransaction, "before_update", _check_vas_transaction_immutability),
        (VasTransaction, "before_delete", _check_vas_transaction_delete),
        (VasTransactionLine, "before_update", _check_vas_line_immutability),
        (VasTransactionLine, "before_delete", _check_vas_line_delete),
        (InventoryLot, "before_delete", _check_inventory_lot_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: a listener already registered is not added twice.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
