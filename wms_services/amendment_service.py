"""
AmendmentService -- correct one line of a VAS transaction after the fact.

Responsibility:
    Validates an amendment request, moves the quantity difference between
    the line's old and new values in or out of the pallet's lots, updates
    the line (capturing originals on the first amendment) and appends one
    LineAmendment audit record.

Architecture position:
    Services -- flush-only.  Runs inside the UnitOfWork opened by
    VasCommandService; consumes LotLedgerService and AuditTrailService.

Invariants enforced:
    - Preconditions are checked before any mutation: the transaction exists
      and is not voided, the line belongs to it, the reason is non-blank.
    - Lots move only when the line carries a material, the transaction has
      a pallet, and the quantity changes.  A weight-only correction updates
      the line but never moves stock.
    - Removals are planned in full before any lot changes.

Failure modes:
    - TransactionNotFoundError, LineNotFoundError, TransactionVoidedError.
    - ValidationError for a blank reason, no new values, or negative values.
    - InsufficientInventoryError when the pallet cannot cover a removal.
    - InvalidWeightError / InsufficientQuantityError from a lot.

Audit relevance:
    Every amendment writes one VasTransactionAmendment (LineAmendment) with
    before/after values and the exact lot movements, plus one Correction
    InventoryAdjustment per lot touched.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.orm import Session

from wms_config import ReconciliationConfig
from wms_kernel.domain.amendment_details import LineAmendmentDetails, LotMovement
from wms_kernel.db.types import to_decimal
from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.exceptions import (
    LineNotFoundError,
    TransactionNotFoundError,
    TransactionVoidedError,
    ValidationError,
)
from wms_kernel.logging_config import get_logger
from wms_kernel.models.vas_transaction import VasTransaction, VasTransactionLine
from wms_kernel.services.audit_trail import AuditTrailService
from wms_services.lot_ledger import LotLedgerService

logger = get_logger("services.amendment")


@dataclass(frozen=True)
class AmendmentResult:
    """Outcome of one line amendment."""

    transaction_id: UUID
    line_id: UUID
    amendment_id: UUID
    details: LineAmendmentDetails

    @property
    def inventory_applied(self) -> bool:
        return self.details.inventory_applied


class AmendmentService:
    """
    Line amendment engine.

    Contract:
        amend_line() either completes every lot movement, the line update
        and the audit record, or raises; the caller's unit of work then
        discards whatever was flushed.

    Non-goals:
        - Does NOT call session.commit().
        - Does NOT resolve the acting user; the command boundary passes it.
    """

    def __init__(
        self,
        session: Session,
        ledger: LotLedgerService,
        audit: AuditTrailService,
        config: ReconciliationConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._ledger = ledger
        self._audit = audit
        self._config = config or ReconciliationConfig()
        self._clock = clock or SystemClock()

    def amend_line(
        self,
        *,
        transaction_id: UUID,
        line_id: UUID,
        user_id: UUID,
        reason: str,
        new_quantity: Decimal | None = None,
        new_weight: Decimal | None = None,
    ) -> AmendmentResult:
        """
        Amend a line's quantity and/or weight.

        Preconditions:
            - At least one of new_quantity / new_weight is given; both >= 0.
            - reason is non-blank.

        Postconditions:
            - line.quantity / line.weight hold the new values.
            - original_quantity / original_weight hold the values from
              before the line's FIRST amendment.
            - One LineAmendment record exists for this call.

        Raises:
            ValidationError: blank reason, nothing to change, a negative
                value, or a value that is not a Decimal, int or numeric
                string (floats included).
            TransactionNotFoundError, LineNotFoundError,
            TransactionVoidedError, InsufficientInventoryError.
        """
        new_quantity = self._amount("new_quantity", new_quantity)
        new_weight = self._amount("new_weight", new_weight)
        self._validate_request(reason, new_quantity, new_weight)
        txn, line = self._load(transaction_id, line_id)

        original_quantity = line.quantity
        original_weight = line.weight
        target_quantity = new_quantity if new_quantity is not None else original_quantity
        target_weight = new_weight if new_weight is not None else original_weight
        quantity_delta = target_quantity - original_quantity
        weight_delta = target_weight - original_weight

        logger.info(
            "amendment_started",
            extra={
                "transaction_id": str(txn.id),
                "line_id": str(line.id),
                "quantity_delta": str(quantity_delta),
                "weight_delta": str(weight_delta),
                "is_input": line.is_input,
            },
        )

        movements: tuple[LotMovement, ...] = ()
        inventory_applied = False
        if line.material_id is not None and txn.pallet_id is not None and quantity_delta != 0:
            movements, inventory_applied = self._move_stock(
                txn, line, quantity_delta, weight_delta, user_id
            )
        else:
            logger.debug(
                "amendment_inventory_skipped",
                extra={
                    "has_material": line.material_id is not None,
                    "has_pallet": txn.pallet_id is not None,
                    "quantity_delta": str(quantity_delta),
                },
            )

        now = self._clock.now()
        if new_quantity is not None and new_weight is not None:
            line.amend_quantity_and_weight(new_quantity, new_weight, now)
        elif new_quantity is not None:
            line.amend_quantity(new_quantity, now)
        else:
            line.amend_weight(new_weight, now)
        txn.updated_by_id = user_id

        details = LineAmendmentDetails(
            line_id=line.id,
            material_id=line.material_id,
            original_quantity=original_quantity,
            original_weight=original_weight,
            new_quantity=line.quantity,
            new_weight=line.weight,
            inventory_applied=inventory_applied,
            lot_movements=movements,
        )
        amendment = self._audit.record_line_amendment(
            transaction_id=txn.id,
            user_id=user_id,
            reason=reason.strip(),
            details=details,
        )
        self._session.flush()

        logger.info(
            "amendment_completed",
            extra={
                "transaction_id": str(txn.id),
                "line_id": str(line.id),
                "amendment_id": str(amendment.id),
                "lot_movement_count": len(movements),
            },
        )
        return AmendmentResult(
            transaction_id=txn.id,
            line_id=line.id,
            amendment_id=amendment.id,
            details=details,
        )

    # =========================================================================
    # Internal Implementation
    # =========================================================================

    @staticmethod
    def _amount(field: str, value) -> Decimal | None:
        if value is None:
            return None
        try:
            amount = to_decimal(value)
        except (TypeError, InvalidOperation):
            amount = None
        if amount is None or not amount.is_finite():
            raise ValidationError(
                field, f"must be a Decimal, int or numeric string (got {value!r})"
            )
        return amount

    @staticmethod
    def _validate_request(
        reason: str,
        new_quantity: Decimal | None,
        new_weight: Decimal | None,
    ) -> None:
        if reason is None or not reason.strip():
            raise ValidationError("reason", "an amendment reason is required")
        if new_quantity is None and new_weight is None:
            raise ValidationError(
                "new_quantity", "a new quantity or a new weight is required"
            )
        if new_quantity is not None and new_quantity < 0:
            raise ValidationError("new_quantity", f"must not be negative (got {new_quantity})")
        if new_weight is not None and new_weight < 0:
            raise ValidationError("new_weight", f"must not be negative (got {new_weight})")

    def _load(
        self, transaction_id: UUID, line_id: UUID
    ) -> tuple[VasTransaction, VasTransactionLine]:
        txn = self._session.get(VasTransaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        if txn.is_voided:
            raise TransactionVoidedError(str(transaction_id))
        line = txn.get_line(line_id)
        if line is None:
            raise LineNotFoundError(str(transaction_id), str(line_id))
        return txn, line

    def _move_stock(
        self,
        txn: VasTransaction,
        line: VasTransactionLine,
        quantity_delta: Decimal,
        weight_delta: Decimal,
        user_id: UUID,
    ) -> tuple[tuple[LotMovement, ...], bool]:
        """Apply the stock side of the amendment. Returns (movements, applied)."""
        common = dict(
            pallet_id=txn.pallet_id,
            material_id=line.material_id,
            account_id=txn.account_id,
            user_id=user_id,
            transaction_id=txn.id,
        )
        consumes_more = line.is_input and quantity_delta > 0
        produced_less = not line.is_input and quantity_delta < 0

        if consumes_more or produced_less:
            return (
                self._ledger.remove(
                    quantity=abs(quantity_delta),
                    weight=weight_delta if quantity_delta > 0 else -weight_delta,
                    **common,
                ),
                True,
            )

        # Input returned or output increased: stock goes back on the pallet
        if line.is_input:
            batch = self._config.restored_batch_tag
            quantity, weight = -quantity_delta, -weight_delta
        else:
            batch = self._config.correction_batch_tag
            quantity, weight = quantity_delta, weight_delta

        movement = self._ledger.restore(
            quantity=quantity,
            weight=weight,
            batch_number=batch,
            barcode_prefix=self._config.amend_barcode_prefix,
            **common,
        )
        if movement is None:
            logger.warning(
                "amendment_restore_dropped",
                extra={
                    "pallet_id": str(txn.pallet_id),
                    "material_id": str(line.material_id),
                    "quantity": str(quantity),
                },
            )
            return (), False
        return (movement,), True
