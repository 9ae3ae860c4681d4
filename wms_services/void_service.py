"""
VoidService -- reverse the whole inventory effect of a VAS transaction.

Responsibility:
    Validates void preconditions, puts back what the transaction's input
    lines consumed, takes away what its output lines produced, marks the
    transaction voided and appends one TransactionVoid audit record.

Architecture position:
    Services -- flush-only.  Runs inside the UnitOfWork opened by
    VasCommandService; consumes LotLedgerService and AuditTrailService.

Invariants enforced:
    - The void is one-way: a second void raises AlreadyVoidedError.
    - A void never under-reverses: an output line whose stock has left the
      pallet fails the whole void with InsufficientInventoryError, and an
      input line with no location to return to fails it with
      LocationUnresolvedError.  In both cases is_voided stays False.
    - Lines are reversed at their CURRENT (post-amendment) values.  An input
      line amended down to zero units still returns the weight it carries.

Failure modes:
    - TransactionNotFoundError, AlreadyVoidedError, ValidationError.
    - InsufficientInventoryError, LocationUnresolvedError.

Audit relevance:
    One VasTransactionAmendment (TransactionVoid) summarizing every line's
    reversal and the lots it moved, plus one Correction InventoryAdjustment
    per lot touched.

Design principles:
    1. Voided rows are frozen afterwards (db/immutability.py).
    2. Lines that cannot move stock (labor lines, transactions without a
       pallet) are still listed in the void details, marked not applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from wms_config import ReconciliationConfig
from wms_kernel.domain.amendment_details import LotMovement, VoidDetails, VoidedLine
from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.exceptions import (
    AlreadyVoidedError,
    LocationUnresolvedError,
    TransactionNotFoundError,
    ValidationError,
)
from wms_kernel.logging_config import get_logger
from wms_kernel.models.vas_transaction import VasTransaction, VasTransactionLine
from wms_kernel.services.audit_trail import AuditTrailService
from wms_services.lot_ledger import LotLedgerService

logger = get_logger("services.void")


@dataclass(frozen=True)
class VoidResult:
    """Immutable result of a successful void."""

    transaction_id: UUID
    amendment_id: UUID
    voided_at: datetime
    details: VoidDetails

    @property
    def lines_applied(self) -> int:
        return sum(1 for line in self.details.lines if line.inventory_applied)


class VoidService:
    """
    Transaction void engine.

    Contract:
        void_transaction() reverses every material line or raises; nothing
        it flushed survives a raise once the unit of work rolls back.

    Non-goals:
        - Does NOT call session.commit().
        - Does NOT support partial (per-line) voids; amend the line instead.
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

    def void_transaction(
        self,
        *,
        transaction_id: UUID,
        user_id: UUID,
        reason: str,
    ) -> VoidResult:
        """
        Void a transaction and reverse its inventory effect.

        Postconditions:
            - is_voided is True with voided_at / voided_by_user_id /
              void_reason set.
            - One TransactionVoid record exists.

        Raises:
            ValidationError: reason is blank.
            TransactionNotFoundError: no such transaction.
            AlreadyVoidedError: the transaction was voided before.
            InsufficientInventoryError: output stock is no longer on the pallet.
            LocationUnresolvedError: input stock has nowhere to go back to.
        """
        txn = self._session.get(VasTransaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        if txn.is_voided:
            raise AlreadyVoidedError(str(transaction_id))
        if reason is None or not reason.strip():
            raise ValidationError("void_reason", "a void reason is required")

        logger.info(
            "void_started",
            extra={
                "transaction_id": str(txn.id),
                "service_type": txn.service_type.value,
                "line_count": len(txn.lines),
                "has_pallet": txn.pallet_id is not None,
            },
        )

        voided_lines = tuple(self._reverse_line(txn, line, user_id) for line in txn.lines)

        now = self._clock.now()
        txn.void_transaction(user_id, reason, now)

        details = VoidDetails(service_type=txn.service_type, lines=voided_lines)
        amendment = self._audit.record_void(
            transaction_id=txn.id,
            user_id=user_id,
            reason=reason.strip(),
            details=details,
        )
        self._session.flush()

        result = VoidResult(
            transaction_id=txn.id,
            amendment_id=amendment.id,
            voided_at=now,
            details=details,
        )
        logger.info(
            "void_completed",
            extra={
                "transaction_id": str(txn.id),
                "amendment_id": str(amendment.id),
                "lines_applied": result.lines_applied,
            },
        )
        return result

    # =========================================================================
    # Internal Implementation
    # =========================================================================

    def _reverse_line(
        self,
        txn: VasTransaction,
        line: VasTransactionLine,
        user_id: UUID,
    ) -> VoidedLine:
        movements: tuple[LotMovement, ...] = ()
        applied = False

        if line.material_id is None or txn.pallet_id is None:
            logger.debug(
                "void_line_skipped",
                extra={
                    "line_id": str(line.id),
                    "has_material": line.material_id is not None,
                    "has_pallet": txn.pallet_id is not None,
                },
            )
        elif line.quantity > 0 or (line.is_input and line.weight != 0):
            movements = self._move_stock(txn, line, user_id)
            applied = True

        return VoidedLine(
            line_id=line.id,
            material_id=line.material_id,
            quantity=line.quantity,
            weight=line.weight,
            is_input=line.is_input,
            inventory_applied=applied,
            lot_movements=movements,
        )

    def _move_stock(
        self,
        txn: VasTransaction,
        line: VasTransactionLine,
        user_id: UUID,
    ) -> tuple[LotMovement, ...]:
        common = dict(
            pallet_id=txn.pallet_id,
            material_id=line.material_id,
            quantity=line.quantity,
            weight=line.weight,
            account_id=txn.account_id,
            user_id=user_id,
            transaction_id=txn.id,
        )
        if not line.is_input:
            return self._ledger.remove(**common)

        movement = self._ledger.restore(
            batch_number=line.batch_number or self._config.restored_batch_tag,
            barcode_prefix=self._config.void_barcode_prefix,
            expiry_date=line.expiry_date,
            **common,
        )
        if movement is None:
            raise LocationUnresolvedError(str(txn.pallet_id), str(line.material_id))
        return (movement,)
