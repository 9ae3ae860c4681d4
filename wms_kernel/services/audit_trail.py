"""
AuditTrailService -- append-only audit records for lot and line changes.

Responsibility:
    Writes one InventoryAdjustment per lot touched by an amendment or void,
    and one VasTransactionAmendment per amendment or void.

Architecture position:
    Kernel > Services -- imperative shell, called by the lot ledger and by
    the amendment and void engines in wms_services.

Invariants enforced:
    - Adjustment deltas are non-zero; amendment reasons are non-blank
      (validated by the model factories).
    - Append-only: rows are immutable once flushed (db/immutability.py).
    - Timestamps come from the injected Clock.
    - Amendment records of one transaction carry consecutive sequence
      numbers, so history order survives identical timestamps.

Failure modes:
    - ValidationError on a zero delta or blank reason.

Audit relevance:
    This IS the audit writer for the reconciliation core.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wms_kernel.domain.amendment_details import LineAmendmentDetails, VoidDetails
from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.domain.values import AdjustmentReason
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit import InventoryAdjustment, VasTransactionAmendment
from wms_kernel.services.base import BaseService

logger = get_logger("services.audit_trail")


class AuditTrailService(BaseService[InventoryAdjustment]):
    """
    Creates immutable audit rows inside the caller's transaction.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT mutate lots or transactions.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record_adjustment(
        self,
        *,
        inventory_id: UUID,
        delta_quantity: Decimal,
        account_id: UUID,
        user_id: UUID,
        reason: AdjustmentReason = AdjustmentReason.CORRECTION,
        transaction_id: UUID | None = None,
    ) -> InventoryAdjustment:
        """
        Append one signed quantity change for one lot.

        Negative delta means stock left the lot; positive means it arrived.
        """
        adjustment = InventoryAdjustment.create(
            inventory_id=inventory_id,
            delta_quantity=delta_quantity,
            reason=reason,
            account_id=account_id,
            user_id=user_id,
            timestamp=self._clock.now(),
            transaction_id=transaction_id,
        )
        self.session.add(adjustment)
        self.session.flush()

        logger.debug(
            "inventory_adjustment_recorded",
            extra={
                "inventory_id": str(inventory_id),
                "delta_quantity": str(delta_quantity),
                "reason": reason.value,
            },
        )
        return adjustment

    def _next_sequence(self, transaction_id: UUID) -> int:
        stmt = select(func.max(VasTransactionAmendment.sequence)).where(
            VasTransactionAmendment.original_transaction_id == transaction_id
        )
        return (self.session.scalar(stmt) or 0) + 1

    def record_line_amendment(
        self,
        *,
        transaction_id: UUID,
        user_id: UUID,
        reason: str,
        details: LineAmendmentDetails,
    ) -> VasTransactionAmendment:
        amendment = VasTransactionAmendment.create_line_amendment(
            transaction_id=transaction_id,
            sequence=self._next_sequence(transaction_id),
            user_id=user_id,
            reason=reason,
            timestamp=self._clock.now(),
            details=details,
        )
        self.session.add(amendment)
        self.session.flush()

        logger.info(
            "line_amendment_recorded",
            extra={
                "amendment_id": str(amendment.id),
                "line_id": str(details.line_id),
                "lot_movement_count": len(details.lot_movements),
            },
        )
        return amendment

    def record_void(
        self,
        *,
        transaction_id: UUID,
        user_id: UUID,
        reason: str,
        details: VoidDetails,
    ) -> VasTransactionAmendment:
        amendment = VasTransactionAmendment.create_transaction_void(
            transaction_id=transaction_id,
            sequence=self._next_sequence(transaction_id),
            user_id=user_id,
            reason=reason,
            timestamp=self._clock.now(),
            details=details,
        )
        self.session.add(amendment)
        self.session.flush()

        logger.info(
            "transaction_void_recorded",
            extra={
                "amendment_id": str(amendment.id),
                "line_count": len(details.lines),
            },
        )
        return amendment
