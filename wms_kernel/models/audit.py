"""
Module: wms_kernel.models.audit
Responsibility: Append-only audit records written alongside every
    amendment/void mutation: InventoryAdjustment (one per touched lot) and
    VasTransactionAmendment (one per amendment or void).
Architecture position: Kernel > Models.  May import from db/, domain/ and
    exceptions only.

Invariants enforced:
    - InventoryAdjustment.delta_quantity is signed and non-zero.
    - VasTransactionAmendment.reason is non-blank.
    - VasTransactionAmendment.sequence numbers a transaction's amendments
      from 1 in write order and is unique per transaction.
    - Both are immutable from creation; UPDATE and DELETE are rejected by
      ORM listeners in db/immutability.py.

Failure modes:
    - ValidationError from the create() factories on zero delta or a blank
      reason.
    - ImmutabilityViolationError on any later modification.

Audit relevance:
    These two tables ARE the audit trail for the reconciliation core.  The
    amendment details payload records exact lot movements, which the line
    rows themselves do not carry.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wms_kernel.db.base import Base, EnumString, UUIDString
from wms_kernel.domain.amendment_details import (
    AmendmentDetails,
    LineAmendmentDetails,
    VoidDetails,
    details_from_dict,
)
from wms_kernel.domain.values import AdjustmentReason, AmendmentType
from wms_kernel.exceptions import ValidationError


class InventoryAdjustment(Base):
    """
    Immutable record of one signed quantity change to one lot.

    Guarantees:
        - delta_quantity != 0.
        - Never updated or deleted after INSERT.
    """

    __tablename__ = "inventory_adjustments"

    __table_args__ = (
        Index("idx_inv_adjustment_inventory", "inventory_id"),
        Index("idx_inv_adjustment_transaction", "transaction_id"),
        Index("idx_inv_adjustment_timestamp", "timestamp"),
    )

    inventory_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    delta_quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    reason: Mapped[AdjustmentReason] = mapped_column(
        EnumString(AdjustmentReason), nullable=False
    )
    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # VAS transaction that caused the adjustment, when there is one
    transaction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    @classmethod
    def create(
        cls,
        *,
        inventory_id: UUID,
        delta_quantity: Decimal,
        reason: AdjustmentReason,
        account_id: UUID,
        user_id: UUID,
        timestamp: datetime,
        transaction_id: UUID | None = None,
    ) -> InventoryAdjustment:
        if delta_quantity == 0:
            raise ValidationError("delta_quantity", "adjustment delta must be non-zero")
        return cls(
            id=uuid4(),
            inventory_id=inventory_id,
            delta_quantity=delta_quantity,
            reason=reason,
            account_id=account_id,
            user_id=user_id,
            timestamp=timestamp,
            transaction_id=transaction_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryAdjustment {self.id} inventory={self.inventory_id} "
            f"delta={self.delta_quantity} {self.reason.value}>"
        )


class VasTransactionAmendment(Base):
    """
    Immutable record of one line amendment or one transaction void.

    Guarantees:
        - reason is non-blank.
        - sequence orders the records of one transaction when timestamps tie.
        - amendment_details decodes to the structured type matching
          amendment_type (see ``details``).
    """

    __tablename__ = "vas_transaction_amendments"

    __table_args__ = (
        Index("idx_vas_amendment_txn_ts", "original_transaction_id", "timestamp"),
        UniqueConstraint(
            "original_transaction_id", "sequence", name="uq_vas_amendment_txn_sequence"
        ),
    )

    original_transaction_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str] = mapped_column(String(1000), nullable=False)
    amendment_type: Mapped[AmendmentType] = mapped_column(
        EnumString(AmendmentType), nullable=False
    )
    amendment_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    @classmethod
    def _create(
        cls,
        *,
        transaction_id: UUID,
        user_id: UUID,
        reason: str,
        timestamp: datetime,
        amendment_type: AmendmentType,
        details: AmendmentDetails,
        sequence: int,
    ) -> VasTransactionAmendment:
        if reason is None or not reason.strip():
            raise ValidationError("reason", "an amendment reason is required")
        return cls(
            id=uuid4(),
            original_transaction_id=transaction_id,
            sequence=sequence,
            user_id=user_id,
            timestamp=timestamp,
            reason=reason.strip(),
            amendment_type=amendment_type,
            amendment_details=details.to_dict(),
        )

    @classmethod
    def create_line_amendment(
        cls,
        *,
        transaction_id: UUID,
        user_id: UUID,
        reason: str,
        timestamp: datetime,
        details: LineAmendmentDetails,
        sequence: int = 1,
    ) -> VasTransactionAmendment:
        return cls._create(
            transaction_id=transaction_id,
            user_id=user_id,
            reason=reason,
            timestamp=timestamp,
            amendment_type=AmendmentType.LINE_AMENDMENT,
            details=details,
            sequence=sequence,
        )

    @classmethod
    def create_transaction_void(
        cls,
        *,
        transaction_id: UUID,
        user_id: UUID,
        reason: str,
        timestamp: datetime,
        details: VoidDetails,
        sequence: int = 1,
    ) -> VasTransactionAmendment:
        return cls._create(
            transaction_id=transaction_id,
            user_id=user_id,
            reason=reason,
            timestamp=timestamp,
            amendment_type=AmendmentType.TRANSACTION_VOID,
            details=details,
            sequence=sequence,
        )

    @property
    def details(self) -> AmendmentDetails:
        return details_from_dict(self.amendment_type, self.amendment_details)

    def __repr__(self) -> str:
        return (
            f"<VasTransactionAmendment {self.id} {self.amendment_type.value} "
            f"txn={self.original_transaction_id}>"
        )
