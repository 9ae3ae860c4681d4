"""
VAS transaction query selector.

Read-only access to transactions, their lines and their amendment history.

Key design decisions:
- Returns DTOs (frozen dataclasses), not ORM models
- Voided transactions are excluded from period listings unless asked for
- Amendment history is newest first and carries decoded, typed details
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from wms_kernel.domain.amendment_details import AmendmentDetails
from wms_kernel.domain.values import (
    AmendmentType,
    LineKind,
    ServiceType,
    TransactionStatus,
)
from wms_kernel.models.audit import VasTransactionAmendment
from wms_kernel.models.vas_transaction import VasTransaction, VasTransactionLine
from wms_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class VasLineDTO:
    """Data transfer object for a transaction line."""

    id: UUID
    sequence: int
    kind: LineKind
    quantity: Decimal
    weight: Decimal
    is_input: bool
    batch_number: str | None
    expiry_date: date | None
    original_quantity: Decimal | None
    original_weight: Decimal | None
    is_amended: bool
    amended_at: datetime | None

    @property
    def material_id(self) -> UUID | None:
        return getattr(self.kind, "material_id", None)


@dataclass(frozen=True)
class VasTransactionDTO:
    """Data transfer object for a VAS transaction with its lines."""

    id: UUID
    account_id: UUID
    pallet_id: UUID | None
    service_type: ServiceType
    user_id: UUID
    timestamp: datetime
    description: str
    status: TransactionStatus
    is_voided: bool
    voided_at: datetime | None
    voided_by_user_id: UUID | None
    void_reason: str | None
    lines: tuple[VasLineDTO, ...]

    @property
    def is_amended(self) -> bool:
        return any(line.is_amended for line in self.lines)


@dataclass(frozen=True)
class AmendmentDTO:
    """One entry of a transaction's amendment history."""

    id: UUID
    transaction_id: UUID
    sequence: int
    user_id: UUID
    timestamp: datetime
    reason: str
    amendment_type: AmendmentType
    details: AmendmentDetails


class VasSelector(BaseSelector[VasTransaction]):
    """Selector for VAS transaction queries."""

    def _line_to_dto(self, line: VasTransactionLine) -> VasLineDTO:
        return VasLineDTO(
            id=line.id,
            sequence=line.sequence,
            kind=line.kind,
            quantity=line.quantity,
            weight=line.weight,
            is_input=line.is_input,
            batch_number=line.batch_number,
            expiry_date=line.expiry_date,
            original_quantity=line.original_quantity,
            original_weight=line.original_weight,
            is_amended=line.is_amended,
            amended_at=line.amended_at,
        )

    def _to_dto(self, txn: VasTransaction) -> VasTransactionDTO:
        return VasTransactionDTO(
            id=txn.id,
            account_id=txn.account_id,
            pallet_id=txn.pallet_id,
            service_type=txn.service_type,
            user_id=txn.user_id,
            timestamp=txn.timestamp,
            description=txn.description,
            status=txn.status,
            is_voided=txn.is_voided,
            voided_at=txn.voided_at,
            voided_by_user_id=txn.voided_by_user_id,
            void_reason=txn.void_reason,
            lines=tuple(self._line_to_dto(line) for line in txn.lines),
        )

    def get(self, transaction_id: UUID) -> VasTransactionDTO | None:
        txn = self.session.get(VasTransaction, transaction_id)
        return self._to_dto(txn) if txn is not None else None

    def list_for_account(
        self,
        account_id: UUID,
        start: datetime,
        end: datetime,
        include_voided: bool = False,
    ) -> list[VasTransactionDTO]:
        """Transactions for an account with start <= timestamp < end, oldest first."""
        stmt = select(VasTransaction).where(
            VasTransaction.account_id == account_id,
            VasTransaction.timestamp >= start,
            VasTransaction.timestamp < end,
        )
        if not include_voided:
            stmt = stmt.where(VasTransaction.is_voided.is_(False))
        stmt = stmt.order_by(VasTransaction.timestamp, VasTransaction.id)
        return [self._to_dto(txn) for txn in self.session.scalars(stmt)]

    def amendment_history(self, transaction_id: UUID) -> list[AmendmentDTO]:
        """All amendments and voids of a transaction, newest first by write order."""
        stmt = (
            select(VasTransactionAmendment)
            .where(VasTransactionAmendment.original_transaction_id == transaction_id)
            .order_by(VasTransactionAmendment.sequence.desc())
        )
        return [
            AmendmentDTO(
                id=row.id,
                transaction_id=row.original_transaction_id,
                sequence=row.sequence,
                user_id=row.user_id,
                timestamp=row.timestamp,
                reason=row.reason,
                amendment_type=row.amendment_type,
                details=row.details,
            )
            for row in self.session.scalars(stmt)
        ]
