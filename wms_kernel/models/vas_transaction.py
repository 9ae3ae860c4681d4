"""
Module: wms_kernel.models.vas_transaction
Responsibility: ORM persistence and state machine for VAS transactions and
    their ordered input/output lines.
Architecture position: Kernel > Models.  May import from db/, domain/ and
    exceptions only.

Invariants enforced:
    - Status moves Planned -> Completed once; complete() is idempotent.
    - is_voided moves False -> True once, together with voided_at,
      voided_by_user_id and void_reason.  A second void raises
      AlreadyVoidedError.  A void requires a non-blank reason.
    - A line's original_quantity/original_weight are captured on its FIRST
      amendment only and never overwritten afterwards.
    - A voided transaction and its lines are frozen (db/immutability.py).

Failure modes:
    - AlreadyVoidedError on a second void.
    - TransactionVoidedError when completing or amending after a void.
    - ValidationError on a blank void reason or negative amended values.

Audit relevance:
    The transaction row itself records who voided it, when and why; the
    matching VasTransactionAmendment row records the per-line reversal.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms_kernel.db.base import Base, EnumString, TrackedBase, UUIDString
from wms_kernel.db.types import round_quantity, round_weight, to_decimal
from wms_kernel.domain.values import (
    LaborLine,
    LineKind,
    MaterialLine,
    ServiceType,
    TransactionStatus,
    labor_unit_for,
)
from wms_kernel.exceptions import (
    AlreadyVoidedError,
    TransactionVoidedError,
    ValidationError,
)


class VasTransaction(TrackedBase):
    """
    A billable value-added service performed on goods.

    Contract:
        Created by upstream workflows (repack, kitting, fumigation...) with
        the inventory effect of its lines already applied.  After creation,
        only complete(), line amendments and void_transaction() change it.

    Guarantees:
        - lines are returned in insertion order (sequence).
        - is_voided never returns to False.

    Non-goals:
        - Does NOT move inventory; the amendment and void engines do.
    """

    __tablename__ = "vas_transactions"

    __table_args__ = (
        Index("idx_vas_txn_account_timestamp", "account_id", "timestamp"),
        Index("idx_vas_txn_pallet", "pallet_id"),
    )

    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    pallet_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    service_type: Mapped[ServiceType] = mapped_column(
        EnumString(ServiceType), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    status: Mapped[TransactionStatus] = mapped_column(
        EnumString(TransactionStatus),
        nullable=False,
        default=TransactionStatus.PLANNED,
    )

    is_voided: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    voided_by_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    lines: Mapped[list[VasTransactionLine]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="VasTransactionLine.sequence",
        lazy="selectin",
    )

    @classmethod
    def create(
        cls,
        *,
        account_id: UUID,
        service_type: ServiceType,
        user_id: UUID,
        timestamp: datetime,
        pallet_id: UUID | None = None,
        description: str = "",
    ) -> VasTransaction:
        return cls(
            id=uuid4(),
            account_id=account_id,
            service_type=service_type,
            user_id=user_id,
            timestamp=timestamp,
            pallet_id=pallet_id,
            description=description,
            status=TransactionStatus.PLANNED,
            is_voided=False,
            created_by_id=user_id,
        )

    def __repr__(self) -> str:
        return (
            f"<VasTransaction {self.id} {self.service_type.value} "
            f"status={self.status.value} voided={self.is_voided}>"
        )

    # -- lines -------------------------------------------------------------

    def add_material_line(
        self,
        *,
        material_id: UUID,
        quantity: Decimal | int | str,
        weight: Decimal | int | str,
        is_input: bool,
        batch_number: str | None = None,
        expiry_date: date | None = None,
    ) -> VasTransactionLine:
        line = VasTransactionLine(
            id=uuid4(),
            sequence=len(self.lines),
            material_id=material_id,
            quantity=round_quantity(to_decimal(quantity)),
            weight=round_weight(to_decimal(weight)),
            is_input=is_input,
            batch_number=batch_number,
            expiry_date=expiry_date,
            is_amended=False,
        )
        self.lines.append(line)
        return line

    def add_labor_line(self, quantity: Decimal | int | str) -> VasTransactionLine:
        """Add a non-material line; quantity is hours or units of service."""
        line = VasTransactionLine(
            id=uuid4(),
            sequence=len(self.lines),
            material_id=None,
            quantity=round_quantity(to_decimal(quantity)),
            weight=Decimal("0"),
            is_input=False,
            is_amended=False,
        )
        self.lines.append(line)
        return line

    def get_line(self, line_id: UUID) -> VasTransactionLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    @property
    def input_lines(self) -> list[VasTransactionLine]:
        return [line for line in self.lines if line.is_input]

    @property
    def output_lines(self) -> list[VasTransactionLine]:
        return [line for line in self.lines if not line.is_input]

    @property
    def is_amended(self) -> bool:
        """True if any line has been amended."""
        return any(line.is_amended for line in self.lines)

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    # -- state machine -----------------------------------------------------

    def complete(self) -> None:
        """Planned -> Completed. No-op if already Completed."""
        if self.status == TransactionStatus.COMPLETED:
            return
        if self.is_voided:
            raise TransactionVoidedError(str(self.id))
        self.status = TransactionStatus.COMPLETED

    def void_transaction(self, user_id: UUID, reason: str, at: datetime) -> None:
        """
        Mark the transaction voided.

        Valid from Planned or Completed, exactly once.

        Raises:
            AlreadyVoidedError: the transaction is already voided.
            ValidationError: reason is blank.
        """
        if self.is_voided:
            raise AlreadyVoidedError(str(self.id))
        if reason is None or not reason.strip():
            raise ValidationError("void_reason", "a void reason is required")
        self.is_voided = True
        self.voided_at = at
        self.voided_by_user_id = user_id
        self.void_reason = reason.strip()
        self.updated_by_id = user_id


class VasTransactionLine(Base):
    """
    One input (consumed) or output (produced) line of a VAS transaction.

    Contract:
        quantity/weight are the line's CURRENT values; amendments overwrite
        them and keep the pre-amendment values in original_quantity /
        original_weight, captured once.

    Non-goals:
        - Does NOT reference the lot(s) it moved; reversal searches lots by
          (pallet_id, material_id).
    """

    __tablename__ = "vas_transaction_lines"

    __table_args__ = (
        Index("idx_vas_line_transaction_seq", "transaction_id", "sequence"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vas_transactions.id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Absent for labor lines; use ``kind`` rather than testing this directly.
    material_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    is_input: Mapped[bool] = mapped_column(Boolean, nullable=False)

    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    original_quantity: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )
    original_weight: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )
    is_amended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    transaction: Mapped[VasTransaction] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        direction = "in" if self.is_input else "out"
        return f"<VasTransactionLine {self.id} {direction} qty={self.quantity}>"

    @property
    def kind(self) -> LineKind:
        if self.material_id is not None:
            return MaterialLine(material_id=self.material_id)
        return LaborLine(
            quantity=self.quantity,
            unit=labor_unit_for(self.transaction.service_type),
        )

    @property
    def is_material(self) -> bool:
        return isinstance(self.kind, MaterialLine)

    def _guard_amendable(self, **values: Decimal) -> None:
        if self.transaction is not None and self.transaction.is_voided:
            raise TransactionVoidedError(str(self.transaction_id))
        for name, value in values.items():
            if value < 0:
                raise ValidationError(name, f"must not be negative (got {value})")

    def _mark_amended(self, at: datetime) -> None:
        # Originals are captured on the first amendment only.
        if not self.is_amended:
            self.original_quantity = self.quantity
            self.original_weight = self.weight
        self.is_amended = True
        self.amended_at = at

    def amend_quantity(self, new_quantity: Decimal, at: datetime) -> None:
        self._guard_amendable(new_quantity=new_quantity)
        self._mark_amended(at)
        self.quantity = round_quantity(new_quantity)

    def amend_weight(self, new_weight: Decimal, at: datetime) -> None:
        self._guard_amendable(new_weight=new_weight)
        self._mark_amended(at)
        self.weight = round_weight(new_weight)

    def amend_quantity_and_weight(
        self, new_quantity: Decimal, new_weight: Decimal, at: datetime
    ) -> None:
        self._guard_amendable(new_quantity=new_quantity, new_weight=new_weight)
        self._mark_amended(at)
        self.quantity = round_quantity(new_quantity)
        self.weight = round_weight(new_weight)
