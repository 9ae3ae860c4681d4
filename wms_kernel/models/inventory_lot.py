"""
Module: wms_kernel.models.inventory_lot
Responsibility: ORM persistence and state transitions for physical inventory
    lots.  A lot is a quantity/weight-bearing record of one material on one
    pallet at one location.
Architecture position: Kernel > Models.  May import from db/, domain/ and
    exceptions only.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - quantity >= 0 and weight_actual >= 0 after every mutation.
    - adjust_inventory() is the only mutator of physical state; it validates
      both fields before touching either.
    - Weight results slightly below zero (rounding noise within tolerance)
      are clamped to exactly zero instead of being rejected.
    - Lots are never deleted (see db/immutability.py); a drained lot stays
      as a historical row with quantity 0.
    - version is an optimistic-concurrency token managed by the ORM
      (version_id_col), checked on every UPDATE.

Failure modes:
    - InsufficientQuantityError if quantity + delta < 0.
    - InvalidWeightError if weight + delta falls below the floor and outside
      the tolerance.
    - StaleDataError at flush when another transaction bumped the version
      (translated to OptimisticLockError by the unit of work).

Audit relevance:
    Every engine-driven mutation of a lot is paired with an
    InventoryAdjustment row written by the audit trail.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from wms_kernel.db.base import EnumString, TrackedBase, UUIDString
from wms_kernel.db.types import (
    DEFAULT_NEGATIVE_WEIGHT_FLOOR,
    DEFAULT_WEIGHT_TOLERANCE,
    round_quantity,
    round_weight,
    to_decimal,
)
from wms_kernel.domain.values import ComplianceLabelType, InventoryStatus, Weight
from wms_kernel.exceptions import InsufficientQuantityError, InvalidWeightError


class InventoryLot(TrackedBase):
    """
    One trackable quantity of one material on one pallet.

    Contract:
        Created by receiving/kitting flows and by restore paths of the
        amendment and void engines.  Mutated only through adjust_inventory()
        and the status helpers below.

    Guarantees:
        - quantity and weight_actual are never persisted negative.
        - A failed adjust_inventory() leaves both fields untouched.

    Non-goals:
        - Does NOT record audit rows itself; callers pair each adjustment
          with an InventoryAdjustment.
        - Does NOT decide which lot to draw from; that is the allocation
          engine's job.
    """

    __tablename__ = "inventory_lots"

    __table_args__ = (
        # Query: lots of a material on a pallet (amend/void lot search)
        Index("idx_inventory_lot_pallet_material", "pallet_id", "material_id"),
        Index("idx_inventory_lot_account", "account_id"),
        Index("idx_inventory_lot_barcode", "barcode"),
    )

    material_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    pallet_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    weight_actual: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    weight_unit: Mapped[str] = mapped_column(String(10), nullable=False, default="KG")

    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    barcode: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[InventoryStatus] = mapped_column(
        EnumString(InventoryStatus),
        nullable=False,
        default=InventoryStatus.AVAILABLE,
    )
    compliance_label_status: Mapped[ComplianceLabelType] = mapped_column(
        EnumString(ComplianceLabelType),
        nullable=False,
        default=ComplianceLabelType.NONE,
    )
    quarantine_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    quarantine_ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def create(
        cls,
        *,
        material_id: UUID,
        location_id: UUID,
        pallet_id: UUID,
        account_id: UUID,
        quantity: Decimal | int | str,
        weight: Weight,
        batch_number: str,
        barcode: str,
        created_by_id: UUID,
        expiry_date: date | None = None,
    ) -> InventoryLot:
        """
        Build a new Available lot.

        Raises:
            ValueError: if quantity is negative.
        """
        qty = to_decimal(quantity)
        if qty < 0:
            raise ValueError(f"Lot quantity cannot be negative: {qty}")
        return cls(
            id=uuid4(),
            material_id=material_id,
            location_id=location_id,
            pallet_id=pallet_id,
            account_id=account_id,
            quantity=round_quantity(qty),
            weight_actual=round_weight(weight.value),
            weight_unit=weight.unit,
            batch_number=batch_number,
            barcode=barcode,
            expiry_date=expiry_date,
            status=InventoryStatus.AVAILABLE,
            compliance_label_status=ComplianceLabelType.NONE,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryLot {self.id} material={self.material_id} "
            f"qty={self.quantity} weight={self.weight_actual}{self.weight_unit}>"
        )

    @property
    def weight(self) -> Weight:
        return Weight(value=self.weight_actual, unit=self.weight_unit)

    @property
    def is_empty(self) -> bool:
        return self.quantity == 0

    def adjust_inventory(
        self,
        quantity_delta: Decimal,
        weight_delta: Decimal,
        *,
        weight_tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
        negative_weight_floor: Decimal = DEFAULT_NEGATIVE_WEIGHT_FLOOR,
    ) -> None:
        """
        Apply signed deltas to quantity and weight.

        Negative deltas remove stock, positive deltas add it.

        Preconditions: deltas are Decimal.
        Postconditions: on success quantity and weight_actual are updated
            in place and both are >= 0; on failure neither field changed.

        Raises:
            InsufficientQuantityError: quantity + quantity_delta < 0.
            InvalidWeightError: weight + weight_delta < negative_weight_floor
                and |weight + weight_delta| > weight_tolerance.
        """
        new_quantity = self.quantity + quantity_delta
        if new_quantity < 0:
            raise InsufficientQuantityError(
                inventory_id=str(self.id),
                quantity=self.quantity,
                quantity_delta=quantity_delta,
            )

        new_weight = self.weight_actual + weight_delta
        if new_weight < 0:
            if new_weight < negative_weight_floor and abs(new_weight) > weight_tolerance:
                raise InvalidWeightError(
                    inventory_id=str(self.id),
                    weight=self.weight_actual,
                    weight_delta=weight_delta,
                )
            # Rounding noise
            new_weight = Decimal("0")

        self.quantity = round_quantity(new_quantity)
        self.weight_actual = round_weight(new_weight)

    def start_quarantine(self, at: datetime) -> None:
        """Place the lot in quarantine. No-op if already quarantined."""
        if self.status == InventoryStatus.QUARANTINED:
            return
        self.status = InventoryStatus.QUARANTINED
        self.quarantine_started_at = at
        self.quarantine_ended_at = None

    def release_from_quarantine(self, at: datetime) -> None:
        """Return a quarantined lot to Available. No-op otherwise."""
        if self.status != InventoryStatus.QUARANTINED:
            return
        self.status = InventoryStatus.AVAILABLE
        self.quarantine_ended_at = at

    def update_compliance_label_status(self, label: ComplianceLabelType) -> None:
        self.compliance_label_status = label
        if self.status == InventoryStatus.AWAITING_LABELING:
            self.status = InventoryStatus.AVAILABLE

    def move_to_location(self, location_id: UUID | None) -> None:
        if location_id is None:
            raise ValueError("New location id is required")
        self.location_id = location_id
