"""
LotLedgerService -- applies corrective stock movements to inventory lots.

Responsibility:
    The imperative shell around LotAllocationEngine.  Removes stock from the
    lots of one material on one pallet by applying an allocation plan, and
    restores stock into an existing lot or a newly created one.  Every lot
    touched or created is paired with one Correction InventoryAdjustment.

Architecture position:
    Services -- used by AmendmentService and VoidService.  Consumes
    wms_engines (pure planning), wms_kernel models and the audit trail.

Invariants enforced:
    - A removal is planned in full before any lot is mutated, so an
      insufficient pallet raises InsufficientInventoryError with every lot
      untouched.
    - Lots are mutated only through InventoryLot.adjust_inventory(), which
      owns the non-negativity and weight tolerance rules.
    - One InventoryAdjustment per lot per movement that changes quantity,
      signed negative for removals and positive for restores.

Failure modes:
    - InsufficientInventoryError from the allocation engine.
    - InvalidWeightError / InsufficientQuantityError from adjust_inventory().

Audit relevance:
    The returned LotMovement tuples are written into the amendment details,
    so the exact lots debited or credited by a request are reconstructible.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms_config import ReconciliationConfig
from wms_engines.allocation import CandidateLot, LotAllocationEngine, RemovalPlan
from wms_kernel.domain.amendment_details import LotMovement
from wms_kernel.domain.values import AdjustmentReason, Weight
from wms_kernel.logging_config import get_logger
from wms_kernel.models.inventory_lot import InventoryLot
from wms_kernel.services.audit_trail import AuditTrailService
from wms_kernel.services.base import BaseService

logger = get_logger("services.lot_ledger")


def new_barcode(prefix: str) -> str:
    """Barcode for a lot created by a correction, e.g. LPN-AMEND-1A2B3C4D."""
    return f"{prefix}{uuid4().hex[:8].upper()}"


class LotLedgerService(BaseService[InventoryLot]):
    """
    Remove and restore stock on a pallet.

    Contract:
        Quantities passed in are positive magnitudes.  ``weight`` is the
        weight that travels with them and may carry either sign.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT touch transaction lines.
    """

    def __init__(
        self,
        session: Session,
        audit: AuditTrailService,
        config: ReconciliationConfig | None = None,
        engine: LotAllocationEngine | None = None,
    ):
        super().__init__(session)
        self._audit = audit
        self._config = config or ReconciliationConfig()
        self._engine = engine or LotAllocationEngine()

    # -- queries -------------------------------------------------------------

    def lots_for(self, pallet_id: UUID, material_id: UUID) -> list[InventoryLot]:
        """Lots of one material on one pallet, oldest first."""
        stmt = (
            select(InventoryLot)
            .where(
                InventoryLot.pallet_id == pallet_id,
                InventoryLot.material_id == material_id,
            )
            .order_by(InventoryLot.created_at, InventoryLot.id)
        )
        return list(self.session.scalars(stmt))

    def any_lot_on_pallet(self, pallet_id: UUID) -> InventoryLot | None:
        """Any lot on the pallet, used as the location reference for new lots."""
        stmt = (
            select(InventoryLot)
            .where(InventoryLot.pallet_id == pallet_id)
            .order_by(InventoryLot.created_at, InventoryLot.id)
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    # -- removal -------------------------------------------------------------

    def plan_removal(
        self,
        *,
        pallet_id: UUID,
        material_id: UUID,
        quantity: Decimal,
        weight: Decimal,
    ) -> RemovalPlan:
        lots = self.lots_for(pallet_id, material_id)
        return self._engine.plan_removal(
            material_id=material_id,
            pallet_id=pallet_id,
            candidates=[
                CandidateLot(
                    lot_id=lot.id,
                    quantity=lot.quantity,
                    weight=lot.weight_actual,
                    expiry_date=lot.expiry_date,
                )
                for lot in lots
            ],
            quantity=quantity,
            weight=weight,
            policy=self._config.lot_selection_policy,
            weight_decimal_places=self._config.weight_decimal_places,
        )

    def apply_removal(
        self,
        plan: RemovalPlan,
        *,
        account_id: UUID,
        user_id: UUID,
        transaction_id: UUID,
    ) -> tuple[LotMovement, ...]:
        movements: list[LotMovement] = []
        for draw in plan.draws:
            lot = self.session.get(InventoryLot, draw.lot_id)
            lot.adjust_inventory(
                -draw.quantity,
                -draw.weight,
                weight_tolerance=self._config.weight_tolerance,
                negative_weight_floor=self._config.negative_weight_floor,
            )
            lot.updated_by_id = user_id
            self._audit.record_adjustment(
                inventory_id=lot.id,
                delta_quantity=-draw.quantity,
                account_id=account_id,
                user_id=user_id,
                reason=AdjustmentReason.CORRECTION,
                transaction_id=transaction_id,
            )
            movements.append(
                LotMovement(
                    inventory_id=lot.id,
                    quantity_delta=-draw.quantity,
                    weight_delta=-draw.weight,
                )
            )
            logger.info(
                "lot_consumed",
                extra={
                    "inventory_id": str(lot.id),
                    "quantity_taken": str(draw.quantity),
                    "weight_taken": str(draw.weight),
                    "remaining_quantity": str(lot.quantity),
                },
            )
        return tuple(movements)

    def remove(
        self,
        *,
        pallet_id: UUID,
        material_id: UUID,
        quantity: Decimal,
        weight: Decimal,
        account_id: UUID,
        user_id: UUID,
        transaction_id: UUID,
    ) -> tuple[LotMovement, ...]:
        """
        Remove ``quantity`` of a material from the pallet.

        Raises:
            InsufficientInventoryError: the pallet holds less than quantity;
                no lot has been touched.
        """
        plan = self.plan_removal(
            pallet_id=pallet_id,
            material_id=material_id,
            quantity=quantity,
            weight=weight,
        )
        return self.apply_removal(
            plan,
            account_id=account_id,
            user_id=user_id,
            transaction_id=transaction_id,
        )

    # -- restore -------------------------------------------------------------

    def restore(
        self,
        *,
        pallet_id: UUID,
        material_id: UUID,
        quantity: Decimal,
        weight: Decimal,
        account_id: UUID,
        user_id: UUID,
        transaction_id: UUID,
        batch_number: str,
        barcode_prefix: str,
        expiry_date: date | None = None,
    ) -> LotMovement | None:
        """
        Put ``quantity`` of a material back on the pallet.

        Adds to the first existing lot of the material.  Otherwise creates a
        lot at the location of any lot on the pallet.  Returns None when the
        pallet holds no lot at all, so there is no location to restore to.
        """
        existing = self.lots_for(pallet_id, material_id)
        created = False
        if existing:
            lot = existing[0]
        else:
            reference = self.any_lot_on_pallet(pallet_id)
            if reference is None:
                return None
            lot = InventoryLot.create(
                material_id=material_id,
                location_id=reference.location_id,
                pallet_id=pallet_id,
                account_id=account_id,
                quantity=Decimal("0"),
                weight=Weight.of(Decimal("0"), self._config.default_weight_unit),
                batch_number=batch_number,
                barcode=new_barcode(barcode_prefix),
                created_by_id=user_id,
                expiry_date=expiry_date,
            )
            self.session.add(lot)
            created = True

        lot.adjust_inventory(
            quantity,
            weight,
            weight_tolerance=self._config.weight_tolerance,
            negative_weight_floor=self._config.negative_weight_floor,
        )
        if not created:
            lot.updated_by_id = user_id
        self.session.flush()

        # Adjustments record quantity only; a weight-only restore writes none.
        if quantity != 0:
            self._audit.record_adjustment(
                inventory_id=lot.id,
                delta_quantity=quantity,
                account_id=account_id,
                user_id=user_id,
                reason=AdjustmentReason.CORRECTION,
                transaction_id=transaction_id,
            )
        logger.info(
            "lot_created" if created else "lot_restored",
            extra={
                "inventory_id": str(lot.id),
                "quantity_added": str(quantity),
                "weight_added": str(weight),
                "batch_number": lot.batch_number,
            },
        )
        return LotMovement(
            inventory_id=lot.id,
            quantity_delta=quantity,
            weight_delta=weight,
            created=created,
        )
