"""
Inventory lot query selector.

Read-only view of lots by pallet and material, used by the query side and
by tests that assert on physical state after a request.

Key design decisions:
- Returns LotDTO (frozen), not InventoryLot
- Ordering is by created_at then id so results are stable across backends
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from wms_kernel.domain.values import InventoryStatus
from wms_kernel.models.inventory_lot import InventoryLot
from wms_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LotDTO:
    """Data transfer object for an inventory lot."""

    id: UUID
    material_id: UUID
    location_id: UUID
    pallet_id: UUID
    account_id: UUID
    quantity: Decimal
    weight: Decimal
    weight_unit: str
    batch_number: str
    expiry_date: date | None
    barcode: str
    status: InventoryStatus
    version: int


class InventorySelector(BaseSelector[InventoryLot]):
    """Selector for inventory lot queries."""

    def _to_dto(self, lot: InventoryLot) -> LotDTO:
        return LotDTO(
            id=lot.id,
            material_id=lot.material_id,
            location_id=lot.location_id,
            pallet_id=lot.pallet_id,
            account_id=lot.account_id,
            quantity=lot.quantity,
            weight=lot.weight_actual,
            weight_unit=lot.weight_unit,
            batch_number=lot.batch_number,
            expiry_date=lot.expiry_date,
            barcode=lot.barcode,
            status=lot.status,
            version=lot.version,
        )

    def get(self, lot_id: UUID) -> LotDTO | None:
        lot = self.session.get(InventoryLot, lot_id)
        return self._to_dto(lot) if lot is not None else None

    def lots_on_pallet(
        self, pallet_id: UUID, material_id: UUID | None = None
    ) -> list[LotDTO]:
        """All lots on a pallet, optionally restricted to one material."""
        stmt = select(InventoryLot).where(InventoryLot.pallet_id == pallet_id)
        if material_id is not None:
            stmt = stmt.where(InventoryLot.material_id == material_id)
        stmt = stmt.order_by(InventoryLot.created_at, InventoryLot.id)
        return [self._to_dto(lot) for lot in self.session.scalars(stmt)]
