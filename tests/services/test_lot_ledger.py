"""
Tests for LotLedgerService used directly on a session.

Covers:
- Removal honours the configured lot selection policy
- Planning never mutates lots
- Restore into existing lots, new lots, and empty pallets
- One Correction adjustment per lot touched
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from tests.conftest import TEST_ACCOUNT_ID, TEST_ACTOR_ID
from wms_config import ReconciliationConfig
from wms_engines.allocation import LotSelectionPolicy
from wms_kernel.domain.values import AdjustmentReason
from wms_kernel.exceptions import InsufficientInventoryError
from wms_kernel.models.audit import InventoryAdjustment
from wms_kernel.models.inventory_lot import InventoryLot
from wms_kernel.services.audit_trail import AuditTrailService
from wms_services.lot_ledger import LotLedgerService, new_barcode


def _ledger(session, clock, **config_overrides) -> LotLedgerService:
    audit = AuditTrailService(session, clock=clock)
    return LotLedgerService(session, audit, config=ReconciliationConfig(**config_overrides))


def _ids(**extra):
    return dict(
        account_id=TEST_ACCOUNT_ID,
        user_id=TEST_ACTOR_ID,
        transaction_id=uuid4(),
        **extra,
    )


def test_new_barcode_format():
    barcode = new_barcode("LPN-VOID-")
    suffix = barcode.removeprefix("LPN-VOID-")
    assert len(suffix) == 8
    assert suffix == suffix.upper()


class TestRemoval:

    def test_fifo_policy_from_config(self, session, clock, make_lot, pallet_id, material_id):
        big_late = make_lot(
            pallet_id=pallet_id, material_id=material_id, quantity=50, weight=50,
            expiry_date=date(2026, 1, 1),
        )
        small_early = make_lot(
            pallet_id=pallet_id, material_id=material_id, quantity=5, weight=5,
            expiry_date=date(2024, 1, 1),
        )
        ledger = _ledger(session, clock, lot_selection_policy=LotSelectionPolicy.FIFO_BY_EXPIRY)

        movements = ledger.remove(
            pallet_id=pallet_id, material_id=material_id,
            quantity=Decimal("8"), weight=Decimal("8"), **_ids(),
        )

        assert [m.inventory_id for m in movements] == [small_early, big_late]
        assert session.get(InventoryLot, small_early).quantity == Decimal("0")
        assert session.get(InventoryLot, big_late).quantity == Decimal("47")

    def test_plan_does_not_mutate(self, session, clock, make_lot, pallet_id, material_id):
        lot_id = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=5, weight=5)
        ledger = _ledger(session, clock)

        plan = ledger.plan_removal(
            pallet_id=pallet_id, material_id=material_id,
            quantity=Decimal("3"), weight=Decimal("3"),
        )

        assert plan.total_quantity == Decimal("3")
        assert session.get(InventoryLot, lot_id).quantity == Decimal("5")
        assert session.scalars(select(InventoryAdjustment)).all() == []

    def test_one_adjustment_per_lot(self, session, clock, make_lot, pallet_id, material_id):
        make_lot(pallet_id=pallet_id, material_id=material_id, quantity=2, weight=2)
        make_lot(pallet_id=pallet_id, material_id=material_id, quantity=3, weight=3)
        ledger = _ledger(session, clock)
        ids = _ids()

        ledger.remove(
            pallet_id=pallet_id, material_id=material_id,
            quantity=Decimal("5"), weight=Decimal("5"), **ids,
        )

        rows = session.scalars(select(InventoryAdjustment)).all()
        assert sorted(r.delta_quantity for r in rows) == [Decimal("-3"), Decimal("-2")]
        assert {r.reason for r in rows} == {AdjustmentReason.CORRECTION}
        assert {r.transaction_id for r in rows} == {ids["transaction_id"]}

    def test_other_materials_are_not_candidates(
        self, session, clock, make_lot, pallet_id, material_id,
    ):
        make_lot(pallet_id=pallet_id, material_id=uuid4(), quantity=100, weight=100)
        make_lot(pallet_id=uuid4(), material_id=material_id, quantity=100, weight=100)
        ledger = _ledger(session, clock)

        with pytest.raises(InsufficientInventoryError):
            ledger.remove(
                pallet_id=pallet_id, material_id=material_id,
                quantity=Decimal("1"), weight=Decimal("1"), **_ids(),
            )


class TestRestore:

    def _restore(self, ledger, pallet_id, material_id, quantity="4", weight="4", **extra):
        return ledger.restore(
            pallet_id=pallet_id,
            material_id=material_id,
            quantity=Decimal(quantity),
            weight=Decimal(weight),
            batch_number="RESTORED",
            barcode_prefix="LPN-AMEND-",
            **_ids(**extra),
        )

    def test_adds_to_existing_lot(self, session, clock, make_lot, pallet_id, material_id):
        lot_id = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=1, weight=2)
        movement = self._restore(_ledger(session, clock), pallet_id, material_id)

        assert movement.inventory_id == lot_id
        assert movement.created is False
        lot = session.get(InventoryLot, lot_id)
        assert lot.quantity == Decimal("5")
        assert lot.weight_actual == Decimal("6")
        assert lot.updated_by_id == TEST_ACTOR_ID

    def test_creates_lot_when_material_absent(
        self, session, clock, make_lot, pallet_id, material_id,
    ):
        make_lot(pallet_id=pallet_id, material_id=uuid4(), quantity=1, weight=1)
        movement = self._restore(
            _ledger(session, clock, default_weight_unit="LB"),
            pallet_id, material_id, expiry_date=date(2030, 1, 1),
        )

        assert movement.created is True
        lot = session.get(InventoryLot, movement.inventory_id)
        assert lot.material_id == material_id
        assert lot.quantity == Decimal("4")
        assert lot.weight_unit == "LB"
        assert lot.batch_number == "RESTORED"
        assert lot.expiry_date == date(2030, 1, 1)
        assert lot.created_by_id == TEST_ACTOR_ID

    def test_empty_pallet_returns_none(self, session, clock, pallet_id, material_id):
        assert self._restore(_ledger(session, clock), pallet_id, material_id) is None
        assert session.scalars(select(InventoryLot)).all() == []
        assert session.scalars(select(InventoryAdjustment)).all() == []

    def test_negative_weight_clamped_on_restore(
        self, session, clock, make_lot, pallet_id, material_id,
    ):
        lot_id = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=1, weight="0.02")
        self._restore(_ledger(session, clock), pallet_id, material_id, weight="-0.03")
        assert session.get(InventoryLot, lot_id).weight_actual == Decimal("0")
