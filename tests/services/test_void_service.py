"""
Tests for transaction voids through VasCommandService.void_transaction.

Covers:
- Input lines return to their lot, or to a new lot carrying the line's
  batch and expiry
- Output lines are removed from the pallet
- Lines that cannot move stock are recorded as not applied
- A void that cannot be reversed leaves the transaction open
- Voids happen once
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from tests.conftest import TEST_ACTOR_ID
from wms_kernel.domain.amendment_details import VoidDetails
from wms_kernel.domain.values import AmendmentType, ServiceType
from wms_kernel.exceptions import (
    AlreadyVoidedError,
    InsufficientInventoryError,
    LocationUnresolvedError,
    TransactionNotFoundError,
    ValidationError,
)
from wms_kernel.models.audit import InventoryAdjustment


class TestInputLineReversal:

    def test_returns_stock_to_existing_lot(
        self, commands, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=80, weight=80)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 20}],
        )

        assert commands.void_transaction(txn.id, reason="wrong pallet") is True

        assert lot_state(lot).quantity == Decimal("100")
        assert lot_state(lot).weight == Decimal("100")

    def test_new_lot_keeps_line_batch_and_expiry(
        self, commands, make_lot, make_transaction, pallet_lots, pallet_id, material_id,
    ):
        make_lot(pallet_id=pallet_id, material_id=uuid4(), quantity=1, weight=1)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[
                {
                    "material_id": material_id,
                    "quantity": 12,
                    "weight": 6,
                    "batch_number": "B-2024-07",
                    "expiry_date": date(2025, 3, 31),
                }
            ],
        )

        commands.void_transaction(txn.id, reason="wrong pallet")

        [restored] = pallet_lots(pallet_id, material_id)
        assert restored.quantity == Decimal("12")
        assert restored.weight == Decimal("6")
        assert restored.batch_number == "B-2024-07"
        assert restored.expiry_date == date(2025, 3, 31)
        assert restored.barcode.startswith("LPN-VOID-")

    def test_new_lot_without_line_batch_is_tagged_restored(
        self, commands, make_lot, make_transaction, pallet_lots, pallet_id, material_id,
    ):
        make_lot(pallet_id=pallet_id, material_id=uuid4(), quantity=1, weight=1)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 3, "weight": 3}],
        )

        commands.void_transaction(txn.id, reason="wrong pallet")

        [restored] = pallet_lots(pallet_id, material_id)
        assert restored.batch_number == "RESTORED"

    def test_line_amended_to_zero_units_returns_its_weight(
        self, commands, queries, session_factory, make_lot, make_transaction, lot_state,
        pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=80, weight=80)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 20}],
        )
        line_id = txn.lines[0].id
        commands.amend_line(txn.id, line_id, new_quantity=Decimal("0"), reason="none used")
        assert lot_state(lot).quantity == Decimal("100")
        assert lot_state(lot).weight == Decimal("80")

        commands.void_transaction(txn.id, reason="wrong pallet")

        assert lot_state(lot).quantity == Decimal("100")
        assert lot_state(lot).weight == Decimal("100")
        void_entry = queries.get_amendment_history(txn.id)[0]
        [voided_line] = void_entry.details.lines
        assert voided_line.inventory_applied is True
        assert voided_line.lot_movements[0].quantity_delta == Decimal("0")
        assert voided_line.lot_movements[0].weight_delta == Decimal("20")
        with session_factory() as s:
            deltas = [
                row.delta_quantity
                for row in s.scalars(
                    select(InventoryAdjustment).where(InventoryAdjustment.inventory_id == lot)
                )
            ]
        assert deltas == [Decimal("20")]

    def test_empty_pallet_blocks_void(
        self, commands, queries, make_transaction, pallet_lots, pallet_id, material_id,
    ):
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 3, "weight": 3}],
        )

        with pytest.raises(LocationUnresolvedError) as exc_info:
            commands.void_transaction(txn.id, reason="wrong pallet")

        assert exc_info.value.pallet_id == str(pallet_id)
        assert queries.get_transaction(txn.id).is_voided is False
        assert pallet_lots(pallet_id) == []
        assert queries.get_amendment_history(txn.id) == []


class TestOutputLineReversal:

    def test_removes_produced_stock(
        self, commands, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=10, weight=25)
        txn = make_transaction(
            pallet_id=pallet_id,
            outputs=[{"material_id": material_id, "quantity": 10, "weight": 25}],
        )

        commands.void_transaction(txn.id, reason="kit never built")

        assert lot_state(lot).quantity == Decimal("0")
        assert lot_state(lot).weight == Decimal("0")

    def test_shipped_output_blocks_void(
        self, commands, queries, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=4, weight=4)
        txn = make_transaction(
            pallet_id=pallet_id,
            outputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        with pytest.raises(InsufficientInventoryError) as exc_info:
            commands.void_transaction(txn.id, reason="kit never built")

        assert exc_info.value.requested_quantity == Decimal("10")
        assert queries.get_transaction(txn.id).is_voided is False
        assert lot_state(lot).quantity == Decimal("4")


class TestMixedTransactions:

    def test_repack_reverses_both_sides(
        self, commands, queries, make_lot, make_transaction, lot_state, pallet_id,
    ):
        bulk, packed = uuid4(), uuid4()
        bulk_lot = make_lot(pallet_id=pallet_id, material_id=bulk, quantity=0, weight=0)
        packed_lot = make_lot(pallet_id=pallet_id, material_id=packed, quantity=10, weight=11)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": bulk, "quantity": 10, "weight": 10}],
            outputs=[{"material_id": packed, "quantity": 10, "weight": 11}],
            labor_quantity="1.5",
        )

        commands.void_transaction(txn.id, reason="duplicate entry")

        assert lot_state(bulk_lot).quantity == Decimal("10")
        assert lot_state(packed_lot).quantity == Decimal("0")

        [entry] = queries.get_amendment_history(txn.id)
        assert entry.amendment_type == AmendmentType.TRANSACTION_VOID
        assert isinstance(entry.details, VoidDetails)
        assert entry.details.service_type == ServiceType.REPACK
        assert [line.inventory_applied for line in entry.details.lines] == [True, True, False]
        assert entry.details.lines[0].lot_movements[0].inventory_id == bulk_lot
        assert entry.details.lines[1].lot_movements[0].quantity_delta == Decimal("-10")

    def test_transaction_without_pallet(
        self, commands, queries, make_transaction, material_id,
    ):
        txn = make_transaction(
            pallet_id=None,
            inputs=[{"material_id": material_id, "quantity": 5, "weight": 5}],
        )

        commands.void_transaction(txn.id, reason="test entry")

        [entry] = queries.get_amendment_history(txn.id)
        assert [line.inventory_applied for line in entry.details.lines] == [False]
        assert queries.get_transaction(txn.id).is_voided

    def test_zero_quantity_line_moves_nothing(
        self, commands, queries, make_transaction, pallet_lots, pallet_id, material_id,
    ):
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 0, "weight": 0}],
        )

        commands.void_transaction(txn.id, reason="empty line")

        assert pallet_lots(pallet_id) == []
        [entry] = queries.get_amendment_history(txn.id)
        assert entry.details.lines[0].inventory_applied is False


class TestVoidState:

    def test_void_fields_recorded(self, commands, queries, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="2")

        commands.void_transaction(txn.id, reason="  billed twice ")

        voided = queries.get_transaction(txn.id)
        assert voided.is_voided
        assert voided.voided_at is not None
        assert voided.voided_by_user_id == TEST_ACTOR_ID
        assert voided.void_reason == "billed twice"

    def test_second_void_rejected(self, commands, queries, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="2")
        commands.void_transaction(txn.id, reason="billed twice")

        with pytest.raises(AlreadyVoidedError):
            commands.void_transaction(txn.id, reason="again")

        assert len(queries.get_amendment_history(txn.id)) == 1
        assert queries.get_transaction(txn.id).void_reason == "billed twice"

    def test_already_voided_checked_before_reason(self, commands, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="2")
        commands.void_transaction(txn.id, reason="billed twice")

        with pytest.raises(AlreadyVoidedError):
            commands.void_transaction(txn.id, reason="")

    def test_blank_reason(self, commands, queries, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="2")
        with pytest.raises(ValidationError):
            commands.void_transaction(txn.id, reason="   ")
        assert queries.get_transaction(txn.id).is_voided is False

    def test_unknown_transaction(self, commands):
        with pytest.raises(TransactionNotFoundError):
            commands.void_transaction(uuid4(), reason="x")
