"""
Tests for line amendments through VasCommandService.amend_line.

Covers:
- Input consumed more: largest-first removal across lots
- Input consumed less: return to an existing lot, a new RESTORED lot, or
  nowhere (empty pallet)
- Output produced more / less
- Weight-only, pallet-less and labor line amendments move no stock
- Preconditions and validation
- Originals captured on the first amendment only
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from tests.conftest import TEST_ACTOR_ID, TEST_LOCATION_ID
from wms_kernel.domain.values import AdjustmentReason, AmendmentType
from wms_kernel.exceptions import (
    InsufficientInventoryError,
    LineNotFoundError,
    TransactionNotFoundError,
    TransactionVoidedError,
    ValidationError,
)
from wms_kernel.models.audit import InventoryAdjustment, VasTransactionAmendment


@pytest.fixture
def adjustments(session_factory):
    def _read(transaction_id):
        with session_factory() as s:
            rows = s.scalars(
                select(InventoryAdjustment)
                .where(InventoryAdjustment.transaction_id == transaction_id)
                .order_by(InventoryAdjustment.delta_quantity)
            ).all()
            return [(row.inventory_id, row.delta_quantity, row.reason) for row in rows]

    return _read


def _line(queries, txn, index=0):
    return queries.get_transaction(txn.id).lines[index]


class TestInputConsumedMore:

    def test_removes_largest_lot_first(
        self, commands, queries, make_lot, make_transaction, lot_state, adjustments,
        pallet_id, material_id,
    ):
        small = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=4, weight=4)
        large = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=6, weight=6)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        assert commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("18"), new_weight=Decimal("18"),
            reason="recount",
        ) is True

        assert lot_state(large).quantity == Decimal("0")
        assert lot_state(large).weight == Decimal("0")
        assert lot_state(small).quantity == Decimal("2")
        assert lot_state(small).weight == Decimal("2")
        assert adjustments(txn.id) == [
            (large, Decimal("-6"), AdjustmentReason.CORRECTION),
            (small, Decimal("-2"), AdjustmentReason.CORRECTION),
        ]

    def test_weight_taken_proportionally(
        self, commands, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        a = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=3, weight=30)
        b = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=1, weight=10)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 2, "weight": 20}],
        )

        # +4 units, +8 kg: lot a gives 3 units and 6 kg, lot b 1 unit and 2 kg
        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("6"), new_weight=Decimal("28"),
            reason="scale correction",
        )

        assert lot_state(a).weight == Decimal("24")
        assert lot_state(b).weight == Decimal("8")

    def test_insufficient_leaves_everything_untouched(
        self, commands, queries, make_lot, make_transaction, lot_state, adjustments,
        pallet_id, material_id,
    ):
        a = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=5, weight=5)
        b = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=3, weight=3)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 2, "weight": 2}],
        )

        with pytest.raises(InsufficientInventoryError) as exc_info:
            commands.amend_line(
                txn.id, txn.lines[0].id, new_quantity=Decimal("12"), reason="recount"
            )

        assert exc_info.value.available_quantity == Decimal("8")
        assert lot_state(a).quantity == Decimal("5")
        assert lot_state(b).quantity == Decimal("3")
        line = _line(queries, txn)
        assert line.quantity == Decimal("2")
        assert not line.is_amended
        assert adjustments(txn.id) == []
        assert queries.get_amendment_history(txn.id) == []


class TestInputConsumedLess:

    def test_returns_to_existing_lot(
        self, commands, make_lot, make_transaction, lot_state, adjustments,
        pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=80, weight=80)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 20}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("15"), new_weight=Decimal("15"),
            reason="over-recorded",
        )

        assert lot_state(lot).quantity == Decimal("85")
        assert lot_state(lot).weight == Decimal("85")
        assert adjustments(txn.id) == [(lot, Decimal("5"), AdjustmentReason.CORRECTION)]

    def test_creates_restored_lot_at_sibling_location(
        self, commands, make_lot, make_transaction, pallet_lots, pallet_id, material_id,
    ):
        other_location = uuid4()
        make_lot(
            pallet_id=pallet_id, material_id=uuid4(), quantity=1, weight=1,
            location_id=other_location,
        )
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 10}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("12"), new_weight=Decimal("6"),
            reason="over-recorded",
        )

        [restored] = pallet_lots(pallet_id, material_id)
        assert restored.quantity == Decimal("8")
        assert restored.weight == Decimal("4")
        assert restored.batch_number == "RESTORED"
        assert restored.barcode.startswith("LPN-AMEND-")
        assert len(restored.barcode) == len("LPN-AMEND-") + 8
        assert restored.location_id == other_location
        assert restored.weight_unit == "KG"

    def test_empty_pallet_drops_return(
        self, commands, queries, make_transaction, pallet_lots, captured_logs,
        pallet_id, material_id,
    ):
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 20}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("10"), reason="over-recorded"
        )

        assert pallet_lots(pallet_id) == []
        assert _line(queries, txn).quantity == Decimal("10")
        [entry] = queries.get_amendment_history(txn.id)
        assert entry.details.inventory_applied is False
        assert entry.details.lot_movements == ()
        warnings = [r for r in captured_logs() if r["message"] == "amendment_restore_dropped"]
        assert warnings and warnings[0]["level"] == "WARNING"


class TestOutputAmendments:

    def test_produced_more_adds_to_existing_lot(
        self, commands, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=10, weight=10)
        txn = make_transaction(
            pallet_id=pallet_id,
            outputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("14"), new_weight=Decimal("14"),
            reason="missed cartons",
        )

        assert lot_state(lot).quantity == Decimal("14")

    def test_produced_more_creates_correction_lot(
        self, commands, make_lot, make_transaction, pallet_lots, pallet_id, material_id,
    ):
        make_lot(pallet_id=pallet_id, material_id=uuid4(), quantity=1, weight=1)
        txn = make_transaction(
            pallet_id=pallet_id,
            outputs=[{"material_id": material_id, "quantity": 2, "weight": 2}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("5"), new_weight=Decimal("5"),
            reason="missed cartons",
        )

        [created] = pallet_lots(pallet_id, material_id)
        assert created.quantity == Decimal("3")
        assert created.batch_number == "CORRECTION"
        assert created.location_id == TEST_LOCATION_ID

    def test_produced_less_removes_stock(
        self, commands, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=10, weight=10)
        txn = make_transaction(
            pallet_id=pallet_id,
            outputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("7"), new_weight=Decimal("7"),
            reason="short pick",
        )

        assert lot_state(lot).quantity == Decimal("3")
        assert lot_state(lot).weight == Decimal("3")

    def test_produced_less_after_shipment_fails(
        self, commands, queries, make_lot, make_transaction, lot_state, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=1, weight=1)
        txn = make_transaction(
            pallet_id=pallet_id,
            outputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        with pytest.raises(InsufficientInventoryError):
            commands.amend_line(
                txn.id, txn.lines[0].id, new_quantity=Decimal("5"), reason="short pick"
            )

        assert lot_state(lot).quantity == Decimal("1")
        assert _line(queries, txn).quantity == Decimal("10")


class TestAmendmentsWithoutStockMovement:

    def test_weight_only_amendment(
        self, commands, queries, make_lot, make_transaction, lot_state, adjustments,
        pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=50, weight=50)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        commands.amend_line(txn.id, txn.lines[0].id, new_weight=Decimal("12"), reason="re-weighed")

        assert lot_state(lot).weight == Decimal("50")
        line = _line(queries, txn)
        assert line.weight == Decimal("12")
        assert line.quantity == Decimal("10")
        assert line.original_weight == Decimal("10")
        assert adjustments(txn.id) == []

    def test_transaction_without_pallet(
        self, commands, queries, make_transaction, material_id,
    ):
        txn = make_transaction(
            pallet_id=None,
            inputs=[{"material_id": material_id, "quantity": 10, "weight": 10}],
        )

        commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("30"), reason="recount")

        assert _line(queries, txn).quantity == Decimal("30")
        [entry] = queries.get_amendment_history(txn.id)
        assert entry.details.inventory_applied is False

    def test_labor_line(self, commands, queries, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="2")

        commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("3.5"), reason="overtime")

        line = _line(queries, txn)
        assert line.quantity == Decimal("3.5")
        assert line.material_id is None


class TestPreconditions:

    def test_unknown_transaction(self, commands, database):
        with pytest.raises(TransactionNotFoundError):
            commands.amend_line(uuid4(), uuid4(), new_quantity=Decimal("1"), reason="x")

    def test_line_of_another_transaction(self, commands, make_transaction, pallet_id, material_id):
        spec = [{"material_id": material_id, "quantity": 1, "weight": 1}]
        first = make_transaction(pallet_id=pallet_id, inputs=spec)
        second = make_transaction(pallet_id=pallet_id, inputs=spec)

        with pytest.raises(LineNotFoundError) as exc_info:
            commands.amend_line(first.id, second.lines[0].id, new_quantity=Decimal("2"), reason="x")
        assert exc_info.value.code == "LINE_NOT_FOUND"

    def test_voided_transaction(self, commands, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
        commands.void_transaction(txn.id, reason="duplicate")

        with pytest.raises(TransactionVoidedError):
            commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("2"), reason="x")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"new_quantity": Decimal("1"), "reason": "  "},
            {"reason": "no values"},
            {"new_quantity": Decimal("-1"), "reason": "negative"},
            {"new_weight": Decimal("-0.5"), "reason": "negative"},
            {"new_quantity": 25.0, "reason": "float quantity"},
            {"new_weight": 2.5, "reason": "float weight"},
            {"new_quantity": "lots", "reason": "not a number"},
            {"new_weight": Decimal("NaN"), "reason": "not finite"},
        ],
    )
    def test_invalid_requests(self, commands, queries, make_transaction, pallet_id, kwargs):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
        with pytest.raises(ValidationError):
            commands.amend_line(txn.id, txn.lines[0].id, **kwargs)
        assert not _line(queries, txn).is_amended


class TestAmendmentRecords:

    def test_originals_captured_once_across_requests(
        self, commands, queries, clock, make_lot, make_transaction, pallet_id, material_id,
    ):
        make_lot(pallet_id=pallet_id, material_id=material_id, quantity=100, weight=100)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 20}],
        )

        commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("30"), reason="first")
        clock.advance(60)
        commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("25"), reason="second")

        line = _line(queries, txn)
        assert line.original_quantity == Decimal("20")
        assert line.quantity == Decimal("25")

        history = queries.get_amendment_history(txn.id)
        assert [h.reason for h in history] == ["second", "first"]
        assert history[0].details.original_quantity == Decimal("30")
        assert history[0].details.new_quantity == Decimal("25")

    def test_history_order_with_identical_timestamps(
        self, commands, queries, make_transaction, pallet_id,
    ):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
        line_id = txn.lines[0].id

        for n, reason in enumerate(["first", "second", "third", "fourth"], start=2):
            commands.amend_line(txn.id, line_id, new_quantity=Decimal(n), reason=reason)

        history = queries.get_amendment_history(txn.id)
        assert len({h.timestamp for h in history}) == 1
        assert [h.reason for h in history] == ["fourth", "third", "second", "first"]
        assert [h.sequence for h in history] == [4, 3, 2, 1]

    def test_amendment_record_contents(
        self, commands, queries, make_lot, make_transaction, pallet_id, material_id,
    ):
        lot = make_lot(pallet_id=pallet_id, material_id=material_id, quantity=100, weight=100)
        txn = make_transaction(
            pallet_id=pallet_id,
            inputs=[{"material_id": material_id, "quantity": 20, "weight": 20}],
        )

        commands.amend_line(
            txn.id, txn.lines[0].id, new_quantity=Decimal("30"), new_weight=Decimal("30"),
            reason="  recount  ",
        )

        [entry] = queries.get_amendment_history(txn.id)
        assert entry.amendment_type == AmendmentType.LINE_AMENDMENT
        assert entry.reason == "recount"
        assert entry.user_id == TEST_ACTOR_ID
        assert entry.details.line_id == txn.lines[0].id
        assert entry.details.material_id == material_id
        assert entry.details.quantity_delta == Decimal("10")
        [movement] = entry.details.lot_movements
        assert movement.inventory_id == lot
        assert movement.quantity_delta == Decimal("-10")
        assert movement.weight_delta == Decimal("-10")

    def test_transaction_stays_amended(self, commands, queries, make_transaction, pallet_id):
        txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
        commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("2"), reason="x")
        assert queries.get_transaction(txn.id).is_amended


def test_amended_rows_are_append_only(
    session_factory, commands, make_transaction, pallet_id,
):
    txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
    commands.amend_line(txn.id, txn.lines[0].id, new_quantity=Decimal("2"), reason="x")
    with session_factory() as s:
        count = len(
            s.scalars(
                select(VasTransactionAmendment).where(
                    VasTransactionAmendment.original_transaction_id == txn.id
                )
            ).all()
        )
    assert count == 1


def test_float_rejection_names_the_field(commands, make_transaction, pallet_id):
    txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
    with pytest.raises(ValidationError) as exc_info:
        commands.amend_line(txn.id, txn.lines[0].id, new_quantity=25.0, reason="recount")
    assert exc_info.value.field == "new_quantity"
    assert exc_info.value.code == "VALIDATION_ERROR"


def test_int_and_string_amounts_accepted(commands, queries, make_transaction, pallet_id):
    txn = make_transaction(pallet_id=pallet_id, labor_quantity="1")
    commands.amend_line(txn.id, txn.lines[0].id, new_quantity=3, new_weight="1.25", reason="x")
    line = _line(queries, txn)
    assert line.quantity == Decimal("3")
    assert line.weight == Decimal("1.25")
