"""Tests for the WMS_ENGINE_TRACE decorator."""

from decimal import Decimal
from uuid import uuid4

from wms_engines.allocation import CandidateLot, LotAllocationEngine, LotSelectionPolicy
from wms_engines.tracer import compute_input_fingerprint


class TestFingerprint:

    def test_same_inputs_same_fingerprint(self):
        kwargs = {"quantity": Decimal("10"), "policy": LotSelectionPolicy.LARGEST_FIRST}
        fields = ("quantity", "policy")
        assert compute_input_fingerprint(fields, kwargs) == compute_input_fingerprint(
            fields, dict(kwargs)
        )

    def test_policy_changes_fingerprint(self):
        fields = ("quantity", "policy")
        a = compute_input_fingerprint(
            fields, {"quantity": Decimal("10"), "policy": LotSelectionPolicy.LARGEST_FIRST}
        )
        b = compute_input_fingerprint(
            fields, {"quantity": Decimal("10"), "policy": LotSelectionPolicy.FIFO_BY_EXPIRY}
        )
        assert a != b


def test_plan_removal_emits_trace(captured_logs):
    lot_id = uuid4()
    LotAllocationEngine().plan_removal(
        material_id=uuid4(),
        pallet_id=uuid4(),
        candidates=[CandidateLot(lot_id, Decimal("5"), Decimal("5"))],
        quantity=Decimal("2"),
        weight=Decimal("2"),
    )

    traces = [r for r in captured_logs() if r["message"] == "WMS_ENGINE_TRACE"]
    assert len(traces) == 1
    assert traces[0]["engine_name"] == "lot_allocation"
    assert traces[0]["input_fingerprint"]
    assert any(r["message"] == "removal_planned" for r in captured_logs())
