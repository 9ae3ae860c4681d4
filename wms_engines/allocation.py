"""
Module: wms_engines.allocation
Responsibility:
    Plan how a stock removal of one material is spread across the lots on
    one pallet: which lots, in what order, how much quantity from each, and
    how much weight goes with it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import wms_kernel.domain, wms_kernel.db.types,
    wms_kernel.exceptions and logging.

Invariants enforced:
    - All-or-nothing: insufficiency is detected before a plan is returned,
      so callers never apply half a removal.
    - Quantity conservation: sum(draw.quantity) == requested quantity.
    - Weight conservation: sum(draw.weight) == requested weight exactly; each
      draw takes (draw_qty / requested_qty) * requested_weight, quantized,
      and the final draw absorbs the rounding remainder.
    - Deterministic ordering: ties are broken by candidate position.

Failure modes:
    - InsufficientInventoryError when the candidates hold less than the
      requested quantity.
    - ValueError on a non-positive requested quantity or unknown policy.

Usage:
    from wms_engines.allocation import LotAllocationEngine, CandidateLot

    plan = LotAllocationEngine().plan_removal(
        material_id=material_id,
        pallet_id=pallet_id,
        candidates=[CandidateLot(lot.id, lot.quantity, lot.weight_actual)],
        quantity=Decimal("10"),
        weight=Decimal("10"),
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from wms_engines.tracer import traced_engine
from wms_kernel.db.types import WEIGHT_DECIMAL_PLACES, round_weight
from wms_kernel.exceptions import InsufficientInventoryError
from wms_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


class LotSelectionPolicy(str, Enum):
    """Order in which lots are drawn from."""

    LARGEST_FIRST = "largest_first"  # Descending current quantity
    FIFO_BY_EXPIRY = "fifo_by_expiry"  # Earliest expiry first, undated last


@dataclass(frozen=True, slots=True)
class CandidateLot:
    """
    A lot that may be drawn from.

    Contract:
        Snapshot of the lot's current state; the engine never sees the ORM
        object.
    """

    lot_id: UUID
    quantity: Decimal
    weight: Decimal
    expiry_date: date | None = None


@dataclass(frozen=True, slots=True)
class LotDraw:
    """Quantity and weight to take from one lot (both positive magnitudes)."""

    lot_id: UUID
    quantity: Decimal
    weight: Decimal


@dataclass(frozen=True)
class RemovalPlan:
    """
    Complete removal plan.

    Guarantees:
        - total_quantity == requested_quantity.
        - total_weight == requested_weight.
    """

    material_id: UUID
    pallet_id: UUID
    requested_quantity: Decimal
    requested_weight: Decimal
    policy: LotSelectionPolicy
    draws: tuple[LotDraw, ...]

    @property
    def total_quantity(self) -> Decimal:
        return sum((d.quantity for d in self.draws), Decimal("0"))

    @property
    def total_weight(self) -> Decimal:
        return sum((d.weight for d in self.draws), Decimal("0"))

    @property
    def lot_count(self) -> int:
        return len(self.draws)


def order_candidates(
    candidates: Sequence[CandidateLot],
    policy: LotSelectionPolicy,
) -> list[CandidateLot]:
    """Order candidates for drawing. Stable with respect to input order."""
    indexed = list(enumerate(candidates))
    match policy:
        case LotSelectionPolicy.LARGEST_FIRST:
            indexed.sort(key=lambda pair: (-pair[1].quantity, pair[0]))
        case LotSelectionPolicy.FIFO_BY_EXPIRY:
            indexed.sort(
                key=lambda pair: (
                    pair[1].expiry_date is None,
                    pair[1].expiry_date or date.max,
                    pair[0],
                )
            )
        case _:
            raise ValueError(f"Unknown lot selection policy: {policy}")
    return [candidate for _, candidate in indexed]


class LotAllocationEngine:
    """
    Plan removals across lots.

    Contract:
        Pure; no I/O, no database access.
    Non-goals:
        - Does not decide where restored stock goes (the lot ledger does).
        - Does not validate lot-level weight floors; adjust_inventory() does.
    """

    @traced_engine(
        "lot_allocation",
        "1.0",
        fingerprint_fields=("material_id", "pallet_id", "quantity", "weight", "policy"),
    )
    def plan_removal(
        self,
        *,
        material_id: UUID,
        pallet_id: UUID,
        candidates: Sequence[CandidateLot],
        quantity: Decimal,
        weight: Decimal,
        policy: LotSelectionPolicy = LotSelectionPolicy.LARGEST_FIRST,
        weight_decimal_places: int = WEIGHT_DECIMAL_PLACES,
    ) -> RemovalPlan:
        """
        Plan the removal of ``quantity`` (and ``weight``) across candidates.

        ``weight`` may be negative when a line's amended weight moved the
        other way from its quantity; it is split in the same proportions.

        Raises:
            InsufficientInventoryError: candidates hold less than quantity.
            ValueError: quantity <= 0.
        """
        t0 = time.monotonic()
        if quantity <= 0:
            raise ValueError(f"Removal quantity must be positive: {quantity}")

        available = sum(
            (c.quantity for c in candidates if c.quantity > 0), Decimal("0")
        )
        logger.debug("removal_planning_started", extra={
            "material_id": str(material_id),
            "pallet_id": str(pallet_id),
            "quantity": str(quantity),
            "weight": str(weight),
            "available": str(available),
            "candidate_count": len(candidates),
            "policy": policy.value,
        })

        if available < quantity:
            logger.warning("removal_insufficient_inventory", extra={
                "material_id": str(material_id),
                "pallet_id": str(pallet_id),
                "requested_quantity": str(quantity),
                "available_quantity": str(available),
            })
            raise InsufficientInventoryError(
                material_id=str(material_id),
                pallet_id=str(pallet_id),
                requested_quantity=quantity,
                available_quantity=available,
            )

        draws: list[LotDraw] = []
        remaining = quantity
        weight_allocated = Decimal("0")

        for candidate in order_candidates(candidates, policy):
            if remaining <= 0:
                break
            if candidate.quantity <= 0:
                continue

            take = min(candidate.quantity, remaining)
            remaining -= take
            if remaining == 0:
                # Last draw absorbs the rounding remainder
                take_weight = weight - weight_allocated
            else:
                take_weight = round_weight(take / quantity * weight, weight_decimal_places)
            weight_allocated += take_weight

            draws.append(LotDraw(lot_id=candidate.lot_id, quantity=take, weight=take_weight))

        plan = RemovalPlan(
            material_id=material_id,
            pallet_id=pallet_id,
            requested_quantity=quantity,
            requested_weight=weight,
            policy=policy,
            draws=tuple(draws),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("removal_planned", extra={
            "material_id": str(material_id),
            "lot_count": plan.lot_count,
            "duration_ms": duration_ms,
        })
        return plan
