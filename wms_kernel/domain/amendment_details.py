"""
Structured amendment details.

Responsibility:
    Typed payloads stored on ``VasTransactionAmendment.amendment_details``.
    One payload type per ``AmendmentType``:

        LINE_AMENDMENT    -> LineAmendmentDetails
        TRANSACTION_VOID  -> VoidDetails

    Both record the exact lot movements the engine performed, so an auditor
    can see which lots were debited or credited even though lines carry no
    lot reference.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Persistence is a plain JSON dict
    produced by ``to_dict()`` and read back through ``details_from_dict()``.

Invariants enforced:
    - Decimals serialize as strings (no float drift through JSON).
    - Decoding is keyed by AmendmentType; an unknown type raises ValueError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from wms_kernel.domain.values import AmendmentType, ServiceType


def _opt_uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


def _opt_str(value: Any) -> str | None:
    return str(value) if value is not None else None


@dataclass(frozen=True, slots=True)
class LotMovement:
    """One signed change applied to one lot."""

    inventory_id: UUID
    quantity_delta: Decimal
    weight_delta: Decimal
    created: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "inventory_id": str(self.inventory_id),
            "quantity_delta": str(self.quantity_delta),
            "weight_delta": str(self.weight_delta),
            "created": self.created,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LotMovement:
        return cls(
            inventory_id=UUID(data["inventory_id"]),
            quantity_delta=Decimal(data["quantity_delta"]),
            weight_delta=Decimal(data["weight_delta"]),
            created=bool(data.get("created", False)),
        )


@dataclass(frozen=True, slots=True)
class LineAmendmentDetails:
    """Before/after values of one amended line and the lots it moved."""

    line_id: UUID
    material_id: UUID | None
    original_quantity: Decimal
    original_weight: Decimal
    new_quantity: Decimal
    new_weight: Decimal
    inventory_applied: bool
    lot_movements: tuple[LotMovement, ...] = ()

    @property
    def quantity_delta(self) -> Decimal:
        return self.new_quantity - self.original_quantity

    @property
    def weight_delta(self) -> Decimal:
        return self.new_weight - self.original_weight

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_id": str(self.line_id),
            "material_id": _opt_str(self.material_id),
            "original_quantity": str(self.original_quantity),
            "original_weight": str(self.original_weight),
            "new_quantity": str(self.new_quantity),
            "new_weight": str(self.new_weight),
            "quantity_delta": str(self.quantity_delta),
            "weight_delta": str(self.weight_delta),
            "inventory_applied": self.inventory_applied,
            "lot_movements": [m.to_dict() for m in self.lot_movements],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineAmendmentDetails:
        return cls(
            line_id=UUID(data["line_id"]),
            material_id=_opt_uuid(data.get("material_id")),
            original_quantity=Decimal(data["original_quantity"]),
            original_weight=Decimal(data["original_weight"]),
            new_quantity=Decimal(data["new_quantity"]),
            new_weight=Decimal(data["new_weight"]),
            inventory_applied=bool(data["inventory_applied"]),
            lot_movements=tuple(
                LotMovement.from_dict(m) for m in data.get("lot_movements", [])
            ),
        )


@dataclass(frozen=True, slots=True)
class VoidedLine:
    """Reversal of one line during a void."""

    line_id: UUID
    material_id: UUID | None
    quantity: Decimal
    weight: Decimal
    is_input: bool
    inventory_applied: bool
    lot_movements: tuple[LotMovement, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_id": str(self.line_id),
            "material_id": _opt_str(self.material_id),
            "quantity": str(self.quantity),
            "weight": str(self.weight),
            "is_input": self.is_input,
            "inventory_applied": self.inventory_applied,
            "lot_movements": [m.to_dict() for m in self.lot_movements],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VoidedLine:
        return cls(
            line_id=UUID(data["line_id"]),
            material_id=_opt_uuid(data.get("material_id")),
            quantity=Decimal(data["quantity"]),
            weight=Decimal(data["weight"]),
            is_input=bool(data["is_input"]),
            inventory_applied=bool(data["inventory_applied"]),
            lot_movements=tuple(
                LotMovement.from_dict(m) for m in data.get("lot_movements", [])
            ),
        )


@dataclass(frozen=True, slots=True)
class VoidDetails:
    """Summary of every line's reversal in a void."""

    service_type: ServiceType
    lines: tuple[VoidedLine, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_type": self.service_type.value,
            "lines": [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VoidDetails:
        return cls(
            service_type=ServiceType(data["service_type"]),
            lines=tuple(VoidedLine.from_dict(line) for line in data.get("lines", [])),
        )


AmendmentDetails = LineAmendmentDetails | VoidDetails


def details_from_dict(
    amendment_type: AmendmentType, data: dict[str, Any]
) -> AmendmentDetails:
    """Decode a stored details payload for the given amendment type."""
    match amendment_type:
        case AmendmentType.LINE_AMENDMENT:
            return LineAmendmentDetails.from_dict(data)
        case AmendmentType.TRANSACTION_VOID:
            return VoidDetails.from_dict(data)
    raise ValueError(f"Unknown amendment type: {amendment_type!r}")
