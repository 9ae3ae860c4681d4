"""
Domain value objects for the reconciliation kernel.

Responsibility:
    Enumerations shared by models, engines and services, the ``Weight``
    value object, and the ``LineKind`` tagged variant that replaces the
    "absent material id means labor" convention on transaction lines.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by models, selectors,
    services and wms_engines.

Invariants enforced:
    - Weight values are Decimal, never float, and never negative.
    - Every ServiceType has exactly one labor unit (closed ``match``).
    - A line is exactly one of MaterialLine or LaborLine.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID


class InventoryStatus(str, Enum):
    """Physical availability of a lot."""

    AVAILABLE = "Available"
    QUARANTINED = "Quarantined"
    AWAITING_LABELING = "AwaitingLabeling"


class ComplianceLabelType(str, Enum):
    """Compliance label applied to a lot."""

    NONE = "None"
    STANDARD = "Standard"
    CUSTOM = "Custom"


class ServiceType(str, Enum):
    """Billable value-added services recorded as VAS transactions."""

    REPACK = "Repack"
    KITTING = "Kitting"
    FUMIGATION = "Fumigation"
    CYCLE_COUNT = "CycleCount"
    SPLIT = "Split"
    LABELING = "Labeling"
    SURCHARGE = "Surcharge"
    CROSS_DOCK = "CrossDock"
    BLASTING = "Blasting"


class TransactionStatus(str, Enum):
    """Lifecycle of a VAS transaction. Planned -> Completed, set once."""

    PLANNED = "Planned"
    COMPLETED = "Completed"


class AdjustmentReason(str, Enum):
    """Why an inventory lot's quantity changed outside the normal flows."""

    COUNT = "Count"
    DAMAGE = "Damage"
    EXPIRY = "Expiry"
    CORRECTION = "Correction"


class AmendmentType(str, Enum):
    """Kind of after-the-fact change recorded against a transaction."""

    LINE_AMENDMENT = "LineAmendment"
    TRANSACTION_VOID = "TransactionVoid"


class LaborUnit(str, Enum):
    """How the quantity of a labor line is measured."""

    HOURS = "hours"
    UNITS = "units"


def labor_unit_for(service_type: ServiceType) -> LaborUnit:
    """
    Unit in which a labor line of this service is measured.

    Time-billed services (fumigation duration, cycle counting, blasting)
    record hours; everything else records units of service.
    """
    match service_type:
        case ServiceType.FUMIGATION | ServiceType.CYCLE_COUNT | ServiceType.BLASTING:
            return LaborUnit.HOURS
        case (
            ServiceType.REPACK
            | ServiceType.KITTING
            | ServiceType.SPLIT
            | ServiceType.LABELING
            | ServiceType.SURCHARGE
            | ServiceType.CROSS_DOCK
        ):
            return LaborUnit.UNITS
    raise ValueError(f"Unknown service type: {service_type!r}")


@dataclass(frozen=True, slots=True)
class Weight:
    """
    Weight with unit value object.

    Guarantees:
        - value is always Decimal (never float) and >= 0
        - unit is a non-empty, stripped, upper-cased string
    """

    value: Decimal
    unit: str = "KG"

    def __post_init__(self) -> None:
        if isinstance(self.value, float):
            raise ValueError(f"Weight value must not be float: {self.value!r}")
        if not isinstance(self.value, Decimal):
            try:
                object.__setattr__(self, "value", Decimal(str(self.value)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid weight value: {self.value}") from e
        if self.value < 0:
            raise ValueError(f"Weight cannot be negative: {self.value}")
        if not self.unit or not self.unit.strip():
            raise ValueError("Weight unit is required")
        object.__setattr__(self, "unit", self.unit.strip().upper())

    @classmethod
    def of(cls, value: Decimal | str | int, unit: str = "KG") -> Weight:
        return cls(value=Decimal(str(value)), unit=unit)

    def __str__(self) -> str:
        return f"{self.value} {self.unit}"


@dataclass(frozen=True, slots=True)
class MaterialLine:
    """A line that consumed or produced physical stock of one material."""

    material_id: UUID


@dataclass(frozen=True, slots=True)
class LaborLine:
    """A non-material line; quantity is hours or units of service."""

    quantity: Decimal
    unit: LaborUnit


LineKind = MaterialLine | LaborLine
