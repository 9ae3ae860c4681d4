"""
Typed Exception Hierarchy for the WMS Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Amendments and voids are terminal for the request that issued them: they are
never retried internally and there is no automatic compensation.  The request
handler must therefore be able to tell a missing transaction from an
insufficient pallet from a clamped-weight violation WITHOUT parsing messages.

Every exception here:
  1. Has its own class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (ids, requested/available quantities)

Example:
    try:
        commands.void_transaction(txn_id, reason="Wrong pallet")
    except InsufficientInventoryError as e:
        api_response(code=e.code, material=e.material_id,
                     requested=e.requested_quantity, available=e.available_quantity)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WmsKernelError (base)
    |
    +-- NotFoundError
    |   +-- TransactionNotFoundError
    |   +-- LineNotFoundError
    |
    +-- TransactionStateError
    |   +-- AlreadyVoidedError
    |   +-- TransactionVoidedError
    |
    +-- ValidationError
    |
    +-- InventoryError
    |   +-- InsufficientInventoryError
    |   +-- InsufficientQuantityError
    |   +-- InvalidWeightError
    |   +-- LocationUnresolvedError
    |
    +-- SecurityError
    |   +-- UnauthenticatedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |   +-- OperationCancelledError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|-------------------------------------------
NotFound     | TRANSACTION_NOT_FOUND     | VAS transaction id does not exist
             | LINE_NOT_FOUND            | Line id not under that transaction
-------------|---------------------------|-------------------------------------------
State        | ALREADY_VOIDED            | Second void of the same transaction
             | TRANSACTION_VOIDED        | Amending a voided transaction
-------------|---------------------------|-------------------------------------------
Validation   | VALIDATION_ERROR          | Blank reason, negative amendment, zero delta
-------------|---------------------------|-------------------------------------------
Inventory    | INSUFFICIENT_INVENTORY    | Pallet cannot satisfy a removal
             | INSUFFICIENT_QUANTITY     | Lot quantity would go below zero
             | INVALID_WEIGHT            | Lot weight would go below the noise floor
             | LOCATION_UNRESOLVED       | Restore target pallet holds no inventory
-------------|---------------------------|-------------------------------------------
Security     | UNAUTHENTICATED           | No acting user available
-------------|---------------------------|-------------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Lot version changed underneath the request
             | OPERATION_CANCELLED       | Cooperative cancellation before commit
-------------|---------------------------|-------------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Update/delete of audit rows, voided rows, lots
-------------|---------------------------|-------------------------------------------
Config       | CONFIGURATION_ERROR       | Invalid reconciliation configuration
"""

from decimal import Decimal


class WmsKernelError(Exception):
    """Base exception for all WMS kernel errors."""

    code: str = "WMS_KERNEL_ERROR"

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


# Not-found exceptions


class NotFoundError(WmsKernelError):
    """Base exception for missing aggregates."""

    code: str = "NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    """VAS transaction does not exist."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"VAS transaction {transaction_id} not found")


class LineNotFoundError(NotFoundError):
    """Line does not exist under the given transaction."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, transaction_id: str, line_id: str):
        self.transaction_id = transaction_id
        self.line_id = line_id
        super().__init__(
            f"VAS transaction line {line_id} not found on transaction {transaction_id}"
        )


# Transaction state exceptions


class TransactionStateError(WmsKernelError):
    """Base exception for illegal transaction state transitions."""

    code: str = "TRANSACTION_STATE_ERROR"


class AlreadyVoidedError(TransactionStateError):
    """The transaction was voided already; voiding is one-way and happens once."""

    code: str = "ALREADY_VOIDED"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"VAS transaction {transaction_id} is already voided")


class TransactionVoidedError(TransactionStateError):
    """Lines of a voided transaction cannot be amended."""

    code: str = "TRANSACTION_VOIDED"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Cannot amend voided VAS transaction {transaction_id}")


# Validation


class ValidationError(WmsKernelError):
    """Request input failed validation before any mutation was attempted."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


# Inventory exceptions


class InventoryError(WmsKernelError):
    """Base exception for inventory invariant violations."""

    code: str = "INVENTORY_ERROR"


class InsufficientInventoryError(InventoryError):
    """
    The pallet does not hold enough of a material to satisfy a removal.

    Raised by the allocation plan before any lot is touched, so no partial
    mutation exists when this propagates.
    """

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(
        self,
        material_id: str,
        pallet_id: str,
        requested_quantity: Decimal,
        available_quantity: Decimal,
    ):
        self.material_id = material_id
        self.pallet_id = pallet_id
        self.requested_quantity = requested_quantity
        self.available_quantity = available_quantity
        super().__init__(
            f"Insufficient inventory of material {material_id} on pallet "
            f"{pallet_id}: requested {requested_quantity}, available "
            f"{available_quantity} (stock may have been moved or shipped)"
        )


class InsufficientQuantityError(InventoryError):
    """A lot-level adjustment would drive quantity below zero."""

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(self, inventory_id: str, quantity: Decimal, quantity_delta: Decimal):
        self.inventory_id = inventory_id
        self.quantity = quantity
        self.quantity_delta = quantity_delta
        super().__init__(
            f"Inventory {inventory_id} quantity {quantity} cannot absorb delta "
            f"{quantity_delta}"
        )


class InvalidWeightError(InventoryError):
    """A lot-level adjustment would drive weight below the rounding tolerance."""

    code: str = "INVALID_WEIGHT"

    def __init__(self, inventory_id: str, weight: Decimal, weight_delta: Decimal):
        self.inventory_id = inventory_id
        self.weight = weight
        self.weight_delta = weight_delta
        super().__init__(
            f"Inventory {inventory_id} weight {weight} cannot absorb delta "
            f"{weight_delta}"
        )


class LocationUnresolvedError(InventoryError):
    """A restore needs a new lot but the pallet has no lot to take a location from."""

    code: str = "LOCATION_UNRESOLVED"

    def __init__(self, pallet_id: str, material_id: str):
        self.pallet_id = pallet_id
        self.material_id = material_id
        super().__init__(
            f"Cannot restore material {material_id}: pallet {pallet_id} holds no "
            "inventory to resolve a location from"
        )


# Security


class SecurityError(WmsKernelError):
    """Base exception for actor resolution errors."""

    code: str = "SECURITY_ERROR"


class UnauthenticatedError(SecurityError):
    """No acting user could be resolved for the request."""

    code: str = "UNAUTHENTICATED"

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


# Concurrency


class ConcurrencyError(WmsKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected at flush or commit."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class OperationCancelledError(ConcurrencyError):
    """The caller signalled cancellation before the unit of work committed."""

    code: str = "OPERATION_CANCELLED"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Operation cancelled at stage '{stage}'")


# Immutability


class ImmutabilityError(WmsKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    InventoryAdjustment and VasTransactionAmendment rows are immutable from
    creation; voided transactions and their lines are frozen; inventory lots
    are never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(WmsKernelError):
    """Reconciliation configuration is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Invalid configuration '{key}': {message}")
