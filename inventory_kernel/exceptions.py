"""
Typed exception hierarchy for the inventory kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a CLI, a retry loop) must react to failures by
type, not by parsing messages:

    try:
        coordinator.checkout(unit_id, actor_id, lines, "cash")
    except InsufficientStockError as e:
        api_response(code=e.code, product_id=e.product_id, available=e.available)
    except ConcurrencyError as e:
        if e.is_retryable:
            retry_whole_transaction()

Every class carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as attributes, so structured logging can emit them
(see logging_config.StructuredFormatter).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- UntrackedProductError
    |   +-- SameScopeError
    |       +-- SameUnitError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- AmbiguousQuantityError
    |
    +-- StateError
    |   +-- InvalidStateTransitionError
    |
    +-- ReportError
    |   +-- DuplicateReportError
    |
    +-- NotFoundError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |   +-- DeadlockDetectedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-------------------------------------------
Stock         | INSUFFICIENT_STOCK          | Quantity would go below zero
              | UNTRACKED_PRODUCT           | Ledger asked to move a unit-produced product
              | SAME_SCOPE                  | Transfer source equals destination
              | SAME_UNIT                   | Inter-unit transfer to the same unit
--------------|-----------------------------|-------------------------------------------
Validation    | INVALID_QUANTITY            | Zero/negative quantity where one is required
              | AMBIGUOUS_QUANTITY          | Both quantity and sets/items supplied
--------------|-----------------------------|-------------------------------------------
State         | INVALID_STATE_TRANSITION    | Resolving a resolved request, editing a paid sale
--------------|-----------------------------|-------------------------------------------
Report        | DUPLICATE_REPORT            | Report already exists for (unit, date)
--------------|-----------------------------|-------------------------------------------
Lookup        | NOT_FOUND                   | Referenced unit/product/request/sale missing
--------------|-----------------------------|-------------------------------------------
Concurrency   | LOCK_TIMEOUT                | Row lock not acquired in time (retryable)
              | DEADLOCK_DETECTED           | Database aborted a deadlock (retryable)
--------------|-----------------------------|-------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION      | Modifying a closed report, audit event, ...

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Stock-related exceptions


class StockError(InventoryKernelError):
    """Base exception for stock movement errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """A movement would leave a stock scope with a negative quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        scope: str,
        requested: int,
        available: int,
    ):
        self.product_id = product_id
        self.scope = scope
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id} at {scope}: "
            f"requested {requested}, available {available}"
        )


class UntrackedProductError(StockError):
    """Unit-produced products have no tracked stock and cannot be moved."""

    code: str = "UNTRACKED_PRODUCT"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} is unit-produced and holds no tracked stock"
        )


class SameScopeError(StockError):
    """Transfer source and destination are the same scope."""

    code: str = "SAME_SCOPE"

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__(f"Cannot transfer stock from {scope} to itself")


class SameUnitError(SameScopeError):
    """Inter-unit transfer names the same unit on both sides."""

    code: str = "SAME_UNIT"

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"unit {unit_id}")


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Base exception for rejected inputs."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is zero or negative where a positive value is required."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str = "quantity must be positive"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class AmbiguousQuantityError(ValidationError):
    """
    Both a raw item quantity and a sets/items pair were supplied.

    Accepting both and adding them together is how stock got double-counted;
    exactly one input method is allowed.
    """

    code: str = "AMBIGUOUS_QUANTITY"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Provide either quantity or sets/items for product {product_id}, not both"
        )


# State machine exceptions


class StateError(InventoryKernelError):
    """Base exception for lifecycle violations."""

    code: str = "STATE_ERROR"


class InvalidStateTransitionError(StateError):
    """An entity is not in a state that permits the attempted action."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        attempted: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} {entity_type} {entity_id}: "
            f"status is '{current_status}'"
        )


# Report exceptions


class ReportError(InventoryKernelError):
    """Base exception for daily report errors."""

    code: str = "REPORT_ERROR"


class DuplicateReportError(ReportError):
    """A report already exists for this unit and date."""

    code: str = "DUPLICATE_REPORT"

    def __init__(self, unit_id: str, report_date: str):
        self.unit_id = unit_id
        self.report_date = report_date
        super().__init__(
            f"A daily report for unit {unit_id} has already been generated "
            f"for {report_date}"
        )


# Lookup


class NotFoundError(InventoryKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """
    Base exception for lock contention failures.

    The enclosing transaction has been aborted; the caller should retry the
    whole operation.
    """

    code: str = "CONCURRENCY_ERROR"
    is_retryable: bool = True


class LockTimeoutError(ConcurrencyError):
    """A row lock could not be acquired within the configured timeout."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Lock timeout during {operation}"
        super().__init__(f"{message}: {detail}" if detail else message)


class DeadlockDetectedError(ConcurrencyError):
    """The database chose this transaction as a deadlock victim."""

    code: str = "DEADLOCK_DETECTED"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Deadlock detected during {operation}"
        super().__init__(f"{message}: {detail}" if detail else message)


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Audit events, sale items, daily report items and closed daily reports
    (except their remark) are immutable after creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
