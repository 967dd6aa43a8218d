"""
Exceptions raised by the stock ledger.

Every error class has a static ``code`` and keeps its context as public
attributes, so callers branch on type and read fields instead of parsing
messages::

    try:
        ledger.deliver(...)
    except InsufficientStockError as e:
        return {"error": e.code, "current": e.current_quantity,
                "requested": e.requested_quantity}

The structured log formatter copies ``code`` and those attributes onto the
log line as ``exc_code`` / ``exc_<name>``.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockLedgerError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- LocationNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- DocumentNotFoundError
    |
    +-- InvalidStateError
    |   +-- ProductInactiveError
    |   +-- LocationInactiveError
    |   +-- WarehouseInactiveError
    |   +-- WarehouseMismatchError
    |
    +-- InsufficientStockError
    +-- InvalidTransitionError
    +-- DocumentNotEditableError
    +-- NoOpAdjustmentError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- SameLocationTransferError
    |   +-- DocumentIncompleteError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|---------------------------------------
Not found    | PRODUCT_NOT_FOUND       | Product ID doesn't exist
             | LOCATION_NOT_FOUND      | Location ID doesn't exist
             | WAREHOUSE_NOT_FOUND     | Warehouse ID doesn't exist
             | DOCUMENT_NOT_FOUND      | Receipt/delivery ID doesn't exist
-------------|-------------------------|---------------------------------------
State        | PRODUCT_INACTIVE        | Product is deactivated
             | LOCATION_INACTIVE       | Location is deactivated
             | WAREHOUSE_INACTIVE      | Warehouse is deactivated
             | WAREHOUSE_MISMATCH      | Product/location in another warehouse
-------------|-------------------------|---------------------------------------
Ledger       | INSUFFICIENT_STOCK      | Change would make quantity negative
             | NOOP_ADJUSTMENT         | Adjustment target equals current qty
-------------|-------------------------|---------------------------------------
Workflow     | INVALID_TRANSITION      | Status change not allowed from current
             | DOCUMENT_NOT_EDITABLE   | Edit/delete of a non-DRAFT document
-------------|-------------------------|---------------------------------------
Validation   | INVALID_QUANTITY        | Zero, negative or wrongly-signed qty
             | SAME_LOCATION_TRANSFER  | Transfer source == destination
             | DOCUMENT_INCOMPLETE     | No lines, or a line has no location
-------------|-------------------------|---------------------------------------
Immutability | IMMUTABILITY_VIOLATION  | ORM guard blocked UPDATE/DELETE

===============================================================================
CATEGORIES
===============================================================================

Everything derives from StockLedgerError, so library callers can catch the
ledger's errors apart from bugs.  The category bases map onto responses
wholesale:

    NotFoundError      -> 404
    InvalidStateError  -> 409
    ValidationError    -> 400
"""

from uuid import UUID


class StockLedgerError(Exception):
    """
    Base exception for all stock ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_LEDGER_ERROR"


# Not-found exceptions


class NotFoundError(StockLedgerError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: UUID | str):
        self.product_id = str(product_id)
        super().__init__(f"Product not found: {product_id}")


class LocationNotFoundError(NotFoundError):
    """Location with given ID was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: UUID | str):
        self.location_id = str(location_id)
        super().__init__(f"Location not found: {location_id}")


class WarehouseNotFoundError(NotFoundError):
    """Warehouse with given ID was not found."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: UUID | str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(f"Warehouse not found: {warehouse_id}")


class DocumentNotFoundError(NotFoundError):
    """Receipt or delivery document was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: UUID | str):
        self.document_id = str(document_id)
        super().__init__(f"Document not found: {document_id}")


# State exceptions


class InvalidStateError(StockLedgerError):
    """Base exception for inactive or mismatched reference data."""

    code: str = "INVALID_STATE"


class ProductInactiveError(InvalidStateError):
    """Product is deactivated and cannot move stock."""

    code: str = "PRODUCT_INACTIVE"

    def __init__(self, product_id: UUID | str):
        self.product_id = str(product_id)
        super().__init__(f"Product is inactive: {product_id}")


class LocationInactiveError(InvalidStateError):
    """Location is deactivated and cannot hold stock movements."""

    code: str = "LOCATION_INACTIVE"

    def __init__(self, location_id: UUID | str):
        self.location_id = str(location_id)
        super().__init__(f"Location is inactive: {location_id}")


class WarehouseInactiveError(InvalidStateError):
    """Warehouse is deactivated."""

    code: str = "WAREHOUSE_INACTIVE"

    def __init__(self, warehouse_id: UUID | str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(f"Warehouse is inactive: {warehouse_id}")


class WarehouseMismatchError(InvalidStateError):
    """A product or location does not belong to the expected warehouse."""

    code: str = "WAREHOUSE_MISMATCH"

    def __init__(
        self,
        entity_type: str,
        entity_id: UUID | str,
        expected_warehouse_id: UUID | str,
        actual_warehouse_id: UUID | str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.expected_warehouse_id = str(expected_warehouse_id)
        self.actual_warehouse_id = str(actual_warehouse_id)
        super().__init__(
            f"{entity_type} {entity_id} belongs to warehouse "
            f"{actual_warehouse_id}, not {expected_warehouse_id}"
        )


# Ledger exceptions


class InsufficientStockError(StockLedgerError):
    """
    Applying the change would drive the stock level below zero.

    Carries the quantity on hand and the magnitude that was requested.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        current_quantity: int,
        requested_quantity: int,
        product_id: UUID | str | None = None,
        location_id: UUID | str | None = None,
    ):
        self.current_quantity = current_quantity
        self.requested_quantity = requested_quantity
        self.product_id = str(product_id) if product_id is not None else None
        self.location_id = str(location_id) if location_id is not None else None
        where = ""
        if product_id is not None:
            where = f" for product {product_id} at location {location_id}"
        super().__init__(
            f"Insufficient stock{where}. "
            f"Current: {current_quantity}, Requested: {requested_quantity}"
        )


class NoOpAdjustmentError(StockLedgerError):
    """Adjustment target equals the current quantity."""

    code: str = "NOOP_ADJUSTMENT"

    def __init__(self, product_id: UUID | str, location_id: UUID | str, quantity: int):
        self.product_id = str(product_id)
        self.location_id = str(location_id)
        self.quantity = quantity
        super().__init__(
            f"New quantity is same as current quantity ({quantity}) "
            f"for product {product_id} at location {location_id}"
        )


# Workflow exceptions


class InvalidTransitionError(StockLedgerError):
    """Requested status change is not permitted from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_id: UUID | str,
        current_status: str,
        requested_status: str,
        required_status: str | None,
    ):
        self.document_id = str(document_id)
        self.current_status = current_status
        self.requested_status = requested_status
        self.required_status = required_status
        if required_status is None:
            detail = f"{requested_status} is not a reachable status"
        else:
            detail = f"can only move to {requested_status} from {required_status}"
        super().__init__(
            f"Invalid transition for document {document_id}: {detail} "
            f"(current status {current_status})"
        )


class DocumentNotEditableError(StockLedgerError):
    """Mutation attempted on a document that has left DRAFT."""

    code: str = "DOCUMENT_NOT_EDITABLE"

    def __init__(self, document_id: UUID | str, status: str, operation: str):
        self.document_id = str(document_id)
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} document {document_id}: "
            f"only DRAFT documents can be changed (status {status})"
        )


# Validation exceptions


class ValidationError(StockLedgerError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is zero, negative, or has the wrong sign for its movement type."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class SameLocationTransferError(ValidationError):
    """Transfer source and destination are the same location."""

    code: str = "SAME_LOCATION_TRANSFER"

    def __init__(self, location_id: UUID | str):
        self.location_id = str(location_id)
        super().__init__(f"Cannot transfer to the same location: {location_id}")


class DocumentIncompleteError(ValidationError):
    """Document cannot be readied: no lines, or lines without a location."""

    code: str = "DOCUMENT_INCOMPLETE"

    def __init__(self, document_id: UUID | str, reason: str):
        self.document_id = str(document_id)
        self.reason = reason
        super().__init__(f"Document {document_id} is incomplete: {reason}")


# Immutability exceptions


class ImmutabilityViolationError(StockLedgerError):
    """
    Attempted to modify or delete an immutable record.

    Raised by the ORM guard layer in db/immutability.py.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
