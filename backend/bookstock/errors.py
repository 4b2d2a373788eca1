# Overview: Exception taxonomy shared by the ledger, transfer and procurement services.

"""
Error taxonomy.

Every failure a caller can see is an InventoryError subclass. None of them are
fatal to the process: each mutating service either applies completely or not
at all, so callers may correct state and retry.

status_code is what the HTTP layer returns for the error.
"""


class InventoryError(Exception):
    """Base class for caller-visible inventory and procurement failures."""

    status_code = 400
    code = "INVENTORY_ERROR"


class ValidationError(InventoryError):
    """Malformed input or a registry guard (e.g. editing a trashed record)."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidQuantityError(InventoryError):
    """Negative quantity, or zero where a positive quantity is required."""

    status_code = 400
    code = "INVALID_QUANTITY"


class InsufficientStockError(InventoryError):
    """A debit would take a stock record below zero."""

    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, message: str, *, available: int = 0, requested: int = 0):
        super().__init__(message)
        self.available = available
        self.requested = requested


class InvalidTransitionError(InventoryError):
    """A purchase request or purchase order state-machine guard was violated."""

    status_code = 409
    code = "INVALID_TRANSITION"


class RequestNotApprovableError(InventoryError):
    """Conversion attempted on a request that is not APPROVED or is already linked."""

    status_code = 409
    code = "REQUEST_NOT_APPROVABLE"


class NotFoundError(InventoryError):
    """Unknown id."""

    status_code = 404
    code = "NOT_FOUND"


class DuplicateCodeError(InventoryError):
    """Registry code already used by a live record of the same kind."""

    status_code = 409
    code = "DUPLICATE_CODE"
