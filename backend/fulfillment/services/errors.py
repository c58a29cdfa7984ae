# Overview: Error kinds raised by the fulfillment services.

from __future__ import annotations


class FulfillmentError(Exception):
    """
    Base class for every error a fulfillment operation raises on purpose.

    `code` is the stable machine-readable kind (used in API responses);
    `details` carries structured context such as the short products.
    `http_status` is the response status the API layer maps the kind to.
    """
    code = "FulfillmentError"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class CustomerInvalidError(FulfillmentError):
    code = "CustomerInvalid"


class ProductInvalidError(FulfillmentError):
    code = "ProductInvalid"


class InsufficientStockError(FulfillmentError):
    code = "InsufficientStock"
    http_status = 409


class InvalidAddressError(FulfillmentError):
    code = "InvalidAddress"


class InvalidQuantityError(FulfillmentError):
    code = "InvalidQuantity"


class InvalidAmountError(FulfillmentError):
    code = "InvalidAmount"


class ReturnNotAllowedError(FulfillmentError):
    code = "ReturnNotAllowed"


class InvalidStatusTransitionError(FulfillmentError):
    code = "InvalidStatusTransition"


class IdempotencyConflictError(FulfillmentError):
    code = "IdempotencyConflict"
    http_status = 409


class NotFoundError(FulfillmentError):
    code = "NotFound"
    http_status = 404


class PersistenceFailure(FulfillmentError):
    """Storage-layer fault. The unit of work was rolled back; never retried."""
    code = "PersistenceFailure"
    http_status = 503
