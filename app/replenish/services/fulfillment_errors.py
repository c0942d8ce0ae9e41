"""Failure kinds raised by the fulfillment engine.

Each kind is its own class so callers can catch exactly the one they handle;
all of them are ``AppError`` and render through the shared exception handlers.
Every one is raised during the read-only planning phase, before any write.
"""

from __future__ import annotations

from app.replenish.core.error_catalog import AppError, ErrorCatalog


class FulfillmentError(AppError):
    pass


class RequisitionNotFound(FulfillmentError):
    def __init__(self, requisition_id):
        self.requisition_id = requisition_id
        super().__init__(
            ErrorCatalog.NOT_FOUND,
            details={"resource": "requisition", "id": str(requisition_id)},
            message="Requisition not found",
        )


class RequisitionItemNotFound(FulfillmentError):
    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(
            ErrorCatalog.NOT_FOUND,
            details={"resource": "requisition_item", "id": str(item_id)},
            message="Requisition item not found",
        )


class RequisitionImmutable(FulfillmentError):
    def __init__(self, requisition_id, status: str):
        self.requisition_id = requisition_id
        self.status = status
        super().__init__(
            ErrorCatalog.REQUISITION_IMMUTABLE,
            details={"requisition_id": str(requisition_id), "status": status},
        )


class InvalidTransition(FulfillmentError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            ErrorCatalog.INVALID_TRANSITION,
            details={"from": current, "to": target},
            message=f"Cannot move requisition from {current} to {target}",
        )


class IncompleteDelivery(FulfillmentError):
    def __init__(self, short_items: list[dict]):
        self.short_items = short_items
        super().__init__(ErrorCatalog.INCOMPLETE_DELIVERY, details={"items": short_items})


class InsufficientStock(FulfillmentError):
    def __init__(self, *, product_id, sku: str | None, required: int, available: int, shortages: list[dict] | None = None):
        self.product_id = product_id
        self.sku = sku
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            ErrorCatalog.INSUFFICIENT_STOCK,
            details={
                "product_id": str(product_id),
                "sku": sku,
                "required": required,
                "available": available,
                "shortfall": self.shortfall,
                "shortages": shortages or [],
            },
            message=f"Insufficient stock for {sku or product_id}: requested {required}, available {available}",
        )


class FulfillmentValidationError(FulfillmentError):
    def __init__(self, message: str, **details):
        super().__init__(ErrorCatalog.VALIDATION_ERROR, details={"message": message, **details}, message=message)
