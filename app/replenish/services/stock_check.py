from __future__ import annotations

from app.replenish.services.fulfillment_errors import FulfillmentValidationError, InsufficientStock
from app.replenish.services.planner import ItemPlan, outbound_by_product


def ensure_stock_sufficiency(uow, plans: list[ItemPlan]) -> dict:
    """Fail the whole batch if any product cannot cover its summed outbound delta.

    Returns the aggregated outbound quantity per product. Reads only; product
    rows are locked for the rest of the transaction where the backend supports it.
    """
    required = outbound_by_product(plans)
    if not required:
        return required
    levels = uow.stock.levels_for(required.keys(), lock=True)
    shortages = []
    for product_id, qty in required.items():
        level = levels.get(product_id)
        if level is None:
            raise FulfillmentValidationError("Unknown product", product_id=str(product_id))
        if level.on_hand < qty:
            shortages.append(
                {
                    "product_id": str(product_id),
                    "sku": level.sku,
                    "required": qty,
                    "available": level.on_hand,
                    "shortfall": qty - level.on_hand,
                }
            )
    if shortages:
        first = shortages[0]
        raise InsufficientStock(
            product_id=first["product_id"],
            sku=first["sku"],
            required=first["required"],
            available=first["available"],
            shortages=shortages,
        )
    return required
