"""Per-item delivery planning.

Pure functions: no session, no clock. Given an item's current quantities and
what the caller asked for, compute the delivered quantity to persist, the
outbound movement it implies and the resulting item status. Planning the same
target twice yields a zero movement the second time.
"""

from __future__ import annotations

from dataclasses import dataclass

ITEM_PENDING = "pending"
ITEM_PARTIAL = "partial"
ITEM_DELIVERED = "delivered"
ITEM_CANCELLED = "cancelled"
ITEM_STATUSES = (ITEM_PENDING, ITEM_PARTIAL, ITEM_DELIVERED, ITEM_CANCELLED)


@dataclass(frozen=True)
class ItemState:
    item_id: object
    product_id: object
    requested_qty: int
    delivered_qty: int
    status: str


@dataclass(frozen=True)
class ItemPlan:
    item_id: object
    product_id: object
    requested_qty: int
    delivered_before: int
    delivered_after: int
    move_delta: int
    status_before: str
    status_after: str

    @property
    def fully_delivered(self) -> bool:
        return self.delivered_after >= self.requested_qty

    @property
    def changed(self) -> bool:
        return self.delivered_after != self.delivered_before or self.status_after != self.status_before


def derive_item_status(delivered_qty: int, requested_qty: int) -> str:
    if delivered_qty <= 0:
        return ITEM_PENDING
    if delivered_qty >= requested_qty:
        return ITEM_DELIVERED
    return ITEM_PARTIAL


def clamp_quantity(value: int, requested_qty: int) -> int:
    return max(0, min(int(value), requested_qty))


def plan_item(
    state: ItemState,
    *,
    target_qty: int | None = None,
    explicit_status: str | None = None,
    want_completed: bool = False,
) -> ItemPlan:
    if explicit_status is not None and explicit_status not in ITEM_STATUSES:
        raise ValueError(f"unknown item status {explicit_status!r}")

    # a cancelled item stays cancelled unless the caller says otherwise
    status_hint = explicit_status
    if status_hint is None and state.status == ITEM_CANCELLED:
        status_hint = ITEM_CANCELLED

    if target_qty is not None:
        target = clamp_quantity(target_qty, state.requested_qty)
    elif want_completed and status_hint != ITEM_CANCELLED:
        target = state.requested_qty
    else:
        target = state.delivered_qty

    # deliveries only move forward; retraction is an adjustment, not a delivery
    delivered_after = max(target, state.delivered_qty)
    move_delta = delivered_after - state.delivered_qty

    if status_hint is not None:
        status_after = status_hint
    elif move_delta == 0:
        # an unmoved item keeps whatever status it was last given
        status_after = state.status
    else:
        status_after = derive_item_status(delivered_after, state.requested_qty)
    return ItemPlan(
        item_id=state.item_id,
        product_id=state.product_id,
        requested_qty=state.requested_qty,
        delivered_before=state.delivered_qty,
        delivered_after=delivered_after,
        move_delta=move_delta,
        status_before=state.status,
        status_after=status_after,
    )


def outbound_by_product(plans: list[ItemPlan]) -> dict:
    totals: dict = {}
    for plan in plans:
        if plan.move_delta <= 0:
            continue
        totals[plan.product_id] = totals.get(plan.product_id, 0) + plan.move_delta
    return totals
