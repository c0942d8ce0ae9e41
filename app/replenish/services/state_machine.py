from __future__ import annotations

from app.replenish.services.fulfillment_errors import (
    IncompleteDelivery,
    InvalidTransition,
    RequisitionImmutable,
)
from app.replenish.services.planner import ITEM_CANCELLED, ITEM_DELIVERED, ItemPlan

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

REQUISITION_STATUSES = (PENDING, IN_PROGRESS, COMPLETED, CANCELLED)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})

LEGAL_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({IN_PROGRESS, CANCELLED}),
    IN_PROGRESS: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def ensure_mutable(requisition_id, status: str) -> None:
    if is_terminal(status):
        raise RequisitionImmutable(requisition_id, status)


def ensure_transition(current: str, target: str) -> None:
    """Reject an explicit status request that the transition table does not allow.

    Asking for the status the requisition already has keeps that status.
    """
    if target == current and not is_terminal(current):
        return
    if target not in LEGAL_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current, target)


def derive_requisition_status(current: str, plans: list[ItemPlan]) -> str:
    if not plans:
        return current
    statuses = [plan.status_after for plan in plans]
    if all(status == ITEM_CANCELLED for status in statuses):
        return CANCELLED
    # an item marked delivered short of its requested quantity does not complete the requisition
    if all(
        plan.status_after == ITEM_CANCELLED or (plan.status_after == ITEM_DELIVERED and plan.fully_delivered)
        for plan in plans
    ):
        return COMPLETED
    if current == PENDING and not any(plan.delivered_after > 0 for plan in plans):
        return PENDING
    return IN_PROGRESS


def resolve_requisition_status(current: str, plans: list[ItemPlan], target: str | None = None) -> str:
    """An explicit target is applied as asked or rejected; only its absence derives from the items."""
    if target is not None:
        ensure_transition(current, target)
        return target
    return derive_requisition_status(current, plans)


def ensure_fully_delivered(plans: list[ItemPlan]) -> None:
    short_items = [
        {
            "item_id": str(plan.item_id),
            "requested_qty": plan.requested_qty,
            "delivered_qty": plan.delivered_after,
        }
        for plan in plans
        if plan.status_after != ITEM_CANCELLED and not plan.fully_delivered
    ]
    if short_items:
        raise IncompleteDelivery(short_items)
