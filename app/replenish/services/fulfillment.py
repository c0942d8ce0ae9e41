"""Fulfillment coordinator.

Applies one fulfillment call to a requisition inside a single unit of work:

1. lock the requisition and reject terminal ones;
2. load its items with their products;
3. plan every item (target quantity, outbound delta, status);
4. resolve the requisition status and, when it would become ``completed``,
   require every non-cancelled item to be fully delivered;
5. check that stock covers the summed outbound deltas per product.

Nothing is written until all of the above pass. Then item rows are updated,
one ledger row is recorded per positive delta (stock is decremented only when
that row is new), the requisition is updated and a single audit entry is
appended. Any exception rolls everything back.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from app.replenish.db.models import InventoryMovement, Requisition
from app.replenish.services.audit import AuditEntryPayload, AuditService
from app.replenish.services.fulfillment_errors import (
    FulfillmentValidationError,
    InsufficientStock,
    RequisitionItemNotFound,
    RequisitionNotFound,
)
from app.replenish.services.planner import ITEM_STATUSES, ItemPlan, ItemState, plan_item
from app.replenish.services.state_machine import (
    COMPLETED,
    REQUISITION_STATUSES,
    ensure_fully_delivered,
    ensure_mutable,
    ensure_transition,
    resolve_requisition_status,
)
from app.replenish.services.stock_check import ensure_stock_sufficiency
from app.replenish.services.unit_of_work import UnitOfWork


@dataclass(frozen=True)
class ByItemId:
    item_id: uuid.UUID | str
    delivered_qty: int | None = None
    status: str | None = None


@dataclass(frozen=True)
class ByProductId:
    product_id: uuid.UUID | str
    delivered_qty: int | None = None
    status: str | None = None


ItemUpdate = Union[ByItemId, ByProductId]


@dataclass
class FulfillmentCommand:
    target_status: str | None = None
    item_updates: list[ItemUpdate] = field(default_factory=list)
    assignee_id: uuid.UUID | None = None
    note: str | None = None


@dataclass
class FulfillmentResult:
    requisition: Requisition
    previous_status: str
    plans: list[ItemPlan]
    movements: list[InventoryMovement]

    @property
    def status_changed(self) -> bool:
        return self.requisition.status != self.previous_status


def _coerce_uuid(value, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise FulfillmentValidationError(f"Invalid {field_name}", **{field_name: str(value)}) from exc


def _validate_update(update: ItemUpdate) -> None:
    qty = update.delivered_qty
    if qty is not None:
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise FulfillmentValidationError("Delivered quantity must be an integer", delivered_qty=str(qty))
        if qty < 0:
            raise FulfillmentValidationError("Delivered quantity cannot be negative", delivered_qty=qty)
    if update.status is not None and update.status not in ITEM_STATUSES:
        raise FulfillmentValidationError("Unknown item status", status=update.status)


class FulfillmentService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def apply_fulfillment(self, requisition_id, command: FulfillmentCommand, actor_id=None) -> FulfillmentResult:
        with self.uow:
            requisition = self.uow.requisitions.get_for_update(requisition_id)
            if requisition is None:
                raise RequisitionNotFound(requisition_id)
            previous_status = requisition.status
            ensure_mutable(requisition.id, previous_status)

            target = command.target_status
            if target is not None:
                if target not in REQUISITION_STATUSES:
                    raise FulfillmentValidationError("Unknown requisition status", status=target)
                ensure_transition(previous_status, target)

            rows = self.uow.requisitions.list_items_with_products(requisition.id)
            if not rows:
                raise FulfillmentValidationError("Requisition has no items", requisition_id=str(requisition.id))
            updates = self._resolve_updates(rows, command.item_updates)

            plans = []
            for item, _product in rows:
                update = updates.get(item.id)
                plans.append(
                    plan_item(
                        ItemState(
                            item_id=item.id,
                            product_id=item.product_id,
                            requested_qty=item.requested_qty,
                            delivered_qty=item.delivered_qty,
                            status=item.status,
                        ),
                        target_qty=update.delivered_qty if update else None,
                        explicit_status=update.status if update else None,
                        want_completed=target == COMPLETED,
                    )
                )

            new_status = resolve_requisition_status(previous_status, plans, target)
            if new_status == COMPLETED:
                ensure_fully_delivered(plans)
            ensure_stock_sufficiency(self.uow, plans)

            now = datetime.utcnow()
            items = {item.id: item for item, _product in rows}
            movements = []
            for plan in plans:
                item = items[plan.item_id]
                if plan.changed:
                    item.delivered_qty = plan.delivered_after
                    item.status = plan.status_after
                    item.updated_at = now
                if plan.move_delta > 0:
                    movement = self._record_movement(requisition, plan, actor_id)
                    if movement is not None:
                        movements.append(movement)

            requisition.status = new_status
            if command.assignee_id is not None:
                requisition.assigned_to_user_id = command.assignee_id
            if command.note is not None:
                requisition.note = command.note
            requisition.updated_at = now

            AuditService(self.uow).record(
                AuditEntryPayload(
                    table_name="requests",
                    action="STATUS_CHANGE" if new_status != previous_status else "UPDATE",
                    record_id=str(requisition.id),
                    user_id=actor_id,
                    payload=self._audit_payload(previous_status, new_status, command, plans, movements),
                )
            )
            self.uow.commit()

        self.uow.refresh(requisition)
        return FulfillmentResult(
            requisition=requisition,
            previous_status=previous_status,
            plans=plans,
            movements=movements,
        )

    def apply_item_update(self, item_id, *, delivered_qty=None, status=None, actor_id=None) -> FulfillmentResult:
        item = self.uow.requisitions.get_item(_coerce_uuid(item_id, "item_id"))
        if item is None:
            raise RequisitionItemNotFound(item_id)
        command = FulfillmentCommand(
            item_updates=[ByItemId(item_id=item.id, delivered_qty=delivered_qty, status=status)]
        )
        return self.apply_fulfillment(item.request_id, command, actor_id)

    def _resolve_updates(self, rows, updates: list[ItemUpdate]) -> dict:
        by_id = {item.id: item for item, _product in rows}
        by_product: dict = {}
        for item, _product in rows:
            by_product.setdefault(item.product_id, []).append(item)

        resolved = {}
        for update in updates:
            if isinstance(update, ByItemId):
                item_id = _coerce_uuid(update.item_id, "item_id")
                item = by_id.get(item_id)
                if item is None:
                    raise FulfillmentValidationError("Item does not belong to this requisition", item_id=str(item_id))
            elif isinstance(update, ByProductId):
                product_id = _coerce_uuid(update.product_id, "product_id")
                matches = by_product.get(product_id, [])
                if not matches:
                    raise FulfillmentValidationError(
                        "Product is not part of this requisition", product_id=str(product_id)
                    )
                if len(matches) > 1:
                    raise FulfillmentValidationError(
                        "Product appears on several items; address the item by id", product_id=str(product_id)
                    )
                item = matches[0]
            else:
                raise FulfillmentValidationError("Item update must name an item id or a product id")
            _validate_update(update)
            if item.id in resolved:
                raise FulfillmentValidationError("Item updated more than once", item_id=str(item.id))
            resolved[item.id] = update
        return resolved

    def _record_movement(self, requisition: Requisition, plan: ItemPlan, actor_id) -> InventoryMovement | None:
        write = self.uow.ledger.record_delivery(
            product_id=plan.product_id,
            requisition_id=requisition.id,
            request_item_id=plan.item_id,
            qty=plan.move_delta,
            cumulative_qty=plan.delivered_after,
            actor_id=actor_id,
            note=f"Requisition {requisition.id} delivery",
        )
        if not write.created:
            return None
        if not self.uow.stock.decrement(plan.product_id, plan.move_delta):
            level = self.uow.stock.levels_for([plan.product_id]).get(plan.product_id)
            raise InsufficientStock(
                product_id=plan.product_id,
                sku=level.sku if level else None,
                required=plan.move_delta,
                available=level.on_hand if level else 0,
            )
        return write.movement

    @staticmethod
    def _audit_payload(previous_status, new_status, command, plans, movements) -> dict:
        recorded = {movement.request_item_id for movement in movements}
        return {
            "from": previous_status,
            "to": new_status,
            "note": command.note,
            "assigned_to_user_id": str(command.assignee_id) if command.assignee_id else None,
            "items": [
                {
                    "item_id": str(plan.item_id),
                    "product_id": str(plan.product_id),
                    "delivered_before": plan.delivered_before,
                    "delivered_after": plan.delivered_after,
                    "status_before": plan.status_before,
                    "status_after": plan.status_after,
                    "move_delta": plan.move_delta,
                    "movement_recorded": plan.item_id in recorded,
                }
                for plan in plans
            ],
        }
