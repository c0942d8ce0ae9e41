from __future__ import annotations

import math
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.replenish.core.deps import FULFILLMENT_ROLES, READ_ROLES, Actor, require_roles
from app.replenish.core.error_catalog import AppError, ErrorCatalog
from app.replenish.core.metrics import metrics
from app.replenish.db.models import InventoryMovement, Product, Requisition, RequisitionItem
from app.replenish.db.session import get_db
from app.replenish.repos.ledger import LedgerRepository
from app.replenish.repos.requisitions import RequisitionQueryFilters, RequisitionRepository
from app.replenish.repos.users import UserRepository
from app.replenish.schemas.requisitions import (
    ItemUpdateById,
    MovementListResponse,
    MovementResponse,
    RequisitionFulfillmentRequest,
    RequisitionItemResponse,
    RequisitionItemUpdateRequest,
    RequisitionListMeta,
    RequisitionListResponse,
    RequisitionResponse,
    RequisitionSummary,
    UserRef,
)
from app.replenish.services.access import RequisitionAccessPolicy, get_access_policy
from app.replenish.services.fulfillment import (
    ByItemId,
    ByProductId,
    FulfillmentCommand,
    FulfillmentResult,
    FulfillmentService,
)
from app.replenish.services.fulfillment_errors import RequisitionItemNotFound, RequisitionNotFound
from app.replenish.services.idempotency import REPLAY_HEADER, IdempotencyService, extract_idempotency_key
from app.replenish.services.unit_of_work import UnitOfWork


router = APIRouter()


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


def _item_response(item: RequisitionItem, product: Product) -> RequisitionItemResponse:
    return RequisitionItemResponse(
        id=str(item.id),
        request_id=str(item.request_id),
        product_id=str(item.product_id),
        sku=product.sku,
        product_name=product.name,
        unit=product.unit,
        requested_qty=item.requested_qty,
        delivered_qty=item.delivered_qty,
        status=item.status,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def _user_ref(user_id, names: dict) -> UserRef | None:
    if user_id is None or user_id not in names:
        return None
    return UserRef(id=str(user_id), name=names[user_id])


def _summary_fields(requisition: Requisition, names: dict) -> dict:
    return {
        "id": str(requisition.id),
        "status": requisition.status,
        "created_by_user_id": str(requisition.created_by_user_id),
        "assigned_to_user_id": _str_or_none(requisition.assigned_to_user_id),
        "created_by": _user_ref(requisition.created_by_user_id, names),
        "assigned_to": _user_ref(requisition.assigned_to_user_id, names),
        "note": requisition.note,
        "created_at": requisition.created_at,
        "updated_at": requisition.updated_at,
    }


def _requisition_response(db, requisition: Requisition) -> RequisitionResponse:
    rows = RequisitionRepository(db).list_items_with_products(requisition.id)
    names = UserRepository(db).names_for([requisition.created_by_user_id, requisition.assigned_to_user_id])
    return RequisitionResponse(
        **_summary_fields(requisition, names),
        items=[_item_response(item, product) for item, product in rows],
    )


def _movement_response(movement: InventoryMovement) -> MovementResponse:
    return MovementResponse(
        id=str(movement.id),
        product_id=str(movement.product_id),
        qty=movement.qty,
        type=movement.type,
        ref_type=movement.ref_type,
        ref_id=movement.ref_id,
        request_item_id=_str_or_none(movement.request_item_id),
        cumulative_qty=movement.cumulative_qty,
        note=movement.note,
        created_by_user_id=_str_or_none(movement.created_by_user_id),
        created_at=movement.created_at,
    )


def _load_requisition(db, requisition_id: UUID, actor: Actor, policy: RequisitionAccessPolicy) -> Requisition:
    requisition = RequisitionRepository(db).get(requisition_id)
    if requisition is None:
        raise RequisitionNotFound(requisition_id)
    policy.ensure_can_access(actor, requisition)
    return requisition


def _start_idempotency(request: Request, db, actor: Actor, payload: dict):
    idempotency_key = extract_idempotency_key(request.headers)
    if idempotency_key is None:
        return None, None
    return IdempotencyService(db).start(
        user_id=actor.user_id,
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )


def _replay_response(replay) -> JSONResponse:
    metrics.increment_idempotency_replay()
    return JSONResponse(
        status_code=replay.status_code,
        content=replay.response_body,
        headers={REPLAY_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
    )


def _record_outcome(result: FulfillmentResult) -> None:
    metrics.record_fulfillment("success")
    metrics.increment_stock_movements("out", len(result.movements))


def _to_item_update(update) -> ByItemId | ByProductId:
    if isinstance(update, ItemUpdateById):
        return ByItemId(item_id=update.id, delivered_qty=update.delivered_qty, status=update.status)
    return ByProductId(product_id=update.product_id, delivered_qty=update.delivered_qty, status=update.status)


def _resolve_created_by(created_by: str | None, actor: Actor) -> UUID | None:
    if not created_by:
        return None
    if created_by == "me":
        return actor.user_id
    try:
        return UUID(created_by)
    except ValueError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"createdBy": created_by}) from exc


@router.get("/replenish/requisitions", response_model=RequisitionListResponse)
def list_requisitions(
    actor: Actor = Depends(require_roles(*READ_ROLES)),
    db=Depends(get_db),
    status: Literal["pending", "in_progress", "completed", "cancelled"] | None = None,
    q: str | None = None,
    created_by: str | None = Query(None, alias="createdBy"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
):
    filters = RequisitionQueryFilters(
        status=status,
        q=q.strip() if q else None,
        created_by_user_id=_resolve_created_by(created_by, actor),
    )
    rows, total = RequisitionRepository(db).list_requisitions(filters, page=page, page_size=page_size)
    names = UserRepository(db).names_for(
        [row.created_by_user_id for row in rows] + [row.assigned_to_user_id for row in rows]
    )
    return RequisitionListResponse(
        meta=RequisitionListMeta(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=max(1, math.ceil(total / page_size)),
        ),
        rows=[RequisitionSummary(**_summary_fields(row, names)) for row in rows],
    )


@router.get("/replenish/requisitions/items/{item_id}", response_model=RequisitionItemResponse)
def get_requisition_item(
    item_id: UUID,
    actor: Actor = Depends(require_roles(*READ_ROLES)),
    policy: RequisitionAccessPolicy = Depends(get_access_policy),
    db=Depends(get_db),
):
    repo = RequisitionRepository(db)
    row = repo.get_item_with_product(item_id)
    if row is None:
        raise RequisitionItemNotFound(item_id)
    item, product = row
    _load_requisition(db, item.request_id, actor, policy)
    return _item_response(item, product)


@router.patch("/replenish/requisitions/items/{item_id}", response_model=RequisitionItemResponse)
def update_requisition_item(
    item_id: UUID,
    request: Request,
    payload: RequisitionItemUpdateRequest,
    actor: Actor = Depends(require_roles(*FULFILLMENT_ROLES)),
    policy: RequisitionAccessPolicy = Depends(get_access_policy),
    db=Depends(get_db),
):
    request.state.fulfillment_attempt = True
    context, replay = _start_idempotency(request, db, actor, payload.model_dump(mode="json"))
    if replay:
        return _replay_response(replay)
    request.state.idempotency = context

    repo = RequisitionRepository(db)
    item = repo.get_item(item_id)
    if item is None:
        raise RequisitionItemNotFound(item_id)
    _load_requisition(db, item.request_id, actor, policy)

    result = FulfillmentService(UnitOfWork(db)).apply_item_update(
        item.id,
        delivered_qty=payload.delivered_qty,
        status=payload.status,
        actor_id=actor.user_id,
    )
    _record_outcome(result)

    item, product = repo.get_item_with_product(item_id)
    response = _item_response(item, product)
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.get("/replenish/requisitions/{requisition_id}", response_model=RequisitionResponse)
def get_requisition(
    requisition_id: UUID,
    actor: Actor = Depends(require_roles(*READ_ROLES)),
    policy: RequisitionAccessPolicy = Depends(get_access_policy),
    db=Depends(get_db),
):
    requisition = _load_requisition(db, requisition_id, actor, policy)
    return _requisition_response(db, requisition)


@router.get("/replenish/requisitions/{requisition_id}/movements", response_model=MovementListResponse)
def list_requisition_movements(
    requisition_id: UUID,
    actor: Actor = Depends(require_roles(*READ_ROLES)),
    policy: RequisitionAccessPolicy = Depends(get_access_policy),
    db=Depends(get_db),
):
    requisition = _load_requisition(db, requisition_id, actor, policy)
    movements = LedgerRepository(db).list_for_requisition(requisition.id)
    return MovementListResponse(
        rows=[_movement_response(movement) for movement in movements],
        total_qty=sum(movement.qty for movement in movements),
    )


@router.patch("/replenish/requisitions/{requisition_id}", response_model=RequisitionResponse)
def fulfill_requisition(
    requisition_id: UUID,
    request: Request,
    payload: RequisitionFulfillmentRequest,
    actor: Actor = Depends(require_roles(*FULFILLMENT_ROLES)),
    policy: RequisitionAccessPolicy = Depends(get_access_policy),
    db=Depends(get_db),
):
    request.state.fulfillment_attempt = True
    context, replay = _start_idempotency(request, db, actor, payload.model_dump(mode="json"))
    if replay:
        return _replay_response(replay)
    request.state.idempotency = context

    _load_requisition(db, requisition_id, actor, policy)
    command = FulfillmentCommand(
        target_status=payload.status,
        item_updates=[_to_item_update(update) for update in payload.items or []],
        assignee_id=actor.user_id if payload.assign_to_me else None,
        note=payload.note,
    )
    result = FulfillmentService(UnitOfWork(db)).apply_fulfillment(requisition_id, command, actor_id=actor.user_id)
    _record_outcome(result)

    response = _requisition_response(db, result.requisition)
    if context is not None:
        context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response
