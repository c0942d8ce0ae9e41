from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select

from app.replenish.core.metrics import metrics
from app.replenish.db.models import (
    MOVEMENT_OUT,
    REF_TYPE_REQUEST,
    InventoryMovement,
    Product,
    Requisition,
    RequisitionItem,
)
from app.replenish.services.planner import ITEM_CANCELLED
from app.replenish.services.state_machine import COMPLETED, REQUISITION_STATUSES


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def resolve_requisitions(db, scope: str) -> list[uuid.UUID]:
    if scope.lower() != "all":
        return [uuid.UUID(scope)]
    return [row.id for row in db.execute(select(Requisition.id)).all()]


def _report(check_id: str, findings: list[IntegrityFinding]) -> list[IntegrityFinding]:
    if findings:
        metrics.increment_invariant_violation(check_id, len(findings))
    return findings


def check_item_quantity_bounds(db, requisition_ids: list) -> list[IntegrityFinding]:
    if not requisition_ids:
        return []
    rows = db.execute(
        select(RequisitionItem.id, RequisitionItem.requested_qty, RequisitionItem.delivered_qty)
        .where(RequisitionItem.request_id.in_(requisition_ids))
        .where((RequisitionItem.delivered_qty < 0) | (RequisitionItem.delivered_qty > RequisitionItem.requested_qty))
    ).all()
    return _report(
        "item_quantity_bounds",
        [
            IntegrityFinding(
                check_id="item_quantity_bounds",
                severity=SEVERITY_CRITICAL,
                message="Delivered quantity outside [0, requested].",
                entity="request_items",
                entity_id=str(row.id),
                details={"requested_qty": row.requested_qty, "delivered_qty": row.delivered_qty},
            )
            for row in rows
        ],
    )


def check_negative_stock(db) -> list[IntegrityFinding]:
    rows = db.execute(select(Product.id, Product.sku, Product.stock).where(Product.stock < 0)).all()
    return _report(
        "negative_stock",
        [
            IntegrityFinding(
                check_id="negative_stock",
                severity=SEVERITY_CRITICAL,
                message="Product stock is negative.",
                entity="products",
                entity_id=str(row.id),
                details={"sku": row.sku, "stock": row.stock},
            )
            for row in rows
        ],
    )


def check_ledger_matches_delivered(db, requisition_ids: list) -> list[IntegrityFinding]:
    if not requisition_ids:
        return []
    totals = {
        row.request_item_id: int(row.total)
        for row in db.execute(
            select(InventoryMovement.request_item_id, func.sum(InventoryMovement.qty).label("total"))
            .where(InventoryMovement.ref_type == REF_TYPE_REQUEST, InventoryMovement.type == MOVEMENT_OUT)
            .where(InventoryMovement.ref_id.in_([str(value) for value in requisition_ids]))
            .group_by(InventoryMovement.request_item_id)
        ).all()
    }
    items = db.execute(
        select(RequisitionItem.id, RequisitionItem.delivered_qty).where(RequisitionItem.request_id.in_(requisition_ids))
    ).all()
    findings = []
    for item in items:
        ledger_total = totals.get(item.id, 0)
        if ledger_total != item.delivered_qty:
            findings.append(
                IntegrityFinding(
                    check_id="ledger_matches_delivered",
                    severity=SEVERITY_CRITICAL,
                    message="Ledger outbound total differs from delivered quantity.",
                    entity="request_items",
                    entity_id=str(item.id),
                    details={"delivered_qty": item.delivered_qty, "ledger_qty": ledger_total},
                )
            )
    return _report("ledger_matches_delivered", findings)


def check_requisition_status(db, requisition_ids: list) -> list[IntegrityFinding]:
    if not requisition_ids:
        return []
    requisitions = db.execute(
        select(Requisition.id, Requisition.status).where(Requisition.id.in_(requisition_ids))
    ).all()
    findings = []
    for requisition in requisitions:
        if requisition.status not in REQUISITION_STATUSES:
            findings.append(
                IntegrityFinding(
                    check_id="requisition_status",
                    severity=SEVERITY_CRITICAL,
                    message="Requisition has an unknown status.",
                    entity="requests",
                    entity_id=str(requisition.id),
                    details={"status": requisition.status},
                )
            )
            continue
        if requisition.status != COMPLETED:
            continue
        short = db.execute(
            select(RequisitionItem.id, RequisitionItem.requested_qty, RequisitionItem.delivered_qty)
            .where(RequisitionItem.request_id == requisition.id)
            .where(RequisitionItem.status != ITEM_CANCELLED)
            .where(RequisitionItem.delivered_qty < RequisitionItem.requested_qty)
        ).all()
        if short:
            findings.append(
                IntegrityFinding(
                    check_id="requisition_status",
                    severity=SEVERITY_CRITICAL,
                    message="Completed requisition has items short of their requested quantity.",
                    entity="requests",
                    entity_id=str(requisition.id),
                    details={
                        "status": requisition.status,
                        "items": [
                            {"item_id": str(row.id), "requested_qty": row.requested_qty, "delivered_qty": row.delivered_qty}
                            for row in short
                        ],
                    },
                )
            )
    return _report("requisition_status", findings)


def run_integrity_checks(db, requisition_ids: list) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_item_quantity_bounds(db, requisition_ids))
    findings.extend(check_negative_stock(db))
    findings.extend(check_ledger_matches_delivered(db, requisition_ids))
    findings.extend(check_requisition_status(db, requisition_ids))
    return findings
