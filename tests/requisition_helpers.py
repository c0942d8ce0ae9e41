from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import func, select

from app.replenish.core.security import create_user_access_token
from app.replenish.db.models import InventoryMovement, Product, Requisition, RequisitionItem, User


def create_user(db_session, *, role: str = "WAREHOUSE", is_active: bool = True, suffix: str | None = None) -> User:
    suffix = suffix or uuid.uuid4().hex[:8]
    user = User(
        id=uuid.uuid4(),
        name=f"User {suffix}",
        email=f"user-{suffix}@example.com",
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(user: User, **extra: str) -> dict:
    headers = {"Authorization": f"Bearer {create_user_access_token(user)}"}
    headers.update(extra)
    return headers


def create_product(db_session, *, stock: int, sku: str | None = None, name: str = "Detergent 5L") -> Product:
    product = Product(
        id=uuid.uuid4(),
        sku=sku or f"SKU-{uuid.uuid4().hex[:8].upper()}",
        name=name,
        unit="UN",
        stock=stock,
    )
    db_session.add(product)
    db_session.commit()
    return product


def create_requisition(
    db_session,
    *,
    created_by: User,
    lines: list[dict],
    status: str = "pending",
    note: str | None = None,
    created_at: datetime | None = None,
) -> Requisition:
    """``lines`` entries: ``{"product": Product, "requested_qty": int, "delivered_qty"?: int, "status"?: str}``."""
    now = created_at or datetime.utcnow()
    requisition = Requisition(
        id=uuid.uuid4(),
        created_by_user_id=created_by.id,
        status=status,
        note=note,
        created_at=now,
        updated_at=now,
    )
    db_session.add(requisition)
    db_session.flush()
    for position, line in enumerate(lines):
        stamp = now + timedelta(milliseconds=position)
        db_session.add(
            RequisitionItem(
                id=uuid.uuid4(),
                request_id=requisition.id,
                product_id=line["product"].id,
                requested_qty=line["requested_qty"],
                delivered_qty=line.get("delivered_qty", 0),
                status=line.get("status", "pending"),
                created_at=stamp,
                updated_at=stamp,
            )
        )
    db_session.commit()
    return requisition


def items_of(db_session, requisition_id) -> list[RequisitionItem]:
    db_session.expire_all()
    return (
        db_session.execute(
            select(RequisitionItem)
            .where(RequisitionItem.request_id == requisition_id)
            .order_by(RequisitionItem.created_at.asc())
        )
        .scalars()
        .all()
    )


def stock_of(db_session, product_id) -> int:
    db_session.expire_all()
    return db_session.execute(select(Product.stock).where(Product.id == product_id)).scalar_one()


def status_of(db_session, requisition_id) -> str:
    db_session.expire_all()
    return db_session.execute(select(Requisition.status).where(Requisition.id == requisition_id)).scalar_one()


def movement_count(db_session, *, requisition_id=None) -> int:
    db_session.expire_all()
    query = select(func.count(InventoryMovement.id))
    if requisition_id is not None:
        query = query.where(InventoryMovement.ref_id == str(requisition_id))
    return db_session.execute(query).scalar_one()
