from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select

from app.replenish.db.models import Product, Requisition, RequisitionItem


@dataclass(frozen=True)
class RequisitionQueryFilters:
    status: str | None = None
    q: str | None = None
    created_by_user_id: uuid.UUID | None = None


class RequisitionRepository:
    def __init__(self, db):
        self.db = db

    def get(self, requisition_id) -> Requisition | None:
        return self.db.execute(select(Requisition).where(Requisition.id == requisition_id)).scalars().first()

    def get_for_update(self, requisition_id) -> Requisition | None:
        return (
            self.db.execute(select(Requisition).where(Requisition.id == requisition_id).with_for_update())
            .scalars()
            .first()
        )

    def get_item(self, item_id) -> RequisitionItem | None:
        return self.db.execute(select(RequisitionItem).where(RequisitionItem.id == item_id)).scalars().first()

    def get_item_with_product(self, item_id) -> tuple[RequisitionItem, Product] | None:
        row = self.db.execute(
            select(RequisitionItem, Product)
            .join(Product, Product.id == RequisitionItem.product_id)
            .where(RequisitionItem.id == item_id)
        ).first()
        if row is None:
            return None
        return row[0], row[1]

    def list_items_with_products(self, requisition_id) -> list[tuple[RequisitionItem, Product]]:
        rows = self.db.execute(
            select(RequisitionItem, Product)
            .join(Product, Product.id == RequisitionItem.product_id)
            .where(RequisitionItem.request_id == requisition_id)
            .order_by(RequisitionItem.created_at.asc(), RequisitionItem.id.asc())
        ).all()
        return [(item, product) for item, product in rows]

    def list_requisitions(
        self,
        filters: RequisitionQueryFilters,
        *,
        page: int,
        page_size: int,
    ) -> tuple[list[Requisition], int]:
        base_query = self._apply_filters(filters)
        total = self.db.execute(select(func.count()).select_from(base_query.subquery())).scalar_one()
        query = (
            base_query.order_by(Requisition.created_at.desc(), Requisition.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(self.db.execute(query).scalars().all()), int(total)

    def _apply_filters(self, filters: RequisitionQueryFilters):
        query = select(Requisition)
        if filters.status:
            query = query.where(Requisition.status == filters.status)
        if filters.q:
            # an exact id, otherwise a substring of the note
            try:
                query = query.where(Requisition.id == uuid.UUID(filters.q))
            except ValueError:
                query = query.where(Requisition.note.ilike(f"%{filters.q}%"))
        if filters.created_by_user_id is not None:
            query = query.where(Requisition.created_by_user_id == filters.created_by_user_id)
        return query
