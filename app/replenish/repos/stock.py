from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update

from app.replenish.db.models import Product


@dataclass(frozen=True)
class StockLevel:
    product_id: object
    sku: str
    on_hand: int


class StockRepository:
    """Reads and mutates product quantity-on-hand.

    Writes are relative (``stock = stock - qty``) so decrements from
    concurrent transactions compose without lost updates.
    """

    def __init__(self, db):
        self.db = db

    def levels_for(self, product_ids, *, lock: bool = False) -> dict:
        ids = list(product_ids)
        if not ids:
            return {}
        query = select(Product.id, Product.sku, Product.stock).where(Product.id.in_(ids))
        if lock:
            query = query.with_for_update()
        rows = self.db.execute(query).all()
        return {row.id: StockLevel(product_id=row.id, sku=row.sku, on_hand=int(row.stock)) for row in rows}

    def decrement(self, product_id, qty: int) -> bool:
        """Apply ``stock - qty``; returns False when on-hand no longer covers ``qty``."""
        if qty <= 0:
            raise ValueError("decrement qty must be positive")
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= qty)
            .values(stock=Product.stock - qty, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
