from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.replenish.db.models import MOVEMENT_OUT, REF_TYPE_REQUEST, InventoryMovement


_DIALECT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}
_IDEMPOTENCY_COLUMNS = ("ref_type", "request_item_id", "cumulative_qty")


@dataclass(frozen=True)
class LedgerWrite:
    movement: InventoryMovement
    created: bool


class LedgerRepository:
    """Append-only access to ``inventory_movements``.

    Rows are never updated or deleted here. Delivery movements are keyed by
    (ref_type, request_item_id, cumulative_qty); writing the same key twice
    returns the existing row with ``created=False`` instead of a new one.
    """

    def __init__(self, db):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect]
        except KeyError as exc:
            raise RuntimeError(f"inventory ledger does not support dialect {dialect!r}") from exc

    def find_delivery(self, request_item_id, cumulative_qty: int) -> InventoryMovement | None:
        return (
            self.db.execute(
                select(InventoryMovement).where(
                    InventoryMovement.ref_type == REF_TYPE_REQUEST,
                    InventoryMovement.request_item_id == request_item_id,
                    InventoryMovement.cumulative_qty == cumulative_qty,
                )
            )
            .scalars()
            .first()
        )

    def record_delivery(
        self,
        *,
        product_id,
        requisition_id,
        request_item_id,
        qty: int,
        cumulative_qty: int,
        actor_id=None,
        note: str | None = None,
    ) -> LedgerWrite:
        """Insert an outbound movement for a request item, or detect the one already recorded."""
        if qty <= 0:
            raise ValueError("movement qty must be positive")
        movement_id = uuid.uuid4()
        stmt = (
            self._insert()(InventoryMovement.__table__)
            .values(
                id=movement_id,
                product_id=product_id,
                qty=qty,
                type=MOVEMENT_OUT,
                ref_type=REF_TYPE_REQUEST,
                ref_id=str(requisition_id),
                request_item_id=request_item_id,
                cumulative_qty=cumulative_qty,
                note=note,
                created_by_user_id=actor_id,
                created_at=datetime.utcnow(),
            )
            .on_conflict_do_nothing(index_elements=list(_IDEMPOTENCY_COLUMNS))
        )
        result = self.db.execute(stmt)
        created = result.rowcount == 1
        movement = self.find_delivery(request_item_id, cumulative_qty)
        if movement is None:
            raise RuntimeError("ledger row missing after insert-or-detect")
        return LedgerWrite(movement=movement, created=created)

    def list_for_requisition(self, requisition_id) -> list[InventoryMovement]:
        return (
            self.db.execute(
                select(InventoryMovement)
                .where(
                    InventoryMovement.ref_type == REF_TYPE_REQUEST,
                    InventoryMovement.ref_id == str(requisition_id),
                )
                .order_by(InventoryMovement.created_at.asc(), InventoryMovement.cumulative_qty.asc())
            )
            .scalars()
            .all()
        )

    def list_for_item(self, request_item_id) -> list[InventoryMovement]:
        return (
            self.db.execute(
                select(InventoryMovement)
                .where(
                    InventoryMovement.ref_type == REF_TYPE_REQUEST,
                    InventoryMovement.request_item_id == request_item_id,
                )
                .order_by(InventoryMovement.cumulative_qty.asc())
            )
            .scalars()
            .all()
        )
