from __future__ import annotations

from app.replenish.repos.audit import AuditRepository
from app.replenish.repos.ledger import LedgerRepository
from app.replenish.repos.requisitions import RequisitionRepository
from app.replenish.repos.stock import StockRepository


class UnitOfWork:
    """One transaction shared by every repository a fulfillment call touches.

    Used as a context manager: leaving the block through an exception rolls
    the session back; otherwise the caller commits explicitly.
    """

    def __init__(self, db):
        self.db = db
        self.requisitions = RequisitionRepository(db)
        self.ledger = LedgerRepository(db)
        self.stock = StockRepository(db)
        self.audit = AuditRepository(db)

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, instance) -> None:
        self.db.refresh(instance)
