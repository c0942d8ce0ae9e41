from typing import Protocol

from app.replenish.core.deps import Actor
from app.replenish.db.models import Requisition


class RequisitionAccessPolicy(Protocol):
    def ensure_can_access(self, actor: Actor, requisition: Requisition) -> None:
        """Raise ``AppError`` when ``actor`` is outside the requisition's scope."""


class AllowAllAccessPolicy:
    def ensure_can_access(self, actor: Actor, requisition: Requisition) -> None:
        return None


def get_access_policy() -> RequisitionAccessPolicy:
    return AllowAllAccessPolicy()
