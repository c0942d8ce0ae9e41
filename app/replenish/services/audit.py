from dataclasses import dataclass
from datetime import datetime

from app.replenish.db.models import AuditLog


@dataclass
class AuditEntryPayload:
    table_name: str
    action: str
    record_id: str
    user_id: object | None
    payload: dict | None


class AuditService:
    """Writes audit entries inside the caller's unit of work.

    The entry commits or rolls back together with the change it describes, so a
    failure here aborts the surrounding operation instead of being swallowed.
    """

    def __init__(self, uow):
        self.repo = uow.audit

    def record(self, entry: AuditEntryPayload) -> AuditLog:
        return self.repo.append(
            AuditLog(
                table_name=entry.table_name,
                action=entry.action,
                record_id=entry.record_id,
                user_id=entry.user_id,
                payload=entry.payload,
                created_at=datetime.utcnow(),
            )
        )
