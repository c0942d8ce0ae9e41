from app.replenish.db.models import AuditLog


class AuditRepository:
    def __init__(self, db):
        self.db = db

    def append(self, entry: AuditLog) -> AuditLog:
        self.db.add(entry)
        self.db.flush()
        return entry
