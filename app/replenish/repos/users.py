from sqlalchemy import select

from app.replenish.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id):
        return self.db.get(User, user_id)

    def names_for(self, user_ids) -> dict:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}
        rows = self.db.execute(select(User.id, User.name).where(User.id.in_(ids))).all()
        return {row.id: row.name for row in rows}
