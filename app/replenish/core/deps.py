import uuid
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import ValidationError

from app.replenish.core.error_catalog import AppError, ErrorCatalog
from app.replenish.core.security import TokenData, bearer_scheme, decode_token
from app.replenish.db.session import get_db
from app.replenish.repos.users import UserRepository


ROLE_ADMIN = "ADMIN"
ROLE_STORE = "STORE"
ROLE_WAREHOUSE = "WAREHOUSE"
FULFILLMENT_ROLES = (ROLE_ADMIN, ROLE_WAREHOUSE)
READ_ROLES = (ROLE_ADMIN, ROLE_STORE, ROLE_WAREHOUSE)


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    role: str
    name: str


def _normalize_role(role: str | None) -> str:
    return (role or "").upper()


def get_current_token_data(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        payload = decode_token(credentials.credentials)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def require_actor(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
    db=Depends(get_db),
) -> Actor:
    try:
        user_id = uuid.UUID(token_data.sub)
    except ValueError as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc

    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    if not user.is_active:
        raise AppError(ErrorCatalog.USER_INACTIVE)
    request.state.user_id = str(user.id)
    return Actor(user_id=user.id, role=_normalize_role(user.role), name=user.name)


def require_roles(*roles: str):
    allowed = {_normalize_role(role) for role in roles}

    def dependency(actor: Actor = Depends(require_actor)) -> Actor:
        if actor.role not in allowed:
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"role": actor.role})
        return actor

    return dependency


__all__ = [
    "Actor",
    "FULFILLMENT_ROLES",
    "READ_ROLES",
    "get_current_token_data",
    "require_actor",
    "require_roles",
]
