from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from core.database import get_db
from core.errors import Forbidden, Unauthenticated
from models.truck import Truck
from models.user import ROLE_DRIVER, User
from services.auth_service import AuthService
from services.fleet_service import FleetService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

# What browser clients send when they read a missing value out of localStorage.
_EMPTY_TOKENS = {"", "undefined", "null"}


@dataclass
class Principal:
    """An authenticated admin or driver. Drivers carry their truck, if any."""
    user: User
    truck: Optional[Truck] = None

    @property
    def id(self) -> UUID:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role


def normalize_token(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    cleaned = token.strip()
    if cleaned.lower() in _EMPTY_TOKENS:
        return None
    return cleaned


def resolve_principal(token: Optional[str], db: Session) -> Principal:
    cleaned = normalize_token(token)
    if cleaned is None:
        raise Unauthenticated("No authorization token provided")

    user = AuthService.get_user_from_token(cleaned, db)
    truck = FleetService.get_truck_for_driver(user.id, db) if user.role == ROLE_DRIVER else None
    return Principal(user=user, truck=truck)


def require_role(token: Optional[str], role: str, db: Session) -> Principal:
    """Authenticate the token and insist on the given role."""
    principal = resolve_principal(token, db)
    if principal.role != role:
        raise Forbidden(f"Operation not permitted. Required role: {role}")
    return principal


def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Principal:
    """Dependency to get the current authenticated principal."""
    return resolve_principal(token, db)
