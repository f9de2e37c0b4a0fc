"""
Admin endpoints for account management.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.dependencies import require_admin
from core.database import get_db
from models.user import ROLE_DRIVER
from schemas.common import Envelope, ok
from schemas.user import UserResponse
from services.auth_service import AuthService

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_admin)])


@router.get("", response_model=Envelope[list[UserResponse]])
def list_users(
    role: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List all accounts, newest first."""
    users = AuthService.list_users(db, role=role)
    return ok([UserResponse.model_validate(user) for user in users])


@router.get("/drivers/pending", response_model=Envelope[list[UserResponse]])
def list_pending_drivers(db: Session = Depends(get_db)):
    """Drivers waiting for approval."""
    users = AuthService.list_users(db, role=ROLE_DRIVER, pending_only=True)
    return ok([UserResponse.model_validate(user) for user in users])


@router.patch("/{user_id}/approve", response_model=Envelope[UserResponse])
def approve_user(
    user_id: UUID,
    db: Session = Depends(get_db)
):
    user = AuthService.approve_user(user_id, db)
    return ok(UserResponse.model_validate(user), f"Driver {user.username} is now authorized.")
