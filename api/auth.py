from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.config import admin_registration_enabled
from core.database import get_db
from core.errors import Forbidden
from core.security import Principal, get_current_principal
from models.user import ROLE_ADMIN
from schemas.common import Envelope, ok
from schemas.truck import TruckResponse
from schemas.user import AdminLogin, AdminRegister, ProfileResponse, TokenResponse, UserResponse
from services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=Envelope[TokenResponse], status_code=status.HTTP_201_CREATED)
def register_admin(
    user_in: AdminRegister,
    db: Session = Depends(get_db)
):
    """Register a platform manager (admin) account."""
    if not admin_registration_enabled():
        raise Forbidden("Admin self-registration is disabled. Contact an existing administrator.")

    user = AuthService.register_user(user_in, ROLE_ADMIN, db, approved=True)
    token = AuthService.create_access_token(user)
    payload = TokenResponse(access_token=token, role=user.role, user=UserResponse.model_validate(user))
    return ok(payload, "Admin account created successfully.")


@router.post("/login", response_model=Envelope[TokenResponse])
def login(
    credentials: AdminLogin,
    db: Session = Depends(get_db)
):
    """Authenticate an admin by username or email and return an access token."""
    token, user = AuthService.login(credentials.username, credentials.password, db, role=ROLE_ADMIN)
    payload = TokenResponse(access_token=token, role=user.role, user=UserResponse.model_validate(user))
    return ok(payload, "Login successful")


@router.get("/me", response_model=Envelope[ProfileResponse])
def get_me(principal: Principal = Depends(get_current_principal)):
    """Get the current authenticated user (and truck, for drivers)."""
    truck = TruckResponse.model_validate(principal.truck) if principal.truck else None
    return ok(ProfileResponse(user=UserResponse.model_validate(principal.user), truck=truck))
