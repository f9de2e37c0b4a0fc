"""
Driver account endpoints: registration with a fleet unit, login and profile.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.dependencies import require_driver
from core.database import get_db
from core.security import Principal
from models.user import ROLE_DRIVER
from schemas.common import Envelope, ok
from schemas.truck import TruckResponse
from schemas.user import (
    DriverLogin,
    DriverRegister,
    DriverRegistrationResponse,
    ProfileResponse,
    TokenResponse,
    UserResponse,
)
from services.auth_service import AuthService
from services.fleet_service import FleetService

router = APIRouter(prefix="/drivers/auth", tags=["drivers"])


@router.post("/register", response_model=Envelope[DriverRegistrationResponse], status_code=status.HTTP_201_CREATED)
def register_driver(
    payload: DriverRegister,
    db: Session = Depends(get_db)
):
    driver, truck = FleetService.register_driver(payload, db)
    data = DriverRegistrationResponse(
        user=UserResponse.model_validate(driver),
        truck=TruckResponse.model_validate(truck),
    )
    return ok(data, "Registration successful. Your fleet unit is pending review and approval.")


@router.post("/login", response_model=Envelope[TokenResponse])
def login_driver(
    credentials: DriverLogin,
    db: Session = Depends(get_db)
):
    token, user = AuthService.login(credentials.email, credentials.password, db, role=ROLE_DRIVER)
    truck = FleetService.get_truck_for_driver(user.id, db)
    data = TokenResponse(
        access_token=token,
        role=user.role,
        user=UserResponse.model_validate(user),
        truck=TruckResponse.model_validate(truck) if truck else None,
    )
    return ok(data, "Login successful")


@router.get("/profile", response_model=Envelope[ProfileResponse])
def driver_profile(principal: Principal = Depends(require_driver)):
    truck = TruckResponse.model_validate(principal.truck) if principal.truck else None
    return ok(ProfileResponse(user=UserResponse.model_validate(principal.user), truck=truck))
