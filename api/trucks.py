"""
API endpoints for fleet management.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.dependencies import require_admin, require_driver
from core.database import get_db
from core.security import Principal
from schemas.common import Envelope, ok
from schemas.truck import TruckCreate, TruckResponse, TruckUpdate
from services.fleet_service import FleetService

router = APIRouter(prefix="/trucks", tags=["trucks"])


@router.get("", response_model=Envelope[list[TruckResponse]])
def list_trucks(
    available: Optional[bool] = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    """All trucks, or only approved idle ones with ?available=true."""
    trucks = FleetService.list_available(db) if available else FleetService.list_trucks(db)
    return ok([TruckResponse.model_validate(truck) for truck in trucks])


@router.post("", response_model=Envelope[TruckResponse], status_code=status.HTTP_201_CREATED)
def register_truck(
    payload: TruckCreate,
    db: Session = Depends(get_db),
    driver: Principal = Depends(require_driver)
):
    """Register a truck for a driver account that does not have one yet."""
    truck = FleetService.register_unit(driver.user, payload, db)
    return ok(TruckResponse.model_validate(truck), "Truck registered. Awaiting admin verification.")


@router.get("/{truck_id}", response_model=Envelope[TruckResponse])
def get_truck(
    truck_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    return ok(TruckResponse.model_validate(FleetService.get_truck(truck_id, db)))


@router.put("/{truck_id}", response_model=Envelope[TruckResponse])
def update_truck(
    truck_id: UUID,
    payload: TruckUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    truck = FleetService.update_truck(truck_id, payload, db)
    return ok(TruckResponse.model_validate(truck), "Truck details updated.")


@router.patch("/{truck_id}/approve", response_model=Envelope[TruckResponse])
def approve_truck(
    truck_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    truck = FleetService.approve(truck_id, db)
    return ok(TruckResponse.model_validate(truck), "Truck verified.")


@router.delete("/{truck_id}", response_model=Envelope[None])
def delete_truck(
    truck_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    """Reject a truck; its driver account is removed with it."""
    FleetService.delete_truck(truck_id, db)
    return ok(None, "Truck and driver account removed.")
