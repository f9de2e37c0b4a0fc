"""
Service layer for the fleet registry: trucks, their approval and busy state.
"""
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import (
    DriverAlreadyHasUnit,
    DuplicateIdentity,
    DuplicatePlate,
    UnitNotApproved,
    UnitNotFound,
    ValidationFailed,
)
from models.report import ACTIVE_STATUSES, Report, ReportStatus
from models.truck import Truck
from models.user import ROLE_DRIVER, User
from schemas.truck import TruckCreate, TruckUpdate
from schemas.user import DriverRegister
from services.auth_service import AuthService

log = logging.getLogger(__name__)


def normalize_plate(plate: str) -> str:
    return " ".join((plate or "").split()).upper()


class FleetService:
    @staticmethod
    def register_driver(data: DriverRegister, db: Session) -> Tuple[User, Truck]:
        """Create the driver account and its truck together, or neither."""
        try:
            driver = AuthService.register_user(data, ROLE_DRIVER, db, approved=False, commit=False)
            truck = FleetService.register_unit(
                driver,
                TruckCreate(license_plate=data.license_plate, capacity_tons=data.capacity_tons),
                db,
                commit=False,
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateIdentity("The username, email or license plate is already taken")
        except Exception:
            db.rollback()
            raise

        db.refresh(driver)
        db.refresh(truck)
        log.info("Driver %s registered truck %s (pending approval)", driver.username, truck.license_plate)
        return driver, truck

    @staticmethod
    def register_unit(driver: User, data: TruckCreate, db: Session, commit: bool = True) -> Truck:
        """Register a truck for a driver. New units start unapproved and not busy."""
        plate = normalize_plate(data.license_plate)
        if not plate:
            raise ValidationFailed(errors=[{"field": "license_plate", "message": "License plate is required"}])

        if db.query(Truck).filter(Truck.license_plate == plate).first():
            raise DuplicatePlate()
        if db.query(Truck).filter(Truck.driver_id == driver.id).first():
            raise DriverAlreadyHasUnit()

        truck = Truck(
            license_plate=plate,
            driver_id=driver.id,
            driver_name=driver.username,
            capacity_tons=data.capacity_tons,
            is_approved=False,
            is_busy=False,
        )
        db.add(truck)

        if not commit:
            db.flush()
            return truck

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicatePlate()
        db.refresh(truck)
        return truck

    @staticmethod
    def get_truck(truck_id: UUID, db: Session) -> Truck:
        truck = db.get(Truck, truck_id)
        if not truck:
            raise UnitNotFound()
        return truck

    @staticmethod
    def get_truck_for_driver(driver_id: UUID, db: Session) -> Optional[Truck]:
        return db.query(Truck).filter(Truck.driver_id == driver_id).first()

    @staticmethod
    def list_trucks(db: Session) -> List[Truck]:
        return db.query(Truck).order_by(Truck.created_at).all()

    @staticmethod
    def list_available(db: Session) -> List[Truck]:
        """
        Approved trucks that are not busy.

        Advisory only: assignment re-checks availability atomically.
        """
        return (
            db.query(Truck)
            .filter(Truck.is_approved.is_(True), Truck.is_busy.is_(False))
            .order_by(Truck.created_at)
            .all()
        )

    @staticmethod
    def approve(truck_id: UUID, db: Session) -> Truck:
        """Approve a truck. Idempotent; busy state is untouched."""
        truck = FleetService.get_truck(truck_id, db)
        if not truck.is_approved:
            truck.is_approved = True
            db.commit()
            db.refresh(truck)
            log.info("Approved truck %s", truck.license_plate)
        return truck

    @staticmethod
    def set_busy(truck_id: UUID, busy: bool, db: Session) -> Truck:
        truck = FleetService.get_truck(truck_id, db)
        if busy and not truck.is_approved:
            raise UnitNotApproved()
        truck.is_busy = busy
        db.commit()
        db.refresh(truck)
        return truck

    @staticmethod
    def update_truck(truck_id: UUID, data: TruckUpdate, db: Session) -> Truck:
        truck = FleetService.get_truck(truck_id, db)

        if data.license_plate is not None:
            plate = normalize_plate(data.license_plate)
            clash = db.query(Truck).filter(Truck.license_plate == plate, Truck.id != truck.id).first()
            if clash:
                raise DuplicatePlate()
            truck.license_plate = plate
        if data.capacity_tons is not None:
            truck.capacity_tons = data.capacity_tons

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicatePlate()
        db.refresh(truck)
        return truck

    @staticmethod
    def delete_truck(truck_id: UUID, db: Session) -> None:
        """
        Reject a truck: delete it together with its driver account.

        Reports the truck is actively servicing go back to Pending; cleared
        reports lose their history link.
        """
        truck = FleetService.get_truck(truck_id, db)
        plate = truck.license_plate
        try:
            released = db.execute(
                update(Report)
                .where(Report.assigned_truck_id == truck.id, Report.status.in_(ACTIVE_STATUSES))
                .values(status=ReportStatus.PENDING, assigned_truck_id=None, date_assigned=None)
                .execution_options(synchronize_session=False)
            ).rowcount
            db.execute(
                update(Report)
                .where(Report.assigned_truck_id == truck.id)
                .values(assigned_truck_id=None)
                .execution_options(synchronize_session=False)
            )

            if truck.driver is not None:
                db.delete(truck.driver)
            else:
                db.delete(truck)
            db.commit()
        except Exception:
            db.rollback()
            raise

        log.info("Deleted truck %s and its driver; %s active report(s) returned to Pending", plate, released)
