"""
Assignment engine: the report workflow and its coupling to truck availability.

    Pending --assign--> Assigned --confirm_pickup--> In-Progress --submit_clearance--> Cleared
    Assigned/In-Progress --unassign--> Pending

Every transition that touches both a report and a truck runs as conditional
UPDATEs (compare-and-swap on the current status / busy flag) inside a single
transaction. If either statement matches no row, or anything fails between
them, the whole transaction is rolled back and neither row changes.
"""
import logging
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from core.database import utcnow
from core.errors import (
    InvalidTransition,
    NotAssigned,
    NotAuthorizedForReport,
    ReportAlreadyAssigned,
    UnitBusy,
    UnitNotApproved,
    ValidationFailed,
)
from models.report import ACTIVE_STATUSES, Report, ReportStatus
from models.truck import Truck
from services.fleet_service import FleetService
from services.report_service import ReportService

log = logging.getLogger(__name__)


class AssignmentService:
    # ==================== ATOMIC STEPS ====================
    @staticmethod
    def _claim_truck(truck_id: UUID, db: Session) -> bool:
        """Mark an approved, idle truck busy. False if someone else got there first."""
        result = db.execute(
            update(Truck)
            .where(Truck.id == truck_id, Truck.is_approved.is_(True), Truck.is_busy.is_(False))
            .values(is_busy=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _release_truck(truck_id: UUID, db: Session) -> None:
        db.execute(
            update(Truck)
            .where(Truck.id == truck_id)
            .values(is_busy=False)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _move_report(
        report_id: UUID,
        expected: Iterable[ReportStatus],
        values: dict[str, Any],
        db: Session,
        truck_id: Optional[UUID] = None,
    ) -> bool:
        """Apply values only if the report is still in an expected status (and on truck_id, if given)."""
        conditions = [Report.id == report_id, Report.status.in_(list(expected))]
        if truck_id is not None:
            conditions.append(Report.assigned_truck_id == truck_id)
        result = db.execute(
            update(Report)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _check_driver_move(
        report_id: UUID,
        driver_id: UUID,
        required: ReportStatus,
        db: Session,
        truck: Optional[Truck] = None,
    ) -> tuple[Report, Truck]:
        """
        Load a report for a driver transition.

        Routes pass the truck the access check already attached to the driver;
        other callers leave it out and it is looked up here.

        Ownership is checked first; a report with no truck has no owner, so it
        can only fail on its status.
        """
        report = ReportService.get_report(report_id, db)
        if truck is None:
            truck = FleetService.get_truck_for_driver(driver_id, db)
        if report.assigned_truck_id is not None and (truck is None or truck.id != report.assigned_truck_id):
            raise NotAuthorizedForReport()
        if report.status != required or truck is None:
            raise InvalidTransition(f"Report must be {required.value}, not {report.status.value}")
        return report, truck

    @staticmethod
    def ensure_can_clear(report_id: UUID, driver_id: UUID, db: Session, truck: Optional[Truck] = None) -> None:
        """Run the clearance checks without changing anything (before storing proof)."""
        AssignmentService._check_driver_move(report_id, driver_id, ReportStatus.IN_PROGRESS, db, truck)

    # ==================== ADMIN TRANSITIONS ====================
    @staticmethod
    def assign(report_id: UUID, truck_id: UUID, db: Session, actor_id: Optional[UUID] = None) -> Report:
        report = ReportService.get_report(report_id, db)
        if report.status != ReportStatus.PENDING:
            raise ReportAlreadyAssigned()

        truck = FleetService.get_truck(truck_id, db)
        if not truck.is_approved:
            raise UnitNotApproved()
        if truck.is_busy:
            raise UnitBusy()

        try:
            if not AssignmentService._claim_truck(truck.id, db):
                log.warning("Lost race for truck %s while assigning report %s", truck.license_plate, report_id)
                raise UnitBusy()
            moved = AssignmentService._move_report(
                report.id,
                [ReportStatus.PENDING],
                {
                    "status": ReportStatus.ASSIGNED,
                    "assigned_truck_id": truck.id,
                    "date_assigned": utcnow(),
                    "last_updated_by": actor_id,
                },
                db,
            )
            if not moved:
                raise ReportAlreadyAssigned()
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(report)
        log.info("Report %s assigned to truck %s", report.id, truck.license_plate)
        return report

    @staticmethod
    def unassign(report_id: UUID, db: Session, actor_id: Optional[UUID] = None) -> Report:
        report = ReportService.get_report(report_id, db)
        truck_id = report.assigned_truck_id
        if truck_id is None:
            raise NotAssigned()
        if report.status not in ACTIVE_STATUSES:
            raise InvalidTransition(f"Cannot unassign a {report.status.value} report")

        try:
            moved = AssignmentService._move_report(
                report.id,
                ACTIVE_STATUSES,
                {
                    "status": ReportStatus.PENDING,
                    "assigned_truck_id": None,
                    "date_assigned": None,
                    "last_updated_by": actor_id,
                },
                db,
                truck_id=truck_id,
            )
            if not moved:
                raise InvalidTransition("Report changed while unassigning; reload and retry")
            AssignmentService._release_truck(truck_id, db)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(report)
        log.info("Report %s unassigned; truck %s released", report.id, truck_id)
        return report

    @staticmethod
    def force_clear(report_id: UUID, db: Session, actor_id: Optional[UUID] = None) -> Report:
        """Admin override: clear an active report without driver proof."""
        report = ReportService.get_report(report_id, db)
        if report.status not in ACTIVE_STATUSES or report.assigned_truck_id is None:
            raise InvalidTransition(f"Only assigned or in-progress reports can be force-cleared, not {report.status.value}")
        truck_id = report.assigned_truck_id

        try:
            moved = AssignmentService._move_report(
                report.id,
                ACTIVE_STATUSES,
                {
                    "status": ReportStatus.CLEARED,
                    "date_cleared": utcnow(),
                    "admin_override": True,
                    "last_updated_by": actor_id,
                },
                db,
                truck_id=truck_id,
            )
            if not moved:
                raise InvalidTransition("Report changed while clearing; reload and retry")
            AssignmentService._release_truck(truck_id, db)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(report)
        log.info("Report %s force-cleared by admin %s", report.id, actor_id)
        return report

    @staticmethod
    def delete_report(report_id: UUID, db: Session) -> None:
        """
        Delete a report, releasing its truck if it was still being serviced.

        The row is deleted only if its status and truck are still what was read,
        so a stale view can never release a truck that has moved on to another
        report.
        """
        report = ReportService.get_report(report_id, db)
        seen_status, truck_id = report.status, report.assigned_truck_id
        if truck_id is None:
            same_truck = Report.assigned_truck_id.is_(None)
        else:
            same_truck = Report.assigned_truck_id == truck_id

        try:
            result = db.execute(
                delete(Report)
                .where(Report.id == report.id, Report.status == seen_status, same_truck)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidTransition("Report changed while deleting; reload and retry")
            if seen_status in ACTIVE_STATUSES and truck_id is not None:
                AssignmentService._release_truck(truck_id, db)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.expunge(report)
        log.info("Report %s deleted", report_id)

    # ==================== DRIVER TRANSITIONS ====================
    @staticmethod
    def confirm_pickup(report_id: UUID, driver_id: UUID, db: Session, truck: Optional[Truck] = None) -> Report:
        report, truck = AssignmentService._check_driver_move(report_id, driver_id, ReportStatus.ASSIGNED, db, truck)

        try:
            moved = AssignmentService._move_report(
                report.id,
                [ReportStatus.ASSIGNED],
                {"status": ReportStatus.IN_PROGRESS, "last_updated_by": driver_id},
                db,
                truck_id=truck.id,
            )
            if not moved:
                raise InvalidTransition("Report is no longer Assigned to your truck")
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(report)
        log.info("Truck %s confirmed pickup for report %s", truck.license_plate, report.id)
        return report

    @staticmethod
    def submit_clearance(
        report_id: UUID,
        driver_id: UUID,
        proof_image_url: str,
        notes: Optional[str],
        db: Session,
        truck: Optional[Truck] = None,
    ) -> Report:
        if not (proof_image_url or "").strip():
            raise ValidationFailed(errors=[{"field": "proof_image", "message": "Disposal proof image is required"}])

        report, truck = AssignmentService._check_driver_move(report_id, driver_id, ReportStatus.IN_PROGRESS, db, truck)

        now = utcnow()
        try:
            moved = AssignmentService._move_report(
                report.id,
                [ReportStatus.IN_PROGRESS],
                {
                    "status": ReportStatus.CLEARED,
                    "date_cleared": now,
                    "proof_image_url": proof_image_url.strip(),
                    "proof_notes": (notes or "").strip() or None,
                    "proof_submitted_at": now,
                    "last_updated_by": driver_id,
                },
                db,
                truck_id=truck.id,
            )
            if not moved:
                raise InvalidTransition("Report is no longer In-Progress on your truck")
            AssignmentService._release_truck(truck.id, db)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(report)
        log.info("Report %s cleared by truck %s", report.id, truck.license_plate)
        return report

    @staticmethod
    def driver_reports(driver_id: UUID, db: Session, truck: Optional[Truck] = None) -> List[Report]:
        """Reports currently Assigned or In-Progress on the driver's truck."""
        if truck is None:
            truck = FleetService.get_truck_for_driver(driver_id, db)
        if truck is None:
            return []
        return ReportService.list_active_for_truck(truck.id, db)
