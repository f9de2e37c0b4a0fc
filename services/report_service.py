"""
Report store: creation, lookup and listing of citizen reports.

Status and truck assignment are never written here; AssignmentService owns
every workflow transition.
"""
import logging
from typing import Any, List, Mapping, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.errors import ReportNotFound, ValidationFailed, field_errors
from models.report import ACTIVE_STATUSES, Report, ReportStatus
from schemas.report import ReportCreate, ReportStats, ReportUpdate

log = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def validate_report_fields(fields: Mapping[str, Any], schema: Type[T] = ReportCreate) -> T:
    """Validate raw citizen input, reporting every bad field at once."""
    try:
        return schema.model_validate(dict(fields))
    except ValidationError as exc:
        raise ValidationFailed(errors=field_errors(exc.errors()))


class ReportService:
    @staticmethod
    def create_report(fields: Mapping[str, Any], db: Session) -> Report:
        """
        Persist a citizen submission.

        Any client-supplied status or assignment is ignored: reports always
        start Pending and unassigned, stamped with the server clock.
        """
        data = validate_report_fields(fields)
        report = Report(
            reporter_phone=data.reporter_phone,
            description=data.description,
            location_name=data.location.name,
            location_state=data.location.state,
            location_city=data.location.city,
            image_url=data.image_url,
            status=ReportStatus.PENDING,
        )
        db.add(report)
        db.commit()
        db.refresh(report)
        log.info("Report %s submitted for %s, %s", report.id, report.location_city, report.location_state)
        return report

    @staticmethod
    def get_report(report_id: UUID, db: Session) -> Report:
        report = db.get(Report, report_id)
        if not report:
            raise ReportNotFound()
        return report

    @staticmethod
    def list_reports(db: Session, status: Optional[ReportStatus] = None) -> List[Report]:
        """All reports, or those in one status, newest first."""
        query = db.query(Report)
        if status is not None:
            query = query.filter(Report.status == status)
        return query.order_by(Report.date_reported.desc()).all()

    @staticmethod
    def list_active_for_truck(truck_id: UUID, db: Session) -> List[Report]:
        return (
            db.query(Report)
            .filter(Report.assigned_truck_id == truck_id, Report.status.in_(ACTIVE_STATUSES))
            .order_by(Report.date_reported.desc())
            .all()
        )

    @staticmethod
    def update_report(report_id: UUID, patch: ReportUpdate, db: Session, actor_id: Optional[UUID] = None) -> Report:
        report = ReportService.get_report(report_id, db)

        if patch.reporter_phone is not None:
            report.reporter_phone = patch.reporter_phone
        if patch.description is not None:
            report.description = patch.description.strip()
        if patch.location is not None:
            report.location_name = patch.location.name
            report.location_state = patch.location.state
            report.location_city = patch.location.city
        report.last_updated_by = actor_id

        db.commit()
        db.refresh(report)
        return report

    @staticmethod
    def stats(db: Session) -> ReportStats:
        rows = db.query(Report.status, func.count(Report.id)).group_by(Report.status).all()
        counts = {status: count for status, count in rows}
        return ReportStats(
            total=sum(counts.values()),
            pending=counts.get(ReportStatus.PENDING, 0),
            assigned=counts.get(ReportStatus.ASSIGNED, 0),
            in_progress=counts.get(ReportStatus.IN_PROGRESS, 0),
            cleared=counts.get(ReportStatus.CLEARED, 0),
        )
