"""
API endpoints for citizen reports and the pickup workflow.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from api.dependencies import require_admin, require_driver
from core.database import get_db
from core.errors import ValidationFailed
from core.security import Principal
from models.report import Report, ReportStatus
from schemas.common import Envelope, ok
from schemas.report import AssignRequest, ReportFields, ReportResponse, ReportStats, ReportUpdate
from services.assignment_service import AssignmentService
from services.report_service import ReportService, validate_report_fields
from services.storage_service import ImageStorage, get_image_storage

router = APIRouter(prefix="/reports", tags=["reports"])


def _serialize(report: Report) -> ReportResponse:
    return ReportResponse.model_validate(report)


def parse_status_filter(raw: Optional[str]) -> Optional[ReportStatus]:
    if raw is None or not raw.strip() or raw.strip().lower() == "all":
        return None
    try:
        return ReportStatus.parse(raw)
    except ValueError as exc:
        raise ValidationFailed(errors=[{"field": "status", "message": str(exc)}])


# ==================== CITIZEN ====================
@router.post("", response_model=Envelope[ReportResponse], status_code=status.HTTP_201_CREATED)
def submit_report(
    reporter_phone: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    location_name: Optional[str] = Form(None),
    location_state: Optional[str] = Form(None),
    location_city: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage)
):
    """Citizen submission: report fields plus a photo of the waste pile."""
    errors = []
    try:
        fields = validate_report_fields(
            {
                "reporter_phone": reporter_phone,
                "description": description,
                "location": {"name": location_name, "state": location_state, "city": location_city},
            },
            ReportFields,
        )
    except ValidationFailed as exc:
        errors.extend(exc.errors)
    if image is None:
        errors.append({"field": "image", "message": "Image file is missing. Please upload proof of the waste."})
    if errors:
        raise ValidationFailed(errors=errors)

    image_url = storage.save("reports", image)
    try:
        report = ReportService.create_report({**fields.model_dump(), "image_url": image_url}, db)
    except Exception:
        storage.discard(image_url)
        raise
    return ok(_serialize(report), "Waste report submitted successfully!")


# ==================== ADMIN ====================
@router.get("", response_model=Envelope[list[ReportResponse]])
def list_reports(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    reports = ReportService.list_reports(db, parse_status_filter(status))
    return ok([_serialize(report) for report in reports])


@router.get("/stats", response_model=Envelope[ReportStats])
def report_stats(
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    return ok(ReportService.stats(db))


# ==================== DRIVER ====================
@router.get("/driver/assigned", response_model=Envelope[list[ReportResponse]])
def driver_assigned_reports(
    db: Session = Depends(get_db),
    driver: Principal = Depends(require_driver)
):
    """Reports currently Assigned or In-Progress on the caller's truck."""
    reports = AssignmentService.driver_reports(driver.id, db, truck=driver.truck)
    return ok([_serialize(report) for report in reports])


@router.patch("/{report_id}/confirm-pickup", response_model=Envelope[ReportResponse])
def confirm_pickup(
    report_id: UUID,
    db: Session = Depends(get_db),
    driver: Principal = Depends(require_driver)
):
    report = AssignmentService.confirm_pickup(report_id, driver.id, db, truck=driver.truck)
    return ok(_serialize(report), "Pickup confirmed.")


@router.post("/{report_id}/clear", response_model=Envelope[ReportResponse])
def submit_clearance(
    report_id: UUID,
    proof_image: Optional[UploadFile] = File(None),
    notes: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    driver: Principal = Depends(require_driver),
    storage: ImageStorage = Depends(get_image_storage)
):
    """Driver submits disposal proof; the report is cleared and the truck freed."""
    if proof_image is None:
        raise ValidationFailed(errors=[{"field": "proof_image", "message": "Disposal proof image is required"}])

    AssignmentService.ensure_can_clear(report_id, driver.id, db, truck=driver.truck)
    proof_url = storage.save(f"proofs/{report_id}", proof_image, field="proof_image")
    try:
        report = AssignmentService.submit_clearance(report_id, driver.id, proof_url, notes, db, truck=driver.truck)
    except Exception:
        storage.discard(proof_url)
        raise
    return ok(_serialize(report), "Waste cleared and truck released.")


# ==================== ADMIN (single report) ====================
@router.get("/{report_id}", response_model=Envelope[ReportResponse])
def get_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    return ok(_serialize(ReportService.get_report(report_id, db)))


@router.put("/{report_id}", response_model=Envelope[ReportResponse])
def update_report(
    report_id: UUID,
    payload: ReportUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    report = ReportService.update_report(report_id, payload, db, actor_id=admin.id)
    return ok(_serialize(report), "Report updated.")


@router.put("/{report_id}/assign", response_model=Envelope[ReportResponse])
def assign_report(
    report_id: UUID,
    payload: AssignRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    report = AssignmentService.assign(report_id, payload.truck_id, db, actor_id=admin.id)
    return ok(_serialize(report), "Truck assigned.")


@router.put("/{report_id}/unassign", response_model=Envelope[ReportResponse])
def unassign_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    report = AssignmentService.unassign(report_id, db, actor_id=admin.id)
    return ok(_serialize(report), "Truck released; report is pending again.")


@router.put("/{report_id}/force-clear", response_model=Envelope[ReportResponse])
def force_clear_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    """Admin override: mark an active report cleared without driver proof."""
    report = AssignmentService.force_clear(report_id, db, actor_id=admin.id)
    return ok(_serialize(report), "Report marked cleared by admin override.")


@router.delete("/{report_id}", response_model=Envelope[None])
def delete_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin)
):
    AssignmentService.delete_report(report_id, db)
    return ok(None, "Report deleted.")
