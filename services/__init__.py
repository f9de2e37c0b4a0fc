"""
Services module - Business logic layer for WasteAlert.
"""
from services.auth_service import AuthService
from services.fleet_service import FleetService
from services.report_service import ReportService
from services.assignment_service import AssignmentService
from services.storage_service import ImageStorage

__all__ = ["AuthService", "FleetService", "ReportService", "AssignmentService", "ImageStorage"]
