"""
Citizen waste report model and its workflow status vocabulary.
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional, TYPE_CHECKING
import uuid

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base, utcnow

if TYPE_CHECKING:
    from models.truck import Truck


class ReportStatus(PyEnum):
    PENDING = "Pending"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In-Progress"
    CLEARED = "Cleared"

    @classmethod
    def parse(cls, raw: str) -> "ReportStatus":
        """Translate any external spelling ("In Progress", "in_progress", ...) to the canonical member."""
        normalized = (raw or "").strip().lower().replace("_", "-").replace(" ", "-")
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"Unknown report status: {raw!r}")


ACTIVE_STATUSES = (ReportStatus.ASSIGNED, ReportStatus.IN_PROGRESS)


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    reporter_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location_name: Mapped[str] = mapped_column(String(200), nullable=False)
    location_state: Mapped[str] = mapped_column(String(100), nullable=False)
    location_city: Mapped[str] = mapped_column(String(100), nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)

    status: Mapped[ReportStatus] = mapped_column(
        Enum(
            ReportStatus,
            native_enum=False,
            length=20,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=ReportStatus.PENDING,
        index=True,
    )

    # Kept after clearance as history; nulled only by an explicit unassign.
    assigned_truck_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("trucks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    date_assigned: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    date_cleared: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    proof_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    proof_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proof_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    admin_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    date_reported: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)

    assigned_truck: Mapped[Optional[Truck]] = relationship("Truck")

    @property
    def location(self) -> dict:
        return {"name": self.location_name, "state": self.location_state, "city": self.location_city}
