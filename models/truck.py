"""
Fleet unit (collection truck) model.
"""
from __future__ import annotations
from datetime import datetime
from typing import TYPE_CHECKING
import uuid

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base, utcnow

if TYPE_CHECKING:
    from models.user import User


class Truck(Base):
    __tablename__ = "trucks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    license_plate: Mapped[str] = mapped_column(String(30), unique=True, index=True, nullable=False)
    # At most one unit per driver.
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    driver_name: Mapped[str] = mapped_column(String(80), nullable=False)
    capacity_tons: Mapped[float] = mapped_column(Float, nullable=False)

    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # True while servicing exactly one Assigned or In-Progress report.
    is_busy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    driver: Mapped[User] = relationship("User", back_populates="truck")
