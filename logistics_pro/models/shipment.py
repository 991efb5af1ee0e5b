"""
Shipment and StatusHistory models

A shipment row holds the current state; status_history is its append-only
audit trail. The last history row always carries the shipment's current
status and location.
"""
import enum
import re
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Text,
    ForeignKey, Index, UniqueConstraint, event,
)

from logistics_pro.core.database import Base

STATUS_MAX_LENGTH = 20
CUSTOM_STATUS_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class ShipmentStatus(str, enum.Enum):
    """Shipment lifecycle status"""
    RECEIVED = "received"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


def normalize_status(value: Union[str, ShipmentStatus]) -> str:
    """
    Canonical stored form of a status.

    Known statuses map to their enum value. Anything else is accepted as a
    custom status as long as it is a lowercase snake_case word that fits the
    column; transitions are recorded, not policed.
    """
    if isinstance(value, ShipmentStatus):
        return value.value
    if not isinstance(value, str):
        raise ValueError("status must be a string")

    candidate = value.strip().lower().replace(" ", "_").replace("-", "_")
    if not candidate:
        raise ValueError("status is required")
    if len(candidate) > STATUS_MAX_LENGTH:
        raise ValueError(f"status must be at most {STATUS_MAX_LENGTH} characters")
    if not CUSTOM_STATUS_PATTERN.match(candidate):
        raise ValueError("status may contain only letters, digits and underscores")
    return candidate


def is_known_status(value: str) -> bool:
    return value in ShipmentStatus._value2member_map_


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Shipment(Base):
    __tablename__ = "shipments"
    __table_args__ = (
        UniqueConstraint("tracking_number", name="uq_shipments_tracking_number"),
        Index("ix_shipments_company_id", "company_id"),
        Index("ix_shipments_driver_id", "driver_id"),
        Index("ix_shipments_created_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Public identifier, never reused
    tracking_number = Column(String(50), nullable=False)

    # Customer
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_email = Column(String(100), nullable=True)

    # Route
    origin = Column(String(200), nullable=False)
    destination = Column(String(200), nullable=False)
    service_type = Column(String(50), nullable=False)

    # Package
    weight = Column(Numeric(10, 2), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False)

    # State
    status = Column(String(STATUS_MAX_LENGTH), nullable=False, default=ShipmentStatus.RECEIVED.value)
    current_location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    # Ownership
    company_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Timestamps; updated_at only moves on status/location changes
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Shipment(id={self.id}, tracking={self.tracking_number}, status={self.status})>"


class StatusHistory(Base):
    """
    One status transition. Rows are written once and never changed.
    """
    __tablename__ = "status_history"
    __table_args__ = (
        Index("ix_status_history_shipment_id_created_at", "shipment_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False)

    status = Column(String(STATUS_MAX_LENGTH), nullable=False)
    location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<StatusHistory(id={self.id}, shipment={self.shipment_id}, status={self.status})>"


@event.listens_for(StatusHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    raise RuntimeError(f"status_history rows are append-only (id={target.id})")
