"""
Shipment Store

Owns the shipments table. Works inside the caller's session so that the
orchestrator can pair every write with a status history append in the
same transaction.
"""
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from logistics_pro.core.exceptions import (
    ShipmentNotFoundError,
    ShipmentValidationError,
    TrackingNumberConflictError,
)
from logistics_pro.models.shipment import (
    Shipment,
    ShipmentStatus,
    as_utc,
    normalize_status,
    utcnow,
)
from logistics_pro.services.identity import Principal
from logistics_pro.services.visibility import VisibilityCriteria

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "customer_name",
    "customer_phone",
    "origin",
    "destination",
    "service_type",
    "weight",
    "cost",
)

MAX_LENGTHS = {
    "customer_name": 100,
    "customer_phone": 20,
    "customer_email": 100,
    "origin": 200,
    "destination": 200,
    "service_type": 50,
}

MAX_AMOUNT = Decimal("99999999.99")


def _to_decimal(field: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ShipmentValidationError(f"{field} must be a number", field=field)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ShipmentValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ShipmentValidationError(f"{field} must be a finite number", field=field)
    if amount > MAX_AMOUNT:
        raise ShipmentValidationError(f"{field} is too large", field=field)
    return amount.quantize(Decimal("0.01"))


def clean_status(status: Any) -> str:
    try:
        return normalize_status(status)
    except ValueError as exc:
        raise ShipmentValidationError(str(exc), field="status") from exc


@dataclass
class ShipmentDraft:
    """Caller-supplied fields for a new shipment."""
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    service_type: Optional[str] = None
    weight: Any = None
    cost: Any = None
    customer_email: Optional[str] = None
    driver_id: Optional[int] = None
    notes: Optional[str] = None

    def validated(self) -> Dict[str, Any]:
        """
        Check required fields and amounts, returning cleaned column values.

        Raises ShipmentValidationError on the first problem found.
        """
        values = asdict(self)

        for field in REQUIRED_FIELDS:
            value = values[field]
            if isinstance(value, str):
                value = value.strip()
                values[field] = value
            if value is None or value == "":
                raise ShipmentValidationError(f"{field} is required", field=field)

        for field, limit in MAX_LENGTHS.items():
            value = values[field]
            if value is not None and len(value) > limit:
                raise ShipmentValidationError(f"{field} must be at most {limit} characters", field=field)

        weight = _to_decimal("weight", values["weight"])
        if weight <= 0:
            raise ShipmentValidationError("weight must be positive", field="weight")
        cost = _to_decimal("cost", values["cost"])
        if cost < 0:
            raise ShipmentValidationError("cost must not be negative", field="cost")

        values["weight"] = weight
        values["cost"] = cost
        values["customer_email"] = (values["customer_email"] or "").strip() or None
        return values


class ShipmentStore:
    """Persistence for shipment rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, draft: ShipmentDraft, owner: Principal, tracking_number: str) -> Shipment:
        """
        Insert a new shipment in status "received".

        Raises ShipmentValidationError for bad drafts and
        TrackingNumberConflictError when the tracking number is taken; the
        session must then be rolled back by the caller.
        """
        values = draft.validated()
        now = utcnow()

        shipment = Shipment(
            tracking_number=tracking_number,
            status=ShipmentStatus.RECEIVED.value,
            current_location=values["origin"],
            company_id=owner.id,
            created_at=now,
            updated_at=now,
            **values,
        )
        self.db.add(shipment)

        try:
            await self.db.flush()
        except IntegrityError as exc:
            if "tracking_number" in str(exc.orig):
                raise TrackingNumberConflictError(
                    "Tracking number already in use",
                    tracking_number=tracking_number,
                ) from exc
            raise

        return shipment

    async def get(self, shipment_id: int) -> Shipment:
        result = await self.db.execute(select(Shipment).where(Shipment.id == shipment_id))
        shipment = result.scalar_one_or_none()
        if not shipment:
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found", details={"shipment_id": shipment_id})
        return shipment

    async def get_for_update(self, shipment_id: int) -> Shipment:
        """Load a shipment with a row lock (no-op on SQLite)."""
        result = await self.db.execute(
            select(Shipment).where(Shipment.id == shipment_id).with_for_update()
        )
        shipment = result.scalar_one_or_none()
        if not shipment:
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found", details={"shipment_id": shipment_id})
        return shipment

    async def get_by_tracking_number(self, tracking_number: str) -> Shipment:
        result = await self.db.execute(
            select(Shipment).where(Shipment.tracking_number == tracking_number)
        )
        shipment = result.scalar_one_or_none()
        if not shipment:
            raise ShipmentNotFoundError(
                "Shipment not found",
                details={"tracking_number": tracking_number},
            )
        return shipment

    async def list(self, criteria: VisibilityCriteria) -> List[Shipment]:
        """Shipments visible under criteria, newest first."""
        stmt = criteria.apply(select(Shipment))
        stmt = stmt.order_by(Shipment.created_at.desc(), Shipment.id.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_status(
        self,
        shipment_id: int,
        status: str,
        location: Optional[str] = None,
    ) -> Shipment:
        """
        Set status and location, advancing updated_at.

        Notes for the transition belong to the history event, not the row.
        updated_at never moves backwards, even if the clock does.
        """
        status = clean_status(status)
        shipment = await self.get_for_update(shipment_id)

        now = utcnow()
        previous = as_utc(shipment.updated_at)
        if previous is not None and now < previous:
            now = previous

        shipment.status = status
        shipment.current_location = location
        shipment.updated_at = now

        await self.db.flush()
        return shipment

    async def assign_driver(self, shipment_id: int, driver_id: Optional[int]) -> Shipment:
        shipment = await self.get_for_update(shipment_id)
        shipment.driver_id = driver_id
        await self.db.flush()
        return shipment
