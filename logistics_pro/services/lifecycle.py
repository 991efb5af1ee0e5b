"""
Shipment Lifecycle Orchestrator

Composes the store, the status ledger, the tracking number generator, the
visibility filter and the notification dispatcher into the five public
operations (plus driver assignment).

Every write opens exactly one transaction covering both the shipment row
and its history event, so a shipment never exists without its "received"
event and a status change is never half applied.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from logistics_pro.core.audit_log import (
    ACTION_SHIPMENT_ASSIGN_DRIVER,
    ACTION_SHIPMENT_CREATE,
    ACTION_SHIPMENT_STATUS,
    log_shipment_action,
)
from logistics_pro.core.database import Database
from logistics_pro.core.exceptions import (
    ForbiddenError,
    LogisticsError,
    ShipmentValidationError,
    StoreFailureError,
    TrackingNumberConflictError,
)
from logistics_pro.models.shipment import Shipment, ShipmentStatus, StatusHistory
from logistics_pro.models.user import User, UserRole
from logistics_pro.services.identity import Principal
from logistics_pro.services.notifications import NotificationDispatcher, StatusNotification
from logistics_pro.services.shipment_store import ShipmentDraft, ShipmentStore, clean_status
from logistics_pro.services.status_ledger import StatusLedger
from logistics_pro.services.tracking_numbers import TrackingNumberGenerator
from logistics_pro.services.visibility import criteria_for

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class ShipmentDetail:
    """A shipment together with its ordered status history."""
    shipment: Shipment
    history: List[StatusHistory]


@dataclass
class StatusChange:
    shipment: Shipment
    event: StatusHistory


class ShipmentLifecycle:
    def __init__(
        self,
        database: Database,
        generator: Optional[TrackingNumberGenerator] = None,
        notifier: Optional[NotificationDispatcher] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.database = database
        self.generator = generator or TrackingNumberGenerator()
        self.notifier = notifier
        self.max_attempts = max_attempts

    async def create_shipment(self, draft: ShipmentDraft, principal: Principal) -> ShipmentDetail:
        """
        Create a shipment and its initial "received" event atomically.

        Tracking number collisions are retried with a fresh number, same
        payload, up to max_attempts; after that the conflict is surfaced.
        """
        # Validate up front so bad input never touches the store
        draft.validated()

        for attempt in range(1, self.max_attempts + 1):
            tracking_number = self.generator.generate()
            try:
                async with self.database.session() as db:
                    store = ShipmentStore(db)
                    ledger = StatusLedger(db)

                    if draft.driver_id is not None:
                        await self._ensure_driver(db, draft.driver_id)
                    shipment = await store.create(draft, principal, tracking_number)
                    await ledger.append(
                        shipment.id,
                        ShipmentStatus.RECEIVED.value,
                        location=shipment.current_location,
                        actor_id=principal.id,
                    )
                    history = await ledger.list_for(shipment.id)
            except TrackingNumberConflictError:
                logger.warning(
                    f"Tracking number collision on {tracking_number} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue
            except LogisticsError:
                raise
            except SQLAlchemyError as exc:
                logger.exception("Store failure while creating shipment")
                raise StoreFailureError() from exc

            logger.info(f"Created shipment {shipment.id} ({shipment.tracking_number})")
            log_shipment_action(
                ACTION_SHIPMENT_CREATE,
                actor_id=principal.id,
                actor_role=principal.role.value,
                shipment_id=shipment.id,
                details={"tracking_number": shipment.tracking_number, "attempts": attempt},
            )
            return ShipmentDetail(shipment=shipment, history=history)

        log_shipment_action(
            ACTION_SHIPMENT_CREATE,
            actor_id=principal.id,
            actor_role=principal.role.value,
            details={"attempts": self.max_attempts},
            success=False,
        )
        raise TrackingNumberConflictError(
            f"Could not allocate a unique tracking number after {self.max_attempts} attempts"
        )

    async def list_shipments(self, principal: Principal) -> List[Shipment]:
        criteria = criteria_for(principal)
        try:
            async with self.database.session() as db:
                return await ShipmentStore(db).list(criteria)
        except SQLAlchemyError as exc:
            logger.exception("Store failure while listing shipments")
            raise StoreFailureError() from exc

    async def get_shipment(self, shipment_id: int, principal: Principal) -> ShipmentDetail:
        # Any authenticated principal may read a single shipment
        try:
            async with self.database.session() as db:
                shipment = await ShipmentStore(db).get(shipment_id)
                history = await StatusLedger(db).list_for(shipment.id)
        except SQLAlchemyError as exc:
            logger.exception(f"Store failure while reading shipment {shipment_id}")
            raise StoreFailureError() from exc
        return ShipmentDetail(shipment=shipment, history=history)

    async def track_shipment(self, tracking_number: str) -> ShipmentDetail:
        """Public lookup; no principal and no side effects."""
        try:
            async with self.database.session() as db:
                shipment = await ShipmentStore(db).get_by_tracking_number(tracking_number)
                history = await StatusLedger(db).list_for(shipment.id)
        except SQLAlchemyError as exc:
            logger.exception("Store failure while tracking shipment")
            raise StoreFailureError() from exc
        return ShipmentDetail(shipment=shipment, history=history)

    async def update_shipment_status(
        self,
        shipment_id: int,
        status: str,
        principal: Principal,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StatusChange:
        """
        Record a status transition: row update + history append in one
        transaction, then notify the customer without waiting.
        """
        status = clean_status(status)

        try:
            async with self.database.session() as db:
                shipment = await ShipmentStore(db).update_status(shipment_id, status, location)
                event = await StatusLedger(db).append(
                    shipment.id,
                    status,
                    location=location,
                    notes=notes,
                    actor_id=principal.id,
                )
        except SQLAlchemyError as exc:
            logger.exception(f"Store failure while updating shipment {shipment_id}")
            raise StoreFailureError() from exc

        logger.info(f"Shipment {shipment.id} -> {status}")
        log_shipment_action(
            ACTION_SHIPMENT_STATUS,
            actor_id=principal.id,
            actor_role=principal.role.value,
            shipment_id=shipment.id,
            details={"status": status, "location": location},
        )
        self._notify(shipment, event)
        return StatusChange(shipment=shipment, event=event)

    async def assign_driver(
        self,
        shipment_id: int,
        driver_id: Optional[int],
        principal: Principal,
    ) -> Shipment:
        """Only the owning company may assign; updated_at is left alone."""
        if not principal.is_company:
            raise ForbiddenError("Only companies can assign drivers")

        try:
            async with self.database.session() as db:
                store = ShipmentStore(db)
                shipment = await store.get_for_update(shipment_id)
                if shipment.company_id != principal.id:
                    raise ForbiddenError("Shipment belongs to another company")
                if driver_id is not None:
                    await self._ensure_driver(db, driver_id)
                shipment = await store.assign_driver(shipment_id, driver_id)
        except SQLAlchemyError as exc:
            logger.exception(f"Store failure while assigning driver to shipment {shipment_id}")
            raise StoreFailureError() from exc

        log_shipment_action(
            ACTION_SHIPMENT_ASSIGN_DRIVER,
            actor_id=principal.id,
            actor_role=principal.role.value,
            shipment_id=shipment.id,
            details={"driver_id": driver_id},
        )
        return shipment

    @staticmethod
    async def _ensure_driver(db: AsyncSession, driver_id: int) -> None:
        result = await db.execute(
            select(User.id).where(User.id == driver_id, User.role == UserRole.DRIVER.value)
        )
        if result.scalar_one_or_none() is None:
            raise ShipmentValidationError(f"User {driver_id} is not a driver", field="driver_id")

    def _notify(self, shipment: Shipment, event: StatusHistory) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.dispatch(
                StatusNotification(
                    shipment_id=shipment.id,
                    tracking_number=shipment.tracking_number,
                    status=event.status,
                    customer_name=shipment.customer_name,
                    customer_phone=shipment.customer_phone,
                    customer_email=shipment.customer_email,
                    location=event.location,
                    notes=event.notes,
                )
            )
        except Exception as e:
            logger.warning(f"Could not schedule notification for shipment {shipment.id}: {e}")
