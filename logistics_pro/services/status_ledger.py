"""
Status History Ledger

Append-only log of status transitions. Rows are only ever inserted; reads
come back oldest first so the history reads as a narrative.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logistics_pro.models.shipment import StatusHistory, normalize_status, utcnow

logger = logging.getLogger(__name__)


class StatusLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        shipment_id: int,
        status: str,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> StatusHistory:
        entry = StatusHistory(
            shipment_id=shipment_id,
            status=normalize_status(status),
            location=location,
            notes=notes,
            updated_by=actor_id,
            created_at=utcnow(),
        )
        self.db.add(entry)
        await self.db.flush()
        logger.debug(f"Appended status {entry.status!r} to shipment {shipment_id}")
        return entry

    async def list_for(self, shipment_id: int) -> List[StatusHistory]:
        """Events for a shipment, oldest first; ties broken by insertion order."""
        result = await self.db.execute(
            select(StatusHistory)
            .where(StatusHistory.shipment_id == shipment_id)
            .order_by(StatusHistory.created_at.asc(), StatusHistory.id.asc())
        )
        return list(result.scalars().all())
