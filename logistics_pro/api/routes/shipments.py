"""
Shipment API Routes

Provides endpoints for:
- Shipment creation (issues the tracking number)
- Role-scoped listing
- Detail with status history
- Public tracking by tracking number
- Status updates and driver assignment
"""
import logging

from fastapi import APIRouter, Depends, Path, Request, status

from logistics_pro.api.deps import get_current_principal, get_lifecycle
from logistics_pro.core.config import settings
from logistics_pro.core.rate_limit import limiter
from logistics_pro.schemas.shipment import (
    DriverAssignment,
    DriverAssignmentResponse,
    ShipmentCreate,
    ShipmentDetailResponse,
    ShipmentListResponse,
    ShipmentResponse,
    StatusEventResponse,
    StatusUpdate,
    StatusUpdateResponse,
)
from logistics_pro.services.identity import Principal
from logistics_pro.services.lifecycle import ShipmentDetail, ShipmentLifecycle
from logistics_pro.services.shipment_store import ShipmentDraft

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipments")


def detail_to_response(detail: ShipmentDetail) -> ShipmentDetailResponse:
    return ShipmentDetailResponse(
        shipment=ShipmentResponse.model_validate(detail.shipment),
        history=[StatusEventResponse.model_validate(event) for event in detail.history],
    )


@router.get("", response_model=ShipmentListResponse)
async def list_shipments(
    principal: Principal = Depends(get_current_principal),
    lifecycle: ShipmentLifecycle = Depends(get_lifecycle),
):
    """
    List shipments, newest first.

    Companies see their own shipments, drivers see shipments assigned to
    them, everyone else sees all shipments.
    """
    shipments = await lifecycle.list_shipments(principal)
    return ShipmentListResponse(
        shipments=[ShipmentResponse.model_validate(s) for s in shipments],
        total=len(shipments),
    )


@router.post("", response_model=ShipmentDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    payload: ShipmentCreate,
    principal: Principal = Depends(get_current_principal),
    lifecycle: ShipmentLifecycle = Depends(get_lifecycle),
):
    """Create a shipment owned by the caller, in status "received"."""
    draft = ShipmentDraft(**payload.model_dump())
    detail = await lifecycle.create_shipment(draft, principal)
    return detail_to_response(detail)


@router.get("/track/{tracking_number}", response_model=ShipmentDetailResponse)
@limiter.limit(settings.RATE_LIMIT_TRACKING)
async def track_shipment(
    request: Request,
    tracking_number: str = Path(..., min_length=1, max_length=50),
    lifecycle: ShipmentLifecycle = Depends(get_lifecycle),
):
    """Public tracking lookup. No authentication required."""
    detail = await lifecycle.track_shipment(tracking_number.strip().upper())
    return detail_to_response(detail)


@router.get("/{shipment_id}", response_model=ShipmentDetailResponse)
async def get_shipment(
    shipment_id: int,
    principal: Principal = Depends(get_current_principal),
    lifecycle: ShipmentLifecycle = Depends(get_lifecycle),
):
    detail = await lifecycle.get_shipment(shipment_id, principal)
    return detail_to_response(detail)


@router.put("/{shipment_id}/status", response_model=StatusUpdateResponse)
async def update_shipment_status(
    shipment_id: int,
    payload: StatusUpdate,
    principal: Principal = Depends(get_current_principal),
    lifecycle: ShipmentLifecycle = Depends(get_lifecycle),
):
    """
    Record a status change.

    The customer is notified in the background; a failed notification does
    not affect the response.
    """
    change = await lifecycle.update_shipment_status(
        shipment_id,
        payload.status,
        principal,
        location=payload.location,
        notes=payload.notes,
    )
    return StatusUpdateResponse(
        message="Status updated",
        shipment_id=change.shipment.id,
        status=change.shipment.status,
        current_location=change.shipment.current_location,
        updated_at=change.shipment.updated_at,
        event=StatusEventResponse.model_validate(change.event),
    )


@router.put("/{shipment_id}/driver", response_model=DriverAssignmentResponse)
async def assign_driver(
    shipment_id: int,
    payload: DriverAssignment,
    principal: Principal = Depends(get_current_principal),
    lifecycle: ShipmentLifecycle = Depends(get_lifecycle),
):
    shipment = await lifecycle.assign_driver(shipment_id, payload.driver_id, principal)
    return DriverAssignmentResponse(shipment=ShipmentResponse.model_validate(shipment))
