"""
Shipment Schemas

Pydantic models for shipment API requests and responses. Responses keep
the {"success": true, ...} envelope clients already depend on.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from logistics_pro.models.shipment import normalize_status


# ==================== Request Schemas ====================


class ShipmentCreate(BaseModel):
    """Create a shipment."""
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_phone: str = Field(..., min_length=1, max_length=20)
    customer_email: Optional[EmailStr] = None
    origin: str = Field(..., min_length=1, max_length=200)
    destination: str = Field(..., min_length=1, max_length=200)
    service_type: str = Field(..., min_length=1, max_length=50)
    weight: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    cost: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    driver_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)


class StatusUpdate(BaseModel):
    """Record a status transition."""
    status: str = Field(..., min_length=1, max_length=40)
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return normalize_status(v)


class DriverAssignment(BaseModel):
    """Assign (or clear, with null) a shipment's driver."""
    driver_id: Optional[int] = None


# ==================== Response Schemas ====================


class StatusEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    location: Optional[str] = None
    notes: Optional[str] = None
    updated_by: Optional[int] = None
    created_at: datetime


class ShipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tracking_number: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    origin: str
    destination: str
    service_type: str
    weight: Decimal
    cost: Decimal
    status: str
    company_id: int
    driver_id: Optional[int] = None
    current_location: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ShipmentDetailResponse(BaseModel):
    """Shipment with its status history, oldest event first."""
    success: bool = True
    shipment: ShipmentResponse
    history: List[StatusEventResponse]


class ShipmentListResponse(BaseModel):
    success: bool = True
    shipments: List[ShipmentResponse]
    total: int


class StatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    shipment_id: int
    status: str
    current_location: Optional[str] = None
    updated_at: datetime
    event: StatusEventResponse


class DriverAssignmentResponse(BaseModel):
    success: bool = True
    shipment: ShipmentResponse
