from logistics_pro.models.user import User, UserRole
from logistics_pro.models.shipment import (
    Shipment,
    ShipmentStatus,
    StatusHistory,
    normalize_status,
    is_known_status,
)
