"""
Audit logging for shipment mutations

Records who changed which shipment and when, as one JSON line per action
on the dedicated "audit" logger. The status history table remains the
authoritative trail; this log is for operators.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Any

# Structured audit logger
audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

# Action categories
ACTION_SHIPMENT_CREATE = "shipment.create"
ACTION_SHIPMENT_STATUS = "shipment.status_update"
ACTION_SHIPMENT_ASSIGN_DRIVER = "shipment.assign_driver"


def log_shipment_action(
    action: str,
    actor_id: int,
    actor_role: str,
    shipment_id: Optional[int] = None,
    details: Optional[dict] = None,
    success: bool = True,
):
    """
    Log a shipment mutation.

    Args:
        action: Action identifier (e.g., "shipment.create")
        actor_id: ID of the principal performing the action
        actor_role: Role of the principal
        shipment_id: ID of the affected shipment (if known)
        details: Additional context about the action
        success: Whether the action succeeded
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "actor_id": actor_id,
        "actor_role": actor_role,
        "shipment_id": shipment_id,
        "success": success,
        "details": details or {},
    }

    line = json.dumps(log_entry, default=str)
    if success:
        audit_logger.info(line)
    else:
        audit_logger.warning(line)
