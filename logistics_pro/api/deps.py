"""
API dependencies

Bearer-token authentication through the Identity Gate, plus accessors for
the process-wide handles the lifespan stores on app.state.
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from logistics_pro.core.database import get_db
from logistics_pro.services.identity import IdentityGate, Principal
from logistics_pro.services.lifecycle import ShipmentLifecycle

# Optional bearer - doesn't fail if no Authorization header
security = HTTPBearer(auto_error=False)

identity_gate = IdentityGate()


def get_lifecycle(request: Request) -> ShipmentLifecycle:
    return request.app.state.lifecycle


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Resolve the caller from the Authorization header.

    UnauthorizedError propagates to the LogisticsError handler, which adds
    the WWW-Authenticate challenge.
    """
    token = credentials.credentials if credentials else None
    return await identity_gate.authenticate(token, db)
