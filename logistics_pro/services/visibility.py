"""
Visibility filter: which shipments a principal may list.

- company → shipments it owns (company_id)
- driver  → shipments assigned to it (driver_id)
- anyone else, clients included → no restriction

Single-shipment reads (by id or tracking number) are not filtered.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Select

from logistics_pro.models.shipment import Shipment
from logistics_pro.models.user import UserRole
from logistics_pro.services.identity import Principal


@dataclass(frozen=True)
class VisibilityCriteria:
    company_id: Optional[int] = None
    driver_id: Optional[int] = None

    @property
    def unrestricted(self) -> bool:
        return self.company_id is None and self.driver_id is None

    def apply(self, stmt: Select) -> Select:
        if self.company_id is not None:
            stmt = stmt.where(Shipment.company_id == self.company_id)
        if self.driver_id is not None:
            stmt = stmt.where(Shipment.driver_id == self.driver_id)
        return stmt


def criteria_for(principal: Principal) -> VisibilityCriteria:
    if principal.role == UserRole.COMPANY:
        return VisibilityCriteria(company_id=principal.id)
    if principal.role == UserRole.DRIVER:
        return VisibilityCriteria(driver_id=principal.id)
    # TODO: scope client reads to shipments matching the client's own phone/email
    return VisibilityCriteria()
