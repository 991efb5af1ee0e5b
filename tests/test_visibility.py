"""
Tests for the visibility filter.
"""
from sqlalchemy import select

from logistics_pro.models.shipment import Shipment
from logistics_pro.models.user import UserRole
from logistics_pro.services.identity import Principal
from logistics_pro.services.visibility import VisibilityCriteria, criteria_for


class TestCriteriaFor:
    def test_company_sees_own(self):
        criteria = criteria_for(Principal(id=7, role=UserRole.COMPANY))
        assert criteria == VisibilityCriteria(company_id=7)
        assert not criteria.unrestricted

    def test_driver_sees_assigned(self):
        criteria = criteria_for(Principal(id=9, role=UserRole.DRIVER))
        assert criteria == VisibilityCriteria(driver_id=9)

    def test_client_unrestricted(self):
        criteria = criteria_for(Principal(id=3, role=UserRole.CLIENT))
        assert criteria.unrestricted


class TestApply:
    def test_unrestricted_leaves_statement_alone(self):
        stmt = select(Shipment)
        assert VisibilityCriteria().apply(stmt) is stmt

    def test_company_filter(self):
        stmt = VisibilityCriteria(company_id=7).apply(select(Shipment))
        sql = str(stmt.compile(compile_kwargs={"literal_binds": True}))
        assert "shipments.company_id = 7" in sql
        assert "driver_id" not in sql.split("WHERE", 1)[1]

    def test_driver_filter(self):
        stmt = VisibilityCriteria(driver_id=9).apply(select(Shipment))
        sql = str(stmt.compile(compile_kwargs={"literal_binds": True}))
        assert "shipments.driver_id = 9" in sql
