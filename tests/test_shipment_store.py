"""
Tests for the shipment store and the status history ledger.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from unittest.mock import patch

from logistics_pro.core.exceptions import (
    ShipmentNotFoundError,
    ShipmentValidationError,
    TrackingNumberConflictError,
)
from logistics_pro.models.shipment import (
    ShipmentStatus,
    StatusHistory,
    as_utc,
    is_known_status,
    normalize_status,
    utcnow,
)
from logistics_pro.services.shipment_store import ShipmentStore, clean_status
from logistics_pro.services.status_ledger import StatusLedger
from logistics_pro.services.visibility import VisibilityCriteria


class TestStatusNormalization:
    def test_known_statuses(self):
        assert normalize_status("delivered") == "delivered"
        assert normalize_status(ShipmentStatus.IN_TRANSIT) == "in_transit"
        assert normalize_status(" Out For Delivery ") == "out_for_delivery"
        assert normalize_status("in-transit") == "in_transit"

    def test_custom_status_accepted(self):
        value = normalize_status("held_at_customs")
        assert value == "held_at_customs"
        assert not is_known_status(value)

    @pytest.mark.parametrize("value", ["", "   ", "!!", "x" * 21, 42, None])
    def test_invalid_status(self, value):
        with pytest.raises(ValueError):
            normalize_status(value)

    def test_clean_status_raises_validation_error(self):
        with pytest.raises(ShipmentValidationError) as exc_info:
            clean_status("bad status!")
        assert exc_info.value.details["field"] == "status"


class TestShipmentDraft:
    def test_validated_values(self, make_draft):
        values = make_draft(customer_name="  Alice  ", customer_email="").validated()

        assert values["customer_name"] == "Alice"
        assert values["weight"] == Decimal("2.50")
        assert values["cost"] == Decimal("50.00")
        assert values["customer_email"] is None

    @pytest.mark.parametrize(
        "field",
        ["customer_name", "customer_phone", "origin", "destination", "service_type", "weight", "cost"],
    )
    def test_required_fields(self, make_draft, field):
        with pytest.raises(ShipmentValidationError) as exc_info:
            make_draft(**{field: None}).validated()
        assert exc_info.value.details["field"] == field

    def test_blank_string_is_missing(self, make_draft):
        with pytest.raises(ShipmentValidationError):
            make_draft(origin="   ").validated()

    @pytest.mark.parametrize("weight", [0, "-1", "abc", True, "NaN"])
    def test_bad_weight(self, make_draft, weight):
        with pytest.raises(ShipmentValidationError) as exc_info:
            make_draft(weight=weight).validated()
        assert exc_info.value.details["field"] == "weight"

    def test_zero_cost_allowed(self, make_draft):
        assert make_draft(cost=0).validated()["cost"] == Decimal("0.00")

    def test_negative_cost(self, make_draft):
        with pytest.raises(ShipmentValidationError):
            make_draft(cost="-0.01").validated()

    def test_too_long(self, make_draft):
        with pytest.raises(ShipmentValidationError) as exc_info:
            make_draft(customer_phone="1" * 21).validated()
        assert exc_info.value.details["field"] == "customer_phone"


class TestShipmentStore:
    @pytest.mark.asyncio
    async def test_create_sets_initial_state(self, database, principals, make_draft):
        async with database.session() as db:
            shipment = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")

        assert shipment.id is not None
        assert shipment.status == ShipmentStatus.RECEIVED.value
        assert shipment.current_location == "Cairo"
        assert shipment.company_id == principals["company"].id
        assert shipment.driver_id is None
        assert shipment.created_at == shipment.updated_at

    @pytest.mark.asyncio
    async def test_duplicate_tracking_number(self, database, principals, make_draft):
        async with database.session() as db:
            await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")

        with pytest.raises(TrackingNumberConflictError) as exc_info:
            async with database.session() as db:
                await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")
        assert exc_info.value.details["tracking_number"] == "SHTEST0001"

        async with database.session() as db:
            assert len(await ShipmentStore(db).list(VisibilityCriteria())) == 1

    @pytest.mark.asyncio
    async def test_get_missing(self, database):
        async with database.session() as db:
            store = ShipmentStore(db)
            with pytest.raises(ShipmentNotFoundError):
                await store.get(999)
            with pytest.raises(ShipmentNotFoundError):
                await store.get_by_tracking_number("NONEXISTENT")

    @pytest.mark.asyncio
    async def test_list_newest_first(self, database, principals, make_draft):
        async with database.session() as db:
            store = ShipmentStore(db)
            first = await store.create(make_draft(), principals["company"], "SHTEST0001")
            second = await store.create(make_draft(), principals["company"], "SHTEST0002")

        async with database.session() as db:
            listed = await ShipmentStore(db).list(VisibilityCriteria())

        assert [s.id for s in listed] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_update_status_moves_updated_at(self, database, principals, make_draft):
        async with database.session() as db:
            created = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")
        before = as_utc(created.updated_at)

        async with database.session() as db:
            updated = await ShipmentStore(db).update_status(created.id, "in_transit", "Ring Road")

        assert updated.status == "in_transit"
        assert updated.current_location == "Ring Road"
        assert as_utc(updated.updated_at) >= before

    @pytest.mark.asyncio
    async def test_updated_at_never_goes_backwards(self, database, principals, make_draft):
        async with database.session() as db:
            created = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")
        before = as_utc(created.updated_at)

        skewed = before - timedelta(hours=1)
        with patch("logistics_pro.services.shipment_store.utcnow", return_value=skewed):
            async with database.session() as db:
                updated = await ShipmentStore(db).update_status(created.id, "in_transit")

        assert as_utc(updated.updated_at) == before

    @pytest.mark.asyncio
    async def test_update_status_missing(self, database):
        with pytest.raises(ShipmentNotFoundError):
            async with database.session() as db:
                await ShipmentStore(db).update_status(999, "delivered")

    @pytest.mark.asyncio
    async def test_assign_driver_keeps_updated_at(self, database, principals, make_draft):
        async with database.session() as db:
            created = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")

        async with database.session() as db:
            await ShipmentStore(db).assign_driver(created.id, principals["driver"].id)

        async with database.session() as db:
            reloaded = await ShipmentStore(db).get(created.id)
        assert reloaded.driver_id == principals["driver"].id
        assert as_utc(reloaded.updated_at) == as_utc(created.updated_at)


class TestStatusLedger:
    @pytest.mark.asyncio
    async def test_append_and_order(self, database, principals, make_draft):
        async with database.session() as db:
            shipment = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")
            ledger = StatusLedger(db)
            await ledger.append(shipment.id, "received", location="Cairo", actor_id=principals["company"].id)
            await ledger.append(shipment.id, "In Transit", location="Ring Road", notes="on the way")

        async with database.session() as db:
            events = await StatusLedger(db).list_for(shipment.id)

        assert [e.status for e in events] == ["received", "in_transit"]
        assert events[1].notes == "on the way"
        assert events[0].updated_by == principals["company"].id
        assert events[1].updated_by is None

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self, database, principals, make_draft):
        stamp = utcnow()
        async with database.session() as db:
            shipment = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")
            with patch("logistics_pro.services.status_ledger.utcnow", return_value=stamp):
                ledger = StatusLedger(db)
                for status in ("received", "in_transit", "delivered"):
                    await ledger.append(shipment.id, status)

        async with database.session() as db:
            events = await StatusLedger(db).list_for(shipment.id)
        assert [e.status for e in events] == ["received", "in_transit", "delivered"]

    @pytest.mark.asyncio
    async def test_empty_for_unknown_shipment(self, database):
        async with database.session() as db:
            assert await StatusLedger(db).list_for(999) == []

    @pytest.mark.asyncio
    async def test_rows_cannot_be_updated(self, database, principals, make_draft):
        async with database.session() as db:
            shipment = await ShipmentStore(db).create(make_draft(), principals["company"], "SHTEST0001")
            event = await StatusLedger(db).append(shipment.id, "received")

        with pytest.raises(RuntimeError, match="append-only"):
            async with database.session() as db:
                stored = await db.get(StatusHistory, event.id)
                stored.notes = "rewritten"
                await db.flush()

        async with database.session() as db:
            events = await StatusLedger(db).list_for(shipment.id)
        assert events[0].notes is None
