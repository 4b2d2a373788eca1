# Overview: Pytest coverage for the warehouse/store registry and bin semantics.

import pytest

from bookstock.errors import DuplicateCodeError, NotFoundError, ValidationError
from bookstock.models import AuditEvent
from bookstock.models.registry import LOCATION_KIND_STORE, LOCATION_KIND_WAREHOUSE, RECORD_TRASHED
from bookstock.services import location_service

from conftest import ACTOR


class TestCreateLocation:
    def test_create_warehouse(self, db_session, make_location):
        wh = make_location(LOCATION_KIND_WAREHOUSE, code="WH-01", name="Central", city="Leeds")
        assert wh.id is not None
        assert wh.kind == LOCATION_KIND_WAREHOUSE
        assert wh.is_active is True
        assert wh.city == "Leeds"
        assert wh.deleted_at is None

    def test_duplicate_code_same_kind_rejected(self, db_session, make_location):
        make_location(LOCATION_KIND_WAREHOUSE, code="WH-01")
        with pytest.raises(DuplicateCodeError):
            make_location(LOCATION_KIND_WAREHOUSE, code="WH-01")

    def test_same_code_allowed_across_kinds(self, db_session, make_location):
        make_location(LOCATION_KIND_WAREHOUSE, code="X-1")
        st = make_location(LOCATION_KIND_STORE, code="X-1")
        assert st.kind == LOCATION_KIND_STORE

    def test_code_reusable_once_original_is_trashed(self, db_session, make_location):
        first = make_location(LOCATION_KIND_WAREHOUSE, code="WH-01")
        location_service.soft_delete_location(first.id, actor_id=ACTOR)
        second = make_location(LOCATION_KIND_WAREHOUSE, code="WH-01")
        assert second.id != first.id

    def test_blank_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            location_service.create_location(kind=LOCATION_KIND_STORE, code="S1", name="  ")

    def test_unknown_kind_rejected(self, db_session):
        with pytest.raises(ValidationError):
            location_service.create_location(kind="KIOSK", code="K1", name="Kiosk")

    def test_create_writes_audit_event(self, db_session, make_location):
        wh = make_location(LOCATION_KIND_WAREHOUSE)
        ev = db_session.query(AuditEvent).filter_by(event_type="location.created", entity_id=wh.id).one()
        assert ev.actor_id == ACTOR
        assert ev.location_id == wh.id


class TestUpdateLocation:
    def test_update_fields(self, db_session, warehouse):
        updated = location_service.update_location(
            warehouse.id, changes={"name": "Renamed", "is_active": False}, actor_id=ACTOR
        )
        assert updated.name == "Renamed"
        assert updated.is_active is False

    def test_code_is_immutable(self, db_session, warehouse):
        with pytest.raises(ValidationError):
            location_service.update_location(warehouse.id, changes={"code": "OTHER"})

    def test_sending_same_code_is_accepted(self, db_session, warehouse):
        updated = location_service.update_location(warehouse.id, changes={"code": "WH-A", "city": "York"})
        assert updated.city == "York"

    def test_cannot_update_trashed(self, db_session, store):
        location_service.soft_delete_location(store.id)
        with pytest.raises(ValidationError, match="in bin"):
            location_service.update_location(store.id, changes={"name": "Nope"})

    def test_kind_mismatch_is_not_found(self, db_session, warehouse):
        with pytest.raises(NotFoundError):
            location_service.update_location(warehouse.id, changes={"name": "X"}, kind=LOCATION_KIND_STORE)


class TestBin:
    def test_soft_delete_and_restore(self, db_session, warehouse):
        trashed = location_service.soft_delete_location(warehouse.id, actor_id=ACTOR)
        assert trashed.record_state == RECORD_TRASHED
        assert trashed.deleted_at is not None

        # Still addressable by id
        assert location_service.get_location(warehouse.id).id == warehouse.id

        restored = location_service.restore_location(warehouse.id, actor_id=ACTOR)
        assert not restored.is_trashed
        assert restored.deleted_at is None

    def test_restore_keeps_is_active(self, db_session, warehouse):
        location_service.update_location(warehouse.id, changes={"is_active": False})
        location_service.soft_delete_location(warehouse.id)
        restored = location_service.restore_location(warehouse.id)
        assert restored.is_active is False

    def test_delete_twice_rejected(self, db_session, warehouse):
        location_service.soft_delete_location(warehouse.id)
        with pytest.raises(ValidationError):
            location_service.soft_delete_location(warehouse.id)

    def test_restore_live_rejected(self, db_session, warehouse):
        with pytest.raises(ValidationError):
            location_service.restore_location(warehouse.id)

    def test_restore_blocked_by_live_code(self, db_session, make_location):
        old = make_location(LOCATION_KIND_WAREHOUSE, code="WH-09")
        location_service.soft_delete_location(old.id)
        make_location(LOCATION_KIND_WAREHOUSE, code="WH-09")
        with pytest.raises(DuplicateCodeError):
            location_service.restore_location(old.id)


class TestListLocations:
    def test_filters(self, db_session, make_location):
        a = make_location(LOCATION_KIND_WAREHOUSE, name="Alpha")
        b = make_location(LOCATION_KIND_WAREHOUSE, name="Bravo")
        make_location(LOCATION_KIND_STORE, name="Shop")
        location_service.soft_delete_location(b.id)

        active = location_service.list_locations(kind=LOCATION_KIND_WAREHOUSE, status="active")
        trashed = location_service.list_locations(kind=LOCATION_KIND_WAREHOUSE, status="trashed")
        everything = location_service.list_locations(kind=LOCATION_KIND_WAREHOUSE, status="all")

        assert [loc.id for loc in active] == [a.id]
        assert [loc.id for loc in trashed] == [b.id]
        assert [loc.id for loc in everything] == [a.id, b.id]

    def test_ordering_active_first_then_name(self, db_session, make_location):
        zed = make_location(LOCATION_KIND_STORE, name="Zed")
        closed = make_location(LOCATION_KIND_STORE, name="Able")
        bee = make_location(LOCATION_KIND_STORE, name="Bee")
        location_service.update_location(closed.id, changes={"is_active": False})

        names = [loc.name for loc in location_service.list_locations(kind=LOCATION_KIND_STORE)]
        assert names == [bee.name, zed.name, closed.name]

    def test_bad_status_rejected(self, db_session):
        with pytest.raises(ValidationError):
            location_service.list_locations(status="deleted")
