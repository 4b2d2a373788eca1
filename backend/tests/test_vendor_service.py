"""Tests for the vendor registry."""

import pytest

from bookstock.errors import DuplicateCodeError, NotFoundError, ValidationError
from bookstock.services import vendor_service


class TestVendorRegistry:
    def test_code_is_upper_cased(self, db_session, vendor):
        assert vendor.code == "ACME"

    def test_duplicate_code_case_insensitive(self, db_session, vendor):
        with pytest.raises(DuplicateCodeError):
            vendor_service.create_vendor(code="Acme", name="Other")

    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError):
            vendor_service.create_vendor(code="X", name="X", website="x.example")

    def test_code_can_change_while_unique(self, db_session, vendor, make_vendor):
        other = make_vendor(code="penguin")
        updated = vendor_service.update_vendor(vendor.id, changes={"code": "acme2", "phone": " 555-0100 "})
        assert updated.code == "ACME2"
        assert updated.phone == "555-0100"

        with pytest.raises(DuplicateCodeError):
            vendor_service.update_vendor(vendor.id, changes={"code": other.code})

    def test_bin_round_trip(self, db_session, vendor):
        trashed = vendor_service.soft_delete_vendor(vendor.id)
        assert trashed.is_trashed
        assert trashed.deleted_at is not None

        with pytest.raises(ValidationError):
            vendor_service.soft_delete_vendor(vendor.id)
        with pytest.raises(ValidationError):
            vendor_service.update_vendor(vendor.id, changes={"name": "New"})

        # The code is free again while the vendor sits in the bin
        squatter = vendor_service.create_vendor(code="ACME", name="Squatter")
        with pytest.raises(DuplicateCodeError):
            vendor_service.restore_vendor(vendor.id)

        vendor_service.soft_delete_vendor(squatter.id)
        restored = vendor_service.restore_vendor(vendor.id)
        assert not restored.is_trashed
        assert restored.deleted_at is None

    def test_orderable(self, db_session, vendor):
        assert vendor_service.get_orderable_vendor(vendor.id).id == vendor.id
        vendor_service.update_vendor(vendor.id, changes={"is_active": False})
        with pytest.raises(ValidationError, match="inactive"):
            vendor_service.get_orderable_vendor(vendor.id)
        with pytest.raises(NotFoundError):
            vendor_service.get_orderable_vendor(vendor.id + 1000)

    def test_list_filters(self, db_session, make_vendor):
        a = make_vendor(name="Alpha")
        b = make_vendor(name="Beta", is_active=False)
        c = make_vendor(name="Gamma")
        vendor_service.soft_delete_vendor(c.id)

        assert [v.id for v in vendor_service.list_vendors()] == [a.id, b.id]
        assert [v.id for v in vendor_service.list_vendors(active_only=True)] == [a.id]
        assert [v.id for v in vendor_service.list_vendors(status="trashed")] == [c.id]
        assert [v.id for v in vendor_service.list_vendors(status="all")] == [a.id, b.id, c.id]

        with pytest.raises(ValidationError):
            vendor_service.list_vendors(status="deleted")
