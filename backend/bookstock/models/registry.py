from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


LOCATION_KIND_WAREHOUSE = "WAREHOUSE"
LOCATION_KIND_STORE = "STORE"
LOCATION_KINDS = (LOCATION_KIND_WAREHOUSE, LOCATION_KIND_STORE)

# Explicit bin state for registry rows; deleted_at only records when it happened
RECORD_ACTIVE = "ACTIVE"
RECORD_TRASHED = "TRASHED"


class Location(db.Model):
    """
    A warehouse (storage / replenishment node) or a store (retail node).

    Warehouses and stores share one table and are told apart by kind. The kind
    of a transfer's destination decides which ledger rows it credits.

    BIN STATE:
    - record_state is ACTIVE or TRASHED; TRASHED rows drop out of every ledger
      and order listing but stay addressable by id so they can be restored.
    - is_active is the operational flag (e.g. a store closed for renovation)
      and is independent of the bin.

    code is unique among live (non-trashed) rows of the same kind and cannot
    be changed once assigned.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.Index(
            "uq_locations_kind_code_live",
            "kind",
            "code",
            unique=True,
            sqlite_where=db.text("record_state = 'ACTIVE'"),
            postgresql_where=db.text("record_state = 'ACTIVE'"),
        ),
        db.Index("ix_locations_kind_state", "kind", "record_state"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)

    code = db.Column(db.String(30), nullable=False)
    name = db.Column(db.String(120), nullable=False)

    # Address fields
    address = db.Column(db.String(220), nullable=True)
    city = db.Column(db.String(80), nullable=True)
    region = db.Column(db.String(80), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    record_state = db.Column(db.String(16), nullable=False, default=RECORD_ACTIVE)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_trashed(self) -> bool:
        return self.record_state == RECORD_TRASHED

    @property
    def is_warehouse(self) -> bool:
        return self.kind == LOCATION_KIND_WAREHOUSE

    def __repr__(self) -> str:
        return f"<Location id={self.id} kind={self.kind} code={self.code!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "kind": self.kind, "code": self.code, "name": self.name}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "code": self.code,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "region": self.region,
            "phone": self.phone,
            "email": self.email,
            "is_active": self.is_active,
            "record_state": self.record_state,
            "deleted_at": to_utc_z(self.deleted_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Vendor(db.Model):
    """
    Supplier that purchase orders are placed with.

    Codes are stored upper-cased and are unique among live vendors. A vendor
    must be active and out of the bin to receive new purchase orders; existing
    orders keep pointing at it regardless.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index(
            "uq_vendors_code_live",
            "code",
            unique=True,
            sqlite_where=db.text("record_state = 'ACTIVE'"),
            postgresql_where=db.text("record_state = 'ACTIVE'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(160), nullable=False)

    # Contact information
    contact_name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    record_state = db.Column(db.String(16), nullable=False, default=RECORD_ACTIVE)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_trashed(self) -> bool:
        return self.record_state == RECORD_TRASHED

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "is_active": self.is_active,
            "record_state": self.record_state,
            "deleted_at": to_utc_z(self.deleted_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
