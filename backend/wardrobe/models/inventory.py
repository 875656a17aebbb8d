from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from wardrobe.time_utils import to_utc_z


STATUS_AVAILABLE = "available"
STATUS_ON_HOLD = "on_hold"
STATUS_SOLD = "sold"
STATUS_WRITTEN_OFF = "written_off"

ITEM_STATUSES = (STATUS_AVAILABLE, STATUS_ON_HOLD, STATUS_SOLD, STATUS_WRITTEN_OFF)


class Item(db.Model):
    """
    One stock-keeping unit of clothing (a single piece or a batch).

    QUANTITY: on-hand quantity is a stored counter, mutated only by the
    transaction processor through ItemStore.adjust_quantity. The CHECK
    constraint keeps the database itself from ever holding a negative value.

    STATUS: `status` is a cached projection of the newest ItemStatusHistory
    row. It is written in the same DB transaction as the history append; the
    history table stays authoritative.

    CONCURRENCY: version_id is SQLAlchemy's optimistic-locking column. Two
    sessions that both read the same version and both write will see the
    second UPDATE match zero rows (StaleDataError), which the retry layer
    turns into a retry or a Conflict.

    Items are never physically deleted while transactions reference them;
    is_active=False is the soft removal.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_nonnegative"),
        db.Index("ix_items_name_active", "name", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(16), nullable=True)
    color = db.Column(db.String(32), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Registering agent (opaque; user management lives outside the ledger)
    owner_id = db.Column(db.Integer, nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_AVAILABLE, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} quantity={self.quantity} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "size": self.size,
            "color": self.color,
            "price": to_money_str(self.price),
            "quantity": self.quantity,
            "owner_id": self.owner_id,
            "status": self.status,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ItemStatusHistory(db.Model):
    """
    Append-only status audit trail.

    - One row per status change, never updated or deleted.
    - prior_status is NULL for the creation entry of a new item.
    - occurred_at is the shared timestamp of the transaction that caused the
      change, so every entry written by one transaction carries the same value.
    """
    __tablename__ = "item_status_history"
    __table_args__ = (
        db.Index("ix_item_status_history_item_occurred", "item_id", "occurred_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    prior_status = db.Column(db.String(16), nullable=True)
    new_status = db.Column(db.String(16), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # Which transaction caused the change (sale, purchase, loan, write_off, registration)
    transaction_kind = db.Column(db.String(32), nullable=True)
    transaction_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("status_history", lazy=True, order_by="ItemStatusHistory.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "prior_status": self.prior_status,
            "new_status": self.new_status,
            "occurred_at": to_utc_z(self.occurred_at),
            "transaction_kind": self.transaction_kind,
            "transaction_id": self.transaction_id,
        }
