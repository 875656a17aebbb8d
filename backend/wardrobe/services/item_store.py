# Overview: Item Store; the single writer of item quantities and cached statuses.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..errors import InsufficientStockError, NotFoundError
from ..models.inventory import STATUS_AVAILABLE, Item
from ..validation import ById, ByName, ItemDescriptor, ItemRef
from .concurrency import lock_for_update
from .status_history import StatusHistoryRecorder


# Descriptive attributes callers may change; quantity and status are ledger-owned
UPDATABLE_ATTRIBUTES = {"name", "description", "category", "size", "color", "price"}


class ItemStore:
    """
    Reads and mutates Item rows inside the caller's session.

    The store never commits. Every mutation joins the transaction the caller
    opened, so a failing line elsewhere in the same transaction undoes it.
    """

    def __init__(self, session, recorder: StatusHistoryRecorder | None = None):
        self.session = session
        self.recorder = recorder or StatusHistoryRecorder(session)

    def get(self, item_id: int, *, lock: bool = False) -> Item:
        query = self.session.query(Item).filter(Item.id == item_id)
        if lock:
            query = lock_for_update(query)
        item = query.first()
        if item is None:
            raise NotFoundError(f"Item {item_id} not found", details={"item_id": item_id})
        return item

    def get_quantity(self, item_id: int) -> int:
        return self.get(item_id).quantity

    def adjust_quantity(self, item_id: int, delta: int, expected_min_result: int = 0) -> int:
        """
        Apply a signed delta to an item's on-hand quantity.

        The row is re-read under lock, so the check and the write see the same
        value. A concurrent writer that slipped in anyway bumps version_id and
        makes this flush raise StaleDataError.
        """
        item = self.get(item_id, lock=True)
        current = item.quantity or 0
        new_quantity = current + delta
        if new_quantity < expected_min_result:
            raise InsufficientStockError(
                item_id,
                requested=-delta,
                available=max(current - expected_min_result, 0),
            )
        item.quantity = new_quantity
        return new_quantity

    def create_item(
        self,
        descriptor: ItemDescriptor,
        *,
        occurred_at: datetime,
        transaction_kind: str | None = None,
        transaction_id: int | None = None,
    ) -> Item:
        """Create an item with quantity 0 and its (None -> available) history entry."""
        item = Item(
            name=descriptor.name,
            description=descriptor.description,
            category=descriptor.category,
            size=descriptor.size,
            color=descriptor.color,
            price=descriptor.price,
            owner_id=descriptor.owner_id,
            quantity=0,
            status=STATUS_AVAILABLE,
            is_active=True,
        )
        self.session.add(item)
        self.session.flush()
        self.recorder.record(
            item.id,
            None,
            STATUS_AVAILABLE,
            occurred_at,
            transaction_kind=transaction_kind,
            transaction_id=transaction_id,
        )
        return item

    def find_by_name(self, name: str) -> Item | None:
        """Exact-name lookup among active items; the oldest match wins."""
        return (
            self.session.query(Item)
            .filter(Item.name == name.strip(), Item.is_active.is_(True))
            .order_by(Item.id.asc())
            .first()
        )

    def resolve(self, ref: ItemRef) -> Item:
        """Collapse an ItemRef to an active item, raising NotFoundError otherwise."""
        if isinstance(ref, ById):
            item = self.get(ref.item_id)
            if not item.is_active:
                raise NotFoundError(f"Item {ref.item_id} not found", details={"item_id": ref.item_id})
            return item
        if isinstance(ref, ByName):
            item = self.find_by_name(ref.name)
            if item is None:
                raise NotFoundError(f"Item '{ref.name}' not found", details={"name": ref.name})
            return item
        raise TypeError(f"Unsupported item reference: {ref!r}")

    def set_status(
        self,
        item: Item,
        new_status: str,
        *,
        occurred_at: datetime,
        transaction_kind: str | None = None,
        transaction_id: int | None = None,
    ) -> tuple[str | None, str] | None:
        """
        Append a history entry and update the cached status field.

        Returns (prior, new) when the status changed, None otherwise.
        """
        prior = item.status
        if prior == new_status:
            return None
        self.recorder.record(
            item.id,
            prior,
            new_status,
            occurred_at,
            transaction_kind=transaction_kind,
            transaction_id=transaction_id,
        )
        item.status = new_status
        return prior, new_status

    def update_details(self, item_id: int, changes: dict) -> Item:
        item = self.get(item_id)
        unknown = set(changes) - UPDATABLE_ATTRIBUTES
        if unknown:
            raise ValueError(f"Cannot update item fields: {', '.join(sorted(unknown))}")
        for attribute, value in changes.items():
            setattr(item, attribute, value)
        return item

    def deactivate(self, item_id: int) -> Item:
        item = self.get(item_id)
        item.is_active = False
        return item

    def search(self, term: str | None = None, *, include_inactive: bool = False, limit: int = 100) -> list[Item]:
        query = self.session.query(Item)
        if not include_inactive:
            query = query.filter(Item.is_active.is_(True))
        if term:
            pattern = f"%{term.strip()}%"
            query = query.filter(
                or_(
                    Item.name.ilike(pattern),
                    Item.category.ilike(pattern),
                    Item.color.ilike(pattern),
                )
            )
        return query.order_by(Item.name.asc(), Item.id.asc()).limit(limit).all()
