# Overview: Append-only item status history; the authority for an item's current status.

"""
Status history rules:
- record() only ever INSERTs. There is no update or delete path.
- current_status() is the newest entry's new_status, or `available` for an
  item that has no entries yet.
- Entries share the session of the transaction that caused them, so they
  commit or roll back together with the stock change.
"""

from __future__ import annotations

from datetime import datetime

from ..models.inventory import STATUS_AVAILABLE, ItemStatusHistory


class StatusHistoryRecorder:
    def __init__(self, session):
        self.session = session

    def record(
        self,
        item_id: int,
        prior_status: str | None,
        new_status: str,
        occurred_at: datetime,
        *,
        transaction_kind: str | None = None,
        transaction_id: int | None = None,
    ) -> ItemStatusHistory:
        entry = ItemStatusHistory(
            item_id=item_id,
            prior_status=prior_status,
            new_status=new_status,
            occurred_at=occurred_at,
            transaction_kind=transaction_kind,
            transaction_id=transaction_id,
        )
        self.session.add(entry)
        return entry

    def latest(self, item_id: int) -> ItemStatusHistory | None:
        return (
            self.session.query(ItemStatusHistory)
            .filter(ItemStatusHistory.item_id == item_id)
            .order_by(ItemStatusHistory.id.desc())
            .first()
        )

    def current_status(self, item_id: int) -> str:
        entry = self.latest(item_id)
        return entry.new_status if entry else STATUS_AVAILABLE

    def history(self, item_id: int) -> list[ItemStatusHistory]:
        """Entries oldest first."""
        return (
            self.session.query(ItemStatusHistory)
            .filter(ItemStatusHistory.item_id == item_id)
            .order_by(ItemStatusHistory.id.asc())
            .all()
        )
