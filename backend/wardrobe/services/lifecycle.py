# Overview: Item status state machine; decides the status each ledger event leads to.

"""
Item Status Lifecycle

================================================================================
STATE MACHINE:
    available --sale (last unit)------> sold
    available --loan opens------------> on_hold
    on_hold   --loan returned---------> available
    on_hold   --loan converted--------> sold / available
    available --write-off-------------> written_off
    on_hold   --write-off-------------> written_off
    (new)     --purchase finalized----> available
    sold      --purchase finalized----> available   (restock)

RULES:
1. written_off is terminal. Nothing moves an item out of it; stock that comes
   back from a loan lands on the counter but the status stays put.
2. Clothing is stocked in batches: a sale only moves available -> sold when
   it takes the last unit. Partial sales leave the status alone.
3. An item leaves on_hold only when no other open loan still holds units of
   it (holds_remaining=False).
4. Selling the free units of an on_hold item is allowed and keeps it on_hold.
5. Every other (status, event) pair is rejected with InvalidTransition and
   leaves the item untouched.
================================================================================
"""

from __future__ import annotations

from ..errors import InvalidTransitionError
from ..models.inventory import (
    STATUS_AVAILABLE,
    STATUS_ON_HOLD,
    STATUS_SOLD,
    STATUS_WRITTEN_OFF,
)


EVENT_SALE = "sale"
EVENT_LOAN_OPEN = "loan_open"
EVENT_LOAN_RELEASE = "loan_release"
EVENT_LOAN_CONVERT = "loan_convert"
EVENT_WRITE_OFF = "write_off"
EVENT_PURCHASE = "purchase"

LEDGER_EVENTS = {
    EVENT_SALE,
    EVENT_LOAN_OPEN,
    EVENT_LOAN_RELEASE,
    EVENT_LOAN_CONVERT,
    EVENT_WRITE_OFF,
    EVENT_PURCHASE,
}

# (current status, event) pairs that are permitted at all
ALLOWED = {
    (STATUS_AVAILABLE, EVENT_SALE),
    (STATUS_ON_HOLD, EVENT_SALE),
    (STATUS_AVAILABLE, EVENT_LOAN_OPEN),
    (STATUS_ON_HOLD, EVENT_LOAN_OPEN),
    (STATUS_ON_HOLD, EVENT_LOAN_RELEASE),
    (STATUS_WRITTEN_OFF, EVENT_LOAN_RELEASE),
    (STATUS_ON_HOLD, EVENT_LOAN_CONVERT),
    (STATUS_WRITTEN_OFF, EVENT_LOAN_CONVERT),
    (STATUS_AVAILABLE, EVENT_WRITE_OFF),
    (STATUS_ON_HOLD, EVENT_WRITE_OFF),
    (None, EVENT_PURCHASE),
    (STATUS_AVAILABLE, EVENT_PURCHASE),
    (STATUS_ON_HOLD, EVENT_PURCHASE),
    (STATUS_SOLD, EVENT_PURCHASE),
}


def can_transition(current: str | None, event: str) -> bool:
    return (current, event) in ALLOWED


def resolve_transition(
    current: str | None,
    event: str,
    *,
    depleted: bool = False,
    holds_remaining: bool = False,
) -> str:
    """
    Return the status an item ends in after `event`.

    Args:
        current: The item's status before the event (None for a new item)
        event: One of LEDGER_EVENTS
        depleted: Whether the event leaves the item with zero units on hand
        holds_remaining: Whether other open loans still hold units of the item

    Returns:
        The target status (equal to `current` when nothing changes)

    Raises:
        InvalidTransitionError: If the event is not permitted from `current`
    """
    if event not in LEDGER_EVENTS:
        raise ValueError(f"Unknown ledger event '{event}'")

    if not can_transition(current, event):
        raise InvalidTransitionError(
            f"Cannot apply '{event}' to an item that is '{current}'",
            details={"status": current, "event": event},
        )

    if current == STATUS_WRITTEN_OFF:
        return current

    if event == EVENT_SALE:
        if current == STATUS_AVAILABLE and depleted:
            return STATUS_SOLD
        return current

    if event == EVENT_LOAN_OPEN:
        return STATUS_ON_HOLD

    if event == EVENT_LOAN_RELEASE:
        return STATUS_ON_HOLD if holds_remaining else STATUS_AVAILABLE

    if event == EVENT_LOAN_CONVERT:
        if holds_remaining:
            return STATUS_ON_HOLD
        return STATUS_SOLD if depleted else STATUS_AVAILABLE

    if event == EVENT_WRITE_OFF:
        return STATUS_WRITTEN_OFF

    # EVENT_PURCHASE
    if current in (None, STATUS_SOLD):
        return STATUS_AVAILABLE
    return current
