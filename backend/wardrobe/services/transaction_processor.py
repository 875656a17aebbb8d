# Overview: Transaction Processor; applies sales, purchases, loans and write-offs atomically.

"""
Transaction Processor

================================================================================
PURPOSE: Turn a validated request into stock, status and document changes
================================================================================

PER-TRANSACTION ALGORITHM (sale, purchase finalization, loan open/return/close,
write-off):
1. Resolve every line's item reference (ById / ByName). Only purchase
   finalization may create an item.
2. Aggregate signed quantity deltas per item, remembering the first line that
   touched each item.
3. Lock the touched item rows in ascending id order.
4. Apply every delta and status transition inside ONE database transaction.
5. Append one status history entry per changed item, all carrying the same
   timestamp.
6. Commit. On any failure roll back and raise the first failing line's error;
   no quantity changes become visible.

RULES:
- The session is passed in. The processor never reaches for a global.
- Post-commit hooks run strictly after commit. A failing hook is logged and
  never undoes the committed transaction.
- Committed sales, finalized purchases and write-offs are never reversed
  here. Corrections are new, compensating transactions.
================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from sqlalchemy import func

from ..errors import (
    FieldError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailed,
)
from ..models import (
    ConditionalLine,
    ConditionalLoan,
    Customer,
    Item,
    Purchase,
    PurchaseLine,
    Sale,
    SaleLine,
    WriteOff,
)
from ..models.documents import PURCHASE_FINALIZED, PURCHASE_OPEN
from ..models.inventory import STATUS_AVAILABLE
from ..models.sales import PAYMENT_BARTER
from ..money import CENT, ZERO
from ..time_utils import utcnow
from ..validation import (
    ALL_ITEMS,
    PAYMENT_CONSISTENCY_MESSAGE,
    ById,
    CustomerPatch,
    CustomerRequest,
    ItemDescriptor,
    ItemPatch,
    ItemRef,
    LoanCloseRequest,
    LoanRequest,
    LoanReturnRequest,
    PurchaseLinePatch,
    PurchaseLineRequest,
    PurchaseRequest,
    SaleRequest,
    WriteOffRequest,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from .item_store import ItemStore
from .lifecycle import (
    EVENT_LOAN_CONVERT,
    EVENT_LOAN_OPEN,
    EVENT_LOAN_RELEASE,
    EVENT_PURCHASE,
    EVENT_SALE,
    EVENT_WRITE_OFF,
    resolve_transition,
)
from .status_history import StatusHistoryRecorder


logger = logging.getLogger("wardrobe.ledger")

KIND_SALE = "sale"
KIND_PURCHASE = "purchase"
KIND_LOAN = "conditional_loan"
KIND_WRITE_OFF = "write_off"
KIND_REGISTRATION = "registration"
KIND_CUSTOMER = "customer"


@dataclass(frozen=True)
class StatusChange:
    item_id: int
    prior_status: str | None
    new_status: str

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "prior_status": self.prior_status,
            "new_status": self.new_status,
        }


@dataclass
class TransactionResult:
    """What a committed (or idempotently skipped) operation produced."""

    kind: str
    document: Any
    items: list = field(default_factory=list)
    status_changes: list[StatusChange] = field(default_factory=list)
    applied: bool = True
    sale: Sale | None = None

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind,
            "applied": self.applied,
            "document": self.document.to_dict() if self.document is not None else None,
            "items": [item.to_dict() for item in self.items],
            "status_changes": [change.to_dict() for change in self.status_changes],
        }
        if self.sale is not None:
            data["sale"] = self.sale.to_dict()
        return data


@dataclass
class ItemState:
    item: Item
    status: str
    history: list

    def to_dict(self) -> dict:
        data = self.item.to_dict()
        data["status"] = self.status
        data["history"] = [entry.to_dict() for entry in self.history]
        return data


Hook = Callable[[TransactionResult], None]


def log_committed_transaction(result: TransactionResult) -> None:
    """Default post-commit hook: one INFO line per committed transaction."""
    document_id = getattr(result.document, "id", None)
    logger.info(
        "Committed %s id=%s applied=%s items=%s status_changes=%s",
        result.kind,
        document_id,
        result.applied,
        [item.id for item in result.items],
        [(c.item_id, c.prior_status, c.new_status) for c in result.status_changes],
    )


def _aggregate(items: list[Item], quantities: Iterable[int]) -> tuple[dict[int, int], dict[int, int]]:
    """Sum quantities per item id; also return the first line index per item."""
    totals: dict[int, int] = {}
    first_index: dict[int, int] = {}
    for index, (item, quantity) in enumerate(zip(items, quantities)):
        totals[item.id] = totals.get(item.id, 0) + quantity
        first_index.setdefault(item.id, index)
    return totals, first_index


class TransactionProcessor:
    """
    Applies ledger transactions through an explicit SQLAlchemy session.

    Each public mutation runs as one unit of work under run_with_retry and
    returns a TransactionResult; read helpers never open a write transaction.
    """

    def __init__(
        self,
        session,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
        hooks: Iterable[Hook] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.recorder = StatusHistoryRecorder(session)
        self.items = ItemStore(session, self.recorder)
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.hooks = list(hooks or [])
        self.clock = clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _execute(self, op: Callable[[datetime], TransactionResult]) -> TransactionResult:
        def _attempt():
            begin_write(self.session)
            # One timestamp for every history entry the transaction writes
            result = op(self.clock())
            self.session.commit()
            return result

        result = run_with_retry(
            self.session,
            _attempt,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )
        self._run_hooks(result)
        return result

    def _run_hooks(self, result: TransactionResult) -> None:
        for hook in self.hooks:
            try:
                hook(result)
            except Exception:
                logger.exception("Post-commit hook %r failed for %s", hook, result.kind)

    def _resolve_refs(self, refs: list[ItemRef], *, field_prefix: str = "itens") -> list[Item]:
        resolved = []
        for index, ref in enumerate(refs):
            try:
                resolved.append(self.items.resolve(ref))
            except NotFoundError as exc:
                exc.details.setdefault("field", f"{field_prefix}[{index}]")
                raise
        return resolved

    def _lock_items(self, item_ids: Iterable[int]) -> dict[int, Item]:
        # Ascending id order so two transactions never wait on each other in a cycle
        return {item_id: self.items.get(item_id, lock=True) for item_id in sorted(set(item_ids))}

    def _apply_status(
        self,
        item: Item,
        target: str,
        *,
        occurred_at: datetime,
        kind: str,
        document_id: int | None,
        changes: list[StatusChange],
    ) -> None:
        change = self.items.set_status(
            item,
            target,
            occurred_at=occurred_at,
            transaction_kind=kind,
            transaction_id=document_id,
        )
        if change:
            changes.append(StatusChange(item.id, change[0], change[1]))

    def _outstanding_holds(self, item_id: int) -> int:
        """Units of an item still out on open loans."""
        outstanding = (
            ConditionalLine.quantity - ConditionalLine.returned_quantity - ConditionalLine.sold_quantity
        )
        total = (
            self.session.query(func.coalesce(func.sum(outstanding), 0))
            .join(ConditionalLoan, ConditionalLine.loan_id == ConditionalLoan.id)
            .filter(
                ConditionalLine.item_id == item_id,
                ConditionalLoan.returned.is_(False),
                ConditionalLoan.converted.is_(False),
            )
            .scalar()
        )
        return int(total or 0)

    def _release(
        self,
        item: Item,
        quantity: int,
        event: str,
        *,
        occurred_at: datetime,
        kind: str,
        document_id: int,
        changes: list[StatusChange],
    ) -> None:
        """Put loaned units back on hand and settle the item's hold status."""
        if quantity:
            self.items.adjust_quantity(item.id, quantity)
        target = resolve_transition(
            item.status,
            event,
            depleted=(item.quantity == 0),
            holds_remaining=self._outstanding_holds(item.id) > 0,
        )
        self._apply_status(
            item, target, occurred_at=occurred_at, kind=kind, document_id=document_id, changes=changes
        )

    def fetch(self, model, document_id: int):
        """Load a document by id or raise NotFoundError."""
        document = self.session.get(model, document_id)
        if document is None:
            label = getattr(model, "__tablename__", model.__name__)
            raise NotFoundError(
                f"{model.__name__} {document_id} not found",
                details={"resource": label, "id": document_id},
            )
        return document

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_item(self, descriptor: ItemDescriptor) -> TransactionResult:
        def _op(now):
            item = self.items.create_item(descriptor, occurred_at=now, transaction_kind=KIND_REGISTRATION)
            return TransactionResult(
                KIND_REGISTRATION,
                item,
                items=[item],
                status_changes=[StatusChange(item.id, None, STATUS_AVAILABLE)],
            )

        return self._execute(_op)

    def update_item(self, item_id: int, patch: ItemPatch) -> TransactionResult:
        def _op(now):
            item = self.items.update_details(item_id, patch.changes)
            return TransactionResult(KIND_REGISTRATION, item, items=[item])

        return self._execute(_op)

    def deactivate_item(self, item_id: int) -> TransactionResult:
        def _op(now):
            item = self.items.deactivate(item_id)
            return TransactionResult(KIND_REGISTRATION, item, items=[item])

        return self._execute(_op)

    def register_customer(self, request: CustomerRequest) -> TransactionResult:
        def _op(now):
            customer = Customer(
                name=request.name,
                email=request.email,
                phone=request.phone,
                address=request.address,
            )
            self.session.add(customer)
            self.session.flush()
            return TransactionResult(KIND_CUSTOMER, customer)

        return self._execute(_op)

    def update_customer(self, customer_id: int, patch: CustomerPatch) -> TransactionResult:
        def _op(now):
            customer = self.fetch(Customer, customer_id)
            for attribute, value in patch.changes.items():
                setattr(customer, attribute, value)
            self.session.flush()
            return TransactionResult(KIND_CUSTOMER, customer)

        return self._execute(_op)

    def item_state(self, item_id: int) -> ItemState:
        item = self.items.get(item_id)
        return ItemState(
            item=item,
            status=self.recorder.current_status(item_id),
            history=self.recorder.history(item_id),
        )

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def create_sale(self, request: SaleRequest) -> TransactionResult:
        """
        Commit a multi-line sale.

        All lines succeed or none do: a line that would drive any item below
        zero aborts the whole sale with InsufficientStock and leaves every
        item at its previous quantity.
        """
        def _op(now):
            resolved = self._resolve_refs([line.ref for line in request.lines])
            totals, _ = _aggregate(resolved, [line.quantity for line in request.lines])
            locked = self._lock_items(totals)

            sale = Sale(
                sale_date=request.sale_date or now,
                payment_method=request.payment_method,
                total_value=request.total_value,
                discount=request.discount,
                paid_value=request.paid_value,
                barter_description=request.barter_description,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
            )
            for item, line in zip(resolved, request.lines):
                sale.lines.append(SaleLine(item_id=item.id, quantity=line.quantity))
            self.session.add(sale)
            self.session.flush()

            changes: list[StatusChange] = []
            for item_id, quantity in totals.items():
                item = locked[item_id]
                # Stock first, so a sold-out item reports what was asked and what is left
                if quantity > item.quantity:
                    raise InsufficientStockError(item_id, requested=quantity, available=item.quantity)
                target = resolve_transition(
                    item.status,
                    EVENT_SALE,
                    depleted=(item.quantity - quantity == 0),
                )
                self.items.adjust_quantity(item_id, -quantity)
                self._apply_status(
                    item, target, occurred_at=now, kind=KIND_SALE, document_id=sale.id, changes=changes
                )

            return TransactionResult(
                KIND_SALE,
                sale,
                items=[locked[item_id] for item_id in totals],
                status_changes=changes,
            )

        return self._execute(_op)

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    def _build_purchase_line(self, request: PurchaseLineRequest, *, field_path: str) -> PurchaseLine:
        if isinstance(request.ref, ById):
            item = self._resolve_refs([request.ref], field_prefix=field_path)[0]
            return PurchaseLine(
                item_id=item.id,
                item_name=item.name,
                quantity=request.quantity,
                unit_cost=request.unit_cost,
            )
        descriptor = request.descriptor or ItemDescriptor(name=request.ref.name)
        return PurchaseLine(
            item_id=None,
            item_name=descriptor.name,
            description=descriptor.description,
            category=descriptor.category,
            size=descriptor.size,
            color=descriptor.color,
            price=descriptor.price,
            quantity=request.quantity,
            unit_cost=request.unit_cost,
        )

    def _purchase_for_update(self, purchase_id: int, *, require_open: bool) -> Purchase:
        purchase = lock_for_update(
            self.session.query(Purchase).filter(Purchase.id == purchase_id)
        ).first()
        if purchase is None:
            raise NotFoundError(
                f"Purchase {purchase_id} not found",
                details={"resource": "purchases", "id": purchase_id},
            )
        if require_open and purchase.status != PURCHASE_OPEN:
            raise InvalidTransitionError(
                f"Purchase {purchase_id} is {purchase.status} and can no longer be edited",
                details={"purchase_id": purchase_id, "status": purchase.status},
            )
        return purchase

    def create_purchase(self, request: PurchaseRequest) -> TransactionResult:
        """Create an OPEN purchase. Stock is untouched until finalize_purchase()."""
        def _op(now):
            purchase = Purchase(
                purchase_date=request.purchase_date or now,
                payment_method=request.payment_method,
                paid_value=request.paid_value,
                supplier_name=request.supplier_name,
                supplier_phone=request.supplier_phone,
                notes=request.notes,
                status=PURCHASE_OPEN,
            )
            for index, line_request in enumerate(request.lines):
                purchase.lines.append(
                    self._build_purchase_line(line_request, field_path=f"itens[{index}]")
                )
            self.session.add(purchase)
            self.session.flush()
            return TransactionResult(KIND_PURCHASE, purchase)

        return self._execute(_op)

    def add_purchase_line(self, purchase_id: int, request: PurchaseLineRequest) -> TransactionResult:
        """Add a line to an open purchase, merging into an existing line for the same item."""
        def _op(now):
            purchase = self._purchase_for_update(purchase_id, require_open=True)
            new_line = self._build_purchase_line(request, field_path="itens")

            for line in purchase.lines:
                same_item = line.item_id is not None and line.item_id == new_line.item_id
                same_name = (
                    line.item_id is None
                    and new_line.item_id is None
                    and line.item_name == new_line.item_name
                )
                if same_item or same_name:
                    line.quantity += new_line.quantity
                    line.unit_cost = new_line.unit_cost
                    break
            else:
                purchase.lines.append(new_line)

            self.session.flush()
            return TransactionResult(KIND_PURCHASE, purchase)

        return self._execute(_op)

    def _purchase_line(self, purchase: Purchase, line_id: int) -> PurchaseLine:
        for line in purchase.lines:
            if line.id == line_id:
                return line
        raise NotFoundError(
            f"Line {line_id} not found on purchase {purchase.id}",
            details={"purchase_id": purchase.id, "line_id": line_id},
        )

    def update_purchase_line(self, purchase_id: int, line_id: int, patch: PurchaseLinePatch) -> TransactionResult:
        def _op(now):
            purchase = self._purchase_for_update(purchase_id, require_open=True)
            line = self._purchase_line(purchase, line_id)
            if patch.quantity is not None:
                line.quantity = patch.quantity
            if patch.unit_cost is not None:
                line.unit_cost = patch.unit_cost
            self.session.flush()
            return TransactionResult(KIND_PURCHASE, purchase)

        return self._execute(_op)

    def remove_purchase_line(self, purchase_id: int, line_id: int) -> TransactionResult:
        def _op(now):
            purchase = self._purchase_for_update(purchase_id, require_open=True)
            line = self._purchase_line(purchase, line_id)
            purchase.lines.remove(line)
            self.session.flush()
            return TransactionResult(KIND_PURCHASE, purchase)

        return self._execute(_op)

    def finalize_purchase(self, purchase_id: int) -> TransactionResult:
        """
        Apply every line's stock increase and mark the purchase FINALIZED.

        Idempotent: a purchase that is already FINALIZED comes back with
        applied=False and no stock change. Name-referenced lines resolve to
        the oldest active item with that exact name, or create it.
        """
        def _op(now):
            purchase = self._purchase_for_update(purchase_id, require_open=False)
            if purchase.status == PURCHASE_FINALIZED:
                return TransactionResult(
                    KIND_PURCHASE,
                    purchase,
                    items=[line.item for line in purchase.lines if line.item is not None],
                    applied=False,
                )

            changes: list[StatusChange] = []
            totals: dict[int, int] = {}
            for line in purchase.lines:
                # No stock, no status change and no item creation for an empty line
                if not line.quantity:
                    continue
                if line.item_id is None:
                    item = self.items.find_by_name(line.item_name)
                    if item is None:
                        item = self.items.create_item(
                            ItemDescriptor(
                                name=line.item_name,
                                description=line.description,
                                category=line.category,
                                size=line.size,
                                color=line.color,
                                price=line.price,
                            ),
                            occurred_at=now,
                            transaction_kind=KIND_PURCHASE,
                            transaction_id=purchase.id,
                        )
                        changes.append(StatusChange(item.id, None, STATUS_AVAILABLE))
                    line.item_id = item.id
                else:
                    self.items.get(line.item_id)
                totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity

            locked = self._lock_items(totals)
            for item_id, quantity in totals.items():
                item = locked[item_id]
                target = resolve_transition(item.status, EVENT_PURCHASE)
                self.items.adjust_quantity(item_id, quantity)
                self._apply_status(
                    item, target, occurred_at=now, kind=KIND_PURCHASE, document_id=purchase.id, changes=changes
                )

            purchase.status = PURCHASE_FINALIZED
            purchase.finalized_at = now
            self.session.flush()

            return TransactionResult(
                KIND_PURCHASE,
                purchase,
                items=[locked[item_id] for item_id in totals],
                status_changes=changes,
            )

        return self._execute(_op)

    # ------------------------------------------------------------------
    # Conditional loans
    # ------------------------------------------------------------------

    def _open_loan_for_update(self, loan_id: int) -> ConditionalLoan:
        loan = lock_for_update(
            self.session.query(ConditionalLoan).filter(ConditionalLoan.id == loan_id)
        ).first()
        if loan is None:
            raise NotFoundError(
                f"Conditional loan {loan_id} not found",
                details={"resource": "conditional_loans", "id": loan_id},
            )
        if not loan.is_open:
            raise InvalidTransitionError(
                f"Conditional loan {loan_id} is already closed",
                details={"loan_id": loan_id, "returned": loan.returned, "converted": loan.converted},
            )
        return loan

    def open_loan(self, request: LoanRequest) -> TransactionResult:
        """Reserve stock for a customer; held items move to on_hold."""
        def _op(now):
            if self.session.get(Customer, request.customer_id) is None:
                raise NotFoundError(
                    f"Customer {request.customer_id} not found",
                    details={"resource": "customers", "id": request.customer_id, "field": "cliente_id"},
                )
            loan_date = request.loan_date or now
            if loan_date > request.due_date:
                raise ValidationFailed([
                    FieldError("data_devolucao", "must not be earlier than the loan date"),
                ])

            resolved = self._resolve_refs([line.ref for line in request.lines])
            totals, first_index = _aggregate(resolved, [line.quantity for line in request.lines])
            locked = self._lock_items(totals)

            errors = [
                FieldError(
                    f"itens[{first_index[item_id]}].quantidade",
                    f"exceeds available quantity ({locked[item_id].quantity})",
                )
                for item_id, quantity in totals.items()
                if quantity > locked[item_id].quantity
            ]
            if errors:
                raise ValidationFailed(errors)

            loan = ConditionalLoan(
                customer_id=request.customer_id,
                loan_date=loan_date,
                due_date=request.due_date,
                notes=request.notes,
                returned=False,
                converted=False,
            )
            for item_id, quantity in totals.items():
                loan.lines.append(
                    ConditionalLine(item_id=item_id, quantity=quantity, returned_quantity=0, sold_quantity=0)
                )
            self.session.add(loan)
            self.session.flush()

            changes: list[StatusChange] = []
            for item_id, quantity in totals.items():
                item = locked[item_id]
                target = resolve_transition(item.status, EVENT_LOAN_OPEN)
                self.items.adjust_quantity(item_id, -quantity)
                self._apply_status(
                    item, target, occurred_at=now, kind=KIND_LOAN, document_id=loan.id, changes=changes
                )

            return TransactionResult(
                KIND_LOAN,
                loan,
                items=[locked[item_id] for item_id in totals],
                status_changes=changes,
            )

        return self._execute(_op)

    def return_loan_item(self, loan_id: int, request: LoanReturnRequest) -> TransactionResult:
        """Partial return of one item; the loan closes once nothing is outstanding."""
        def _op(now):
            loan = self._open_loan_for_update(loan_id)
            line = next((entry for entry in loan.lines if entry.item_id == request.item_id), None)
            if line is None:
                raise ValidationFailed([
                    FieldError("roupas_id", f"item {request.item_id} is not part of loan {loan_id}"),
                ])
            if request.quantity > line.outstanding:
                raise ValidationFailed([
                    FieldError("quantidade", f"exceeds outstanding quantity ({line.outstanding})"),
                ])

            line.returned_quantity += request.quantity
            if all(entry.outstanding == 0 for entry in loan.lines):
                loan.returned = True
                loan.closed_at = now
            self.session.flush()

            item = self.items.get(line.item_id, lock=True)
            changes: list[StatusChange] = []
            self._release(
                item,
                request.quantity,
                EVENT_LOAN_RELEASE,
                occurred_at=now,
                kind=KIND_LOAN,
                document_id=loan.id,
                changes=changes,
            )
            return TransactionResult(KIND_LOAN, loan, items=[item], status_changes=changes)

        return self._execute(_op)

    def close_loan(self, loan_id: int, request: LoanCloseRequest) -> TransactionResult:
        """
        Close an open loan.

        returned=True puts every outstanding unit back on hand.
        returned=False converts the loan into a sale: the chosen units are
        sold (their stock already left at loan time), the rest is returned,
        the loan is marked converted and the sale records conditional_loan_id.
        """
        if request.returned:
            return self._execute(lambda now: self._close_returned(loan_id, request, now))
        return self._execute(lambda now: self._close_converted(loan_id, request, now))

    def _close_returned(self, loan_id: int, request: LoanCloseRequest, now: datetime) -> TransactionResult:
        loan = self._open_loan_for_update(loan_id)
        returns: dict[int, int] = {}
        for line in loan.lines:
            quantity = line.outstanding
            # Lines already returned in full were settled by return_loan_item
            if not quantity:
                continue
            line.returned_quantity += quantity
            returns[line.item_id] = returns.get(line.item_id, 0) + quantity

        loan.returned = True
        loan.closed_at = now
        if request.notes:
            loan.notes = request.notes
        self.session.flush()

        locked = self._lock_items(returns)
        changes: list[StatusChange] = []
        for item_id, quantity in returns.items():
            self._release(
                locked[item_id],
                quantity,
                EVENT_LOAN_RELEASE,
                occurred_at=now,
                kind=KIND_LOAN,
                document_id=loan.id,
                changes=changes,
            )
        return TransactionResult(
            KIND_LOAN,
            loan,
            items=[locked[item_id] for item_id in returns],
            status_changes=changes,
        )

    def _close_converted(self, loan_id: int, request: LoanCloseRequest, now: datetime) -> TransactionResult:
        conversion = request.conversion
        loan = self._open_loan_for_update(loan_id)
        lines_by_item = {line.item_id: line for line in loan.lines}

        sold: dict[int, int] = {}
        if conversion.items == ALL_ITEMS:
            sold = {line.item_id: line.outstanding for line in loan.lines if line.outstanding}
        else:
            errors = []
            for index, (item_id, quantity) in enumerate(conversion.items):
                line = lines_by_item.get(item_id)
                if line is None:
                    errors.append(FieldError(
                        f"itens_vendidos[{index}].roupas_id",
                        f"item {item_id} is not part of loan {loan_id}",
                    ))
                    continue
                sold[item_id] = sold.get(item_id, 0) + quantity
                if sold[item_id] > line.outstanding:
                    errors.append(FieldError(
                        f"itens_vendidos[{index}].quantidade",
                        f"exceeds outstanding quantity ({line.outstanding})",
                    ))
            if errors:
                raise ValidationFailed(errors)
        if not sold:
            raise ValidationFailed([FieldError("itens_vendidos", "no outstanding items to sell")])

        locked = self._lock_items(lines_by_item)

        if conversion.payment_method == PAYMENT_BARTER:
            total = discount = paid = ZERO
        else:
            total = sum(
                ((locked[item_id].price or ZERO) * quantity for item_id, quantity in sold.items()),
                ZERO,
            ).quantize(CENT)
            discount = conversion.discount
            paid = conversion.paid_value
            if paid is None:
                paid = max(total - discount, ZERO)
            if paid > total:
                raise ValidationFailed([FieldError("valor_pago", PAYMENT_CONSISTENCY_MESSAGE)])

        returns: dict[int, int] = {}
        for line in loan.lines:
            if not line.outstanding:
                continue
            line.sold_quantity += sold.get(line.item_id, 0)
            rest = line.outstanding
            if rest:
                line.returned_quantity += rest
            returns[line.item_id] = returns.get(line.item_id, 0) + rest

        loan.converted = True
        loan.closed_at = now
        if request.notes:
            loan.notes = request.notes

        customer = loan.customer
        sale = Sale(
            sale_date=now,
            payment_method=conversion.payment_method,
            total_value=total,
            discount=discount,
            paid_value=paid,
            barter_description=conversion.barter_description,
            customer_name=customer.name if customer else None,
            customer_phone=customer.phone if customer else None,
            conditional_loan_id=loan.id,
        )
        for item_id, quantity in sold.items():
            sale.lines.append(SaleLine(item_id=item_id, quantity=quantity))
        self.session.add(sale)
        self.session.flush()

        changes: list[StatusChange] = []
        for item_id, returned in returns.items():
            if item_id in sold:
                event, kind, document_id = EVENT_LOAN_CONVERT, KIND_SALE, sale.id
            else:
                event, kind, document_id = EVENT_LOAN_RELEASE, KIND_LOAN, loan.id
            self._release(
                locked[item_id],
                returned,
                event,
                occurred_at=now,
                kind=kind,
                document_id=document_id,
                changes=changes,
            )

        return TransactionResult(
            KIND_LOAN,
            loan,
            items=[locked[item_id] for item_id in returns],
            status_changes=changes,
            sale=sale,
        )

    # ------------------------------------------------------------------
    # Write-offs
    # ------------------------------------------------------------------

    def record_write_off(self, request: WriteOffRequest) -> TransactionResult:
        """Permanently remove stock. There is no operation that restores it."""
        def _op(now):
            field_name = "roupas_id" if isinstance(request.ref, ById) else "nome_item"
            try:
                resolved = self.items.resolve(request.ref)
            except NotFoundError as exc:
                exc.details.setdefault("field", field_name)
                raise
            item = self.items.get(resolved.id, lock=True)

            if request.quantity > item.quantity:
                raise ValidationFailed([
                    FieldError("quantidade", f"exceeds available quantity ({item.quantity})"),
                ])
            target = resolve_transition(item.status, EVENT_WRITE_OFF)

            write_off = WriteOff(
                item_id=item.id,
                quantity=request.quantity,
                reason=request.reason,
                notes=request.notes,
                recorded_by_id=request.recorded_by_id,
                write_off_date=request.write_off_date or now,
            )
            self.session.add(write_off)
            self.session.flush()

            changes: list[StatusChange] = []
            self.items.adjust_quantity(item.id, -request.quantity)
            self._apply_status(
                item, target, occurred_at=now, kind=KIND_WRITE_OFF, document_id=write_off.id, changes=changes
            )
            return TransactionResult(KIND_WRITE_OFF, write_off, items=[item], status_changes=changes)

        return self._execute(_op)
