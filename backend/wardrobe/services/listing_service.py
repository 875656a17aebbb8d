# Overview: Ledger listings; read-only filtered queries over committed documents and customers.

"""
Listing rules:
- Reads only; never flushes, never mutates stock.
- Date bounds follow the reports: inclusive, a bare YYYY-MM-DD covers the whole day.
- Newest documents first, capped at `limit` rows.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..errors import FieldError, ValidationFailed
from ..extensions import db
from ..models import ConditionalLoan, Customer, Purchase, Sale, WriteOff
from ..models.documents import PURCHASE_FINALIZED, PURCHASE_OPEN
from ..time_utils import utcnow
from .reporting_service import date_filters, parse_range


# Suggested write-off reasons; motivo itself stays free text
WRITE_OFF_REASONS = (
    "Perda",
    "Roubo",
    "Uso interno",
    "Descarte por obsolescência",
    "Manchada",
    "Defeito",
    "Doação",
)

PURCHASE_STATUSES = (PURCHASE_OPEN, PURCHASE_FINALIZED)


def list_sales(
    *,
    data_inicio: str | None = None,
    data_fim: str | None = None,
    forma_pgto: str | None = None,
    valor_min: Decimal | None = None,
    valor_max: Decimal | None = None,
    limit: int = 100,
) -> list[Sale]:
    start, end = parse_range(data_inicio, data_fim)
    query = db.session.query(Sale).filter(*date_filters(Sale.sale_date, start, end))
    if forma_pgto:
        query = query.filter(Sale.payment_method == forma_pgto)
    if valor_min is not None:
        query = query.filter(Sale.total_value >= valor_min)
    if valor_max is not None:
        query = query.filter(Sale.total_value <= valor_max)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()


def list_purchases(
    *,
    data_inicio: str | None = None,
    data_fim: str | None = None,
    fornecedor: str | None = None,
    status: str | None = None,
    valor_min: Decimal | None = None,
    valor_max: Decimal | None = None,
    limit: int = 100,
) -> list[Purchase]:
    """Open and finalized purchases; `status` narrows to one of them."""
    if status is not None and status not in PURCHASE_STATUSES:
        raise ValidationFailed([
            FieldError("status", f"must be one of: {', '.join(PURCHASE_STATUSES)}"),
        ])
    start, end = parse_range(data_inicio, data_fim)
    query = db.session.query(Purchase).filter(*date_filters(Purchase.purchase_date, start, end))
    if fornecedor:
        query = query.filter(Purchase.supplier_name.ilike(f"%{fornecedor.strip()}%"))
    if status:
        query = query.filter(Purchase.status == status)
    if valor_min is not None:
        query = query.filter(Purchase.paid_value >= valor_min)
    if valor_max is not None:
        query = query.filter(Purchase.paid_value <= valor_max)
    return query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).limit(limit).all()


def list_loans(
    *,
    cliente_id: int | None = None,
    data_inicio: str | None = None,
    data_fim: str | None = None,
    devolvido: bool | None = None,
    vencidos: bool = False,
    now: datetime | None = None,
    limit: int = 100,
) -> list[ConditionalLoan]:
    """
    Conditional loans by customer and loan date.

    vencidos=True keeps only loans that are still open and past their due
    date at `now`.
    """
    start, end = parse_range(data_inicio, data_fim)
    query = db.session.query(ConditionalLoan).filter(
        *date_filters(ConditionalLoan.loan_date, start, end)
    )
    if cliente_id is not None:
        query = query.filter(ConditionalLoan.customer_id == cliente_id)
    if devolvido is not None:
        query = query.filter(ConditionalLoan.returned.is_(devolvido))
    if vencidos:
        query = query.filter(
            ConditionalLoan.returned.is_(False),
            ConditionalLoan.converted.is_(False),
            ConditionalLoan.due_date < (now or utcnow()),
        )
        # Most overdue first
        query = query.order_by(ConditionalLoan.due_date.asc(), ConditionalLoan.id.asc())
    else:
        query = query.order_by(ConditionalLoan.loan_date.desc(), ConditionalLoan.id.desc())
    return query.limit(limit).all()


def list_write_offs(
    *,
    data_inicio: str | None = None,
    data_fim: str | None = None,
    motivo: str | None = None,
    roupas_id: int | None = None,
    limit: int = 100,
) -> list[WriteOff]:
    start, end = parse_range(data_inicio, data_fim)
    query = db.session.query(WriteOff).filter(*date_filters(WriteOff.write_off_date, start, end))
    if motivo:
        query = query.filter(WriteOff.reason == motivo)
    if roupas_id is not None:
        query = query.filter(WriteOff.item_id == roupas_id)
    return query.order_by(WriteOff.write_off_date.desc(), WriteOff.id.desc()).limit(limit).all()


def list_customers(
    *,
    nome: str | None = None,
    email: str | None = None,
    telefone: str | None = None,
    limit: int = 100,
) -> list[Customer]:
    """Substring match on every given field, alphabetical."""
    query = db.session.query(Customer)
    for column, term in ((Customer.name, nome), (Customer.email, email), (Customer.phone, telefone)):
        if term and term.strip():
            query = query.filter(column.ilike(f"%{term.strip()}%"))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()
