# Overview: Reporting aggregator; read-only statistics over committed ledger documents.

"""
Reporting rules:
- Reads committed rows only; never flushes, never mutates stock.
- Range bounds are inclusive. A bare YYYY-MM-DD covers the whole day.
- Money comes back as two-place strings, counts as integers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ..errors import FieldError, ValidationFailed
from ..extensions import db
from ..models import ConditionalLoan, Purchase, PurchaseLine, Sale, SaleLine, WriteOff
from ..models.documents import PURCHASE_FINALIZED
from ..money import CENT, ZERO, to_decimal, to_money_str
from ..time_utils import parse_range_bound


def parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    errors = []
    start_dt = end_dt = None
    try:
        start_dt = parse_range_bound(start, end=False)
    except ValueError:
        errors.append(FieldError("data_inicio", "must be YYYY-MM-DD or an ISO-8601 datetime"))
    try:
        end_dt = parse_range_bound(end, end=True)
    except ValueError:
        errors.append(FieldError("data_fim", "must be YYYY-MM-DD or an ISO-8601 datetime"))
    if start_dt and end_dt and start_dt > end_dt:
        errors.append(FieldError("data_fim", "must not be earlier than data_inicio"))
    if errors:
        raise ValidationFailed(errors)
    return start_dt, end_dt


def date_filters(column, start: datetime | None, end: datetime | None) -> list:
    filters = []
    if start is not None:
        filters.append(column >= start)
    if end is not None:
        filters.append(column <= end)
    return filters


def _amount(value) -> Decimal:
    return to_decimal(value) if value is not None else ZERO


def _average(total: Decimal, count: int) -> Decimal:
    if not count:
        return ZERO
    return (total / count).quantize(CENT)


def sales_stats(
    *,
    data_inicio: str | None = None,
    data_fim: str | None = None,
    forma_pgto: str | None = None,
    valor_min: Decimal | None = None,
    valor_max: Decimal | None = None,
) -> dict:
    start, end = parse_range(data_inicio, data_fim)
    filters = date_filters(Sale.sale_date, start, end)
    if forma_pgto:
        filters.append(Sale.payment_method == forma_pgto)
    if valor_min is not None:
        filters.append(Sale.total_value >= valor_min)
    if valor_max is not None:
        filters.append(Sale.total_value <= valor_max)

    count, total, received, discounts = (
        db.session.query(
            func.count(Sale.id),
            func.sum(Sale.total_value),
            func.sum(Sale.paid_value),
            func.sum(Sale.discount),
        )
        .filter(*filters)
        .one()
    )
    items_sold = (
        db.session.query(func.coalesce(func.sum(SaleLine.quantity), 0))
        .join(Sale, SaleLine.sale_id == Sale.id)
        .filter(*filters)
        .scalar()
    )

    count = int(count or 0)
    total = _amount(total)
    return {
        "total_vendas": count,
        "valor_total_vendido": to_money_str(total),
        "valor_total_recebido": to_money_str(_amount(received)),
        "total_descontos": to_money_str(_amount(discounts)),
        "ticket_medio": to_money_str(_average(total, count)),
        "itens_vendidos": int(items_sold or 0),
    }


def purchase_stats(
    *,
    data_inicio: str | None = None,
    data_fim: str | None = None,
    fornecedor: str | None = None,
) -> dict:
    """Finalized purchases only; open purchases have not touched stock yet."""
    start, end = parse_range(data_inicio, data_fim)
    filters = date_filters(Purchase.purchase_date, start, end)
    filters.append(Purchase.status == PURCHASE_FINALIZED)
    if fornecedor:
        filters.append(Purchase.supplier_name.ilike(f"%{fornecedor.strip()}%"))

    count, spent = (
        db.session.query(func.count(Purchase.id), func.sum(Purchase.paid_value))
        .filter(*filters)
        .one()
    )
    items_bought = (
        db.session.query(func.coalesce(func.sum(PurchaseLine.quantity), 0))
        .join(Purchase, PurchaseLine.purchase_id == Purchase.id)
        .filter(*filters)
        .scalar()
    )

    count = int(count or 0)
    spent = _amount(spent)
    return {
        "total_compras": count,
        "valor_total_gasto": to_money_str(spent),
        "valor_medio_compra": to_money_str(_average(spent, count)),
        "total_itens_comprados": int(items_bought or 0),
    }


def loan_stats(*, data_inicio: str | None = None, data_fim: str | None = None) -> dict:
    start, end = parse_range(data_inicio, data_fim)
    filters = date_filters(ConditionalLoan.loan_date, start, end)

    def _count(*extra) -> int:
        return int(
            db.session.query(func.count(ConditionalLoan.id)).filter(*filters, *extra).scalar() or 0
        )

    return {
        "total_condicionais": _count(),
        "condicionais_ativos": _count(
            ConditionalLoan.returned.is_(False), ConditionalLoan.converted.is_(False)
        ),
        "condicionais_devolvidos": _count(ConditionalLoan.returned.is_(True)),
        "condicionais_convertidos": _count(ConditionalLoan.converted.is_(True)),
    }


def write_off_stats(*, data_inicio: str | None = None, data_fim: str | None = None) -> dict:
    start, end = parse_range(data_inicio, data_fim)
    filters = date_filters(WriteOff.write_off_date, start, end)

    rows = (
        db.session.query(
            WriteOff.reason,
            func.count(WriteOff.id),
            func.coalesce(func.sum(WriteOff.quantity), 0),
        )
        .filter(*filters)
        .group_by(WriteOff.reason)
        .order_by(WriteOff.reason.asc())
        .all()
    )

    by_reason = {
        reason: {"total_baixas": int(count), "quantidade": int(quantity)}
        for reason, count, quantity in rows
    }
    return {
        "total_baixas": sum(entry["total_baixas"] for entry in by_reason.values()),
        "quantidade_total": sum(entry["quantidade"] for entry in by_reason.values()),
        "por_motivo": by_reason,
    }


def summary(*, data_inicio: str | None = None, data_fim: str | None = None) -> dict:
    return {
        "periodo": {"data_inicio": data_inicio, "data_fim": data_fim},
        "vendas": sales_stats(data_inicio=data_inicio, data_fim=data_fim),
        "compras": purchase_stats(data_inicio=data_inicio, data_fim=data_fim),
        "condicionais": loan_stats(data_inicio=data_inicio, data_fim=data_fim),
        "baixas": write_off_stats(data_inicio=data_inicio, data_fim=data_fim),
    }
