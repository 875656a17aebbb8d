# Overview: Validation rules engine; turns JSON payloads into typed ledger requests.

"""
Validation rules (authoritative)

- Every validator is pure: payload in, (request | None, [FieldError, ...]) out.
  Expected failures are never raised; ensure_valid() is the boundary that
  turns a non-empty error list into ValidationFailed.
- Validation is exhaustive: independent violations are all collected.
  Rules that depend on several fields (barter description, paid <= total)
  run only once those fields are individually well formed.
- Item references collapse into ItemRef = ById | ByName. A line must use
  exactly one resolution path.
- Rules that need stored state (item existence, quantity <= on hand for
  loans and write-offs) run later, inside the transaction processor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Union

from .errors import FieldError, ValidationFailed
from .money import MAX_AMOUNT, ZERO, to_decimal
from .models.sales import PAYMENT_BARTER
from .time_utils import parse_iso_datetime


SALE_PAYMENT_METHODS = (
    "Pix",
    "Dinheiro",
    "Cartão de Crédito",
    "Cartão de Débito",
    "Boleto",
    "Cheque",
    PAYMENT_BARTER,
)

PURCHASE_PAYMENT_METHODS = (
    "Pix",
    "Dinheiro",
    "Cartão de Crédito",
    "Cartão de Débito",
    "Boleto",
    "Cheque",
    "Transferência",
)

# Shared by both payment/description consistency failures
PAYMENT_CONSISTENCY_MESSAGE = (
    "barter sales require a description; other payment methods cannot "
    "have valor_pago greater than valor_total"
)

MIN_NAME_LENGTH = 2
MIN_PHONE_DIGITS = 10
MAX_NOTES_LENGTH = 500

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ALL_ITEMS = "todos"


# =============================================================================
# Typed requests
# =============================================================================

@dataclass(frozen=True)
class ById:
    item_id: int


@dataclass(frozen=True)
class ByName:
    name: str


ItemRef = Union[ById, ByName]


@dataclass(frozen=True)
class ItemDescriptor:
    name: str
    description: str | None = None
    category: str | None = None
    size: str | None = None
    color: str | None = None
    price: Decimal | None = None
    owner_id: int | None = None


@dataclass(frozen=True)
class SaleLineRequest:
    ref: ItemRef
    quantity: int


@dataclass(frozen=True)
class SaleRequest:
    payment_method: str
    total_value: Decimal
    discount: Decimal
    paid_value: Decimal
    lines: tuple[SaleLineRequest, ...]
    barter_description: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    sale_date: datetime | None = None

    @property
    def is_barter(self) -> bool:
        return self.payment_method == PAYMENT_BARTER


@dataclass(frozen=True)
class PurchaseLineRequest:
    ref: ItemRef
    quantity: int
    unit_cost: Decimal
    descriptor: ItemDescriptor | None = None


@dataclass(frozen=True)
class PurchaseRequest:
    payment_method: str
    paid_value: Decimal
    supplier_name: str
    lines: tuple[PurchaseLineRequest, ...]
    supplier_phone: str | None = None
    purchase_date: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PurchaseLinePatch:
    quantity: int | None = None
    unit_cost: Decimal | None = None


@dataclass(frozen=True)
class LoanLineRequest:
    ref: ItemRef
    quantity: int


@dataclass(frozen=True)
class LoanRequest:
    customer_id: int
    due_date: datetime
    lines: tuple[LoanLineRequest, ...]
    loan_date: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class LoanReturnRequest:
    item_id: int
    quantity: int


@dataclass(frozen=True)
class LoanConversion:
    payment_method: str
    discount: Decimal
    # ALL_ITEMS or a tuple of (item_id, quantity)
    items: Union[str, tuple[tuple[int, int], ...]]
    paid_value: Decimal | None = None
    barter_description: str | None = None


@dataclass(frozen=True)
class LoanCloseRequest:
    returned: bool = True
    conversion: LoanConversion | None = None
    notes: str | None = None


@dataclass(frozen=True)
class WriteOffRequest:
    ref: ItemRef
    quantity: int
    reason: str
    notes: str | None = None
    recorded_by_id: int | None = None
    write_off_date: datetime | None = None


@dataclass(frozen=True)
class ItemPatch:
    changes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CustomerRequest:
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class CustomerPatch:
    changes: dict = field(default_factory=dict)


# =============================================================================
# Field readers
# =============================================================================

class _Reader:
    """Collects FieldErrors while reading typed values out of a payload dict."""

    def __init__(self, payload: Any, *, prefix: str = "", allowed: set[str] | None = None):
        self.errors: list[FieldError] = []
        self.prefix = prefix
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            self.fail("", "must be a JSON object")
            payload = {}
        self.payload = payload
        if allowed is not None:
            for key in payload.keys():
                if key not in allowed:
                    self.fail(key, "field not allowed")

    def path(self, key: str) -> str:
        if not key:
            return self.prefix or "$"
        return f"{self.prefix}.{key}" if self.prefix else key

    def fail(self, key: str, message: str) -> None:
        self.errors.append(FieldError(self.path(key), message))

    def has_error(self, *keys: str) -> bool:
        paths = {self.path(k) for k in keys}
        return any(e.field in paths for e in self.errors)

    def present(self, key: str) -> bool:
        return self.payload.get(key) is not None

    def string(
        self,
        key: str,
        *,
        required: bool = False,
        min_length: int = 0,
        max_length: int | None = None,
    ) -> str | None:
        raw = self.payload.get(key)
        if raw is None:
            if required:
                self.fail(key, "is required")
            return None
        if not isinstance(raw, str):
            self.fail(key, "must be a string")
            return None
        value = raw.strip()
        if not value:
            if required:
                self.fail(key, "cannot be blank")
            return None
        if len(value) < min_length:
            self.fail(key, f"must have at least {min_length} characters")
            return None
        if max_length is not None and len(value) > max_length:
            self.fail(key, f"exceeds max length {max_length}")
            return None
        return value

    def phone(self, key: str) -> str | None:
        value = self.string(key, max_length=32)
        if value is None:
            return None
        if len(re.sub(r"\D", "", value)) < MIN_PHONE_DIGITS:
            self.fail(key, f"must have at least {MIN_PHONE_DIGITS} digits")
            return None
        return value

    def integer(self, key: str, *, required: bool = False, minimum: int | None = None) -> int | None:
        raw = self.payload.get(key)
        if raw is None:
            if required:
                self.fail(key, "is required")
            return None

        # bool is an int subclass; reject it explicitly
        if isinstance(raw, bool):
            self.fail(key, "must be an integer")
            return None
        if isinstance(raw, int):
            value = raw
        elif isinstance(raw, str):
            stripped = raw.strip()
            # Reject scientific notation and decimals (e.g., "1e3", "12.5")
            if not stripped or "e" in stripped.lower() or "." in stripped:
                self.fail(key, "must be a plain integer")
                return None
            try:
                value = int(stripped)
            except ValueError:
                self.fail(key, "must be an integer")
                return None
        elif isinstance(raw, float):
            self.fail(key, "must be an integer, not a decimal")
            return None
        else:
            self.fail(key, "must be an integer")
            return None

        if minimum is not None and value < minimum:
            self.fail(key, f"must be >= {minimum}")
            return None
        return value

    def money(self, key: str, *, required: bool = False, default: Decimal | None = None) -> Decimal | None:
        raw = self.payload.get(key)
        if raw is None:
            if required:
                self.fail(key, "is required")
            return default
        try:
            value = to_decimal(raw)
        except ValueError as exc:
            self.fail(key, str(exc))
            return None
        if value < ZERO:
            self.fail(key, "must be >= 0")
            return None
        if value > MAX_AMOUNT:
            self.fail(key, f"cannot exceed {MAX_AMOUNT}")
            return None
        return value

    def boolean(self, key: str, *, default: bool) -> bool:
        raw = self.payload.get(key)
        if raw is None:
            return default
        if not isinstance(raw, bool):
            self.fail(key, "must be a boolean")
            return default
        return raw

    def datetime(self, key: str, *, required: bool = False) -> datetime | None:
        raw = self.payload.get(key)
        if raw is None:
            if required:
                self.fail(key, "is required")
            return None
        if not isinstance(raw, str):
            self.fail(key, "must be an ISO-8601 datetime")
            return None
        try:
            value = parse_iso_datetime(raw)
        except ValueError:
            value = None
        if value is None:
            self.fail(key, "must be an ISO-8601 datetime")
        return value

    def choice(self, key: str, choices: tuple[str, ...], *, required: bool = False) -> str | None:
        raw = self.payload.get(key)
        if raw is None:
            if required:
                self.fail(key, "is required")
            return None
        if raw not in choices:
            self.fail(key, f"must be one of: {', '.join(choices)}")
            return None
        return raw

    def item_ref(self, *, id_key: str = "roupas_id", name_key: str = "nome_item") -> ItemRef | None:
        has_id = self.payload.get(id_key) is not None
        has_name = self.payload.get(name_key) is not None
        if has_id and has_name:
            self.fail("", f"provide either '{id_key}' or '{name_key}', not both")
            return None
        if has_id:
            item_id = self.integer(id_key, minimum=1)
            return ById(item_id) if item_id is not None else None
        if has_name:
            name = self.string(name_key, required=True, max_length=255)
            return ByName(name) if name is not None else None
        self.fail("", f"must reference an item by '{id_key}' or '{name_key}'")
        return None

    def lines(self, key: str = "itens") -> list[tuple[str, Any]]:
        raw = self.payload.get(key)
        if raw is None:
            self.fail(key, "is required")
            return []
        if not isinstance(raw, list):
            self.fail(key, "must be a list")
            return []
        if not raw:
            self.fail(key, "must contain at least one item")
            return []
        return [(self.path(f"{key}[{index}]"), line) for index, line in enumerate(raw)]

    def absorb(self, other: "_Reader") -> None:
        self.errors.extend(other.errors)


def ensure_valid(result: tuple[Any, list[FieldError]]):
    """Return the request of a validator result, raising ValidationFailed on errors."""
    request, errors = result
    if errors:
        raise ValidationFailed(errors)
    return request


def _fields(*names: str) -> set[str]:
    return set(names)


# =============================================================================
# Sales
# =============================================================================

SALE_FIELDS = _fields(
    "forma_pgto", "valor_total", "desconto", "valor_pago", "descricao_permuta",
    "nome_cliente", "telefone_cliente", "data_venda", "itens",
)
SALE_LINE_FIELDS = _fields("roupas_id", "nome_item", "quantidade")


def _read_counted_lines(reader: _Reader, fields: set[str], *, min_quantity: int) -> list[tuple[ItemRef, int]]:
    parsed = []
    for path, raw_line in reader.lines():
        line = _Reader(raw_line, prefix=path, allowed=fields)
        ref = line.item_ref()
        quantity = line.integer("quantidade", required=True, minimum=min_quantity)
        reader.absorb(line)
        if ref is not None and quantity is not None:
            parsed.append((ref, quantity))
    return parsed


def validate_sale(payload: Any) -> tuple[SaleRequest | None, list[FieldError]]:
    """
    Validate a sale payload.

    Barter (forma_pgto = "Permuta") ignores the monetary fields and normalizes
    valor_total, desconto and valor_pago to 0; descricao_permuta is mandatory.
    Any other method requires valor_total and valor_pago, with
    valor_pago <= valor_total. Both consistency failures use the same message.
    """
    r = _Reader(payload, allowed=SALE_FIELDS)

    method = r.choice("forma_pgto", SALE_PAYMENT_METHODS, required=True)
    barter = method == PAYMENT_BARTER

    if barter:
        total = discount = paid = ZERO
    else:
        total = r.money("valor_total", required=True)
        discount = r.money("desconto", default=ZERO)
        paid = r.money("valor_pago", required=True)

    description = r.string("descricao_permuta", max_length=MAX_NOTES_LENGTH)
    customer_name = r.string("nome_cliente", min_length=MIN_NAME_LENGTH, max_length=255)
    customer_phone = r.phone("telefone_cliente")
    sale_date = r.datetime("data_venda")

    lines = _read_counted_lines(r, SALE_LINE_FIELDS, min_quantity=1)

    # Mutually dependent rules: only once the fields themselves are well formed
    if method is not None and not r.has_error("valor_total", "valor_pago", "descricao_permuta"):
        if barter and not description:
            r.fail("descricao_permuta", PAYMENT_CONSISTENCY_MESSAGE)
        elif not barter and paid > total:
            r.fail("valor_pago", PAYMENT_CONSISTENCY_MESSAGE)

    if r.errors:
        return None, r.errors

    return SaleRequest(
        payment_method=method,
        total_value=total,
        discount=discount,
        paid_value=paid,
        lines=tuple(SaleLineRequest(ref, qty) for ref, qty in lines),
        barter_description=description,
        customer_name=customer_name,
        customer_phone=customer_phone,
        sale_date=sale_date,
    ), []


# =============================================================================
# Purchases
# =============================================================================

PURCHASE_FIELDS = _fields(
    "forma_pgto", "valor_pago", "fornecedor", "telefone_fornecedor",
    "data_compra", "observacoes", "itens",
)
PURCHASE_LINE_FIELDS = _fields(
    "roupas_id", "nome_item", "quantidade", "valor_peca",
    "descricao", "tipo", "tamanho", "cor", "preco",
)


def _read_purchase_line(line: _Reader) -> PurchaseLineRequest | None:
    ref = line.item_ref()
    quantity = line.integer("quantidade", required=True, minimum=0)
    unit_cost = line.money("valor_peca", required=True)

    descriptor = None
    if isinstance(ref, ByName):
        descriptor = ItemDescriptor(
            name=ref.name,
            description=line.string("descricao", max_length=MAX_NOTES_LENGTH),
            category=line.string("tipo", max_length=64),
            size=line.string("tamanho", max_length=16),
            color=line.string("cor", max_length=32),
            price=line.money("preco"),
        )
    else:
        for key in ("descricao", "tipo", "tamanho", "cor", "preco"):
            if line.present(key):
                line.fail(key, "only allowed when the item is referenced by 'nome_item'")

    if ref is None or quantity is None or unit_cost is None or line.errors:
        return None
    return PurchaseLineRequest(ref=ref, quantity=quantity, unit_cost=unit_cost, descriptor=descriptor)


def validate_purchase(payload: Any) -> tuple[PurchaseRequest | None, list[FieldError]]:
    r = _Reader(payload, allowed=PURCHASE_FIELDS)

    method = r.choice("forma_pgto", PURCHASE_PAYMENT_METHODS, required=True)
    paid = r.money("valor_pago", required=True)
    supplier = r.string("fornecedor", required=True, min_length=MIN_NAME_LENGTH, max_length=255)
    supplier_phone = r.phone("telefone_fornecedor")
    purchase_date = r.datetime("data_compra")
    notes = r.string("observacoes", max_length=MAX_NOTES_LENGTH)

    lines = []
    for path, raw_line in r.lines():
        line = _Reader(raw_line, prefix=path, allowed=PURCHASE_LINE_FIELDS)
        parsed = _read_purchase_line(line)
        r.absorb(line)
        if parsed is not None:
            lines.append(parsed)

    if r.errors:
        return None, r.errors

    return PurchaseRequest(
        payment_method=method,
        paid_value=paid,
        supplier_name=supplier,
        supplier_phone=supplier_phone,
        lines=tuple(lines),
        purchase_date=purchase_date,
        notes=notes,
    ), []


def validate_purchase_line(payload: Any) -> tuple[PurchaseLineRequest | None, list[FieldError]]:
    line = _Reader(payload, allowed=PURCHASE_LINE_FIELDS)
    parsed = _read_purchase_line(line)
    if line.errors:
        return None, line.errors
    return parsed, []


def validate_purchase_line_patch(payload: Any) -> tuple[PurchaseLinePatch | None, list[FieldError]]:
    r = _Reader(payload, allowed=_fields("quantidade", "valor_peca"))
    quantity = r.integer("quantidade", minimum=0)
    unit_cost = r.money("valor_peca")
    if not r.errors and quantity is None and unit_cost is None:
        r.fail("", "provide 'quantidade' and/or 'valor_peca'")
    if r.errors:
        return None, r.errors
    return PurchaseLinePatch(quantity=quantity, unit_cost=unit_cost), []


# =============================================================================
# Conditional loans
# =============================================================================

LOAN_FIELDS = _fields("cliente_id", "data", "data_devolucao", "observacoes", "itens")
LOAN_LINE_FIELDS = _fields("roupas_id", "nome_item", "quantidade")


def validate_loan(payload: Any) -> tuple[LoanRequest | None, list[FieldError]]:
    r = _Reader(payload, allowed=LOAN_FIELDS)

    customer_id = r.integer("cliente_id", required=True, minimum=1)
    loan_date = r.datetime("data")
    due_date = r.datetime("data_devolucao", required=True)
    notes = r.string("observacoes", max_length=MAX_NOTES_LENGTH)

    lines = _read_counted_lines(r, LOAN_LINE_FIELDS, min_quantity=1)

    if loan_date is not None and due_date is not None and loan_date > due_date:
        r.fail("data_devolucao", "must not be earlier than the loan date")

    if r.errors:
        return None, r.errors

    return LoanRequest(
        customer_id=customer_id,
        due_date=due_date,
        lines=tuple(LoanLineRequest(ref, qty) for ref, qty in lines),
        loan_date=loan_date,
        notes=notes,
    ), []


def validate_loan_return(payload: Any) -> tuple[LoanReturnRequest | None, list[FieldError]]:
    r = _Reader(payload, allowed=_fields("roupas_id", "quantidade"))
    item_id = r.integer("roupas_id", required=True, minimum=1)
    quantity = r.integer("quantidade", required=True, minimum=1)
    if r.errors:
        return None, r.errors
    return LoanReturnRequest(item_id=item_id, quantity=quantity), []


LOAN_CLOSE_FIELDS = _fields(
    "devolvido", "observacoes", "forma_pgto", "desconto", "valor_pago",
    "descricao_permuta", "itens_vendidos",
)


def validate_loan_close(payload: Any) -> tuple[LoanCloseRequest | None, list[FieldError]]:
    """
    devolvido=true (default) returns every outstanding unit.
    devolvido=false converts the loan into a sale: forma_pgto is required and
    itens_vendidos is "todos" (default) or a list of {roupas_id, quantidade}.
    """
    r = _Reader(payload, allowed=LOAN_CLOSE_FIELDS)
    returned = r.boolean("devolvido", default=True)
    notes = r.string("observacoes", max_length=MAX_NOTES_LENGTH)

    if returned:
        for key in ("forma_pgto", "desconto", "valor_pago", "descricao_permuta", "itens_vendidos"):
            if r.present(key):
                r.fail(key, "only allowed when converting the loan (devolvido=false)")
        if r.errors:
            return None, r.errors
        return LoanCloseRequest(returned=True, notes=notes), []

    method = r.choice("forma_pgto", SALE_PAYMENT_METHODS, required=True)
    barter = method == PAYMENT_BARTER
    discount = ZERO if barter else r.money("desconto", default=ZERO)
    paid = None if barter else r.money("valor_pago")
    description = r.string("descricao_permuta", max_length=MAX_NOTES_LENGTH)

    raw_items = r.payload.get("itens_vendidos", ALL_ITEMS)
    items: Union[str, tuple[tuple[int, int], ...]] = ALL_ITEMS
    if raw_items != ALL_ITEMS:
        if not isinstance(raw_items, list) or not raw_items:
            r.fail("itens_vendidos", f"must be '{ALL_ITEMS}' or a non-empty list")
        else:
            chosen = []
            for index, raw_line in enumerate(raw_items):
                line = _Reader(raw_line, prefix=r.path(f"itens_vendidos[{index}]"),
                               allowed=_fields("roupas_id", "quantidade"))
                item_id = line.integer("roupas_id", required=True, minimum=1)
                quantity = line.integer("quantidade", required=True, minimum=1)
                r.absorb(line)
                if item_id is not None and quantity is not None:
                    chosen.append((item_id, quantity))
            items = tuple(chosen)

    if method is not None and barter and not description:
        r.fail("descricao_permuta", PAYMENT_CONSISTENCY_MESSAGE)

    if r.errors:
        return None, r.errors

    return LoanCloseRequest(
        returned=False,
        conversion=LoanConversion(
            payment_method=method,
            discount=discount,
            items=items,
            paid_value=paid,
            barter_description=description,
        ),
        notes=notes,
    ), []


# =============================================================================
# Write-offs
# =============================================================================

WRITE_OFF_FIELDS = _fields("roupas_id", "nome_item", "quantidade", "motivo", "observacao", "usuario_id", "data_baixa")


def validate_write_off(payload: Any) -> tuple[WriteOffRequest | None, list[FieldError]]:
    r = _Reader(payload, allowed=WRITE_OFF_FIELDS)

    ref = r.item_ref()
    quantity = r.integer("quantidade", required=True, minimum=1)
    reason = r.string("motivo", required=True, max_length=120)
    notes = r.string("observacao", max_length=MAX_NOTES_LENGTH)
    recorded_by = r.integer("usuario_id", minimum=1)
    write_off_date = r.datetime("data_baixa")

    if r.errors:
        return None, r.errors

    return WriteOffRequest(
        ref=ref,
        quantity=quantity,
        reason=reason,
        notes=notes,
        recorded_by_id=recorded_by,
        write_off_date=write_off_date,
    ), []


# =============================================================================
# Registry (items, customers)
# =============================================================================

ITEM_FIELDS = _fields("nome", "descricao", "tipo", "tamanho", "cor", "preco", "usuario_id")

# wire key -> Item attribute
ITEM_ATTRIBUTES = {
    "nome": "name",
    "descricao": "description",
    "tipo": "category",
    "tamanho": "size",
    "cor": "color",
    "preco": "price",
}


def validate_item(payload: Any) -> tuple[ItemDescriptor | None, list[FieldError]]:
    r = _Reader(payload, allowed=ITEM_FIELDS)
    name = r.string("nome", required=True, max_length=255)
    description = r.string("descricao", max_length=MAX_NOTES_LENGTH)
    category = r.string("tipo", max_length=64)
    size = r.string("tamanho", max_length=16)
    color = r.string("cor", max_length=32)
    price = r.money("preco")
    owner_id = r.integer("usuario_id", minimum=1)
    if r.errors:
        return None, r.errors
    return ItemDescriptor(
        name=name,
        description=description,
        category=category,
        size=size,
        color=color,
        price=price,
        owner_id=owner_id,
    ), []


def validate_item_patch(payload: Any) -> tuple[ItemPatch | None, list[FieldError]]:
    """Descriptive fields only; quantity and status are owned by the ledger."""
    r = _Reader(payload, allowed=set(ITEM_ATTRIBUTES))
    changes = {}
    for key, attribute in ITEM_ATTRIBUTES.items():
        if key not in r.payload:
            continue
        if key == "preco":
            value = r.money(key)
        elif key == "nome":
            value = r.string(key, required=True, max_length=255)
        else:
            value = r.string(key, max_length=MAX_NOTES_LENGTH if key == "descricao" else 64)
        changes[attribute] = value
    if not r.errors and not changes:
        r.fail("", "no updatable fields provided")
    if r.errors:
        return None, r.errors
    return ItemPatch(changes=changes), []


def validate_customer(payload: Any) -> tuple[CustomerRequest | None, list[FieldError]]:
    r = _Reader(payload, allowed=_fields("nome", "email", "telefone", "endereco"))
    name = r.string("nome", required=True, min_length=MIN_NAME_LENGTH, max_length=255)
    email = r.string("email", max_length=255)
    if email is not None and not EMAIL_PATTERN.match(email):
        r.fail("email", "must be a valid email address")
    phone = r.phone("telefone")
    address = r.string("endereco", max_length=MAX_NOTES_LENGTH)
    if r.errors:
        return None, r.errors
    return CustomerRequest(name=name, email=email, phone=phone, address=address), []


CUSTOMER_ATTRIBUTES = {
    "nome": "name",
    "email": "email",
    "telefone": "phone",
    "endereco": "address",
}


def validate_customer_patch(payload: Any) -> tuple[CustomerPatch | None, list[FieldError]]:
    """Partial update; null clears an optional field, the name stays required."""
    r = _Reader(payload, allowed=set(CUSTOMER_ATTRIBUTES))
    changes = {}
    if "nome" in r.payload:
        changes["name"] = r.string("nome", required=True, min_length=MIN_NAME_LENGTH, max_length=255)
    if "email" in r.payload:
        email = r.string("email", max_length=255)
        if email is not None and not EMAIL_PATTERN.match(email):
            r.fail("email", "must be a valid email address")
        changes["email"] = email
    if "telefone" in r.payload:
        changes["phone"] = r.phone("telefone")
    if "endereco" in r.payload:
        changes["address"] = r.string("endereco", max_length=MAX_NOTES_LENGTH)
    if not r.errors and not changes:
        r.fail("", "no updatable fields provided")
    if r.errors:
        return None, r.errors
    return CustomerPatch(changes=changes), []
