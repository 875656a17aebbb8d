from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from wardrobe.time_utils import to_utc_z


PURCHASE_OPEN = "OPEN"
PURCHASE_FINALIZED = "FINALIZED"


class Purchase(db.Model):
    """
    Purchase document (stock coming in from a supplier).

    LIFECYCLE:
    1. OPEN: created, lines may be added/edited/removed, no stock effect
    2. FINALIZED: every line's quantity has been added to stock

    IMMUTABLE: once FINALIZED, lines cannot change and the document cannot
    be deleted. Finalizing again is a no-op.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_date", "status", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=False)
    paid_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    supplier_name = db.Column(db.String(255), nullable=False, index=True)
    supplier_phone = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_OPEN, index=True)
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "PurchaseLine",
        backref="purchase",
        lazy=True,
        order_by="PurchaseLine.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_finalized(self) -> bool:
        return self.status == PURCHASE_FINALIZED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data_compra": to_utc_z(self.purchase_date),
            "forma_pgto": self.payment_method,
            "valor_pago": to_money_str(self.paid_value),
            "fornecedor": self.supplier_name,
            "telefone_fornecedor": self.supplier_phone,
            "status": self.status,
            "finalizada_em": to_utc_z(self.finalized_at) if self.finalized_at else None,
            "observacoes": self.notes,
            "itens": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseLine(db.Model):
    """
    Purchase line: either an existing item (item_id) or a new-item descriptor.

    Descriptor lines keep item_id NULL until finalization resolves the name,
    creating the item if no active item carries it. After finalization item_id
    always points at the item that received the stock.
    """
    __tablename__ = "purchase_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=True, index=True)

    # New-item descriptor (used when item_id is NULL at creation)
    item_name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(16), nullable=True)
    color = db.Column(db.String(32), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "compra_id": self.purchase_id,
            "roupas_id": self.item_id,
            "nome_item": self.item_name,
            "quantidade": self.quantity,
            "valor_peca": to_money_str(self.unit_cost),
        }


class ConditionalLoan(db.Model):
    """
    Conditional (trial) loan: stock released to a customer on approval.

    While open (returned=False and converted=False) the lines' outstanding
    quantities are out of stock and their items are held (on_hold).

    CLOSING:
    - returned=True: every outstanding unit went back to stock.
    - converted=True: the loan became a sale (the Sale carries
      conditional_loan_id); units not sold were returned. returned stays False.
    """
    __tablename__ = "conditional_loans"
    __table_args__ = (
        db.Index("ix_conditional_loans_open", "returned", "converted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    loan_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)

    returned = db.Column(db.Boolean, nullable=False, default=False)
    converted = db.Column(db.Boolean, nullable=False, default=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("conditional_loans", lazy=True))
    lines = db.relationship(
        "ConditionalLine",
        backref="loan",
        lazy=True,
        order_by="ConditionalLine.id",
        cascade="all, delete-orphan",
    )
    sale = db.relationship("Sale", backref="conditional_loan", uselist=False)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return not self.returned and not self.converted

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cliente_id": self.customer_id,
            "data": to_utc_z(self.loan_date),
            "data_devolucao": to_utc_z(self.due_date),
            "devolvido": self.returned,
            "convertido": self.converted,
            "encerrado_em": to_utc_z(self.closed_at) if self.closed_at else None,
            "venda_id": self.sale.id if self.sale else None,
            "observacoes": self.notes,
            "itens": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
        }


class ConditionalLine(db.Model):
    """Loan line; outstanding = quantity - returned_quantity - sold_quantity."""
    __tablename__ = "conditional_lines"
    __table_args__ = (
        db.CheckConstraint(
            "returned_quantity + sold_quantity <= quantity",
            name="ck_conditional_lines_settled_le_quantity",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.Integer, db.ForeignKey("conditional_loans.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    returned_quantity = db.Column(db.Integer, nullable=False, default=0)
    sold_quantity = db.Column(db.Integer, nullable=False, default=0)

    item = db.relationship("Item")

    @property
    def outstanding(self) -> int:
        return self.quantity - (self.returned_quantity or 0) - (self.sold_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "condicional_id": self.loan_id,
            "roupas_id": self.item_id,
            "quantidade": self.quantity,
            "quantidade_devolvida": self.returned_quantity,
            "quantidade_vendida": self.sold_quantity,
            "quantidade_pendente": self.outstanding,
        }


class WriteOff(db.Model):
    """Permanent stock reduction (loss, theft, damage). Irreversible."""
    __tablename__ = "write_offs"
    __table_args__ = (
        db.Index("ix_write_offs_date_reason", "write_off_date", "reason"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(120), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    write_off_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    recorded_by_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "roupas_id": self.item_id,
            "quantidade": self.quantity,
            "motivo": self.reason,
            "observacao": self.notes,
            "data_baixa": to_utc_z(self.write_off_date),
            "usuario_id": self.recorded_by_id,
        }
