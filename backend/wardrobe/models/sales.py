from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from wardrobe.time_utils import to_utc_z

PAYMENT_BARTER = "Permuta"


class Sale(db.Model):
    """
    Committed sale document.

    Sales are written only by the transaction processor, in the same DB
    transaction that deducts their stock, so a Sale row always means the
    stock effect has been applied. There is no void/delete path; mistakes are
    corrected with compensating transactions.

    BARTER: payment_method == "Permuta" stores total/discount/paid as 0 and a
    mandatory barter_description.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_date_method", "sale_date", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=False, index=True)

    total_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    barter_description = db.Column(db.Text, nullable=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Set when the sale was produced by converting a conditional loan
    conditional_loan_id = db.Column(
        db.Integer, db.ForeignKey("conditional_loans.id"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        order_by="SaleLine.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_barter(self) -> bool:
        return self.payment_method == PAYMENT_BARTER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data_venda": to_utc_z(self.sale_date),
            "forma_pgto": self.payment_method,
            "valor_total": to_money_str(self.total_value),
            "desconto": to_money_str(self.discount),
            "valor_pago": to_money_str(self.paid_value),
            "descricao_permuta": self.barter_description,
            "nome_cliente": self.customer_name,
            "telefone_cliente": self.customer_phone,
            "condicional_id": self.conditional_loan_id,
            "quantidade_itens": sum(line.quantity for line in self.lines),
            "itens": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
        }


class SaleLine(db.Model):
    """Individual line items on a sale document."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "venda_id": self.sale_id,
            "roupas_id": self.item_id,
            "quantidade": self.quantity,
        }
