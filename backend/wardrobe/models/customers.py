from __future__ import annotations

from ..extensions import db
from wardrobe.time_utils import to_utc_z


class Customer(db.Model):
    """Customer registry entry; conditional loans must reference one."""
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nome": self.name,
            "email": self.email,
            "telefone": self.phone,
            "endereco": self.address,
            "created_at": to_utc_z(self.created_at),
        }
