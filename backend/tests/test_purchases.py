# Overview: Pytest coverage for purchases (open editing, finalization, idempotence).

from decimal import Decimal

import pytest

from conftest import sell
from wardrobe.errors import InvalidTransitionError, NotFoundError
from wardrobe.models import Item, Purchase
from wardrobe.validation import (
    ensure_valid,
    validate_purchase,
    validate_purchase_line,
    validate_purchase_line_patch,
    validate_write_off,
)


def purchase_payload(*lines, **overrides) -> dict:
    payload = {
        "forma_pgto": "Boleto",
        "valor_pago": "500.00",
        "fornecedor": "Confecções Aurora",
        "itens": list(lines),
    }
    payload.update(overrides)
    return payload


def create_purchase(processor, *lines, **overrides):
    request = ensure_valid(validate_purchase(purchase_payload(*lines, **overrides)))
    return processor.create_purchase(request).document


def by_id(item_id, quantity, cost="20.00"):
    return {"roupas_id": item_id, "quantidade": quantity, "valor_peca": cost}


class TestPurchaseFinalization:
    def test_open_purchase_does_not_touch_stock(self, processor, make_item):
        item = make_item(quantity=1)

        purchase = create_purchase(processor, by_id(item.id, 10))

        assert purchase.status == "OPEN"
        assert purchase.lines[0].item_name == item.name
        assert processor.items.get_quantity(item.id) == 1

    def test_finalize_applies_lines_and_creates_named_items(self, processor, make_item, db_session):
        item = make_item(quantity=0)
        purchase = create_purchase(
            processor,
            by_id(item.id, 10),
            {"nome_item": "Jaqueta Couro", "quantidade": 3, "valor_peca": "120.00", "tamanho": "G", "preco": "299.90"},
        )
        assert purchase.lines[1].item_id is None

        result = processor.finalize_purchase(purchase.id)

        assert result.applied is True
        assert result.document.status == "FINALIZED"
        assert result.document.finalized_at is not None
        assert processor.items.get_quantity(item.id) == 10

        jacket = db_session.query(Item).filter_by(name="Jaqueta Couro").one()
        assert jacket.quantity == 3
        assert jacket.size == "G"
        assert jacket.price == Decimal("299.90")
        assert result.document.lines[1].item_id == jacket.id

        history = processor.item_state(jacket.id).history
        assert [(h.prior_status, h.new_status, h.transaction_kind) for h in history] == [
            (None, "available", "purchase"),
        ]
        assert [c.to_dict() for c in result.status_changes] == [
            {"item_id": jacket.id, "prior_status": None, "new_status": "available"},
        ]

    def test_finalize_twice_is_a_no_op(self, processor, make_item):
        item = make_item()
        purchase = create_purchase(processor, by_id(item.id, 4))

        processor.finalize_purchase(purchase.id)
        again = processor.finalize_purchase(purchase.id)

        assert again.applied is False
        assert again.to_dict()["applied"] is False
        assert processor.items.get_quantity(item.id) == 4

    def test_restock_of_sold_item(self, processor, make_item):
        item = make_item(quantity=1)
        sell(processor, (item.id, 1))
        assert processor.item_state(item.id).status == "sold"

        purchase = create_purchase(processor, by_id(item.id, 2))
        result = processor.finalize_purchase(purchase.id)

        assert processor.item_state(item.id).status == "available"
        assert [(c.prior_status, c.new_status) for c in result.status_changes] == [("sold", "available")]
        assert processor.items.get_quantity(item.id) == 2

    def test_written_off_item_cannot_be_restocked(self, processor, make_item, db_session):
        item = make_item(quantity=1)
        processor.record_write_off(ensure_valid(validate_write_off(
            {"roupas_id": item.id, "quantidade": 1, "motivo": "avaria"}
        )))
        purchase = create_purchase(processor, by_id(item.id, 5))

        with pytest.raises(InvalidTransitionError):
            processor.finalize_purchase(purchase.id)

        assert db_session.get(Purchase, purchase.id).status == "OPEN"
        assert processor.items.get_quantity(item.id) == 0

    def test_named_line_resolves_to_oldest_exact_match(self, processor, make_item):
        first = make_item(name="Blusa Básica")
        second = make_item(name="Blusa Básica")
        purchase = create_purchase(processor, {"nome_item": "Blusa Básica", "quantidade": 2, "valor_peca": "15.00"})

        processor.finalize_purchase(purchase.id)

        assert processor.items.get_quantity(first.id) == 2
        assert processor.items.get_quantity(second.id) == 0

    def test_zero_quantity_line_is_skipped(self, processor, make_item):
        item = make_item(quantity=0)
        sold_out = make_item(name="Regata", quantity=1)
        sell(processor, (sold_out.id, 1))

        purchase = create_purchase(processor, by_id(item.id, 0), by_id(sold_out.id, 0))
        result = processor.finalize_purchase(purchase.id)

        assert result.status_changes == []
        assert processor.item_state(sold_out.id).status == "sold"

    def test_zero_quantity_named_line_creates_no_item(self, processor, db_session):
        purchase = create_purchase(
            processor,
            {"nome_item": "Cardigã Tricô", "quantidade": 0, "valor_peca": "35.00"},
        )

        result = processor.finalize_purchase(purchase.id)

        assert result.applied is True
        assert result.document.status == "FINALIZED"
        assert result.items == []
        assert result.status_changes == []
        assert db_session.query(Item).filter(Item.name == "Cardigã Tricô").count() == 0
        assert result.document.lines[0].item_id is None

    def test_missing_item_reference(self, processor):
        with pytest.raises(NotFoundError) as excinfo:
            create_purchase(processor, by_id(424242, 1))
        assert excinfo.value.details["field"] == "itens[0]"

    def test_missing_purchase(self, processor):
        with pytest.raises(NotFoundError):
            processor.finalize_purchase(424242)


class TestPurchaseEditing:
    def test_add_line_merges_same_item(self, processor, make_item):
        item = make_item()
        purchase = create_purchase(processor, by_id(item.id, 2, "10.00"))

        result = processor.add_purchase_line(
            purchase.id, ensure_valid(validate_purchase_line(by_id(item.id, 3, "12.00")))
        )

        lines = result.document.lines
        assert len(lines) == 1
        assert lines[0].quantity == 5
        assert lines[0].unit_cost == Decimal("12.00")

    def test_add_line_merges_same_name(self, processor):
        purchase = create_purchase(processor, {"nome_item": "Calça Jeans", "quantidade": 1, "valor_peca": "40.00"})

        processor.add_purchase_line(
            purchase.id,
            ensure_valid(validate_purchase_line({"nome_item": "Calça Jeans", "quantidade": 2, "valor_peca": "38.00"})),
        )
        result = processor.add_purchase_line(
            purchase.id,
            ensure_valid(validate_purchase_line({"nome_item": "Calça Sarja", "quantidade": 1, "valor_peca": "45.00"})),
        )

        assert [(line.item_name, line.quantity) for line in result.document.lines] == [
            ("Calça Jeans", 3),
            ("Calça Sarja", 1),
        ]

    def test_update_and_remove_line(self, processor, make_item):
        shirt = make_item(name="Camisa")
        skirt = make_item(name="Saia")
        purchase = create_purchase(processor, by_id(shirt.id, 2), by_id(skirt.id, 1))
        shirt_line, skirt_line = purchase.lines[0].id, purchase.lines[1].id

        processor.update_purchase_line(
            purchase.id, shirt_line, ensure_valid(validate_purchase_line_patch({"quantidade": 6}))
        )
        result = processor.remove_purchase_line(purchase.id, skirt_line)

        assert [(line.item_id, line.quantity) for line in result.document.lines] == [(shirt.id, 6)]
        assert result.document.lines[0].unit_cost == Decimal("20.00")

        processor.finalize_purchase(purchase.id)
        assert processor.items.get_quantity(shirt.id) == 6
        assert processor.items.get_quantity(skirt.id) == 0

    def test_unknown_line(self, processor, make_item):
        item = make_item()
        purchase = create_purchase(processor, by_id(item.id, 1))

        with pytest.raises(NotFoundError):
            processor.remove_purchase_line(purchase.id, 424242)

    def test_finalized_purchase_is_read_only(self, processor, make_item):
        item = make_item()
        purchase = create_purchase(processor, by_id(item.id, 1))
        line_id = purchase.lines[0].id
        processor.finalize_purchase(purchase.id)

        with pytest.raises(InvalidTransitionError):
            processor.add_purchase_line(purchase.id, ensure_valid(validate_purchase_line(by_id(item.id, 1))))
        with pytest.raises(InvalidTransitionError):
            processor.update_purchase_line(
                purchase.id, line_id, ensure_valid(validate_purchase_line_patch({"valor_peca": "1.00"}))
            )
        with pytest.raises(InvalidTransitionError):
            processor.remove_purchase_line(purchase.id, line_id)

        assert processor.items.get_quantity(item.id) == 1
