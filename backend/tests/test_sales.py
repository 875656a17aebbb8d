# Overview: Pytest coverage for sale transactions (stock decrement, status, atomicity).

from decimal import Decimal

import pytest

from conftest import sell
from wardrobe.errors import InsufficientStockError, InvalidTransitionError, NotFoundError
from wardrobe.models import Sale, SaleLine
from wardrobe.services.transaction_processor import TransactionProcessor
from wardrobe.validation import ensure_valid, validate_loan


class TestSaleStock:
    def test_partial_then_depleting_sale(self, processor, make_item):
        item = make_item(quantity=5)

        result = sell(processor, (item.id, 3))
        assert processor.items.get_quantity(item.id) == 2
        assert processor.item_state(item.id).status == "available"
        assert result.status_changes == []

        result = sell(processor, (item.id, 2))
        assert processor.items.get_quantity(item.id) == 0

        state = processor.item_state(item.id)
        assert state.status == "sold"
        assert [(h.prior_status, h.new_status) for h in state.history] == [
            (None, "available"),
            ("available", "sold"),
        ]
        assert state.history[-1].transaction_kind == "sale"
        assert state.history[-1].transaction_id == result.document.id
        assert [c.to_dict() for c in result.status_changes] == [
            {"item_id": item.id, "prior_status": "available", "new_status": "sold"},
        ]

    def test_insufficient_stock_leaves_quantity_untouched(self, processor, make_item, db_session):
        item = make_item(quantity=5)

        with pytest.raises(InsufficientStockError) as excinfo:
            sell(processor, (item.id, 6))

        assert excinfo.value.details == {"item_id": item.id, "requested": 6, "available": 5}
        assert processor.items.get_quantity(item.id) == 5
        assert db_session.query(Sale).count() == 0

    def test_multi_line_sale_is_all_or_nothing(self, processor, make_item, db_session):
        shirt = make_item(name="Camisa", quantity=4)
        skirt = make_item(name="Saia", quantity=1)

        with pytest.raises(InsufficientStockError) as excinfo:
            sell(processor, (shirt.id, 2), (skirt.id, 2))

        assert excinfo.value.item_id == skirt.id
        assert processor.items.get_quantity(shirt.id) == 4
        assert processor.items.get_quantity(skirt.id) == 1
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLine).count() == 0

    def test_repeated_item_lines_are_summed(self, processor, make_item):
        item = make_item(quantity=3)

        with pytest.raises(InsufficientStockError) as excinfo:
            sell(processor, (item.id, 2), (item.id, 2))
        assert excinfo.value.requested == 4

        result = sell(processor, (item.id, 1), (item.id, 2))
        assert processor.items.get_quantity(item.id) == 0
        assert len(result.document.lines) == 2

    def test_sold_out_item_reports_insufficient_stock(self, processor, make_item, db_session):
        item = make_item(quantity=1)
        sell(processor, (item.id, 1))

        with pytest.raises(InsufficientStockError) as excinfo:
            sell(processor, (item.id, 1))

        assert excinfo.value.details == {"item_id": item.id, "requested": 1, "available": 0}
        assert processor.item_state(item.id).status == "sold"
        assert db_session.query(Sale).count() == 1

    def test_sold_status_with_stock_on_hand_is_an_invalid_transition(self, processor, make_item, db_session):
        item = make_item(quantity=1)
        sell(processor, (item.id, 1))
        # Drifted row: stock on hand but the item is still marked sold
        item.quantity = 2
        db_session.commit()

        with pytest.raises(InvalidTransitionError):
            sell(processor, (item.id, 1))
        assert processor.items.get_quantity(item.id) == 2

    def test_unknown_item_names_the_line(self, processor, make_item):
        item = make_item(quantity=2)

        with pytest.raises(NotFoundError) as excinfo:
            sell(processor, (item.id, 1), (999999, 1))

        assert excinfo.value.details["field"] == "itens[1]"
        assert processor.items.get_quantity(item.id) == 2


class TestSaleDocument:
    def test_sale_by_item_name(self, processor, make_item):
        item = make_item(name="Vestido Floral", quantity=2)

        result = sell(processor, itens=[{"nome_item": "Vestido Floral", "quantidade": 1}])

        assert result.document.lines[0].item_id == item.id
        assert processor.items.get_quantity(item.id) == 1

    def test_sale_fields_are_stored(self, processor, make_item):
        item = make_item(quantity=2)

        result = sell(
            processor,
            (item.id, 1),
            valor_total="89.90",
            desconto="10.00",
            valor_pago="79.90",
            forma_pgto="Cartão de Crédito",
            nome_cliente="Ana Paula",
            telefone_cliente="11 91234-5678",
        )

        sale = result.document
        assert sale.total_value == Decimal("89.90")
        assert sale.paid_value == Decimal("79.90")
        assert sale.discount == Decimal("10.00")
        data = result.to_dict()
        assert data["kind"] == "sale"
        assert data["document"]["valor_pago"] == "79.90"
        assert data["document"]["quantidade_itens"] == 1
        assert data["items"][0]["quantity"] == 1

    def test_barter_sale_is_normalized_to_zero(self, processor, make_item):
        item = make_item(quantity=1)

        result = sell(processor, (item.id, 1), forma_pgto="Permuta", descricao_permuta="Troca por jaqueta jeans")

        sale = result.document
        assert sale.is_barter
        assert (sale.total_value, sale.discount, sale.paid_value) == (Decimal("0"), Decimal("0"), Decimal("0"))
        assert sale.barter_description == "Troca por jaqueta jeans"
        assert processor.item_state(item.id).status == "sold"

    def test_free_units_of_held_item_keep_it_on_hold(self, processor, make_item, customer):
        item = make_item(quantity=3)
        processor.open_loan(ensure_valid(validate_loan({
            "cliente_id": customer.id,
            "data_devolucao": "2099-01-01",
            "itens": [{"roupas_id": item.id, "quantidade": 1}],
        })))

        sell(processor, (item.id, 2))

        assert processor.items.get_quantity(item.id) == 0
        assert processor.item_state(item.id).status == "on_hold"

    def test_hooks_receive_committed_result(self, db_session, make_item):
        seen = []
        processor = TransactionProcessor(db_session, retry_backoff=0, hooks=[seen.append])
        item = make_item(quantity=1)

        result = sell(processor, (item.id, 1))

        assert seen == [result]
        assert db_session.get(Sale, result.document.id) is not None
