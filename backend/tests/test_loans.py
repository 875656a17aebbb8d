# Overview: Pytest coverage for conditional loans (holds, returns, conversion into a sale).

from decimal import Decimal

import pytest

from conftest import error_fields
from wardrobe.errors import InvalidTransitionError, NotFoundError, ValidationFailed
from wardrobe.models import ConditionalLoan, Sale
from wardrobe.validation import (
    ensure_valid,
    validate_loan,
    validate_loan_close,
    validate_loan_return,
    validate_write_off,
)


def open_loan(processor, customer_id, *lines, **overrides):
    payload = {
        "cliente_id": customer_id,
        "data_devolucao": "2099-12-31",
        "itens": [{"roupas_id": item_id, "quantidade": quantity} for item_id, quantity in lines],
    }
    payload.update(overrides)
    return processor.open_loan(ensure_valid(validate_loan(payload)))


def close(processor, loan_id, **payload):
    return processor.close_loan(loan_id, ensure_valid(validate_loan_close(payload)))


def give_back(processor, loan_id, item_id, quantity):
    request = ensure_valid(validate_loan_return({"roupas_id": item_id, "quantidade": quantity}))
    return processor.return_loan_item(loan_id, request)


class TestOpenLoan:
    def test_loan_holds_stock(self, processor, make_item, customer):
        item = make_item(quantity=3)

        result = open_loan(processor, customer.id, (item.id, 2))

        assert processor.items.get_quantity(item.id) == 1
        assert processor.item_state(item.id).status == "on_hold"
        assert result.kind == "conditional_loan"
        assert [(c.prior_status, c.new_status) for c in result.status_changes] == [("available", "on_hold")]
        loan = result.document
        assert loan.is_open
        assert loan.lines[0].outstanding == 2

    def test_lines_for_the_same_item_are_merged(self, processor, make_item, customer):
        item = make_item(quantity=3)

        loan = open_loan(processor, customer.id, (item.id, 1), (item.id, 2)).document

        assert [(line.item_id, line.quantity) for line in loan.lines] == [(item.id, 3)]
        assert processor.items.get_quantity(item.id) == 0

    def test_exceeding_stock_is_a_validation_failure(self, processor, make_item, customer, db_session):
        item = make_item(quantity=1)

        with pytest.raises(ValidationFailed) as excinfo:
            open_loan(processor, customer.id, (item.id, 2))

        assert excinfo.value.errors[0].field == "itens[0].quantidade"
        assert "(1)" in excinfo.value.errors[0].message
        assert processor.items.get_quantity(item.id) == 1
        assert db_session.query(ConditionalLoan).count() == 0

    def test_unknown_customer(self, processor, make_item):
        item = make_item(quantity=1)

        with pytest.raises(NotFoundError) as excinfo:
            open_loan(processor, 424242, (item.id, 1))
        assert excinfo.value.details["field"] == "cliente_id"

    def test_due_date_before_loan_date(self, processor, make_item, customer):
        item = make_item(quantity=1)

        with pytest.raises(ValidationFailed) as excinfo:
            open_loan(processor, customer.id, (item.id, 1), data_devolucao="2000-01-01")
        assert error_fields(excinfo.value.errors) == {"data_devolucao"}

    def test_written_off_item_cannot_be_loaned(self, processor, make_item, customer):
        item = make_item(quantity=2)
        processor.record_write_off(ensure_valid(validate_write_off(
            {"roupas_id": item.id, "quantidade": 1, "motivo": "furto"}
        )))

        with pytest.raises(InvalidTransitionError):
            open_loan(processor, customer.id, (item.id, 1))
        assert processor.items.get_quantity(item.id) == 1


class TestReturnLoan:
    def test_full_return_restores_stock(self, processor, make_item, customer):
        item = make_item(quantity=3)
        loan = open_loan(processor, customer.id, (item.id, 2)).document

        result = close(processor, loan.id, devolvido=True)

        assert processor.items.get_quantity(item.id) == 3
        assert processor.item_state(item.id).status == "available"
        assert result.document.returned is True
        assert result.document.converted is False
        assert result.document.closed_at is not None
        assert result.sale is None

    def test_item_held_by_two_loans(self, processor, make_item, customer):
        item = make_item(quantity=4)
        first = open_loan(processor, customer.id, (item.id, 1)).document
        second = open_loan(processor, customer.id, (item.id, 1)).document

        close(processor, first.id)
        assert processor.item_state(item.id).status == "on_hold"

        close(processor, second.id)
        assert processor.item_state(item.id).status == "available"
        assert processor.items.get_quantity(item.id) == 4

    def test_partial_returns_close_the_loan_when_settled(self, processor, make_item, customer):
        item = make_item(quantity=2)
        loan = open_loan(processor, customer.id, (item.id, 2)).document

        result = give_back(processor, loan.id, item.id, 1)
        assert result.document.is_open
        assert processor.items.get_quantity(item.id) == 1
        assert processor.item_state(item.id).status == "on_hold"

        result = give_back(processor, loan.id, item.id, 1)
        assert result.document.returned is True
        assert result.document.closed_at is not None
        assert processor.items.get_quantity(item.id) == 2
        assert processor.item_state(item.id).status == "available"

    def test_close_after_one_item_came_back_in_full(self, processor, make_item, customer):
        blouse = make_item(name="Blusa", quantity=1)
        skirt = make_item(name="Saia", quantity=1)
        loan = open_loan(processor, customer.id, (blouse.id, 1), (skirt.id, 1)).document
        give_back(processor, loan.id, blouse.id, 1)

        result = close(processor, loan.id, devolvido=True)

        assert result.document.returned is True
        assert [item.id for item in result.items] == [skirt.id]
        assert [(c.item_id, c.new_status) for c in result.status_changes] == [(skirt.id, "available")]
        assert processor.items.get_quantity(blouse.id) == 1
        assert processor.items.get_quantity(skirt.id) == 1
        assert processor.item_state(skirt.id).status == "available"
        lines = {line.item_id: line for line in result.document.lines}
        assert lines[blouse.id].returned_quantity == 1
        assert lines[skirt.id].returned_quantity == 1

    def test_return_more_than_outstanding(self, processor, make_item, customer):
        item = make_item(quantity=2)
        loan = open_loan(processor, customer.id, (item.id, 1)).document

        with pytest.raises(ValidationFailed) as excinfo:
            give_back(processor, loan.id, item.id, 2)
        assert error_fields(excinfo.value.errors) == {"quantidade"}

    def test_return_item_not_on_loan(self, processor, make_item, customer):
        item = make_item(quantity=1)
        other = make_item(name="Outro", quantity=1)
        loan = open_loan(processor, customer.id, (item.id, 1)).document

        with pytest.raises(ValidationFailed) as excinfo:
            give_back(processor, loan.id, other.id, 1)
        assert error_fields(excinfo.value.errors) == {"roupas_id"}

    def test_closed_loan_cannot_close_again(self, processor, make_item, customer):
        item = make_item(quantity=1)
        loan = open_loan(processor, customer.id, (item.id, 1)).document
        close(processor, loan.id)

        with pytest.raises(InvalidTransitionError):
            close(processor, loan.id)
        with pytest.raises(InvalidTransitionError):
            give_back(processor, loan.id, item.id, 1)
        assert processor.items.get_quantity(item.id) == 1

    def test_missing_loan(self, processor):
        with pytest.raises(NotFoundError):
            close(processor, 424242)


class TestConvertLoan:
    def test_convert_everything(self, processor, make_item, customer, db_session):
        item = make_item(quantity=2, price="59.90")
        loan = open_loan(processor, customer.id, (item.id, 2)).document

        result = close(processor, loan.id, devolvido=False, forma_pgto="Pix")

        sale = result.sale
        assert sale.conditional_loan_id == loan.id
        assert sale.total_value == Decimal("119.80")
        assert sale.paid_value == Decimal("119.80")
        assert sale.customer_name == "Maria Silva"
        assert sale.customer_phone == "(11) 98765-4321"
        assert [(line.item_id, line.quantity) for line in sale.lines] == [(item.id, 2)]

        assert result.document.converted is True
        assert result.document.returned is False
        assert result.to_dict()["document"]["venda_id"] == sale.id
        assert processor.items.get_quantity(item.id) == 0

        state = processor.item_state(item.id)
        assert state.status == "sold"
        assert (state.history[-1].transaction_kind, state.history[-1].transaction_id) == ("sale", sale.id)
        assert db_session.query(Sale).count() == 1

    def test_partial_conversion_returns_the_rest(self, processor, make_item, customer):
        dress = make_item(name="Vestido", quantity=1, price="150.00")
        scarf = make_item(name="Lenço", quantity=2, price="30.00")
        loan = open_loan(processor, customer.id, (dress.id, 1), (scarf.id, 2)).document

        result = close(
            processor,
            loan.id,
            devolvido=False,
            forma_pgto="Dinheiro",
            itens_vendidos=[{"roupas_id": scarf.id, "quantidade": 1}],
        )

        assert [(line.item_id, line.quantity) for line in result.sale.lines] == [(scarf.id, 1)]
        assert result.sale.total_value == Decimal("30.00")
        assert processor.items.get_quantity(dress.id) == 1
        assert processor.items.get_quantity(scarf.id) == 1
        assert processor.item_state(dress.id).status == "available"
        assert processor.item_state(scarf.id).status == "available"

        lines = {line.item_id: line for line in result.document.lines}
        assert (lines[dress.id].returned_quantity, lines[dress.id].sold_quantity) == (1, 0)
        assert (lines[scarf.id].returned_quantity, lines[scarf.id].sold_quantity) == (1, 1)
        kinds = {c.item_id: c.new_status for c in result.status_changes}
        assert kinds == {dress.id: "available", scarf.id: "available"}

    def test_convert_after_one_item_came_back_in_full(self, processor, make_item, customer):
        blouse = make_item(name="Blusa", quantity=1, price="70.00")
        skirt = make_item(name="Saia", quantity=1, price="90.00")
        loan = open_loan(processor, customer.id, (blouse.id, 1), (skirt.id, 1)).document
        give_back(processor, loan.id, blouse.id, 1)

        result = close(processor, loan.id, devolvido=False, forma_pgto="Pix")

        assert result.document.converted is True
        assert [(line.item_id, line.quantity) for line in result.sale.lines] == [(skirt.id, 1)]
        assert result.sale.total_value == Decimal("90.00")
        assert [(c.item_id, c.new_status) for c in result.status_changes] == [(skirt.id, "sold")]
        assert processor.item_state(blouse.id).status == "available"
        assert processor.items.get_quantity(blouse.id) == 1
        assert processor.item_state(skirt.id).status == "sold"

    def test_discount_sets_default_paid_value(self, processor, make_item, customer):
        item = make_item(quantity=1, price="100.00")
        loan = open_loan(processor, customer.id, (item.id, 1)).document

        result = close(processor, loan.id, devolvido=False, forma_pgto="Pix", desconto="15.00")

        assert result.sale.discount == Decimal("15.00")
        assert result.sale.paid_value == Decimal("85.00")

    def test_paid_above_total_is_rejected(self, processor, make_item, customer, db_session):
        item = make_item(quantity=1, price="100.00")
        loan = open_loan(processor, customer.id, (item.id, 1)).document

        with pytest.raises(ValidationFailed) as excinfo:
            close(processor, loan.id, devolvido=False, forma_pgto="Pix", valor_pago="100.01")

        assert error_fields(excinfo.value.errors) == {"valor_pago"}
        assert db_session.get(ConditionalLoan, loan.id).is_open
        assert processor.item_state(item.id).status == "on_hold"
        assert db_session.query(Sale).count() == 0

    def test_barter_conversion(self, processor, make_item, customer):
        item = make_item(quantity=1, price="100.00")
        loan = open_loan(processor, customer.id, (item.id, 1)).document

        result = close(
            processor, loan.id, devolvido=False, forma_pgto="Permuta", descricao_permuta="Troca por bolsa"
        )

        assert result.sale.total_value == Decimal("0")
        assert result.sale.paid_value == Decimal("0")
        assert result.sale.barter_description == "Troca por bolsa"

    def test_selection_outside_the_loan(self, processor, make_item, customer):
        item = make_item(quantity=2)
        other = make_item(name="Outro", quantity=1)
        loan = open_loan(processor, customer.id, (item.id, 1)).document

        with pytest.raises(ValidationFailed) as excinfo:
            close(
                processor,
                loan.id,
                devolvido=False,
                forma_pgto="Pix",
                itens_vendidos=[
                    {"roupas_id": item.id, "quantidade": 2},
                    {"roupas_id": other.id, "quantidade": 1},
                ],
            )

        assert error_fields(excinfo.value.errors) == {
            "itens_vendidos[0].quantidade",
            "itens_vendidos[1].roupas_id",
        }
