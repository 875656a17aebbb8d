# Overview: Pytest coverage for write-offs (permanent stock removal).

import pytest

from conftest import error_fields
from wardrobe.errors import InvalidTransitionError, NotFoundError, ValidationFailed
from wardrobe.models import WriteOff
from wardrobe.validation import ensure_valid, validate_loan, validate_write_off


def write_off(processor, **payload):
    payload.setdefault("motivo", "avaria")
    payload.setdefault("quantidade", 1)
    return processor.record_write_off(ensure_valid(validate_write_off(payload)))


class TestWriteOff:
    def test_write_off_removes_stock_and_marks_item(self, processor, make_item):
        item = make_item(quantity=4)

        result = write_off(processor, roupas_id=item.id, quantidade=1, motivo="furto", observacao="vitrine")

        assert processor.items.get_quantity(item.id) == 3
        state = processor.item_state(item.id)
        assert state.status == "written_off"
        assert (state.history[-1].transaction_kind, state.history[-1].transaction_id) == (
            "write_off",
            result.document.id,
        )
        data = result.to_dict()["document"]
        assert (data["quantidade"], data["motivo"], data["observacao"]) == (1, "furto", "vitrine")

    def test_write_off_by_name(self, processor, make_item):
        item = make_item(name="Cinto Couro", quantity=2)

        write_off(processor, nome_item="Cinto Couro", quantidade=2)

        assert processor.items.get_quantity(item.id) == 0

    def test_more_than_on_hand_is_rejected(self, processor, make_item, db_session):
        item = make_item(quantity=2)

        with pytest.raises(ValidationFailed) as excinfo:
            write_off(processor, roupas_id=item.id, quantidade=3)

        assert error_fields(excinfo.value.errors) == {"quantidade"}
        assert processor.items.get_quantity(item.id) == 2
        assert db_session.query(WriteOff).count() == 0

    def test_written_off_is_terminal(self, processor, make_item):
        item = make_item(quantity=3)
        write_off(processor, roupas_id=item.id)

        with pytest.raises(InvalidTransitionError):
            write_off(processor, roupas_id=item.id)
        assert processor.items.get_quantity(item.id) == 2

    def test_held_item_can_be_written_off(self, processor, make_item, customer):
        item = make_item(quantity=2)
        processor.open_loan(ensure_valid(validate_loan({
            "cliente_id": customer.id,
            "data_devolucao": "2099-12-31",
            "itens": [{"roupas_id": item.id, "quantidade": 1}],
        })))

        write_off(processor, roupas_id=item.id)

        assert processor.item_state(item.id).status == "written_off"
        assert processor.items.get_quantity(item.id) == 0

    def test_unknown_item(self, processor):
        with pytest.raises(NotFoundError) as excinfo:
            write_off(processor, nome_item="Inexistente")
        assert excinfo.value.details["field"] == "nome_item"
