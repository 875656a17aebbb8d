"""
Pytest fixtures for the wardrobe ledger tests.

Provides the in-memory application, a per-test clean database, a
TransactionProcessor bound to the test session and item/customer factories.
"""

from decimal import Decimal

import pytest

from wardrobe import create_app
from wardrobe.extensions import db
from wardrobe.models import Item
from wardrobe.services.transaction_processor import TransactionProcessor
from wardrobe.validation import (
    CustomerRequest,
    ItemDescriptor,
    ensure_valid,
    validate_sale,
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def processor(db_session):
    """Processor on the test session, without retry backoff or hooks."""
    return TransactionProcessor(db_session, retry_attempts=3, retry_backoff=0)


@pytest.fixture(scope='function')
def make_item(db_session, processor):
    """
    Register an item and seed its on-hand quantity.

    The quantity is written straight to the row: tests that care about how
    stock arrives go through purchases instead.
    """
    def _make(name="Camisa Polo", quantity=0, price="59.90", **fields) -> Item:
        descriptor = ItemDescriptor(name=name, price=Decimal(price), **fields)
        item = processor.register_item(descriptor).document
        if quantity:
            item.quantity = quantity
            db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def customer(processor):
    request = CustomerRequest(name="Maria Silva", email="maria@example.com", phone="(11) 98765-4321")
    return processor.register_customer(request).document


def sale_payload(*lines, **overrides) -> dict:
    """Sale body; each line is (item_id, quantity)."""
    payload = {
        "forma_pgto": "Pix",
        "valor_total": "100.00",
        "valor_pago": "100.00",
        "itens": [{"roupas_id": item_id, "quantidade": quantity} for item_id, quantity in lines],
    }
    payload.update(overrides)
    return payload


def sell(processor, *lines, **overrides):
    return processor.create_sale(ensure_valid(validate_sale(sale_payload(*lines, **overrides))))


def error_fields(errors) -> set:
    return {error.field for error in errors}
