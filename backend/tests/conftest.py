"""
Pytest fixtures for the retail POS backend tests.

Every test gets its own application and therefore its own in-memory
database; settings are written to a per-test temporary file.
"""

import pytest

from retailpos import create_app
from retailpos.extensions import db
from retailpos.models import Customer, Product
from retailpos.services import document_service


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SETTINGS_FILE': str(tmp_path / 'settings.json'),
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Application context with the store's session for service-level tests."""
    with app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture(scope='function')
def product(db_session):
    """Product P1 with 100 units on hand."""
    p = Product(sku="P1", name="Carrelage Blanc 30x30", price_cents=2000, vat_rate=21, stock_qty=100)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def second_product(db_session):
    """Product P2, reduced VAT rate, 50 units on hand."""
    p = Product(sku="P2", name="Peinture Blanche 10L", price_cents=4250, vat_rate=6, stock_qty=50)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Jean Dupont", vat_number="BE0123456789", address="Rue de la Paix 123, 1000 Brussels")
    db_session.add(c)
    db_session.commit()
    return c


def make_document(doc_type: str, product, qty: int, unit_price_cents: int = 2000, **extra):
    """Create a document with a single line for product."""
    payload = {
        "doc_type": doc_type,
        "items": [{
            "product_id": product.id,
            "qty": qty,
            "unit_price_cents": unit_price_cents,
            "vat_rate": 21,
        }],
    }
    payload.update(extra)
    return document_service.create_document(payload)


def stock_of(product_id: int) -> int:
    """Fresh read of a product's on-hand quantity."""
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_qty
