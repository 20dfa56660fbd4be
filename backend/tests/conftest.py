"""
Pytest fixtures for stock ledger tests.

Provides an in-memory application per test, catalog factories, a seeding
helper that keeps stock and ledger in step, and the test client.
"""

import pytest

from stockledger import create_app
from stockledger.enums import MovementType, ReferenceType
from stockledger.extensions import db
from stockledger.models import Product, Store
from stockledger.services import ledger_service

ACTOR_ID = 7


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LEDGER_RETRY_BACKOFF': 0,
        'ADJUSTMENT_APPROVAL_POLICY': 'auto',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def actor_headers():
    return {'X-Actor-Id': str(ACTOR_ID)}


@pytest.fixture(scope='function')
def store(app):
    store = Store(name="Main Street", location="1 Main St")
    db.session.add(store)
    db.session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(app):
    store = Store(name="Harbour Mall", location="Unit 4")
    db.session.add(store)
    db.session.commit()
    return store


@pytest.fixture(scope='function')
def make_product(app):
    """Factory for products; cost defaults to 250 cents."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "sku": f"SKU-{counter['n']:04d}",
            "name": f"Product {counter['n']}",
            "cost_price_cents": 250,
            "selling_price_cents": 500,
            "min_stock_level": 5,
        }
        fields.update(overrides)
        product = Product(**fields)
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product()


@pytest.fixture(scope='function')
def seed_stock(app):
    """Receive stock through the ledger so Stock and movements agree."""
    def _seed(product, store, quantity):
        ledger_service.post_movement(
            product_id=product.id,
            store_id=store.id,
            movement_type=MovementType.IN,
            quantity=quantity,
            reference_type=ReferenceType.PURCHASE,
            reference_id=None,
            actor_id=ACTOR_ID,
            notes="Opening stock",
        )
        db.session.commit()

    return _seed
