"""
Pytest fixtures for salesdesk backend tests.

Provides test database setup, the test client and a small catalog
(one customer, two products) most order and report tests start from.

Every fixture commits: the services open their own write transaction
(BEGIN IMMEDIATE on SQLite) and raise PendingWorkError on top of pending work.
"""

import pytest

from salesdesk import create_app
from salesdesk.config import TestingConfig
from salesdesk.extensions import db
from salesdesk.models import Customer, Product


ACTOR_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
def db_session(app):
    """Empty every table before the test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Ana Costa", email="ana@example.com", city="Lisbon")
    db_session.add(c)
    db_session.commit()
    return c


def make_product(session, *, sku, name, price_cents, stock_quantity, min_stock_level=0, cost_price_cents=None):
    """Insert a product directly (opening stock, no ledger rows) and commit."""
    p = Product(
        sku=sku,
        name=name,
        price_cents=price_cents,
        cost_price_cents=cost_price_cents if cost_price_cents is not None else price_cents // 2,
        stock_quantity=stock_quantity,
        min_stock_level=min_stock_level,
        is_active=True,
    )
    session.add(p)
    session.commit()
    return p


@pytest.fixture(scope='function')
def product_p(db_session):
    """19.99, 100 in stock."""
    return make_product(db_session, sku="P-001", name="Product P", price_cents=1999, stock_quantity=100)


@pytest.fixture(scope='function')
def product_q(db_session):
    """29.99, 50 in stock."""
    return make_product(db_session, sku="Q-001", name="Product Q", price_cents=2999, stock_quantity=50)


def actor_headers(actor_id: int = ACTOR_ID) -> dict:
    """Helper to create the caller identity header."""
    return {'X-Actor-Id': str(actor_id)}
