# Overview: Pytest coverage for the retrying unit-of-work helper and concurrent order placement.

import threading

import pytest
from sqlalchemy.exc import OperationalError

from salesdesk import create_app
from salesdesk.config import TestingConfig
from salesdesk.errors import InsufficientStockError
from salesdesk.extensions import db
from salesdesk.models import Customer, Order, Product
from salesdesk.services import inventory_service, order_service
from salesdesk.services.concurrency import PendingWorkError, run_with_retry

from conftest import ACTOR_ID, make_product


def _locked():
    return OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))


def test_retries_operational_error_then_succeeds(db_session):
    calls = []

    def op():
        calls.append(1)
        if len(calls) < 3:
            raise _locked()
        return "done"

    assert run_with_retry(op, attempts=3, backoff_base=0) == "done"
    assert len(calls) == 3


def test_gives_up_after_attempts(db_session):
    calls = []

    def op():
        calls.append(1)
        raise _locked()

    with pytest.raises(OperationalError):
        run_with_retry(op, attempts=2, backoff_base=0)
    assert len(calls) == 2


def test_other_errors_are_not_retried(db_session):
    calls = []

    def op():
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        run_with_retry(op, attempts=3, backoff_base=0)
    assert len(calls) == 1


def test_attempts_default_to_config(app, db_session):
    calls = []

    def op():
        calls.append(1)
        raise _locked()

    app.config["TX_RETRY_ATTEMPTS"] = 2
    try:
        with pytest.raises(OperationalError):
            run_with_retry(op, backoff_base=0)
    finally:
        app.config["TX_RETRY_ATTEMPTS"] = 3
    assert len(calls) == 2


class TestPendingWork:

    @pytest.mark.parametrize("flush", [True, False])
    def test_write_refuses_callers_uncommitted_rows(self, db_session, product_p, flush):
        product_id = product_p.id
        pending = Customer(name="Pending Buyer")
        db_session.add(pending)
        if flush:
            db_session.flush()

        with pytest.raises(PendingWorkError):
            order_service.create_order(
                customer_id=pending.id if flush else 1,
                items=[{"product_id": product_id, "quantity": 1, "unit_price": 19.99}],
                actor_id=ACTOR_ID,
            )

        # The caller's work is still there to commit
        db_session.commit()
        assert db_session.query(Customer).filter_by(name="Pending Buyer").count() == 1
        assert db_session.get(Product, product_id).stock_quantity == 100
        assert db_session.query(Order).count() == 0

    def test_not_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            raise PendingWorkError("pending")

        with pytest.raises(PendingWorkError):
            run_with_retry(op, attempts=3, backoff_base=0)
        assert len(calls) == 1


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database so worker threads share one store."""
    config = type("FileDatabaseConfig", (TestingConfig,), {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'salesdesk.sqlite3'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        "TX_RETRY_ATTEMPTS": 10,
    })
    file_app = create_app(config)
    with file_app.app_context():
        db.create_all()
    yield file_app
    with file_app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestConcurrentOrders:

    def test_parallel_orders_cannot_oversell(self, file_app):
        with file_app.app_context():
            customer = Customer(name="Rush Buyer")
            db.session.add(customer)
            db.session.commit()
            product = make_product(db.session, sku="LAST", name="Last units", price_cents=500, stock_quantity=10)
            customer_id, product_id = customer.id, product.id
            db.session.remove()

        workers = 4
        barrier = threading.Barrier(workers)
        results = []

        def place_order():
            with file_app.app_context():
                try:
                    barrier.wait()
                    order = order_service.create_order(
                        customer_id=customer_id,
                        items=[{"product_id": product_id, "quantity": 4, "unit_price": 5.00}],
                        actor_id=ACTOR_ID,
                    )
                    results.append(order.order_number)
                except InsufficientStockError:
                    results.append("insufficient")
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=place_order) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert results.count("insufficient") == 2
        assert sorted(r for r in results if r != "insufficient") == ["ORD-001", "ORD-002"]

        with file_app.app_context():
            assert db.session.get(Product, product_id).stock_quantity == 2
            assert db.session.query(Order).count() == 2
            assert inventory_service.get_ledger_delta(product_id) == -8
            assert inventory_service.get_inventory_summary(product_id)["opening_quantity"] == 10
            db.session.remove()
