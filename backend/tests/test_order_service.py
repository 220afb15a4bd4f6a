# Overview: Pytest coverage for order creation, numbering and updates.

"""
Order Service Tests

create_order() validates customer, products and stock before writing, then
writes the order, its lines, the stock decrements and the sale ledger rows
as one unit. update_order() changes only what it is given.
"""

from datetime import datetime

import pytest

from salesdesk.errors import InsufficientStockError, InvalidTransitionError, NotFoundError
from salesdesk.models import DocumentSequence, InventoryTransaction, Order, OrderItem
from salesdesk.services import order_service
from salesdesk.validation import ValidationError

from conftest import ACTOR_ID, make_product


def _items(*lines):
    return [
        {"product_id": product.id, "quantity": qty, "unit_price": price}
        for product, qty, price in lines
    ]


def _create(customer, *lines, **kwargs):
    return order_service.create_order(
        customer_id=customer.id,
        items=_items(*lines),
        actor_id=ACTOR_ID,
        **kwargs,
    )


class TestCreateOrder:

    def test_totals_stock_and_ledger(self, db_session, customer, product_p, product_q):
        order = _create(
            customer,
            (product_p, 2, 19.99),
            (product_q, 1, 29.99),
            discount_amount=5.00,
            tax_amount=6.50,
        )

        assert order.total_amount_cents == 7147
        assert order.to_dict()["total_amount"] == 71.47
        assert order.status == "pending"
        assert order.user_id == ACTOR_ID
        assert product_p.stock_quantity == 98
        assert product_q.stock_quantity == 49

        txs = (
            db_session.query(InventoryTransaction)
            .filter_by(reference_type="order", reference_id=order.id)
            .order_by(InventoryTransaction.id)
            .all()
        )
        assert [(t.product_id, t.transaction_type, t.quantity) for t in txs] == [
            (product_p.id, "sale", -2),
            (product_q.id, "sale", -1),
        ]
        assert all(t.created_by == ACTOR_ID for t in txs)
        assert txs[0].notes == f"Sale from order {order.order_number}"

    def test_line_items_capture_price(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 3, "18.50"))

        items = order.items
        assert len(items) == 1
        assert items[0].unit_price_cents == 1850
        assert items[0].total_price_cents == 5550
        assert order.total_amount_cents == 5550

    def test_sequential_order_numbers(self, db_session, customer, product_p):
        first = _create(customer, (product_p, 1, 19.99))
        second = _create(customer, (product_p, 1, 19.99))

        assert first.order_number == "ORD-001"
        assert second.order_number == "ORD-002"

    def test_numbering_continues_after_existing_orders(self, db_session, customer, product_p):
        legacy = Order(
            customer_id=customer.id, user_id=ACTOR_ID, order_number="ORD-041",
            status="delivered", total_amount_cents=100,
        )
        db_session.add(legacy)
        db_session.commit()

        order = _create(customer, (product_p, 1, 19.99))

        assert order.order_number == "ORD-042"

    def test_numbers_grow_past_pad_width(self, db_session, customer, product_p):
        db_session.add(DocumentSequence(document_type="ORDER", next_number=1000))
        db_session.commit()

        order = _create(customer, (product_p, 1, 19.99))

        assert order.order_number == "ORD-1000"

    def test_short_last_line_writes_nothing(self, db_session, customer, product_p):
        scarce = make_product(db_session, sku="S-1", name="Scarce", price_cents=999, stock_quantity=1)

        with pytest.raises(InsufficientStockError) as exc_info:
            _create(customer, (product_p, 2, 19.99), (scarce, 5, 9.99))

        assert exc_info.value.details["product_name"] == "Scarce"
        assert exc_info.value.details["available"] == 1
        assert exc_info.value.details["requested"] == 5
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert db_session.query(InventoryTransaction).count() == 0
        assert product_p.stock_quantity == 100
        assert scarce.stock_quantity == 1

    def test_repeated_lines_are_checked_together(self, db_session, customer):
        widget = make_product(db_session, sku="W-1", name="Widget", price_cents=100, stock_quantity=3)

        with pytest.raises(InsufficientStockError):
            _create(customer, (widget, 2, 1.00), (widget, 2, 1.00))

        assert widget.stock_quantity == 3

    def test_unknown_customer(self, db_session, product_p):
        with pytest.raises(NotFoundError) as exc_info:
            order_service.create_order(
                customer_id=99999,
                items=_items((product_p, 1, 19.99)),
                actor_id=ACTOR_ID,
            )

        assert exc_info.value.details["entity"] == "customer"
        assert product_p.stock_quantity == 100

    def test_unknown_product(self, db_session, customer, product_p):
        with pytest.raises(NotFoundError) as exc_info:
            order_service.create_order(
                customer_id=customer.id,
                items=[
                    {"product_id": product_p.id, "quantity": 1, "unit_price": 19.99},
                    {"product_id": 99999, "quantity": 1, "unit_price": 1.00},
                ],
                actor_id=ACTOR_ID,
            )

        assert exc_info.value.details["entity"] == "product"
        assert db_session.query(Order).count() == 0
        assert product_p.stock_quantity == 100

    def test_failed_attempt_does_not_consume_a_number(self, db_session, customer, product_p):
        with pytest.raises(InsufficientStockError):
            _create(customer, (product_p, 500, 19.99))

        order = _create(customer, (product_p, 1, 19.99))

        assert order.order_number == "ORD-001"

    def test_discount_larger_than_subtotal_is_kept(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 1, 19.99), discount_amount=25)

        assert order.total_amount_cents == -501

    @pytest.mark.parametrize("items", [
        [],
        "not-a-list",
        [{"product_id": 1, "quantity": 0, "unit_price": 1}],
        [{"product_id": 1, "quantity": 1, "unit_price": 0}],
        [{"product_id": 1, "quantity": 1.5, "unit_price": 1}],
        [{"product_id": 1, "unit_price": 1}],
    ])
    def test_rejects_malformed_items(self, db_session, customer, items):
        with pytest.raises(ValidationError):
            order_service.create_order(customer_id=customer.id, items=items, actor_id=ACTOR_ID)

    def test_rejects_negative_tax(self, db_session, customer, product_p):
        with pytest.raises(ValidationError):
            _create(customer, (product_p, 1, 19.99), tax_amount=-1)

    def test_explicit_order_date(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 1, 19.99), order_date="2024-03-05T14:30:00Z")

        assert order.order_date == datetime(2024, 3, 5, 14, 30)


class TestUpdateOrder:

    def test_discount_and_tax_do_not_recompute_total(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 2, 19.99), discount_amount=1, tax_amount=2)
        assert order.total_amount_cents == 4098

        updated = order_service.update_order(
            order_id=order.id, actor_id=ACTOR_ID, discount_amount=10, tax_amount=0,
        )

        assert updated.discount_amount_cents == 1000
        assert updated.tax_amount_cents == 0
        assert updated.total_amount_cents == 4098

    def test_only_given_fields_change(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 1, 19.99), notes="ring the bell", tax_amount=1)

        updated = order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status="confirmed")

        assert updated.status == "confirmed"
        assert updated.notes == "ring the bell"
        assert updated.tax_amount_cents == 100

    def test_forward_lifecycle(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 1, 19.99))

        for status in ("confirmed", "shipped", "delivered"):
            order = order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status=status)
            assert order.status == status

        assert product_p.stock_quantity == 99

    @pytest.mark.parametrize("path,target", [
        ((), "shipped"),
        ((), "delivered"),
        (("confirmed",), "pending"),
        (("confirmed",), "cancelled"),
        (("confirmed", "shipped", "delivered"), "cancelled"),
        (("cancelled",), "confirmed"),
    ])
    def test_illegal_transitions(self, db_session, customer, product_p, path, target):
        order = _create(customer, (product_p, 1, 19.99))
        for status in path:
            order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status=status)
        current = order.status

        with pytest.raises(InvalidTransitionError):
            order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status=target)

        assert order.status == current

    def test_same_status_is_a_no_op(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 1, 19.99))
        order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status="cancelled")

        again = order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status="cancelled")

        assert again.status == "cancelled"
        assert product_p.stock_quantity == 100

    def test_cancel_restocks_each_line(self, db_session, customer, product_p, product_q):
        order = _create(customer, (product_p, 2, 19.99), (product_q, 1, 29.99))

        order_service.update_order(order_id=order.id, actor_id=99, status="cancelled")

        assert product_p.stock_quantity == 100
        assert product_q.stock_quantity == 50
        returns = (
            db_session.query(InventoryTransaction)
            .filter_by(reference_id=order.id, transaction_type="return")
            .order_by(InventoryTransaction.id)
            .all()
        )
        assert [(t.product_id, t.quantity, t.created_by) for t in returns] == [
            (product_p.id, 2, 99),
            (product_q.id, 1, 99),
        ]

    def test_unknown_status_value(self, db_session, customer, product_p):
        order = _create(customer, (product_p, 1, 19.99))

        with pytest.raises(ValidationError):
            order_service.update_order(order_id=order.id, actor_id=ACTOR_ID, status="lost")

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.update_order(order_id=99999, actor_id=ACTOR_ID, notes="x")


class TestOrderQueries:

    def test_get_order_with_items(self, db_session, customer, product_p, product_q):
        created = _create(customer, (product_p, 1, 19.99), (product_q, 2, 29.99))

        order = order_service.get_order(created.id)

        assert [i.product_id for i in order.items] == [product_p.id, product_q.id]

    def test_list_filters(self, db_session, customer, product_p):
        a = _create(customer, (product_p, 1, 19.99), order_date="2024-01-01T10:00:00")
        b = _create(customer, (product_p, 1, 19.99), order_date="2024-01-02T10:00:00")
        order_service.update_order(order_id=a.id, actor_id=ACTOR_ID, status="confirmed")

        assert [o.id for o in order_service.list_orders()] == [b.id, a.id]
        assert [o.id for o in order_service.list_orders(status="confirmed")] == [a.id]
        assert order_service.list_orders(customer_id=customer.id + 1) == []

    def test_get_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.get_order(99999)
