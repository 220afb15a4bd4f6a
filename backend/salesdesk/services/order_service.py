"""
Order Service - order capture and its stock effects

WHY: An order, its line items, every stock decrement and every matching
inventory transaction are one unit of work. Validation happens first;
the writes then run in a single DB transaction that either commits
together or rolls back together.
"""

from __future__ import annotations

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateKeyError, InvalidTransitionError, NotFoundError, InsufficientStockError
from ..extensions import db
from ..models import Order, OrderItem, Product, ORDER_STATUSES
from ..validation import ValidationError, clean_order_items, parse_amount, parse_int
from salesdesk.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .customers_service import customer_exists
from .document_service import next_document_number, parse_document_number
from .inventory_service import apply_stock_change, lock_product

logger = logging.getLogger(__name__)

ORDER_DOCUMENT_TYPE = "ORDER"

# Forward-only lifecycle. delivered and cancelled are terminal.
ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"shipped"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}

UNSET = object()


def _last_order_number_seed() -> int:
    """Continue after the newest existing order when the sequence row is new."""
    last = db.session.query(Order.order_number).order_by(Order.id.desc()).first()
    return parse_document_number(last[0] if last else None) + 1


def _allocate_order_number() -> str:
    config = current_app.config
    return next_document_number(
        document_type=ORDER_DOCUMENT_TYPE,
        prefix=config.get("ORDER_NUMBER_PREFIX", "ORD"),
        pad=config.get("ORDER_NUMBER_PAD", 3),
        seed=_last_order_number_seed,
    )


def _load_products(lines: list[dict]) -> dict[int, Product]:
    products: dict[int, Product] = {}
    for line in lines:
        product_id = line["product_id"]
        if product_id not in products:
            products[product_id] = lock_product(product_id)
    return products


def _validate_stock(lines: list[dict], products: dict[int, Product]) -> None:
    """Check summed quantity per product so repeated lines can't oversell."""
    requested: dict[int, int] = {}
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.stock_quantity < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for product {product.name}. "
                f"Available: {product.stock_quantity}, Required: {quantity}",
                details={
                    "product_id": product.id,
                    "product_name": product.name,
                    "available": product.stock_quantity,
                    "requested": quantity,
                },
            )


def _parse_order_date(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("order_date must be an ISO-8601 datetime")
    raise ValidationError("order_date must be an ISO-8601 datetime")


def create_order(
    *,
    customer_id: int,
    items: list[dict],
    actor_id: int,
    discount_amount=None,
    tax_amount=None,
    notes: str | None = None,
    order_date=None,
) -> Order:
    """
    Create an order with its line items and post the sale against stock.

    Validation order: customer exists, every product exists, every product
    has enough stock. Nothing is written until all three pass.

    total_amount = sum(quantity * unit_price) + tax_amount - discount_amount
    (no floor at zero).
    """
    customer_id = parse_int(customer_id, "customer_id", positive=True)
    lines = clean_order_items(items)
    discount_cents = parse_amount(discount_amount, "discount_amount") if discount_amount is not None else 0
    tax_cents = parse_amount(tax_amount, "tax_amount") if tax_amount is not None else 0
    order_dt = _parse_order_date(order_date)

    def _op():
        begin_write()

        if not customer_exists(customer_id):
            raise NotFoundError(
                f"Customer with id {customer_id} not found",
                details={"entity": "customer", "id": customer_id},
            )

        products = _load_products(lines)
        _validate_stock(lines, products)

        order_number = _allocate_order_number()
        items_total = sum(line["quantity"] * line["unit_price_cents"] for line in lines)

        order = Order(
            customer_id=customer_id,
            user_id=actor_id,
            order_number=order_number,
            status="pending",
            total_amount_cents=items_total + tax_cents - discount_cents,
            discount_amount_cents=discount_cents,
            tax_amount_cents=tax_cents,
            notes=notes,
            order_date=order_dt or utcnow(),
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                total_price_cents=line["quantity"] * line["unit_price_cents"],
            ))
            apply_stock_change(
                product_id=line["product_id"],
                quantity_delta=-line["quantity"],
                transaction_type="sale",
                actor_id=actor_id,
                note=f"Sale from order {order_number}",
                reference_id=order.id,
                reference_type="order",
            )

        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except IntegrityError as exc:
        raise DuplicateKeyError(
            "Order could not be saved: duplicate key",
            details={"reason": str(exc.orig)},
        ) from exc

    logger.info(
        "Order %s created: customer=%s lines=%d total_cents=%s actor=%s",
        order.order_number, customer_id, len(lines), order.total_amount_cents, actor_id,
    )
    return order


def _restock_cancelled_order(order: Order, actor_id: int) -> None:
    for item in order.items:
        apply_stock_change(
            product_id=item.product_id,
            quantity_delta=item.quantity,
            transaction_type="return",
            actor_id=actor_id,
            note=f"Restock from cancelled order {order.order_number}",
            reference_id=order.id,
            reference_type="order",
        )


def update_order(
    *,
    order_id: int,
    actor_id: int,
    status=UNSET,
    discount_amount=UNSET,
    tax_amount=UNSET,
    notes=UNSET,
) -> Order:
    """
    Partial update of an order. Only arguments that are passed change.

    - total_amount is NOT recomputed when discount/tax change.
    - status follows ALLOWED_TRANSITIONS; re-sending the current status is a
      no-op. Moving to cancelled puts every line's quantity back in stock
      (type 'return') in the same transaction.
    - updated_at is always bumped.
    """
    if status is not UNSET and status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    discount_cents = parse_amount(discount_amount, "discount_amount") if discount_amount is not UNSET else UNSET
    tax_cents = parse_amount(tax_amount, "tax_amount") if tax_amount is not UNSET else UNSET

    def _op():
        begin_write()
        order = (
            lock_for_update(db.session.query(Order).filter_by(id=order_id))
            .populate_existing()
            .first()
        )
        if not order:
            raise NotFoundError(
                f"Order with id {order_id} not found",
                details={"entity": "order", "id": order_id},
            )

        previous_status = order.status
        if status is not UNSET and status != order.status:
            if status not in ALLOWED_TRANSITIONS[order.status]:
                raise InvalidTransitionError(
                    f"Cannot change order status from {order.status} to {status}",
                    details={"from_status": order.status, "to_status": status},
                )
            order.status = status
            if status == "cancelled":
                _restock_cancelled_order(order, actor_id)

        if discount_cents is not UNSET:
            order.discount_amount_cents = discount_cents
        if tax_cents is not UNSET:
            order.tax_amount_cents = tax_cents
        if notes is not UNSET:
            order.notes = notes

        order.updated_at = utcnow()
        db.session.commit()
        return order, previous_status

    order, previous_status = run_with_retry(_op)
    if previous_status != order.status:
        logger.info(
            "Order %s status %s -> %s (actor=%s)",
            order.order_number, previous_status, order.status, actor_id,
        )
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(
            f"Order with id {order_id} not found",
            details={"entity": "order", "id": order_id},
        )
    return order


def list_orders(*, status: str | None = None, customer_id: int | None = None) -> list[Order]:
    """Newest first."""
    q = db.session.query(Order)
    if status is not None:
        q = q.filter(Order.status == status)
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    return q.order_by(Order.order_date.desc(), Order.id.desc()).all()
