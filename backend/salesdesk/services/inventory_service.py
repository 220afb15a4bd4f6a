# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/salesdesk/services/inventory_service.py

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import InsufficientStockError, NotFoundError
from ..extensions import db
from ..models import Product, InventoryTransaction, TRANSACTION_TYPES
from ..validation import ValidationError
from salesdesk.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
"""
Inventory Invariants (authoritative)

Stock model:
- Product.stock_quantity is the on-hand figure and may never go negative.
- It changes only through apply_stock_change(), which writes the product
  row and exactly one InventoryTransaction with the same signed delta in
  the same DB transaction.
- Reconciliation: initial stock + SUM(transactions.quantity) == stock_quantity.

Transaction types:
- purchase / adjustment / return: allowed for user-facing adjustments.
- sale: internal only, written by the order service.

Audit:
- inventory_transactions is append-only (no updates/deletes).
"""

logger = logging.getLogger(__name__)

USER_ADJUSTMENT_TYPES = ("purchase", "adjustment", "return")


def lock_product(product_id: int) -> Product:
    """Load a product under row lock, re-reading committed stock."""
    query = db.session.query(Product).filter_by(id=product_id)
    product = lock_for_update(query).populate_existing().first()
    if product is None:
        raise NotFoundError(
            f"Product with id {product_id} not found",
            details={"entity": "product", "id": product_id},
        )
    return product


def apply_stock_change(
    *,
    product_id: int,
    quantity_delta: int,
    transaction_type: str,
    actor_id: int,
    note: str | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
) -> InventoryTransaction:
    """Core stock change without retry or commit.

    Called by adjust_inventory() and by the order service inside their own
    transaction. Raises before writing anything if the product is missing or
    the change would make stock negative.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}")
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int) or quantity_delta == 0:
        raise ValidationError("quantity must be a non-zero integer")

    product = lock_product(product_id)

    new_quantity = product.stock_quantity + quantity_delta
    if new_quantity < 0:
        logger.warning(
            "Rejected stock change for product %s: available=%s delta=%s",
            product.id, product.stock_quantity, quantity_delta,
        )
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}. "
            f"Available: {product.stock_quantity}, Required: {-quantity_delta}",
            details={
                "product_id": product.id,
                "product_name": product.name,
                "available": product.stock_quantity,
                "requested": -quantity_delta,
            },
        )

    product.stock_quantity = new_quantity
    product.updated_at = utcnow()

    tx = InventoryTransaction(
        product_id=product.id,
        transaction_type=transaction_type,
        quantity=quantity_delta,
        reference_id=reference_id,
        reference_type=reference_type,
        notes=note,
        created_by=actor_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def adjust_inventory(
    *,
    product_id: int,
    quantity_delta: int,
    transaction_type: str,
    actor_id: int,
    note: str | None = None,
) -> InventoryTransaction:
    """
    User-facing stock adjustment (receiving, corrections, customer returns).

    'sale' is rejected here; sales only come from orders.
    """
    if transaction_type not in USER_ADJUSTMENT_TYPES:
        raise ValidationError(
            f"transaction_type must be one of: {', '.join(USER_ADJUSTMENT_TYPES)}"
        )

    def _op():
        begin_write()
        tx = apply_stock_change(
            product_id=product_id,
            quantity_delta=quantity_delta,
            transaction_type=transaction_type,
            actor_id=actor_id,
            note=note,
        )
        db.session.commit()
        return tx

    tx = run_with_retry(_op)
    logger.info(
        "Stock adjusted: product=%s delta=%s type=%s actor=%s",
        product_id, quantity_delta, transaction_type, actor_id,
    )
    return tx


def get_low_stock_products() -> list[Product]:
    """Products at or below their minimum level, active or not."""
    return (
        db.session.query(Product)
        .filter(Product.stock_quantity <= Product.min_stock_level)
        .order_by(Product.id.asc())
        .all()
    )


def list_inventory_transactions(product_id: int | None = None) -> list[InventoryTransaction]:
    """Most recent first; rows written in the same instant keep insertion order."""
    q = db.session.query(InventoryTransaction)
    if product_id is not None:
        q = q.filter(InventoryTransaction.product_id == product_id)
    return q.order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    ).all()


def get_ledger_delta(product_id: int) -> int:
    """SUM(quantity) over a product's transactions."""
    total = db.session.query(
        func.coalesce(func.sum(InventoryTransaction.quantity), 0)
    ).filter(InventoryTransaction.product_id == product_id).scalar()
    return int(total or 0)


def get_inventory_summary(product_id: int) -> dict:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(
            f"Product with id {product_id} not found",
            details={"entity": "product", "id": product_id},
        )
    ledger_delta = get_ledger_delta(product_id)
    return {
        "product_id": product.id,
        "sku": product.sku,
        "stock_quantity": product.stock_quantity,
        "min_stock_level": product.min_stock_level,
        "is_low_stock": product.is_low_stock,
        "ledger_delta": ledger_delta,
        # stock level before the first recorded transaction
        "opening_quantity": product.stock_quantity - ledger_delta,
    }
