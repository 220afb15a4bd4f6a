# backend/salesdesk/services/products_service.py
"""
Products Service

Catalog fields only. stock_quantity is set once at creation (opening stock)
and afterwards moves exclusively through inventory_service.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, DuplicateKeyError, NotFoundError
from ..extensions import db
from ..models import Product, OrderItem, InventoryTransaction
from ..validation import ValidationError

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "price_cents",
    "cost_price_cents",
    "min_stock_level",
    "category",
    "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError(
            f"Product with id {product_id} not found",
            details={"entity": "product", "id": product_id},
        )
    return p


def list_products(*, active_only: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise DuplicateKeyError(f"Product with SKU '{sku}' already exists", details={"sku": sku})


def _commit_catalog_change(sku: str | None) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # Lost a race with a concurrent insert of the same SKU
        raise DuplicateKeyError(f"Product with SKU '{sku}' already exists", details={"sku": sku})


def create_product(*, patch: dict, default_min_stock_level: int = 0) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        DuplicateKeyError: If SKU already exists
    """
    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")
    _ensure_sku_free(sku)

    p = Product(
        stock_quantity=patch.get("stock_quantity", 0),
        min_stock_level=default_min_stock_level,
        is_active=True,
    )
    apply_product_patch(p, patch)

    db.session.add(p)
    _commit_catalog_change(sku)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update catalog fields of a product.

    Raises:
        NotFoundError: If the product does not exist
        DuplicateKeyError: If the new SKU is taken
    """
    p = get_product(product_id)

    # SKU uniqueness enforcement if changing SKU
    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_free(patch["sku"], exclude_id=p.id)

    apply_product_patch(p, patch)
    _commit_catalog_change(p.sku)
    return p


def delete_product(*, product_id: int) -> None:
    """
    Hard-delete a product that nothing refers to.

    Products on an order or with stock history are refused: the order lines
    and the audit log must keep pointing at a real product. Deactivate
    (is_active=false) those instead.
    """
    p = get_product(product_id)

    if db.session.query(OrderItem.id).filter(OrderItem.product_id == p.id).first():
        raise ConflictError(
            "Cannot delete product: product is referenced in existing orders",
            details={"product_id": p.id},
        )
    if db.session.query(InventoryTransaction.id).filter(InventoryTransaction.product_id == p.id).first():
        raise ConflictError(
            "Cannot delete product: product has inventory history",
            details={"product_id": p.id},
        )

    db.session.delete(p)
    db.session.commit()
