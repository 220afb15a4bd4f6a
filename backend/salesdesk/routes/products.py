# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/salesdesk/routes/products.py
"""
Product catalog routes.

stock_quantity is accepted on create only (opening stock). After that,
stock moves through /api/inventory/adjust and orders.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import SalesDeskError
from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_bool_param,
    ValidationError,
)

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "price", "cost_price",
        "stock_quantity", "min_stock_level", "category", "is_active",
    },
    required_on_create={"sku", "name", "price", "cost_price"},
    money_fields={"price": "price_cents", "cost_price": "cost_price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "price", "cost_price",
        "min_stock_level", "category", "is_active",
    },
    money_fields={"price": "price_cents", "cost_price": "cost_price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """List products. ?active=true limits to active products."""
    try:
        active_only = parse_bool_param(request.args.get("active"), "active", default=False)
    except ValidationError as e:
        return jsonify(e.to_dict()), e.status_code

    products = products_service.list_products(active_only=active_only)
    return jsonify([p.to_dict() for p in products]), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_actor
def create_product_route():
    """Create a new product."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(
            patch=patch,
            default_min_stock_level=current_app.config.get("LOW_STOCK_DEFAULT_MIN_LEVEL", 0),
        )
    except (ValidationError, SalesDeskError) as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(created.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    """Update catalog fields of a product."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except (ValidationError, SalesDeskError) as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(updated.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_actor
def delete_product_route(product_id: int):
    """Delete a product nothing refers to (409 otherwise)."""
    try:
        products_service.delete_product(product_id=product_id)
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"ok": True}), 200
