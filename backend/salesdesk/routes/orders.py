# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/salesdesk/routes/orders.py
"""Order API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import SalesDeskError
from ..models import ORDER_STATUSES
from ..services import order_service
from ..validation import ValidationError, parse_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_UPDATE_FIELDS = {"status", "discount_amount", "tax_amount", "notes"}


@orders_bp.post("/")
@require_actor
def create_order_route():
    """
    Create an order and post its stock movements.

    Body: {customer_id, items: [{product_id, quantity, unit_price}],
    discount_amount?, tax_amount?, notes?, order_date?}
    """
    data = request.get_json(silent=True) or {}

    try:
        if "customer_id" not in data:
            raise ValidationError("customer_id is required")
        if "items" not in data:
            raise ValidationError("items is required")

        order = order_service.create_order(
            customer_id=data["customer_id"],
            items=data["items"],
            actor_id=g.request_context.actor_id,
            discount_amount=data.get("discount_amount"),
            tax_amount=data.get("tax_amount"),
            notes=data.get("notes"),
            order_date=data.get("order_date"),
        )
    except (ValidationError, SalesDeskError) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"order": order.to_dict()}), 201


@orders_bp.get("/")
def list_orders_route():
    """List orders, newest first. Optional ?status= and ?customer_id= filters."""
    status = request.args.get("status")
    raw_customer_id = request.args.get("customer_id")

    try:
        if status is not None and status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        customer_id = parse_int(raw_customer_id, "customer_id", positive=True) if raw_customer_id else None
    except ValidationError as e:
        return jsonify(e.to_dict()), e.status_code

    orders = order_service.list_orders(status=status, customer_id=customer_id)
    return jsonify([o.to_dict() for o in orders]), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    """Get order with its line items."""
    try:
        order = order_service.get_order(order_id)
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "order": order.to_dict(),
        "items": [item.to_dict() for item in order.items],
    }), 200


@orders_bp.patch("/<int:order_id>")
@require_actor
def update_order_route(order_id: int):
    """
    Partial update: status, discount_amount, tax_amount, notes.

    Only keys present in the body change. total_amount is not recomputed.
    """
    data = request.get_json(silent=True) or {}

    try:
        unknown = sorted(set(data) - ORDER_UPDATE_FIELDS)
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
        if "notes" in data and data["notes"] is not None and not isinstance(data["notes"], str):
            raise ValidationError("notes must be a string")

        order = order_service.update_order(
            order_id=order_id,
            actor_id=g.request_context.actor_id,
            **{k: data[k] for k in ORDER_UPDATE_FIELDS if k in data},
        )
    except (ValidationError, SalesDeskError) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"order": order.to_dict()}), 200
