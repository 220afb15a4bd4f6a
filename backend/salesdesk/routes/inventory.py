# backend/salesdesk/routes/inventory.py
"""
Inventory routes: manual stock adjustments and stock queries.

Writes require an identified caller (X-Actor-Id); the actor is recorded as
created_by on the inventory transaction.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import SalesDeskError
from ..services import inventory_service
from ..validation import ValidationError, parse_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
@require_actor
def adjust_inventory_route():
    """
    Adjust stock (purchase receipts, corrections, customer returns).

    Body: {product_id, quantity (signed, non-zero), transaction_type
    (adjustment | purchase | return), notes?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        for key in ("product_id", "quantity", "transaction_type"):
            if key not in payload:
                raise ValidationError(f"{key} is required")
        product_id = parse_int(payload["product_id"], "product_id", positive=True)
        quantity = parse_int(payload["quantity"], "quantity", nonzero=True)
        notes = payload.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")

        tx = inventory_service.adjust_inventory(
            product_id=product_id,
            quantity_delta=quantity,
            transaction_type=payload["transaction_type"],
            actor_id=g.request_context.actor_id,
            note=notes,
        )
        summary = inventory_service.get_inventory_summary(product_id)
    except (ValidationError, SalesDeskError) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"transaction": tx.to_dict(), "summary": summary}), 201


@inventory_bp.get("/low-stock")
def low_stock_route():
    """Products with stock_quantity <= min_stock_level."""
    products = inventory_service.get_low_stock_products()
    return jsonify([p.to_dict() for p in products]), 200


@inventory_bp.get("/transactions")
def transactions_route():
    """Inventory transactions, newest first. Optional ?product_id= filter."""
    raw_product_id = request.args.get("product_id")
    try:
        product_id = parse_int(raw_product_id, "product_id", positive=True) if raw_product_id else None
    except ValidationError as e:
        return jsonify(e.to_dict()), e.status_code

    rows = inventory_service.list_inventory_transactions(product_id=product_id)
    return jsonify([r.to_dict() for r in rows]), 200


@inventory_bp.get("/<int:product_id>/summary")
def inventory_summary_route(product_id: int):
    """Current stock, low-stock flag and ledger reconciliation figures."""
    try:
        return jsonify(inventory_service.get_inventory_summary(product_id)), 200
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code
