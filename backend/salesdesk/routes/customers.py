# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import require_actor
from ..errors import SalesDeskError
from ..models import Customer
from ..services import customers_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "city"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers():
    return jsonify([c.to_dict() for c in customers_service.list_customers()]), 200


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        return jsonify(customers_service.get_customer(customer_id).to_dict()), 200
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("")
@require_actor
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(customers_service.create_customer(patch=patch).to_dict()), 201


@customers_bp.put("/<int:customer_id>")
@require_actor
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
        updated = customers_service.update_customer(customer_id=customer_id, patch=patch)
    except (ValidationError, SalesDeskError) as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(updated.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_actor
def delete_customer_route(customer_id: int):
    """Delete a customer without orders (409 otherwise)."""
    try:
        customers_service.delete_customer(customer_id=customer_id)
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"ok": True}), 200
