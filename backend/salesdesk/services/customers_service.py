# backend/salesdesk/services/customers_service.py
"""Customer roster. The order core only needs customer_exists()."""
from __future__ import annotations

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Customer, Order
from .concurrency import run_with_retry

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address", "city"}


def _apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(c, k, v)


def customer_exists(customer_id: int) -> bool:
    return db.session.query(Customer.id).filter(Customer.id == customer_id).first() is not None


def get_customer(customer_id: int) -> Customer:
    c = db.session.get(Customer, customer_id)
    if c is None:
        raise NotFoundError(
            f"Customer with id {customer_id} not found",
            details={"entity": "customer", "id": customer_id},
        )
    return c


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(*, patch: dict) -> Customer:
    def _op():
        c = Customer()
        _apply_customer_patch(c, patch)
        db.session.add(c)
        db.session.commit()
        return c

    return run_with_retry(_op)


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    def _op():
        c = get_customer(customer_id)
        _apply_customer_patch(c, patch)
        db.session.commit()
        return c

    return run_with_retry(_op)


def delete_customer(*, customer_id: int) -> None:
    """Customers with orders are refused; orders must keep a real customer."""
    def _op():
        c = get_customer(customer_id)
        if db.session.query(Order.id).filter(Order.customer_id == c.id).first():
            raise ConflictError(
                "Cannot delete customer with existing orders",
                details={"customer_id": c.id},
            )
        db.session.delete(c)
        db.session.commit()

    run_with_retry(_op)
