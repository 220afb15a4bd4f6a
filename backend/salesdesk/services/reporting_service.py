# Overview: Service-layer operations for reporting; read-only aggregation over orders and line items.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, func

from salesdesk.errors import SalesDeskError
from salesdesk.extensions import db
from salesdesk.models import Order, OrderItem, Product
from salesdesk.money import cents_to_amount, cents_to_decimal
from salesdesk.time_utils import day_bounds, parse_iso_date

TOP_PRODUCTS_LIMIT = 10


class ReportError(SalesDeskError):
    """Raised when report parameters are unusable."""
    status_code = 400


@dataclass(frozen=True)
class SalesReportFilter:
    """
    Report predicates. Each optional field maps to one SQL condition; the
    conditions are ANDed.

    product_id narrows line-item figures only (quantity sold, top products);
    order-level totals are not split by product.
    """
    start_date: date
    end_date: date
    customer_id: int | None = None
    product_id: int | None = None
    include_cancelled: bool = True

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ReportError("start_date must be on or before end_date")

    def order_conditions(self) -> list:
        start_dt, end_dt = day_bounds(self.start_date, self.end_date)
        conditions = [Order.order_date >= start_dt]
        if end_dt is not None:
            conditions.append(Order.order_date < end_dt)
        if self.customer_id is not None:
            conditions.append(Order.customer_id == self.customer_id)
        if not self.include_cancelled:
            conditions.append(Order.status != "cancelled")
        return conditions

    def item_conditions(self) -> list:
        conditions = self.order_conditions()
        if self.product_id is not None:
            conditions.append(OrderItem.product_id == self.product_id)
        return conditions


def _coerce_date(value, name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ReportError(f"{name} must be an ISO-8601 date")
    return parsed


def _iso_day(value) -> str:
    # SQLite's date() yields a string, PostgreSQL a date
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _order_totals(flt: SalesReportFilter) -> tuple[int, int]:
    row = db.session.query(
        func.coalesce(func.sum(Order.total_amount_cents), 0).label("total_cents"),
        func.count(Order.id).label("order_count"),
    ).filter(and_(*flt.order_conditions())).one()
    return int(row.total_cents or 0), int(row.order_count or 0)


def _quantity_sold(flt: SalesReportFilter) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, OrderItem.order_id == Order.id)
        .filter(and_(*flt.item_conditions()))
        .scalar()
    )
    return int(total or 0)


def _top_products(flt: SalesReportFilter) -> list[dict]:
    revenue = func.sum(OrderItem.total_price_cents)
    rows = (
        db.session.query(
            OrderItem.product_id.label("product_id"),
            Product.name.label("product_name"),
            func.sum(OrderItem.quantity).label("quantity_sold"),
            revenue.label("revenue_cents"),
        )
        .join(Order, OrderItem.order_id == Order.id)
        .join(Product, OrderItem.product_id == Product.id)
        .filter(and_(*flt.item_conditions()))
        .group_by(OrderItem.product_id, Product.name)
        .order_by(revenue.desc(), OrderItem.product_id.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "product_name": row.product_name,
            "quantity_sold": int(row.quantity_sold or 0),
            "total_revenue": cents_to_amount(row.revenue_cents or 0),
        }
        for row in rows
    ]


def _sales_by_day(flt: SalesReportFilter) -> list[dict]:
    day = func.date(Order.order_date)
    rows = (
        db.session.query(
            day.label("day"),
            func.coalesce(func.sum(Order.total_amount_cents), 0).label("total_cents"),
            func.count(Order.id).label("order_count"),
        )
        .filter(and_(*flt.order_conditions()))
        .group_by(day)
        .order_by(day)
        .all()
    )
    return [
        {
            "date": _iso_day(row.day),
            "total_sales": cents_to_amount(row.total_cents),
            "order_count": int(row.order_count or 0),
        }
        for row in rows
    ]


def generate_sales_report(
    *,
    start_date,
    end_date,
    customer_id: int | None = None,
    product_id: int | None = None,
    include_cancelled: bool = True,
) -> dict:
    """
    Period report over orders whose order_date falls on start_date..end_date
    (calendar days, inclusive).

    Orders of every status count unless include_cancelled=False.
    """
    flt = SalesReportFilter(
        start_date=_coerce_date(start_date, "start_date"),
        end_date=_coerce_date(end_date, "end_date"),
        customer_id=customer_id,
        product_id=product_id,
        include_cancelled=include_cancelled,
    )

    total_cents, order_count = _order_totals(flt)
    if order_count:
        average = cents_to_decimal(total_cents) / order_count
    else:
        average = Decimal(0)

    return {
        "start_date": flt.start_date.isoformat(),
        "end_date": flt.end_date.isoformat(),
        "total_sales": cents_to_amount(total_cents),
        "total_orders": order_count,
        "total_quantity_sold": _quantity_sold(flt),
        "average_order_value": float(average),
        "top_products": _top_products(flt),
        "sales_by_day": _sales_by_day(flt),
    }
