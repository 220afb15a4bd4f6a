# backend/salesdesk/routes/reports.py
"""Sales report route. Read-only."""

from flask import Blueprint, jsonify, request

from salesdesk.errors import SalesDeskError
from salesdesk.services import reporting_service
from salesdesk.validation import ValidationError, parse_bool_param, parse_date_param, parse_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
def sales_report():
    """
    Totals, top products and daily breakdown for start_date..end_date.

    Query: start_date, end_date (required, YYYY-MM-DD, inclusive),
    customer_id?, product_id?, include_cancelled? (true/false, default true)
    """
    raw_customer_id = request.args.get("customer_id")
    raw_product_id = request.args.get("product_id")

    try:
        report = reporting_service.generate_sales_report(
            start_date=parse_date_param(request.args.get("start_date"), "start_date"),
            end_date=parse_date_param(request.args.get("end_date"), "end_date"),
            customer_id=parse_int(raw_customer_id, "customer_id", positive=True) if raw_customer_id else None,
            product_id=parse_int(raw_product_id, "product_id", positive=True) if raw_product_id else None,
            include_cancelled=parse_bool_param(
                request.args.get("include_cancelled"), "include_cancelled", default=True,
            ),
        )
    except (ValidationError, SalesDeskError) as exc:
        return jsonify(exc.to_dict()), exc.status_code

    return jsonify(report), 200
