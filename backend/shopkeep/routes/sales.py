# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopkeep/routes/sales.py
"""Sales, sales statistics and sales analytics routes (authenticated users)."""

from flask import Blueprint, request, jsonify, g

from ..services import sales_service, stats_service, reporting_service, products_service
from ..services.sales_service import SaleError
from ..validation import (
    NotFoundError,
    ValidationError,
    MAX_DB_INT,
    parse_date_range,
    require_json_object,
)
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale from {items: [{product_id, quantity}], customer_name?}.

    Stock is validated for every item before anything is written.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        sale = sales_service.create_sale(
            items=data.get("items"),
            customer_name=data.get("customer_name"),
            user_id=g.current_user.id,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return jsonify({"error": str(e), **e.details}), 400

    return jsonify(sales_service.sale_detail(sale)), 201


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - startDate / endDate: inclusive ISO-8601 bounds (each optional)
    - limit: int (optional) - maximum number of sales
    """
    limit = request.args.get("limit", type=int)
    if limit is not None and not 1 <= limit <= MAX_DB_INT:
        return jsonify({"error": "limit must be a positive integer"}), 400

    try:
        start, end = parse_date_range(request.args.get("startDate"), request.args.get("endDate"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(sales_service.list_sales(start=start, end=end, limit=limit)), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    """Get sale with items."""
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify(sales_service.sale_detail(sale)), 200


@sales_bp.get("/stats/sales")
@require_auth
def sales_stats_route():
    try:
        stats = stats_service.sales_stats(request.args.get("period"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(stats), 200


@sales_bp.get("/analytics/sales")
@require_auth
def sales_analytics_route():
    try:
        start, end = parse_date_range(request.args.get("startDate"), request.args.get("endDate"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(reporting_service.sales_analytics(start=start, end=end)), 200


@sales_bp.get("/stats/products/count")
@require_auth
def product_count_route():
    return jsonify({"count": products_service.count_products()}), 200


@sales_bp.get("/stats/products/growth")
@require_auth
def product_growth_route():
    try:
        growth = stats_service.product_growth(request.args.get("period"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(growth), 200
