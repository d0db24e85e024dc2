# Overview: Flask API routes for expense operations; parses input and returns JSON responses.

# backend/shopkeep/routes/expenses.py
"""Expense management and expense analytics. Every route is admin only."""

from flask import Blueprint, request, jsonify, g

from ..models import Expense
from ..services import expenses_service, stats_service, reporting_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_expense,
    parse_date_range,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_admin

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "amount", "expense_date", "description"},
    required_on_create={"category", "amount"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


def _date_range():
    return parse_date_range(request.args.get("startDate"), request.args.get("endDate"))


@expenses_bp.post("")
@require_auth
@require_admin
def create_expense_route():
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    created = expenses_service.create_expense(patch=patch, user_id=g.current_user.id)
    return jsonify(created), 201


@expenses_bp.get("")
@require_auth
@require_admin
def list_expenses_route():
    """List expenses newest first; startDate/endDate are inclusive."""
    try:
        start, end = _date_range()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(expenses_service.list_expenses(start=start, end=end)), 200


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_admin
def get_expense_route(expense_id: int):
    try:
        expense = expenses_service.get_expense(expense_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(expense.to_dict()), 200


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_admin
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        updated = expenses_service.update_expense(expense_id=expense_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(updated), 200


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_admin
def delete_expense_route(expense_id: int):
    try:
        expenses_service.delete_expense(expense_id=expense_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Expense deleted successfully"}), 200


@expenses_bp.get("/stats/expenses")
@require_auth
@require_admin
def expense_stats_route():
    try:
        stats = stats_service.expense_stats(request.args.get("period"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(stats), 200


@expenses_bp.get("/analytics/expenses")
@require_auth
@require_admin
def expense_analytics_route():
    try:
        start, end = _date_range()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(reporting_service.expense_analytics(start=start, end=end)), 200


@expenses_bp.get("/total")
@require_auth
@require_admin
def total_expenses_route():
    try:
        start, end = _date_range()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"total": expenses_service.total_expenses(start=start, end=end)}), 200
