# backend/shopkeep/services/expenses_service.py
"""Expense CRUD. Admin-only at the route layer."""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Expense
from ..validation import NotFoundError
from shopkeep.time_utils import utcnow

EXPENSE_MUTABLE_FIELDS = {"category", "amount", "expense_date", "description"}


def apply_expense_patch(e: Expense, patch: dict) -> None:
    for k, v in patch.items():
        if k not in EXPENSE_MUTABLE_FIELDS:
            continue
        setattr(e, k, v)


def _filter_range(query, start: datetime | None, end: datetime | None):
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    return query


def list_expenses(*, start: datetime | None = None, end: datetime | None = None) -> list[dict]:
    query = db.session.query(Expense).options(joinedload(Expense.user))
    query = _filter_range(query, start, end)
    expenses = query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()
    return [e.to_dict() for e in expenses]


def get_expense(expense_id: int) -> Expense:
    e = db.session.get(Expense, expense_id)
    if not e:
        raise NotFoundError("Expense not found")
    return e


def create_expense(*, patch: dict, user_id: int) -> dict:
    e = Expense(user_id=user_id)
    apply_expense_patch(e, patch)
    if e.expense_date is None:
        e.expense_date = utcnow()

    db.session.add(e)
    db.session.commit()

    current_app.logger.info(
        "Created expense id=%s category=%s amount=%s", e.id, e.category, e.amount
    )
    return e.to_dict()


def update_expense(*, expense_id: int, patch: dict) -> dict:
    e = get_expense(expense_id)
    apply_expense_patch(e, patch)
    if e.expense_date is None:
        e.expense_date = utcnow()
    db.session.commit()
    return e.to_dict()


def delete_expense(*, expense_id: int) -> None:
    e = get_expense(expense_id)
    db.session.delete(e)
    db.session.commit()
    current_app.logger.info("Deleted expense id=%s", expense_id)


def total_expenses(*, start: datetime | None = None, end: datetime | None = None) -> float:
    query = db.session.query(func.coalesce(func.sum(Expense.amount), 0))
    query = _filter_range(query, start, end)
    return round(float(query.scalar() or 0), 2)
