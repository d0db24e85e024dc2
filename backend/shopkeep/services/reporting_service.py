# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, cast, func

from shopkeep.extensions import db
from shopkeep.models import Expense, Product, Sale, SaleItem


TOP_N = 10


def _day_expr(column, dialect_name: str | None = None):
    """Calendar day (YYYY-MM-DD) of a datetime column, as text."""
    dialect_name = dialect_name or db.engine.dialect.name
    if dialect_name == "sqlite":
        return func.strftime("%Y-%m-%d", column)
    if dialect_name == "postgresql":
        return func.to_char(column, "YYYY-MM-DD")
    if dialect_name in ("mysql", "mariadb"):
        return func.date_format(column, "%Y-%m-%d")
    # DATE renders as YYYY-MM-DD on the remaining backends
    return cast(func.date(column), String)


def _money(value) -> float:
    return round(float(value or 0), 2)


def _apply_range(query, column, start: datetime | None, end: datetime | None):
    if start:
        query = query.filter(column >= start)
    if end:
        query = query.filter(column <= end)
    return query


def _daily_totals(date_col, amount_col, start, end) -> list[dict]:
    day = _day_expr(date_col)
    query = db.session.query(
        day.label("date"),
        func.coalesce(func.sum(amount_col), 0).label("total"),
        func.count().label("count"),
    )
    query = _apply_range(query, date_col, start, end)
    rows = query.group_by(day).order_by(day.asc()).all()
    return [
        {"date": row.date, "total": _money(row.total), "count": int(row.count)}
        for row in rows
    ]


def sales_analytics(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    revenue = func.sum(SaleItem.quantity_sold * SaleItem.price_per_unit_at_sale)
    quantity = func.sum(SaleItem.quantity_sold)

    top_query = (
        db.session.query(
            Product.id.label("product_id"),
            Product.name.label("name"),
            Product.category.label("category"),
            quantity.label("total_quantity"),
            revenue.label("total_revenue"),
        )
        .select_from(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .join(Product, SaleItem.product_id == Product.id)
    )
    top_query = _apply_range(top_query, Sale.sale_date, start, end)
    top_rows = (
        top_query.group_by(Product.id, Product.name, Product.category)
        .order_by(revenue.desc(), Product.id.asc())
        .limit(TOP_N)
        .all()
    )

    category_query = (
        db.session.query(
            Product.category.label("category"),
            revenue.label("total_revenue"),
            quantity.label("total_quantity"),
        )
        .select_from(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .join(Product, SaleItem.product_id == Product.id)
    )
    category_query = _apply_range(category_query, Sale.sale_date, start, end)
    category_rows = (
        category_query.group_by(Product.category)
        .order_by(revenue.desc(), Product.category.asc())
        .all()
    )

    return {
        "dailySales": _daily_totals(Sale.sale_date, Sale.total_amount, start, end),
        "topProducts": [
            {
                "product_id": row.product_id,
                "name": row.name,
                "category": row.category,
                "totalQuantity": int(row.total_quantity or 0),
                "totalRevenue": _money(row.total_revenue),
            }
            for row in top_rows
        ],
        "salesByCategory": [
            {
                "category": row.category,
                "totalRevenue": _money(row.total_revenue),
                "totalQuantity": int(row.total_quantity or 0),
            }
            for row in category_rows
        ],
    }


def expense_analytics(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    total = func.sum(Expense.amount)

    query = db.session.query(
        Expense.category.label("category"),
        total.label("total_amount"),
        func.count(Expense.id).label("count"),
        func.avg(Expense.amount).label("avg_amount"),
    )
    query = _apply_range(query, Expense.expense_date, start, end)
    rows = query.group_by(Expense.category).order_by(total.desc(), Expense.category.asc()).all()

    by_category = [
        {
            "category": row.category,
            "totalAmount": _money(row.total_amount),
            "count": int(row.count),
        }
        for row in rows
    ]
    top_categories = [
        {
            "category": row.category,
            "totalAmount": _money(row.total_amount),
            "count": int(row.count),
            "avgAmount": _money(row.avg_amount),
        }
        for row in rows[:TOP_N]
    ]

    return {
        "dailyExpenses": _daily_totals(Expense.expense_date, Expense.amount, start, end),
        "expensesByCategory": by_category,
        "topCategories": top_categories,
    }
