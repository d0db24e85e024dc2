# Overview: Period-over-period statistics for sales, expenses and products.

"""
Period windows (all UTC):

- week:    [now - 7d, now]            vs [now - 14d, now - 7d)
- month:   [1st of month, now]        vs previous calendar month
- quarter: [1st of quarter, now]      vs previous calendar quarter
- year:    [Jan 1, now]               vs previous calendar year

Growth is (current - previous) / previous * 100 rounded to 2 decimals. When
the previous window is empty, growth is 0 if the current one is empty too,
otherwise 100. Every subsystem uses the same rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Expense, Product, Sale
from ..validation import ValidationError
from shopkeep.time_utils import utcnow, to_utc_z


PERIODS = ("week", "month", "quarter", "year")
DEFAULT_PERIOD = "month"


@dataclass(frozen=True)
class PeriodWindow:
    period: str
    current_start: datetime
    current_end: datetime  # inclusive
    previous_start: datetime
    previous_end: datetime  # exclusive

    def to_dict(self) -> dict:
        return {
            "current_start": to_utc_z(self.current_start),
            "current_end": to_utc_z(self.current_end),
            "previous_start": to_utc_z(self.previous_start),
            "previous_end": to_utc_z(self.previous_end),
        }


def _shift_months(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def period_window(period: str | None, now: datetime | None = None) -> PeriodWindow:
    period = (period or DEFAULT_PERIOD).strip().lower()
    if period not in PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")
    now = now or utcnow()

    if period == "week":
        start = now - timedelta(days=7)
        return PeriodWindow(period, start, now, now - timedelta(days=14), start)

    if period == "month":
        months = 1
        start = datetime(now.year, now.month, 1)
    elif period == "quarter":
        months = 3
        start = datetime(now.year, ((now.month - 1) // 3) * 3 + 1, 1)
    else:
        months = 12
        start = datetime(now.year, 1, 1)

    prev_year, prev_month = _shift_months(start.year, start.month, -months)
    return PeriodWindow(period, start, now, datetime(prev_year, prev_month, 1), start)


def growth_percentage(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return round((current - previous) / previous * 100, 2)


def _sum_and_count(date_col, amount_col, start: datetime, end: datetime, *, end_inclusive: bool):
    query = db.session.query(
        func.coalesce(func.sum(amount_col), 0),
        func.count(),
    ).filter(date_col >= start)
    query = query.filter(date_col <= end if end_inclusive else date_col < end)
    total, count = query.one()
    return round(float(total or 0), 2), int(count or 0)


def _amount_stats(date_col, amount_col, period: str | None, now: datetime | None) -> dict:
    window = period_window(period, now)
    total, count = _sum_and_count(
        date_col, amount_col, window.current_start, window.current_end, end_inclusive=True
    )
    previous_total, _ = _sum_and_count(
        date_col, amount_col, window.previous_start, window.previous_end, end_inclusive=False
    )
    return {
        "total": total,
        "count": count,
        "growth": growth_percentage(total, previous_total),
        "period": window.period,
    }


def sales_stats(period: str | None = None, now: datetime | None = None) -> dict:
    return _amount_stats(Sale.sale_date, Sale.total_amount, period, now)


def expense_stats(period: str | None = None, now: datetime | None = None) -> dict:
    return _amount_stats(Expense.expense_date, Expense.amount, period, now)


def product_growth(period: str | None = None, now: datetime | None = None) -> dict:
    """Products created in the current window compared with the previous one."""
    window = period_window(period, now)
    base = db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True))

    current = base.filter(
        Product.created_at >= window.current_start,
        Product.created_at <= window.current_end,
    ).scalar() or 0
    previous = base.filter(
        Product.created_at >= window.previous_start,
        Product.created_at < window.previous_end,
    ).scalar() or 0

    return {
        "current": int(current),
        "previous": int(previous),
        "growth": growth_percentage(current, previous),
        "period": window.period,
    }
