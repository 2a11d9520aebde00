# Overview: Dashboard aggregates over sales, expenses and stock; read only.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from gestao.extensions import db
from gestao.models import Sale, Expense
from gestao.money import as_float, quantize_money
from gestao.time_utils import month_bounds, shift_month, utcnow
from gestao.services import expense_service, products_service, sales_service
from gestao.validation import ValidationError

MONTHLY_SERIES_DEFAULT = 6
MONTHLY_SERIES_MAX = 24


def _resolve_month(year: int | None, month: int | None) -> tuple[int, int]:
    now = utcnow()
    year = year if year is not None else now.year
    month = month if month is not None else now.month
    if month < 1 or month > 12:
        raise ValidationError("month must be between 1 and 12")
    if year < 1900 or year > 9999:
        raise ValidationError("year is out of range")
    return year, month


def dashboard_summary(user_id: int, year: int | None = None, month: int | None = None) -> dict:
    """
    KPIs for one calendar month (current month by default).

    profit is sales minus expenses; low_stock_count is a live figure, not
    tied to the month.
    """
    year, month = _resolve_month(year, month)
    start, end = month_bounds(year, month)

    total_sales = sales_service.get_total_between(user_id, start, end)
    total_expenses = expense_service.get_total_between(user_id, start, end)

    return {
        "year": year,
        "month": month,
        "total_sales": as_float(total_sales),
        "total_expenses": as_float(total_expenses),
        "profit": as_float(total_sales - total_expenses),
        "sale_count": sales_service.count_between(user_id, start, end),
        "low_stock_count": products_service.count_low_stock_products(user_id),
    }


def _sum_by_month(column, date_column, owner_column, user_id: int, start, end) -> dict[str, Decimal]:
    period = func.strftime("%Y-%m", date_column)
    rows = (
        db.session.query(period.label("period"), func.sum(column).label("total"))
        .filter(owner_column == user_id, date_column >= start, date_column <= end)
        .group_by(period)
        .all()
    )
    return {r.period: quantize_money(Decimal(str(r.total or 0))) for r in rows}


def monthly_series(user_id: int, months: int | None = None) -> list[dict]:
    """
    Sales and expense totals for the last `months` calendar months, the
    current one included, oldest first. Months without activity report 0.
    """
    months = MONTHLY_SERIES_DEFAULT if months is None else months
    if months < 1:
        raise ValidationError("months must be >= 1")
    months = min(months, MONTHLY_SERIES_MAX)

    now = utcnow()
    first_year, first_month = shift_month(now.year, now.month, -(months - 1))
    start, _ = month_bounds(first_year, first_month)
    _, end = month_bounds(now.year, now.month)

    sales = _sum_by_month(Sale.total_amount, Sale.sale_date, Sale.user_id, user_id, start, end)
    expenses = _sum_by_month(Expense.amount, Expense.expense_date, Expense.user_id, user_id, start, end)

    series = []
    for offset in range(months):
        year, month = shift_month(first_year, first_month, offset)
        key = f"{year:04d}-{month:02d}"
        sales_total = sales.get(key, Decimal("0.00"))
        expense_total = expenses.get(key, Decimal("0.00"))
        series.append({
            "period": key,
            "year": year,
            "month": month,
            "total_sales": as_float(sales_total),
            "total_expenses": as_float(expense_total),
            "profit": as_float(sales_total - expense_total),
        })
    return series


def expenses_by_category(user_id: int, year: int | None = None, month: int | None = None) -> list[dict]:
    year, month = _resolve_month(year, month)
    start, end = month_bounds(year, month)
    return expense_service.totals_by_category(user_id, start, end)
