"""
Expense Service

Owner-scoped expenses with optional recurrence metadata.

RULES:
- amount > 0
- is_recurring requires a recurrence_period
- a non-recurring expense never keeps a recurrence_period
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Expense
from ..validation import ValidationError, enforce_rules_expense
from gestao.money import quantize_money, as_float
from gestao.time_utils import utcnow, month_bounds
from .ownership_service import require_owned, scoped_query, owned_ids
from .pagination import paginate, like_pattern

logger = logging.getLogger(__name__)

EXPENSE_MUTABLE_FIELDS = {
    "description",
    "amount",
    "category",
    "expense_date",
    "is_recurring",
    "recurrence_period",
    "notes",
}


def _apply_patch(expense: Expense, patch: dict) -> None:
    for k, v in patch.items():
        if k in EXPENSE_MUTABLE_FIELDS:
            setattr(expense, k, v)
    if not expense.is_recurring:
        expense.recurrence_period = None


def list_expenses(
    user_id: int,
    *,
    search: str | None = None,
    category: str | None = None,
    recurring: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Owner-scoped expense listing, newest first.

    start/end are inclusive bounds on expense_date.
    """
    query = scoped_query(Expense, user_id)

    if search and search.strip():
        pattern = like_pattern(search.strip())
        query = query.filter(
            db.or_(
                Expense.description.ilike(pattern, escape="\\"),
                Expense.category.ilike(pattern, escape="\\"),
                Expense.notes.ilike(pattern, escape="\\"),
            )
        )
    if category:
        query = query.filter(db.func.lower(Expense.category) == category.strip().lower())
    if recurring is not None:
        query = query.filter(Expense.is_recurring.is_(recurring))
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date <= end)

    query = query.order_by(Expense.expense_date.desc(), Expense.id.desc())
    return paginate(query, page=page, per_page=per_page)


def search_expenses(user_id: int, term: str) -> list[Expense]:
    query = scoped_query(Expense, user_id)
    if term and term.strip():
        query = query.filter(Expense.description.ilike(like_pattern(term.strip()), escape="\\"))
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def list_expenses_by_category(user_id: int, category: str) -> list[Expense]:
    if not category or not category.strip():
        raise ValidationError("category is required")
    return (
        scoped_query(Expense, user_id)
        .filter(db.func.lower(Expense.category) == category.strip().lower())
        .order_by(Expense.expense_date.desc(), Expense.id.desc())
        .all()
    )


def list_recurring_expenses(user_id: int) -> list[Expense]:
    return (
        scoped_query(Expense, user_id)
        .filter(Expense.is_recurring.is_(True))
        .order_by(Expense.description.asc(), Expense.id.asc())
        .all()
    )


def list_expense_categories(user_id: int) -> list[str]:
    """Distinct category names in use, alphabetical."""
    rows = (
        db.session.query(Expense.category)
        .filter(Expense.user_id == user_id)
        .distinct()
        .order_by(Expense.category.asc())
        .all()
    )
    return [r.category for r in rows]


def get_expense(expense_id: int, user_id: int) -> Expense:
    return require_owned(Expense, expense_id, user_id, label="Expense")


def create_expense(*, patch: dict, user_id: int) -> Expense:
    enforce_rules_expense(patch)

    expense = Expense(user_id=user_id, is_recurring=False, expense_date=utcnow())
    _apply_patch(expense, patch)

    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(*, expense_id: int, patch: dict, user_id: int) -> Expense:
    expense = get_expense(expense_id, user_id)
    enforce_rules_expense(
        patch,
        current={
            "is_recurring": expense.is_recurring,
            "recurrence_period": expense.recurrence_period,
        },
    )
    _apply_patch(expense, patch)
    db.session.commit()
    return expense


def delete_expense(*, expense_id: int, user_id: int) -> None:
    expense = get_expense(expense_id, user_id)
    db.session.delete(expense)
    db.session.commit()


def bulk_delete_expenses(*, ids: list, user_id: int) -> int:
    target = owned_ids(Expense, ids, user_id)
    if not target:
        return 0
    deleted = (
        db.session.query(Expense)
        .filter(Expense.user_id == user_id, Expense.id.in_(target))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted


def get_total_between(user_id: int, start: datetime, end: datetime) -> Decimal:
    """Sum of amount for expense_date in [start, end]."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Expense.amount), 0))
        .filter(
            Expense.user_id == user_id,
            Expense.expense_date >= start,
            Expense.expense_date <= end,
        )
        .scalar()
    )
    return quantize_money(Decimal(str(total)))


def monthly_total(user_id: int, year: int, month: int) -> Decimal:
    start, end = month_bounds(year, month)
    return get_total_between(user_id, start, end)


def totals_by_category(user_id: int, start: datetime, end: datetime) -> list[dict]:
    """Expense totals grouped by category within [start, end], largest first."""
    total_col = db.func.sum(Expense.amount).label("total")
    rows = (
        db.session.query(
            Expense.category.label("category"),
            total_col,
            db.func.count(Expense.id).label("count"),
        )
        .filter(
            Expense.user_id == user_id,
            Expense.expense_date >= start,
            Expense.expense_date <= end,
        )
        .group_by(Expense.category)
        .order_by(total_col.desc(), Expense.category.asc())
        .all()
    )
    return [
        {
            "category": r.category,
            "total": as_float(quantize_money(Decimal(str(r.total)))),
            "count": int(r.count),
        }
        for r in rows
    ]
