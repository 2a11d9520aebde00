"""
Customer Service

Customers are plain contact records. Sales point at them weakly: deleting
a customer keeps the owner's sales and clears their customer_id.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Customer, Sale
from ..validation import enforce_rules_customer
from .ownership_service import require_owned, scoped_query, owned_ids
from .pagination import paginate, like_pattern

logger = logging.getLogger(__name__)

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address", "notes"}


def _search_clause(term: str):
    pattern = like_pattern(term.strip())
    return db.or_(
        Customer.name.ilike(pattern, escape="\\"),
        Customer.email.ilike(pattern, escape="\\"),
        Customer.phone.ilike(pattern, escape="\\"),
    )


def list_customers(
    user_id: int,
    *,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Customer, user_id)
    if search and search.strip():
        query = query.filter(_search_clause(search))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate(query, page=page, per_page=per_page)


def search_customers(user_id: int, term: str) -> list[Customer]:
    """Substring match over name, email and phone."""
    query = scoped_query(Customer, user_id)
    if term and term.strip():
        query = query.filter(_search_clause(term))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int, user_id: int) -> Customer:
    return require_owned(Customer, customer_id, user_id, label="Customer")


def create_customer(*, patch: dict, user_id: int) -> Customer:
    enforce_rules_customer(patch)

    customer = Customer(user_id=user_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)

    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(*, customer_id: int, patch: dict, user_id: int) -> Customer:
    customer = get_customer(customer_id, user_id)
    enforce_rules_customer(patch)

    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)

    db.session.commit()
    return customer


def _detach_sales(user_id: int, customer_ids: list[int]) -> None:
    (
        db.session.query(Sale)
        .filter(Sale.user_id == user_id, Sale.customer_id.in_(customer_ids))
        .update({Sale.customer_id: None}, synchronize_session="fetch")
    )


def delete_customer(*, customer_id: int, user_id: int) -> None:
    customer = get_customer(customer_id, user_id)
    _detach_sales(user_id, [customer.id])
    db.session.delete(customer)
    db.session.commit()
    logger.info("Deleted customer id=%s user_id=%s", customer_id, user_id)


def bulk_delete_customers(*, ids: list, user_id: int) -> int:
    target = owned_ids(Customer, ids, user_id)
    if not target:
        return 0
    _detach_sales(user_id, target)
    deleted = (
        db.session.query(Customer)
        .filter(Customer.user_id == user_id, Customer.id.in_(target))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
