# backend/gestao/services/category_service.py
"""
Category Service

Categories are owner-scoped and their names are unique per owner ignoring
case. Products reference categories by id only; callers that know a
category by name go through resolve_category_reference().
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, ValidationError
from .ownership_service import require_owned, scoped_query, owned_ids
from .pagination import paginate, like_pattern

logger = logging.getLogger(__name__)

CATEGORY_MUTABLE_FIELDS = {"name", "description"}


def _name_key(name: str) -> str:
    return name.strip().lower()


def _ensure_unique_name(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = scoped_query(Category, user_id).filter(Category.name_key == _name_key(name))
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("Category already exists")


def list_categories(
    user_id: int,
    *,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Owner-scoped category listing ordered by name."""
    query = scoped_query(Category, user_id)
    if search:
        pattern = like_pattern(search.strip().lower())
        query = query.filter(Category.name_key.like(pattern, escape="\\"))
    query = query.order_by(Category.name_key.asc(), Category.id.asc())
    return paginate(query, page=page, per_page=per_page)


def search_categories(user_id: int, term: str) -> list[Category]:
    """Substring match on name, case-insensitive."""
    query = scoped_query(Category, user_id)
    if term and term.strip():
        query = query.filter(Category.name_key.like(like_pattern(term.strip().lower()), escape="\\"))
    return query.order_by(Category.name_key.asc()).all()


def get_category(category_id: int, user_id: int) -> Category:
    return require_owned(Category, category_id, user_id, label="Category")


def create_category(*, patch: dict, user_id: int) -> Category:
    """
    Create a category from a validated patch.

    Raises:
        ConflictError: if the owner already has a category with this name
    """
    name = patch.get("name")
    if not name:
        raise ValidationError("name is required")

    _ensure_unique_name(user_id, name)

    category = Category(
        user_id=user_id,
        name=name,
        name_key=_name_key(name),
        description=patch.get("description"),
    )
    db.session.add(category)
    db.session.commit()
    return category


def update_category(*, category_id: int, patch: dict, user_id: int) -> Category:
    category = get_category(category_id, user_id)

    if "name" in patch:
        _ensure_unique_name(user_id, patch["name"], exclude_id=category.id)
        category.name = patch["name"]
        category.name_key = _name_key(patch["name"])

    if "description" in patch:
        category.description = patch["description"]

    db.session.commit()
    return category


def _detach_products(user_id: int, category_ids: list[int]) -> None:
    # SET NULL by hand; SQLite does not enforce ON DELETE without the pragma
    (
        db.session.query(Product)
        .filter(Product.user_id == user_id, Product.category_id.in_(category_ids))
        .update({Product.category_id: None}, synchronize_session="fetch")
    )


def delete_category(*, category_id: int, user_id: int) -> None:
    """Delete a category; products that used it become uncategorized."""
    category = get_category(category_id, user_id)
    _detach_products(user_id, [category.id])
    db.session.delete(category)
    db.session.commit()


def bulk_delete_categories(*, ids: list, user_id: int) -> int:
    target = owned_ids(Category, ids, user_id)
    if not target:
        return 0
    _detach_products(user_id, target)
    deleted = (
        db.session.query(Category)
        .filter(Category.user_id == user_id, Category.id.in_(target))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted


def find_category_by_name(user_id: int, name: str) -> Category | None:
    return scoped_query(Category, user_id).filter(Category.name_key == _name_key(name)).first()


def resolve_category_reference(
    user_id: int,
    *,
    category_id: int | None = None,
    category_name: str | None = None,
    create_missing: bool = True,
) -> int | None:
    """
    Normalize a category reference to a category id.

    Accepts either an id (must be owned) or a name. Names are matched
    case-insensitively; an unknown name creates the category when
    create_missing is set. Does not commit.
    """
    if category_id is not None:
        return get_category(category_id, user_id).id

    if category_name is None:
        return None
    if not isinstance(category_name, str):
        raise ValidationError("category must be a string")
    name = category_name.strip()
    if not name:
        return None
    if len(name) > 100:
        raise ValidationError("category exceeds max length 100")

    existing = find_category_by_name(user_id, name)
    if existing:
        return existing.id

    if not create_missing:
        raise ValidationError(f"Unknown category: {name}")

    category = Category(user_id=user_id, name=name, name_key=_name_key(name))
    db.session.add(category)
    db.session.flush()
    logger.info("Created category id=%s from name reference for user_id=%s", category.id, user_id)
    return category.id
