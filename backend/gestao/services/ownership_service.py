"""
Ownership Service: owner validation and scoping helpers

Every business row carries user_id. A row that exists but belongs to
another user is reported exactly like a missing row so ids of other
owners cannot be probed.

USAGE:
    from gestao.services.ownership_service import require_owned

    product = require_owned(Product, product_id, g.user_id, label="Product")
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..validation import NotFoundError

logger = logging.getLogger(__name__)


def scoped_query(model, user_id: int):
    """Base query restricted to rows owned by user_id."""
    return db.session.query(model).filter(model.user_id == user_id)


def require_owned(model, entity_id: int, user_id: int, *, label: str | None = None):
    """
    Load a row by id, requiring that it belongs to user_id.

    Raises:
        NotFoundError if the row doesn't exist or belongs to another owner
    """
    name = label or model.__name__
    entity = db.session.query(model).filter_by(id=entity_id).first()

    if entity is None:
        raise NotFoundError(f"{name} not found: {entity_id}")

    if entity.user_id != user_id:
        logger.warning(
            "Cross-owner access denied: user_id=%s %s_id=%s",
            user_id, model.__tablename__, entity_id,
        )
        raise NotFoundError(f"{name} not found: {entity_id}")

    return entity


def owned_ids(model, ids, user_id: int) -> list[int]:
    """Filter a client-supplied id list down to ids owned by user_id."""
    clean = {int(i) for i in ids}
    if not clean:
        return []
    rows = (
        db.session.query(model.id)
        .filter(model.user_id == user_id, model.id.in_(clean))
        .all()
    )
    return sorted(r.id for r in rows)
