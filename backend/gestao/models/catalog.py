from __future__ import annotations

from ..extensions import db
from gestao.money import as_float
from gestao.time_utils import to_utc_z


class Category(db.Model):
    """
    Owner-scoped product category.

    Names are unique per owner ignoring case. name_key holds the lower-cased
    name so the database enforces the rule too.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("user_id", "name_key", name="uq_categories_user_name_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    name_key = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Catalog item with on-hand stock.

    stock_quantity is the live on-hand figure; sales decrement it and sale
    deletion/edits give quantity back. min_stock_quantity drives the
    low-stock alert (NULL means the app-wide default threshold).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_user_name", "user_id", "name"),
        db.CheckConstraint("stock_quantity >= 0", name="stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock_quantity = db.Column(db.Numeric(12, 3), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    # Optimistic lock: concurrent stock writes raise StaleDataError and are retried
    version_id = db.Column(db.Integer, nullable=False, default=1)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "cost_price": as_float(self.cost_price),
            "sale_price": as_float(self.sale_price),
            "stock_quantity": as_float(self.stock_quantity),
            "min_stock_quantity": as_float(self.min_stock_quantity),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
