from __future__ import annotations

from ..extensions import db
from gestao.money import as_float
from gestao.time_utils import to_utc_z

RECURRENCE_PERIODS = (
    "diaria",
    "semanal",
    "quinzenal",
    "mensal",
    "trimestral",
    "semestral",
    "anual",
)


class Expense(db.Model):
    """
    Business expense.

    category is free text (not a FK to categories). A recurring expense must
    carry a recurrence_period; the service layer enforces this.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_user_date", "user_id", "expense_date"),
        db.Index("ix_expenses_user_category", "user_id", "category"),
        db.CheckConstraint("amount > 0", name="amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False)

    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurrence_period = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "description": self.description,
            "amount": as_float(self.amount),
            "category": self.category,
            "expense_date": to_utc_z(self.expense_date),
            "is_recurring": self.is_recurring,
            "recurrence_period": self.recurrence_period,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
