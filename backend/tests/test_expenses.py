"""
Expense tests: recurrence rules, filters and totals.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from gestao.services import expense_service
from gestao.validation import ValidationError


def _expense(owner, description="Aluguel", amount="1200.00", category="Fixas", **extra):
    return expense_service.create_expense(
        patch={"description": description, "amount": Decimal(amount), "category": category, **extra},
        user_id=owner.id,
    )


class TestExpenseService:

    def test_recurring_requires_period(self, owner):
        with pytest.raises(ValidationError) as exc:
            _expense(owner, is_recurring=True)
        assert "recurrence_period" in str(exc.value)

    def test_unknown_period_rejected(self, owner):
        with pytest.raises(ValidationError):
            _expense(owner, is_recurring=True, recurrence_period="bienal")

    def test_period_cleared_when_not_recurring(self, owner):
        expense = _expense(owner, is_recurring=True, recurrence_period="mensal")

        updated = expense_service.update_expense(
            expense_id=expense.id, patch={"is_recurring": False}, user_id=owner.id,
        )

        assert updated.recurrence_period is None

    def test_turning_on_recurrence_needs_period(self, owner):
        expense = _expense(owner)
        with pytest.raises(ValidationError):
            expense_service.update_expense(
                expense_id=expense.id, patch={"is_recurring": True}, user_id=owner.id,
            )

    def test_amount_must_be_positive(self, owner):
        with pytest.raises(ValidationError):
            _expense(owner, amount="0")

    def test_sub_cent_amount_rounds_to_zero_and_is_rejected(self, owner):
        with pytest.raises(ValidationError) as exc:
            _expense(owner, amount="0.001")
        assert str(exc.value) == "amount must be > 0"

    def test_monthly_total_and_categories(self, owner):
        _expense(owner, "Aluguel", "1000.00", "Fixas", expense_date=datetime(2026, 3, 5))
        _expense(owner, "Luz", "150.50", "Contas", expense_date=datetime(2026, 3, 20))
        _expense(owner, "Água", "80.00", "contas", expense_date=datetime(2026, 4, 2))

        assert expense_service.monthly_total(owner.id, 2026, 3) == Decimal("1150.50")
        assert expense_service.list_expense_categories(owner.id) == ["Contas", "Fixas", "contas"]
        assert len(expense_service.list_expenses_by_category(owner.id, "CONTAS")) == 2

    def test_totals_by_category(self, owner):
        _expense(owner, "Aluguel", "1000.00", "Fixas", expense_date=datetime(2026, 3, 5))
        _expense(owner, "Luz", "100.00", "Contas", expense_date=datetime(2026, 3, 6))
        _expense(owner, "Água", "50.00", "Contas", expense_date=datetime(2026, 3, 7))

        rows = expense_service.totals_by_category(owner.id, datetime(2026, 3, 1), datetime(2026, 3, 31, 23, 59))

        assert rows == [
            {"category": "Fixas", "total": 1000.0, "count": 1},
            {"category": "Contas", "total": 150.0, "count": 2},
        ]

    def test_list_filters(self, owner):
        rent = _expense(owner, "Aluguel", is_recurring=True, recurrence_period="mensal",
                        expense_date=datetime(2026, 1, 10))
        fuel = _expense(owner, "Combustível", "200.00", "Transporte", expense_date=datetime(2026, 2, 10))

        recurring = expense_service.list_expenses(owner.id, recurring=True)
        february = expense_service.list_expenses(owner.id, start=datetime(2026, 2, 1), end=datetime(2026, 2, 28))
        searched = expense_service.list_expenses(owner.id, search="combus")

        assert [e["id"] for e in recurring["items"]] == [rent.id]
        assert [e["id"] for e in february["items"]] == [fuel.id]
        assert [e["id"] for e in searched["items"]] == [fuel.id]
        assert [e.id for e in expense_service.list_recurring_expenses(owner.id)] == [rent.id]


class TestExpenseEndpoints:

    def test_create_and_monthly_total(self, client, owner_headers, db_session):
        created = client.post('/api/expenses', json={
            "description": "Internet",
            "amount": 99.9,
            "category": "Contas",
            "expense_date": "2026-07-03",
            "is_recurring": True,
            "recurrence_period": "mensal",
        }, headers=owner_headers)

        assert created.status_code == 201
        assert created.json["expense"]["recurrence_period"] == "mensal"

        total = client.get('/api/expenses/monthly-total?year=2026&month=7', headers=owner_headers)
        assert total.json == {"year": 2026, "month": 7, "total": 99.9}

    def test_missing_category_is_400(self, client, owner_headers, db_session):
        response = client.post(
            '/api/expenses',
            json={"description": "Sem categoria", "amount": 10},
            headers=owner_headers,
        )
        assert response.status_code == 400

    def test_sub_cent_amount_is_400(self, client, owner_headers, db_session):
        response = client.post('/api/expenses', json={
            "description": "Troco",
            "amount": 0.004,
            "category": "Contas",
        }, headers=owner_headers)

        assert response.status_code == 400
        assert response.json["error"] == "amount must be > 0"

    def test_amount_is_rounded_to_cents(self, client, owner_headers, db_session):
        response = client.post('/api/expenses', json={
            "description": "Troco",
            "amount": "10.005",
            "category": "Contas",
        }, headers=owner_headers)

        assert response.status_code == 201
        assert response.json["expense"]["amount"] == 10.01

    def test_recurring_without_period_is_400(self, client, owner_headers, db_session):
        response = client.post('/api/expenses', json={
            "description": "Aluguel",
            "amount": 1000,
            "category": "Fixas",
            "is_recurring": True,
        }, headers=owner_headers)
        assert response.status_code == 400

    def test_categories_and_by_category(self, client, owner_headers, owner):
        _expense(owner, "Luz", "100.00", "Contas")
        _expense(owner, "Aluguel", "1000.00", "Fixas")

        categories = client.get('/api/expenses/categories', headers=owner_headers)
        by_category = client.get('/api/expenses/by-category?category=contas', headers=owner_headers)
        missing = client.get('/api/expenses/by-category', headers=owner_headers)

        assert categories.json == {"categories": ["Contas", "Fixas"]}
        assert by_category.json["count"] == 1
        assert missing.status_code == 400
