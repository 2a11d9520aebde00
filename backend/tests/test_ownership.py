"""
Owner isolation tests.

Every row belongs to one account. Another account must not see it, change
it, or even learn that it exists: foreign ids answer 404 exactly like
missing ids.
"""

import pytest
from gestao.services.ownership_service import owned_ids, require_owned
from gestao.models import Product
from gestao.validation import NotFoundError


class TestOwnershipHelpers:
    """Test ownership helper functions."""

    def test_require_owned_same_message_for_foreign_and_missing(self, owner, other_owner, make_product):
        product = make_product(user=other_owner)

        with pytest.raises(NotFoundError) as foreign:
            require_owned(Product, product.id, owner.id, label="Product")
        with pytest.raises(NotFoundError) as missing:
            require_owned(Product, 999999, owner.id, label="Product")

        assert str(foreign.value) == f"Product not found: {product.id}"
        assert str(missing.value) == "Product not found: 999999"

    def test_owned_ids_filters_foreign_rows(self, owner, other_owner, make_product):
        mine = make_product(name="Meu")
        theirs = make_product(name="Deles", user=other_owner)

        assert owned_ids(Product, [theirs.id, mine.id, mine.id], owner.id) == [mine.id]


class TestCrossOwnerEndpoints:
    """Owner B probing owner A's rows."""

    def test_product_is_invisible(self, client, other_headers, make_product):
        product = make_product(name="Segredo")

        assert client.get(f'/api/products/{product.id}', headers=other_headers).status_code == 404
        assert client.patch(
            f'/api/products/{product.id}', json={"name": "Roubado"}, headers=other_headers,
        ).status_code == 404
        assert client.delete(f'/api/products/{product.id}', headers=other_headers).status_code == 404
        listed = client.get('/api/products', headers=other_headers)
        assert listed.json["count"] == 0

    def test_cannot_sell_foreign_product(self, client, other_headers, make_product):
        product = make_product(stock="10")

        response = client.post('/api/sales', json={
            "payment_method": "pix",
            "items": [{"product_id": product.id, "quantity": 1, "unit_price": 5}],
        }, headers=other_headers)

        assert response.status_code == 404
        assert response.json["error"] == f"Product not found: {product.id}"

    def test_sale_is_invisible(self, client, owner_headers, other_headers, make_product):
        product = make_product(stock="10")
        created = client.post('/api/sales', json={
            "payment_method": "pix",
            "items": [{"product_id": product.id, "quantity": 1, "unit_price": 5}],
        }, headers=owner_headers)
        sale_id = created.json["sale"]["id"]

        assert client.get(f'/api/sales/{sale_id}', headers=other_headers).status_code == 404
        assert client.delete(f'/api/sales/{sale_id}', headers=other_headers).status_code == 404
        assert client.get('/api/sales', headers=other_headers).json["count"] == 0

    def test_customer_and_expense_are_invisible(self, client, owner_headers, other_headers, customer):
        expense = client.post('/api/expenses', json={
            "description": "Aluguel", "amount": 900, "category": "Fixas",
        }, headers=owner_headers).json["expense"]

        assert client.get(f'/api/customers/{customer.id}', headers=other_headers).status_code == 404
        assert client.get(f'/api/expenses/{expense["id"]}', headers=other_headers).status_code == 404

    def test_bulk_delete_skips_foreign_ids(self, client, other_headers, make_product):
        product = make_product()

        response = client.post('/api/products/bulk-delete', json={"ids": [product.id]}, headers=other_headers)

        assert response.json == {"deleted": 0}

    def test_dashboard_is_per_owner(self, client, owner_headers, other_headers, make_product):
        product = make_product(stock="10")
        client.post('/api/sales', json={
            "payment_method": "pix",
            "items": [{"product_id": product.id, "quantity": 2, "unit_price": 5}],
        }, headers=owner_headers)

        mine = client.get('/api/dashboard/summary', headers=owner_headers).json
        theirs = client.get('/api/dashboard/summary', headers=other_headers).json

        assert mine["total_sales"] == 10.0
        assert theirs["total_sales"] == 0.0
