"""
Customer tests.
"""

import pytest
from gestao.extensions import db
from gestao.models import Sale
from gestao.services import customer_service
from gestao.services.sales_service import create_sale
from gestao.validation import ValidationError


class TestCustomerService:

    def test_invalid_email_rejected(self, owner):
        with pytest.raises(ValidationError):
            customer_service.create_customer(
                patch={"name": "Carlos", "email": "carlos-at-nowhere"},
                user_id=owner.id,
            )

    def test_search_matches_name_email_and_phone(self, owner, customer):
        customer_service.create_customer(patch={"name": "Bruno"}, user_id=owner.id)

        assert [c.id for c in customer_service.search_customers(owner.id, "ana")] == [customer.id]
        assert [c.id for c in customer_service.search_customers(owner.id, "@cliente")] == [customer.id]
        assert [c.id for c in customer_service.search_customers(owner.id, "99990")] == [customer.id]

    def test_delete_keeps_sales_without_customer(self, owner, customer, make_product):
        product = make_product(stock="5")
        sale = create_sale(
            patch={
                "payment_method": "pix",
                "customer_id": customer.id,
                "items": [{"product_id": product.id, "quantity": 1, "unit_price": 5}],
            },
            user_id=owner.id,
        )

        customer_service.delete_customer(customer_id=customer.id, user_id=owner.id)

        db.session.expire_all()
        kept = db.session.get(Sale, sale.id)
        assert kept is not None
        assert kept.customer_id is None


class TestCustomerEndpoints:

    def test_crud(self, client, owner_headers, db_session):
        created = client.post('/api/customers', json={
            "name": "Paula",
            "email": "paula@exemplo.com",
            "phone": "11 98888-7777",
        }, headers=owner_headers)
        assert created.status_code == 201
        customer_id = created.json["customer"]["id"]

        updated = client.patch(
            f'/api/customers/{customer_id}',
            json={"address": "Rua das Flores, 10"},
            headers=owner_headers,
        )
        assert updated.status_code == 200
        assert updated.json["customer"]["address"] == "Rua das Flores, 10"

        found = client.get('/api/customers/search?q=paula', headers=owner_headers)
        assert found.json["count"] == 1

        deleted = client.delete(f'/api/customers/{customer_id}', headers=owner_headers)
        assert deleted.status_code == 200
        assert client.get(f'/api/customers/{customer_id}', headers=owner_headers).status_code == 404

    def test_name_required(self, client, owner_headers, db_session):
        response = client.post('/api/customers', json={"email": "x@y.com"}, headers=owner_headers)
        assert response.status_code == 400

    def test_bulk_delete(self, client, owner_headers, customer):
        response = client.post(
            '/api/customers/bulk-delete',
            json={"ids": [customer.id, 999]},
            headers=owner_headers,
        )
        assert response.json == {"deleted": 1}
