"""
Sales API tests.

Exercises the HTTP layer: status codes, error payloads and the JSON shape
of sales.
"""

from decimal import Decimal

import pytest

from conftest import stock_of


def _payload(*items, **header):
    return {"payment_method": "pix", "items": list(items), **header}


def _item(product, quantity, unit_price=5.0):
    return {"product_id": product.id, "quantity": quantity, "unit_price": unit_price}


class TestCreateSaleEndpoint:

    def test_requires_authentication(self, client, db_session):
        response = client.post('/api/sales', json={})
        assert response.status_code == 401

    def test_create_returns_201_with_computed_total(self, client, owner_headers, make_product):
        product = make_product(stock="10")

        response = client.post(
            '/api/sales',
            json=_payload(_item(product, 3), total_amount=1.0),
            headers=owner_headers,
        )

        assert response.status_code == 201
        sale = response.json["sale"]
        assert sale["total_amount"] == 15.0
        assert sale["items"][0]["subtotal"] == 15.0
        assert sale["sale_date"].endswith("Z")
        assert stock_of(product.id) == Decimal("7")

    def test_insufficient_stock_is_409_with_details(self, client, owner_headers, make_product):
        product = make_product(name="Feijão", stock="2")

        response = client.post('/api/sales', json=_payload(_item(product, 3)), headers=owner_headers)

        assert response.status_code == 409
        assert response.json["error"] == "Insufficient stock for product Feijão. Available: 2"
        assert response.json["details"]["items"] == [{
            "product_id": product.id,
            "product_name": "Feijão",
            "requested": 3.0,
            "available": 2.0,
        }]
        assert stock_of(product.id) == Decimal("2")

    def test_missing_items_is_400(self, client, owner_headers):
        response = client.post('/api/sales', json={"payment_method": "pix"}, headers=owner_headers)
        assert response.status_code == 400

    def test_zero_quantity_is_400(self, client, owner_headers, make_product):
        product = make_product()
        response = client.post('/api/sales', json=_payload(_item(product, 0)), headers=owner_headers)
        assert response.status_code == 400
        assert "quantity" in response.json["error"]

    @pytest.mark.parametrize("field", ["quantity", "unit_price"])
    def test_huge_number_is_400(self, client, owner_headers, make_product, field):
        product = make_product(stock="10")
        item = _item(product, 1)
        item[field] = "1e30"

        response = client.post('/api/sales', json=_payload(item), headers=owner_headers)

        assert response.status_code == 400
        assert response.json["error"] == "items[0] is out of range"
        assert stock_of(product.id) == Decimal("10")

    def test_unknown_field_is_400(self, client, owner_headers, make_product):
        product = make_product()
        response = client.post(
            '/api/sales',
            json=_payload(_item(product, 1), discount=3),
            headers=owner_headers,
        )
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, owner_headers, db_session):
        response = client.post(
            '/api/sales',
            json=_payload({"product_id": 4242, "quantity": 1, "unit_price": 1}),
            headers=owner_headers,
        )
        assert response.status_code == 404
        assert response.json["error"] == "Product not found: 4242"

    def test_sale_date_is_accepted(self, client, owner_headers, make_product):
        product = make_product()
        response = client.post(
            '/api/sales',
            json=_payload(_item(product, 1), sale_date="2026-05-04T10:30:00Z"),
            headers=owner_headers,
        )
        assert response.status_code == 201
        assert response.json["sale"]["sale_date"] == "2026-05-04T10:30:00Z"


class TestSaleLifecycleEndpoints:

    def test_update_and_delete(self, client, owner_headers, make_product):
        product = make_product(stock="10")
        created = client.post('/api/sales', json=_payload(_item(product, 3)), headers=owner_headers)
        sale_id = created.json["sale"]["id"]

        updated = client.patch(
            f'/api/sales/{sale_id}',
            json={"items": [_item(product, 1)]},
            headers=owner_headers,
        )
        assert updated.status_code == 200
        assert updated.json["sale"]["total_amount"] == 5.0
        assert stock_of(product.id) == Decimal("9")

        deleted = client.delete(f'/api/sales/{sale_id}', headers=owner_headers)
        assert deleted.status_code == 200
        assert deleted.json == {"ok": True}
        assert stock_of(product.id) == Decimal("10")

        missing = client.get(f'/api/sales/{sale_id}', headers=owner_headers)
        assert missing.status_code == 404

    def test_update_over_stock_is_409(self, client, owner_headers, make_product):
        product = make_product(stock="4")
        created = client.post('/api/sales', json=_payload(_item(product, 2)), headers=owner_headers)
        sale_id = created.json["sale"]["id"]

        response = client.patch(
            f'/api/sales/{sale_id}',
            json={"items": [_item(product, 5)]},
            headers=owner_headers,
        )

        assert response.status_code == 409
        assert response.json["details"]["items"][0]["available"] == 4.0
        assert stock_of(product.id) == Decimal("2")


class TestSaleReportEndpoints:

    def test_list_with_pagination(self, client, owner_headers, make_product):
        product = make_product(stock="10")
        for _ in range(3):
            client.post('/api/sales', json=_payload(_item(product, 1)), headers=owner_headers)

        response = client.get('/api/sales?page=1&limit=2', headers=owner_headers)

        assert response.status_code == 200
        assert response.json["count"] == 2
        assert response.json["pagination"]["total"] == 3
        assert response.json["pagination"]["has_next"] is True

    def test_list_by_date_range(self, client, owner_headers, make_product):
        product = make_product(stock="10")
        client.post(
            '/api/sales',
            json=_payload(_item(product, 1), sale_date="2026-01-15T12:00:00Z"),
            headers=owner_headers,
        )
        client.post(
            '/api/sales',
            json=_payload(_item(product, 1), sale_date="2026-02-15T12:00:00Z"),
            headers=owner_headers,
        )

        response = client.get(
            '/api/sales?startDate=2026-01-01&endDate=2026-01-15',
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.json["count"] == 1
        assert response.json["items"][0]["sale_date"] == "2026-01-15T12:00:00Z"

    def test_monthly_total(self, client, owner_headers, make_product):
        product = make_product(stock="10")
        client.post(
            '/api/sales',
            json=_payload(_item(product, 2), sale_date="2026-06-10T09:00:00Z"),
            headers=owner_headers,
        )

        response = client.get('/api/sales/monthly-total?year=2026&month=6', headers=owner_headers)

        assert response.status_code == 200
        assert response.json == {"year": 2026, "month": 6, "total": 10.0}

    def test_monthly_total_bad_month(self, client, owner_headers):
        response = client.get('/api/sales/monthly-total?year=2026&month=13', headers=owner_headers)
        assert response.status_code == 400

    def test_top_products(self, client, owner_headers, make_product):
        a = make_product(name="Arroz", stock="10")
        b = make_product(name="Feijão", stock="10")
        client.post('/api/sales', json=_payload(_item(a, 1), _item(b, 3)), headers=owner_headers)

        response = client.get('/api/sales/top-products?limit=1', headers=owner_headers)

        assert response.status_code == 200
        assert response.json["count"] == 1
        assert response.json["items"][0]["product_name"] == "Feijão"
        assert response.json["items"][0]["total_revenue"] == 15.0

    def test_top_products_bad_limit(self, client, owner_headers):
        response = client.get('/api/sales/top-products?limit=0', headers=owner_headers)
        assert response.status_code == 400
