"""
Tests del catálogo de productos y descuento de stock
"""

from app.modules.products.service import decrement_stock


class TestDecrementStock:
    def test_decrements(self, db_session, plain_product):
        product = decrement_stock(db_session, plain_product.id, 4)
        assert product.quantity == 6

    def test_floored_at_zero(self, db_session, plain_product):
        assert decrement_stock(db_session, plain_product.id, 25).quantity == 0

    def test_missing_product(self, db_session):
        assert decrement_stock(db_session, 999, 1) is None


class TestProductsApi:
    def test_admin_creates_product_with_tax(self, client, admin_headers, inc_tax):
        response = client.post("/products/", headers=admin_headers, json={
            "name": "Jugo de mora", "price": 8000, "quantity": 20, "alert_min_stock": 5, "tax_id": inc_tax.id
        })
        assert response.status_code == 201
        body = response.json()
        assert body["tax"]["id"] == inc_tax.id
        assert body["alert_id"] is None

    def test_unknown_tax(self, client, admin_headers):
        response = client.post("/products/", headers=admin_headers, json={
            "name": "Jugo de lulo", "price": 8000, "tax_id": 99
        })
        assert response.status_code == 404
        assert response.json()["message"] == "Impuesto no encontrado"

    def test_negative_price_rejected(self, client, admin_headers):
        response = client.post("/products/", headers=admin_headers, json={"name": "Gaseosa", "price": -1})
        assert response.status_code == 422

    def test_search(self, client, customer_headers, plain_product, taxed_product):
        body = client.get("/products/", headers=customer_headers, params={"search": "limo"}).json()
        assert body["total"] == 1
        assert body["products"][0]["name"] == "Limonada"

    def test_missing_product(self, client, cashier_headers):
        assert client.get("/products/999", headers=cashier_headers).status_code == 404
