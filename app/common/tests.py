"""
Tests de la aplicación: salud, encabezados y formato de errores
"""


class TestApp:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_security_headers(self, client):
        response = client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in response.headers
        assert "Cache-Control" not in response.headers

    def test_financial_responses_are_not_cached(self, client, cashier_headers):
        response = client.get("/invoices/", headers=cashier_headers)
        assert response.headers["Cache-Control"] == "no-store"

    def test_error_envelope(self, client, cashier_headers):
        response = client.get("/orders/999", headers=cashier_headers)
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "message": "Pedido no encontrado",
            "detail": "Pedido no encontrado",
        }
