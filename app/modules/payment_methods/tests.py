"""
Tests de métodos de pago: categoría explícita y deducción por nombre
"""

import pytest

from app.modules.payment_methods.models import PaymentCategory
from app.modules.payment_methods.service import PaymentMethodService, infer_category


class TestInferCategory:
    @pytest.mark.parametrize("name,category", [
        ("Efectivo", PaymentCategory.EFECTIVO),
        ("EFECTIVO USD", PaymentCategory.EFECTIVO),
        ("Datáfono Bancolombia", PaymentCategory.DATAFONO),
        ("datofono", PaymentCategory.DATAFONO),
        ("Nequi", PaymentCategory.TRANSFERENCIA),
        ("", PaymentCategory.TRANSFERENCIA),
    ])
    def test_keywords(self, name, category):
        assert infer_category(name) == category


class TestPaymentMethodsApi:
    def test_create_infers_category_once(self, client, admin_headers):
        response = client.post("/payment-methods/", headers=admin_headers, json={"name": "  Datafono Visa "})
        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Datafono Visa"
        assert body["category"] == "DATAFONO"
        assert body["status"] == "ACTIVO"

    def test_explicit_category_wins(self, client, admin_headers):
        response = client.post("/payment-methods/", headers=admin_headers, json={
            "name": "Caja menor efectivo", "category": "TRANSFERENCIA"
        })
        assert response.json()["category"] == "TRANSFERENCIA"

    def test_duplicate_name(self, client, admin_headers, cash_method):
        response = client.post("/payment-methods/", headers=admin_headers, json={"name": "Efectivo"})
        assert response.status_code == 409

    def test_cashier_cannot_create(self, client, cashier_headers):
        response = client.post("/payment-methods/", headers=cashier_headers, json={"name": "Nequi"})
        assert response.status_code == 403

    def test_list_only_active(self, client, db_session, cashier_headers, cash_method, card_method):
        from app.modules.payment_methods.models import PaymentMethodStatus

        card_method.status = PaymentMethodStatus.INACTIVO
        db_session.commit()

        body = client.get("/payment-methods/", headers=cashier_headers).json()
        assert body["total"] == 2
        active = client.get("/payment-methods/", headers=cashier_headers, params={"only_active": True}).json()
        assert [m["name"] for m in active["payment_methods"]] == ["Efectivo"]

    def test_resolve_unknown(self, db_session):
        service = PaymentMethodService(db_session)
        assert service.resolve_payment_method(None) is None
        assert service.resolve_payment_method(42) is None
