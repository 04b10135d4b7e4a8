"""
Tests de indicadores de ventas
"""

from datetime import date
from decimal import Decimal

import pytest

from app.modules.invoices.models import Invoice
from app.modules.stats.service import StatsService, Period, compute_change_pct


def sell(client, headers, method, items, **extra):
    order = client.post("/orders/", headers=headers, json={"items": items}).json()
    payload = {"order_id": order["id"], "payment_method_id": method.id}
    payload.update(extra)
    response = client.post("/invoices/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]["invoice"]


class TestHelpers:
    @pytest.mark.parametrize("current, previous, expected", [
        (0, 0, Decimal("0")),
        (500, 0, Decimal("100")),
        (150, 100, Decimal("50.00")),
        (50, 100, Decimal("-50.00")),
    ])
    def test_change_pct(self, current, previous, expected):
        assert compute_change_pct(current, previous) == expected

    def test_month_periods(self):
        december = Period.month(date(2025, 12, 15))
        assert (december.start.date(), december.end.date()) == (date(2025, 12, 1), date(2026, 1, 1))
        previous = Period.month(date(2026, 3, 31)).previous_month()
        assert (previous.start.date(), previous.end.date()) == (date(2026, 2, 1), date(2026, 3, 1))


class TestTodaySummary:
    def test_sales_include_tip_and_skip_annulled(
        self, client, db_session, cashier_headers, admin_headers, plain_product, taxed_product, card_method, table_one
    ):
        kept = sell(client, cashier_headers, card_method, [{"product_id": plain_product.id}], tip=5000)
        annulled = sell(client, cashier_headers, card_method, [{"product_id": taxed_product.id}])
        client.patch(f"/invoices/{annulled['id']}/cancel", headers=admin_headers)
        client.post("/orders/", headers=cashier_headers, json={"table_id": table_one.id, "items": []})

        created = db_session.query(Invoice).filter(Invoice.id == kept["id"]).one().created_at
        summary = StatsService(db_session).today_summary(created.date())

        assert summary["sales"] == Decimal("55000")
        assert summary["sales_previous"] == Decimal("0")
        assert summary["sales_change_pct"] == Decimal("100")
        # el pedido de la factura anulada vuelve a PENDIENTE y cuenta como activo
        assert summary["active_orders"] == 2
        assert summary["counts"] == {"products": 2, "tables": 1}

    def test_endpoint_requires_staff(self, client, cashier_headers, customer_headers):
        assert client.get("/stats/today", headers=customer_headers).status_code == 403
        body = client.get("/stats/today", headers=cashier_headers).json()
        assert float(body["sales"]) == 0
        assert body["counts"] == {"products": 0, "tables": 0}

    def test_monthly_endpoint(self, client, cashier_headers):
        body = client.get("/stats/monthly", headers=cashier_headers).json()
        assert body["month"] == date.today().strftime("%Y-%m")
        assert body["active_orders"] == 0


class TestPopularProducts:
    def test_ranked_by_quantity(self, client, cashier_headers, plain_product, taxed_product, card_method):
        sell(client, cashier_headers, card_method, [
            {"product_id": plain_product.id, "quantity": 2},
            {"product_id": taxed_product.id, "quantity": 1},
        ])
        sell(client, cashier_headers, card_method, [{"product_id": taxed_product.id, "quantity": 2}])

        body = client.get("/stats/popular-products", headers=cashier_headers).json()
        assert body["total"] == 2
        first, second = body["products"]
        assert (first["rank"], first["name"], first["total_quantity"]) == (1, "Limonada", 3)
        assert float(first["total_amount"]) == 30000
        assert (second["rank"], second["name"], second["total_quantity"]) == (2, "Bandeja paisa", 2)
        assert float(second["total_amount"]) == 100000

    def test_limit_and_csv(self, client, cashier_headers, plain_product, taxed_product, card_method):
        sell(client, cashier_headers, card_method, [
            {"product_id": plain_product.id},
            {"product_id": taxed_product.id, "quantity": 3},
        ])

        body = client.get("/stats/popular-products?limit=1", headers=cashier_headers).json()
        assert [p["name"] for p in body["products"]] == ["Limonada"]

        response = client.get("/stats/popular-products?export=csv", headers=cashier_headers)
        assert response.status_code == 200
        assert response.text.splitlines()[0] == "Puesto,Producto,Nombre,Cantidad,Monto"
        assert len(response.text.splitlines()) == 3
