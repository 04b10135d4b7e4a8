"""
Tests del cuadre de caja

Cubren apertura única, cierre con saldo teórico y diferencia, totales
por categoría de pago, historial y exportación de movimientos.
"""


from app.modules.alerts.models import Alert, AlertType
from app.modules.cash_desk.models import Cuadre, CuadreStatus
from app.modules.cash_desk.service import categorize
from app.modules.email.models import OutboxEvent, OutboxEventType
from app.modules.invoices.models import InvoiceStatus
from app.modules.payment_methods.models import PaymentCategory


def open_cash_desk(client, headers, saldo_inicial=100000):
    response = client.post("/cash-desk/open", headers=headers, json={"saldo_inicial": saldo_inicial})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def invoice_order(client, headers, product, method, quantity=1, **extra):
    order = client.post("/orders/", headers=headers, json={
        "items": [{"product_id": product.id, "quantity": quantity}]
    }).json()
    payload = {"order_id": order["id"], "payment_method_id": method.id}
    payload.update(extra)
    response = client.post("/invoices/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]["invoice"]


# ===== APERTURA =====

class TestOpenCashDesk:
    def test_open(self, client, cashier_headers, cashier_user):
        response = client.post("/cash-desk/open", headers=cashier_headers, json={
            "saldo_inicial": 100000, "observaciones": "Turno mañana"
        })
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Caja abierta correctamente"
        assert body["data"]["status"] == "ABIERTO"
        assert body["data"]["opening_user"]["id"] == cashier_user.id
        assert float(body["data"]["saldo_inicial"]) == 100000

    def test_second_open_conflicts(self, client, cashier_headers, admin_headers):
        open_cash_desk(client, cashier_headers)
        response = client.post("/cash-desk/open", headers=admin_headers, json={"saldo_inicial": 0})
        assert response.status_code == 409
        assert response.json()["message"] == "Ya existe un cuadre abierto"

    def test_negative_opening_float(self, client, cashier_headers):
        response = client.post("/cash-desk/open", headers=cashier_headers, json={"saldo_inicial": -5})
        assert response.status_code == 400

    def test_customer_cannot_open(self, client, customer_headers):
        response = client.post("/cash-desk/open", headers=customer_headers, json={"saldo_inicial": 0})
        assert response.status_code == 403


# ===== CIERRE =====

class TestCloseCashDesk:
    def test_close_with_cash_sale_balances(
        self, client, db_session, cashier_headers, admin_user, plain_product, cash_method, outbox_dispatches
    ):
        """Test base 100000 + venta en efectivo 50000, contado 150000 -> diferencia 0"""
        opened = open_cash_desk(client, cashier_headers, 100000)
        invoice = invoice_order(client, cashier_headers, plain_product, cash_method, cash_amount=50000)
        assert invoice["cuadre_id"] == opened["id"]

        response = client.post("/cash-desk/close", headers=cashier_headers, json={
            "saldo_real": 150000, "gastos": 0
        })
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Caja cerrada correctamente"
        data = body["data"]
        assert data["status"] == "CERRADO"
        assert float(data["saldo_teorico"]) == 150000
        assert float(data["diferencia"]) == 0
        assert float(data["totals"]["cash"]) == 50000
        assert float(data["totals"]["total_caja"]) == 150000

        alert = db_session.query(Alert).filter(Alert.type == AlertType.CASH_DESK).one()
        assert alert.message.startswith(f"Cierre de caja #{opened['id']} realizado por Carlos Cajero")
        assert [r.user_id for r in alert.recipients] == [admin_user.id]

        event = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == OutboxEventType.CASH_DESK_CLOSED
        ).one()
        assert event.payload["cuadre_id"] == opened["id"]
        assert event.id in outbox_dispatches.event_ids

    def test_expenses_and_shortage(self, client, cashier_headers, plain_product, cash_method, card_method):
        open_cash_desk(client, cashier_headers, 20000)
        invoice_order(client, cashier_headers, plain_product, cash_method, cash_amount=60000, tip=5000)
        invoice_order(client, cashier_headers, plain_product, card_method)

        response = client.post("/cash-desk/close", headers=cashier_headers, json={
            "saldo_real": 60000, "gastos": 10000
        })
        data = response.json()["data"]
        # teórico = 20000 + 55000 - 10000
        assert float(data["saldo_teorico"]) == 65000
        assert float(data["diferencia"]) == -5000
        assert float(data["totals"]["card"]) == 50000
        assert float(data["totals"]["transfer"]) == 0

    def test_close_without_open_cash_desk(self, client, cashier_headers):
        response = client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": 0})
        assert response.status_code == 409
        assert response.json()["message"] == "No hay caja abierta"

    def test_close_rejects_negative_amounts(self, client, cashier_headers):
        open_cash_desk(client, cashier_headers)
        response = client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": -1})
        assert response.status_code == 400
        response = client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": 0, "gastos": -1})
        assert response.status_code == 400

    def test_only_one_open_after_reopen(self, client, db_session, cashier_headers):
        open_cash_desk(client, cashier_headers)
        client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": 100000})
        open_cash_desk(client, cashier_headers, 50000)
        assert db_session.query(Cuadre).filter(Cuadre.status == CuadreStatus.ABIERTO).count() == 1


# ===== CONSULTAS =====

class TestCashDeskQueries:
    def test_current_is_null_without_open(self, client, cashier_headers):
        response = client.get("/cash-desk/current", headers=cashier_headers)
        assert response.status_code == 200
        assert response.json() is None

    def test_current_lists_movements(self, client, cashier_headers, plain_product, cash_method):
        open_cash_desk(client, cashier_headers)
        invoice = invoice_order(client, cashier_headers, plain_product, cash_method, cash_amount=52000, tip=2000)

        body = client.get("/cash-desk/current", headers=cashier_headers).json()
        assert float(body["cuadre"]["totals"]["cash"]) == 52000
        movement = body["movements"][0]
        assert movement["invoice_number"] == invoice["invoice_number"]
        assert float(movement["amount"]) == 52000
        assert movement["payment_category"] == "EFECTIVO"

    def test_cancelled_invoice_listed_but_not_counted(
        self, client, cashier_headers, admin_headers, plain_product, cash_method
    ):
        open_cash_desk(client, cashier_headers)
        invoice = invoice_order(client, cashier_headers, plain_product, cash_method, cash_amount=50000)
        client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)

        body = client.get("/cash-desk/current", headers=cashier_headers).json()
        assert body["movements"][0]["status"] == "ANULADA"
        assert float(body["cuadre"]["totals"]["cash"]) == 0

    def test_history_admin_only(self, client, cashier_headers, admin_headers, plain_product, card_method):
        open_cash_desk(client, cashier_headers)
        invoice_order(client, cashier_headers, plain_product, card_method)
        client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": 100000})

        assert client.get("/cash-desk/history", headers=cashier_headers).status_code == 403

        response = client.get("/cash-desk/history", headers=admin_headers)
        assert response.status_code == 200
        history = response.json()
        assert len(history) == 1
        assert history[0]["invoices_count"] == 1
        assert float(history[0]["totals"]["card"]) == 50000
        assert float(history[0]["totals"]["cash"]) == 0

    def test_movements_unknown_cuadre(self, client, cashier_headers):
        response = client.get("/cash-desk/movements", headers=cashier_headers, params={"cuadre_id": 999})
        assert response.status_code == 404


# ===== EXPORTACIÓN =====

class TestExport:
    def test_export_csv(self, client, cashier_headers, plain_product, cash_method):
        opened = open_cash_desk(client, cashier_headers)
        invoice_order(client, cashier_headers, plain_product, cash_method, cash_amount=50000)

        response = client.get(
            "/cash-desk/export", headers=cashier_headers, params={"cuadre_id": opened["id"], "format": "csv"}
        )
        assert response.status_code == 200
        assert f"cuadre-{opened['id']}-movimientos.csv" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("Factura,Pedido,")
        assert lines[1].startswith("F-0001,")

    def test_export_xlsx(self, client, cashier_headers):
        opened = open_cash_desk(client, cashier_headers)
        response = client.get("/cash-desk/export", headers=cashier_headers, params={"cuadre_id": opened["id"]})
        assert response.status_code == 200
        assert response.content[:2] == b"PK"

    def test_export_requires_cuadre(self, client, cashier_headers):
        response = client.get("/cash-desk/export", headers=cashier_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "cuadreId requerido"


class TestCategorize:
    def test_buckets_by_payment_category(self):
        movements = [
            {"status": InvoiceStatus.EMITIDA, "payment_category": PaymentCategory.EFECTIVO, "amount": 1000},
            {"status": InvoiceStatus.EMITIDA, "payment_category": PaymentCategory.DATAFONO, "amount": 2000},
            {"status": InvoiceStatus.EMITIDA, "payment_category": PaymentCategory.TRANSFERENCIA, "amount": 3000},
            {"status": InvoiceStatus.ANULADA, "payment_category": PaymentCategory.EFECTIVO, "amount": 9000},
        ]
        totals = categorize(movements)
        assert totals == {"cash": 1000, "card": 2000, "transfer": 3000}
