"""
Tests de facturación

Cubren:
- Consecutivo de facturas y una factura por pedido
- Validaciones de pago en efectivo y método de pago
- Efectos del checkout: pedido pagado, mesa libre, stock y alertas
- Evento de correo registrado en el outbox
- Consultas, PDF y anulación
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.modules.alerts.models import Alert, AlertType
from app.modules.email.models import OutboxEvent, OutboxEventType, OutboxStatus
from app.modules.invoices.models import Invoice
from app.modules.invoices.service import invoice_conflict_detail
from app.modules.orders.models import OrderItem
from app.modules.payment_methods.models import PaymentMethod, PaymentCategory, PaymentMethodStatus


def new_order(client, headers, product, quantity=1, **extra):
    payload = {"items": [{"product_id": product.id, "quantity": quantity}]}
    payload.update(extra)
    response = client.post("/orders/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def checkout(client, headers, order_id, method, **extra):
    payload = {"order_id": order_id, "payment_method_id": method.id}
    payload.update(extra)
    return client.post("/invoices/", headers=headers, json=payload)


# ===== CHECKOUT =====

class TestCreateInvoice:
    def test_cash_checkout(self, client, cashier_headers, cashier_user, plain_product, cash_method):
        order = new_order(client, cashier_headers, plain_product)

        response = checkout(client, cashier_headers, order["id"], cash_method, cash_amount=60000, tip=5000)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Factura generada exitosamente"

        invoice = body["data"]["invoice"]
        assert invoice["invoice_number"] == "F-0001"
        assert invoice["status"] == "EMITIDA"
        assert invoice["cashier_user_id"] == cashier_user.id
        assert invoice["payment_type"] == "CONTADO"
        assert invoice["payment_method"]["name"] == "Efectivo"
        assert invoice["payment_method"]["category"] == "EFECTIVO"
        assert float(invoice["totals"]["total"]) == 50000
        assert float(invoice["tip"]) == 5000
        assert float(invoice["total_with_tip"]) == 55000
        assert float(invoice["amount"]) == 60000
        assert float(invoice["change"]) == 5000
        assert invoice["customer"]["name"] == "CLIENTES VARIOS"
        assert invoice["customer"]["nit"] == "222222222222"
        assert invoice["items"][0]["description"] == "Bandeja paisa"

        paid = body["data"]["order"]
        assert paid["status"] == "PAGADO"
        assert paid["payment_status"] == "PAGADO"
        assert paid["invoice_id"] == invoice["id"]

    def test_sequential_numbers(self, client, cashier_headers, plain_product, card_method):
        first = new_order(client, cashier_headers, plain_product)
        second = new_order(client, cashier_headers, plain_product)

        numbers = [
            checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]["invoice_number"]
            for order in (first, second)
        ]
        assert numbers == ["F-0001", "F-0002"]

    def test_card_payment_amount_is_total_with_tip(self, client, cashier_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method, tip=3000).json()["data"]["invoice"]
        assert invoice["payment_type"] == "ELECTRONICO"
        assert invoice["payment_method"]["name"] == "Datafono"
        assert invoice["payment_method"]["raw_name"] == "Tarjeta crédito"
        assert float(invoice["amount"]) == 53000
        assert float(invoice["change"]) == 0

    def test_taxed_lines_with_discount(self, client, cashier_headers, taxed_product, card_method):
        order = client.post("/orders/", headers=cashier_headers, json={"items": [{
            "product_id": taxed_product.id,
            "quantity": 2,
            "discount": {"name": "Happy hour", "type": "PERCENT", "value": 10},
        }]}).json()

        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        assert float(invoice["totals"]["total"]) == 18000
        assert float(invoice["totals"]["tax"]) == 1333
        assert float(invoice["totals"]["subtotal"]) == 16667
        line = invoice["items"][0]
        assert line["description"] == "Limonada - Happy hour"
        assert float(line["original_unit_price"]) == 10000
        assert line["discount"]["type"] == "PERCENT"

    def test_price_and_discount_billed_discounted(self, client, cashier_headers, taxed_product, card_method, table_one):
        """Test una línea con precio y descuento se factura con el descuento"""
        order = client.post(f"/orders/table/{table_one.id}/item", headers=cashier_headers, json={
            "product_id": taxed_product.id,
            "quantity": 2,
            "price": 10000,
            "discount": {"name": "Happy hour", "type": "PERCENT", "value": 10},
        }).json()

        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        assert float(invoice["totals"]["total"]) == 18000
        assert float(invoice["items"][0]["unit_price"]) == 9000

    def test_discount_recomputed_from_original_price(self, client, db_session, cashier_headers, taxed_product, card_method):
        """Test el precio efectivo sale del precio original y el descuento de la línea"""
        order = client.post("/orders/", headers=cashier_headers, json={"items": [{
            "product_id": taxed_product.id,
            "quantity": 2,
            "discount": {"name": "Cortesía", "type": "VALUE", "value": 2500},
        }]}).json()
        item = db_session.query(OrderItem).filter(OrderItem.order_id == order["id"]).one()
        item.unit_price = Decimal("10000")
        db_session.commit()

        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        assert float(invoice["items"][0]["unit_price"]) == 7500
        assert float(invoice["totals"]["total"]) == 15000

    def test_line_price_is_a_snapshot(self, client, db_session, cashier_headers, plain_product, card_method):
        """Test cambiar el precio de carta no altera pedidos ya tomados"""
        order = new_order(client, cashier_headers, plain_product, quantity=2)
        plain_product.price = Decimal("65000")
        db_session.commit()

        line = client.get(f"/orders/{order['id']}", headers=cashier_headers).json()["items"][0]
        assert float(line["unit_price"]) == 50000

        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        assert float(invoice["items"][0]["unit_price"]) == 50000
        assert float(invoice["totals"]["total"]) == 100000

    def test_closed_cuadre_is_not_attached(self, client, cashier_headers, plain_product, card_method):
        """Test una venta posterior al cierre no cae en el cuadre cerrado"""
        cuadre = client.post("/cash-desk/open", headers=cashier_headers, json={"saldo_inicial": 100000}).json()["data"]
        client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": 100000})

        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        assert invoice["cuadre_id"] is None

        movements = client.get(f"/cash-desk/movements?cuadre_id={cuadre['id']}", headers=cashier_headers).json()
        assert movements == []

    def test_second_invoice_for_order_rejected(self, client, db_session, cashier_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product)
        assert checkout(client, cashier_headers, order["id"], card_method).status_code == 201

        response = checkout(client, cashier_headers, order["id"], card_method)
        assert response.status_code == 400
        assert response.json()["message"] == "El pedido ya tiene una factura"
        assert db_session.query(Invoice).count() == 1


class TestCheckoutValidation:
    def test_missing_payment_method_writes_nothing(self, client, db_session, cashier_headers, plain_product):
        order = new_order(client, cashier_headers, plain_product)
        response = client.post("/invoices/", headers=cashier_headers, json={"order_id": order["id"]})
        assert response.status_code == 400
        assert response.json()["message"] == "Faltan campos requeridos"
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(OutboxEvent).count() == 0

    def test_unknown_order(self, client, cashier_headers, cash_method):
        response = checkout(client, cashier_headers, 999, cash_method, cash_amount=1000)
        assert response.status_code == 404

    @pytest.mark.parametrize("cash_amount,message", [
        (None, "Monto en efectivo requerido"),
        (49999, "Monto insuficiente"),
    ])
    def test_cash_amount_checks(self, client, cashier_headers, plain_product, cash_method, cash_amount, message):
        order = new_order(client, cashier_headers, plain_product)
        response = checkout(client, cashier_headers, order["id"], cash_method, cash_amount=cash_amount)
        assert response.status_code == 400
        assert response.json()["message"] == message

    def test_tip_counts_toward_cash_required(self, client, cashier_headers, plain_product, cash_method):
        order = new_order(client, cashier_headers, plain_product)
        response = checkout(client, cashier_headers, order["id"], cash_method, cash_amount=50000, tip=1000)
        assert response.status_code == 400

    def test_inactive_payment_method(self, client, db_session, cashier_headers, plain_product):
        method = PaymentMethod(name="Cheque", category=PaymentCategory.TRANSFERENCIA, status=PaymentMethodStatus.INACTIVO)
        db_session.add(method)
        db_session.commit()

        order = new_order(client, cashier_headers, plain_product)
        response = checkout(client, cashier_headers, order["id"], method)
        assert response.status_code == 400
        assert response.json()["message"] == "El método de pago no está activo"

    def test_unknown_payment_method(self, client, cashier_headers, plain_product):
        order = new_order(client, cashier_headers, plain_product)
        response = client.post("/invoices/", headers=cashier_headers, json={
            "order_id": order["id"], "payment_method_id": 999
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Método de pago inválido"

    def test_customer_cannot_invoice(self, client, customer_headers, plain_product, card_method):
        order = new_order(client, customer_headers, plain_product)
        response = checkout(client, customer_headers, order["id"], card_method)
        assert response.status_code == 403
        assert response.json()["message"] == "Solo cajeros pueden generar facturas"


# ===== EFECTOS DEL CHECKOUT =====

class TestCheckoutEffects:
    def test_table_is_released(self, client, cashier_headers, plain_product, card_method, table_one):
        order = new_order(client, cashier_headers, plain_product, status="PENDIENTE", table_id=table_one.id)
        table = client.get(f"/tables/{table_one.id}", headers=cashier_headers).json()
        assert table["status"] == "Booked"

        response = checkout(client, cashier_headers, order["id"], card_method)
        assert response.json()["data"]["order"]["table_id"] is None

        table = client.get(f"/tables/{table_one.id}", headers=cashier_headers).json()
        assert table["status"] == "Available"

    def test_stock_decrement_and_low_stock_alert(
        self, client, db_session, admin_user, cashier_headers, taxed_product, card_method, outbox_dispatches
    ):
        """Test stock 5 - 2 = 3 llega al mínimo y activa la alerta"""
        order = new_order(client, cashier_headers, taxed_product, quantity=2)
        checkout(client, cashier_headers, order["id"], card_method)

        db_session.refresh(taxed_product)
        assert taxed_product.quantity == 3

        alert = db_session.query(Alert).filter(Alert.type == AlertType.STOCK).one()
        assert taxed_product.alert_id == alert.id
        assert "Limonada tiene un stock de 3" in alert.message
        assert len(alert.recipients) == 2

        event = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == OutboxEventType.PRODUCT_LOW_STOCK
        ).one()
        assert event.id in outbox_dispatches.event_ids

    def test_stock_never_negative(self, client, db_session, cashier_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product, quantity=12)
        checkout(client, cashier_headers, order["id"], card_method)
        db_session.refresh(plain_product)
        assert plain_product.quantity == 0

    def test_invoice_email_event_recorded(self, client, db_session, cashier_headers, plain_product, card_method, outbox_dispatches):
        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]

        event = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == OutboxEventType.INVOICE_ISSUED
        ).one()
        assert event.payload == {"invoice_id": invoice["id"]}
        assert event.status == OutboxStatus.PENDING
        assert outbox_dispatches.event_ids == [event.id]

    def test_registered_customer_data_is_copied(
        self, client, cashier_headers, customer_headers, customer_user, plain_product, card_method
    ):
        order = new_order(client, customer_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]

        customer = invoice["customer"]
        assert customer["user_id"] == customer_user.id
        assert customer["name"] == "Clara Cliente"
        assert customer["nit"] == "1020304050"
        assert customer["email"] == "cliente@mesa360.co"
        assert customer["phone"] == "3001234567"

    def test_customer_data_overrides_order(self, client, cashier_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product, customer_name="Mesa terraza")
        invoice = checkout(client, cashier_headers, order["id"], card_method, customer_data={
            "name": "Restaurante Aliado SAS", "nit": "900123456", "email": "compras@aliado.co"
        }).json()["data"]["invoice"]
        assert invoice["customer"]["name"] == "Restaurante Aliado SAS"
        assert invoice["customer"]["nit"] == "900123456"
        assert invoice["customer"]["email"] == "compras@aliado.co"


# ===== CONSULTAS =====

class TestInvoiceQueries:
    def test_list_and_filter(self, client, cashier_headers, admin_headers, plain_product, card_method):
        first = new_order(client, cashier_headers, plain_product)
        second = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, first["id"], card_method).json()["data"]["invoice"]
        checkout(client, cashier_headers, second["id"], card_method)
        client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)

        body = client.get("/invoices/", headers=cashier_headers).json()
        assert body["total"] == 2
        assert [i["invoice_number"] for i in body["invoices"]] == ["F-0002", "F-0001"]

        cancelled = client.get("/invoices/", headers=cashier_headers, params={"status": "ANULADA"}).json()
        assert [i["id"] for i in cancelled["invoices"]] == [invoice["id"]]

    def test_list_requires_staff(self, client, customer_headers):
        assert client.get("/invoices/", headers=customer_headers).status_code == 403

    def test_customer_sees_only_own_invoices(
        self, client, db_session, cashier_headers, customer_headers, customer_user, headers_for, plain_product, card_method
    ):
        from app.modules.auth.models import User, UserRole

        order = new_order(client, customer_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]

        own = client.get(f"/invoices/customer/{customer_user.id}", headers=customer_headers)
        assert own.status_code == 200
        assert [i["id"] for i in own.json()] == [invoice["id"]]
        assert client.get(f"/invoices/{invoice['id']}", headers=customer_headers).status_code == 200

        other = User(name="Otro Cliente", email="otro@mesa360.co", password="x", role=UserRole.CUSTOMER, is_active=True)
        db_session.add(other)
        db_session.commit()
        other_headers = headers_for(other)

        response = client.get(f"/invoices/{invoice['id']}", headers=other_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "No tienes acceso a esta factura"
        response = client.get(f"/invoices/customer/{customer_user.id}", headers=other_headers)
        assert response.status_code == 403

    def test_missing_invoice(self, client, cashier_headers):
        response = client.get("/invoices/999", headers=cashier_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Factura no encontrada"

    def test_download_pdf(self, client, cashier_headers, taxed_product, cash_method):
        order = new_order(client, cashier_headers, taxed_product)
        invoice = checkout(client, cashier_headers, order["id"], cash_method, cash_amount=20000).json()["data"]["invoice"]

        response = client.get(f"/invoices/{invoice['id']}/pdf", headers=cashier_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "Factura-F-0001.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")


# ===== ANULACIÓN =====

class TestCancelInvoice:
    def test_admin_cancels(self, client, cashier_headers, admin_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]

        response = client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Factura anulada exitosamente"
        assert body["data"]["status"] == "ANULADA"
        assert body["data"]["cancelled_at"] is not None

        reopened = client.get(f"/orders/{order['id']}", headers=cashier_headers).json()
        assert reopened["status"] == "PENDIENTE"
        assert reopened["payment_status"] == "PENDIENTE"

    def test_cancel_twice(self, client, cashier_headers, admin_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)

        response = client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "La factura ya esta anulada"

    def test_cancel_keeps_stock(self, client, db_session, cashier_headers, admin_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product, quantity=3)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)

        db_session.refresh(plain_product)
        assert plain_product.quantity == 7

    def test_cancelled_order_cannot_be_reinvoiced(self, client, cashier_headers, admin_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        client.patch(f"/invoices/{invoice['id']}/cancel", headers=admin_headers)

        response = checkout(client, cashier_headers, order["id"], card_method)
        assert response.status_code == 400

    def test_cashier_cannot_cancel(self, client, cashier_headers, plain_product, card_method):
        order = new_order(client, cashier_headers, plain_product)
        invoice = checkout(client, cashier_headers, order["id"], card_method).json()["data"]["invoice"]
        response = client.patch(f"/invoices/{invoice['id']}/cancel", headers=cashier_headers)
        assert response.status_code == 403


class TestConflictDetail:
    @pytest.mark.parametrize("driver_message, detail", [
        ("UNIQUE constraint failed: invoices.order_id", "El pedido ya tiene una factura"),
        ('duplicate key value violates unique constraint "uq_invoice_order"', "El pedido ya tiene una factura"),
        (
            'duplicate key value violates unique constraint "uq_invoice_sequence_prefix"',
            "Conflicto al asignar el consecutivo de la factura, intente de nuevo",
        ),
    ])
    def test_message_follows_constraint(self, driver_message, detail):
        error = IntegrityError("INSERT", {}, Exception(driver_message))
        assert invoice_conflict_detail(error) == detail
