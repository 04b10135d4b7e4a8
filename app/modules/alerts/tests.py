"""
Tests de alertas de stock mínimo y bandeja de alertas por usuario
"""

from app.modules.alerts.models import Alert, AlertUser, AlertType
from app.modules.alerts.service import ProductAlertService, CashClosureAlert, low_stock_message, normalize_message
from app.modules.email.models import OutboxEvent, OutboxEventType
from app.modules.products.models import Product


def set_stock(db, product, quantity):
    product.quantity = quantity
    db.commit()
    db.refresh(product)
    return product


class TestMessages:
    def test_low_stock_message_strips_accents(self):
        product = Product(name="Café tinto", price=2000, quantity=1, alert_min_stock=4)
        assert low_stock_message(product) == (
            "El Producto Cafe tinto tiene un stock de 1, "
            "por debajo o precisamente en el minimo configurado (4)"
        )

    def test_normalize_message(self):
        assert normalize_message("  Cierre de Caja #3, Niño ") == "cierre de caja #3 nino"


class TestProductAlertService:
    def test_stock_above_minimum_has_no_alert(self, db_session, plain_product):
        assert ProductAlertService(db_session).evaluate_low_stock(plain_product) is None
        assert db_session.query(Alert).count() == 0

    def test_stock_at_minimum_activates_alert(
        self, db_session, admin_user, cashier_user, customer_user, plain_product, outbox_dispatches
    ):
        set_stock(db_session, plain_product, 2)
        alert = ProductAlertService(db_session).evaluate_low_stock(plain_product)

        assert alert.type == AlertType.STOCK
        assert alert.is_active is True
        assert plain_product.alert_id == alert.id
        assert sorted(r.user_id for r in alert.recipients) == [admin_user.id, cashier_user.id]

        event = db_session.query(OutboxEvent).one()
        assert event.event_type == OutboxEventType.PRODUCT_LOW_STOCK
        assert event.payload["product_id"] == plain_product.id
        assert outbox_dispatches.event_ids == [event.id]

    def test_repeated_evaluation_does_not_duplicate(self, db_session, admin_user, plain_product, outbox_dispatches):
        set_stock(db_session, plain_product, 1)
        service = ProductAlertService(db_session)
        first = service.evaluate_low_stock(plain_product)
        second = service.evaluate_low_stock(plain_product)

        assert first.id == second.id
        assert db_session.query(AlertUser).count() == 1
        assert len(outbox_dispatches.event_ids) == 1

    def test_restock_clears_alert(self, db_session, admin_user, plain_product):
        set_stock(db_session, plain_product, 0)
        service = ProductAlertService(db_session)
        alert = service.evaluate_low_stock(plain_product)

        set_stock(db_session, plain_product, 20)
        assert service.evaluate_low_stock(plain_product) is None
        db_session.refresh(alert)
        assert plain_product.alert_id is None
        assert alert.is_active is False

    def test_no_minimum_configured(self, db_session):
        product = Product(name="Agua", price=3000, quantity=0, alert_min_stock=None)
        assert ProductAlertService(db_session).evaluate_low_stock(product) is None


class TestCashClosureAlert:
    def test_assigned_to_admins_only(self, db_session, admin_user, cashier_user):
        alert = CashClosureAlert(db_session).create("Cierre de caja #1 realizado por Carlos Cajero.")
        db_session.commit()

        assert alert.type == AlertType.CASH_DESK
        assert [r.user_id for r in alert.recipients] == [admin_user.id]


class TestAlertsApi:
    def test_list_and_acknowledge(self, client, db_session, cashier_user, cashier_headers, plain_product):
        set_stock(db_session, plain_product, 1)
        alert = ProductAlertService(db_session).evaluate_low_stock(plain_product)

        body = client.get("/alerts/", headers=cashier_headers).json()
        assert body["total"] == 1
        assert body["alerts"][0]["id"] == alert.id
        assert body["alerts"][0]["type"] == "STOCK"
        assert body["alerts"][0]["is_read"] is False

        response = client.post(f"/alerts/{alert.id}/ack", headers=cashier_headers)
        assert response.status_code == 200
        assert client.get("/alerts/", headers=cashier_headers).json()["total"] == 0

    def test_acknowledge_unknown_alert(self, client, cashier_headers):
        response = client.post("/alerts/999/ack", headers=cashier_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Alerta no encontrada"

    def test_customers_have_no_alerts(self, client, customer_headers):
        assert client.get("/alerts/", headers=customer_headers).status_code == 403
