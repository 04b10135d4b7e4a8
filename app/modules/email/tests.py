"""
Tests del outbox de notificaciones y sus manejadores de correo
"""

from datetime import datetime, timedelta

from app.modules.email.handlers import process_outbox_event, pending_event_ids
from app.modules.email.models import OutboxEvent, OutboxEventType, OutboxStatus
from app.modules.email.outbox import record_event, dispatch_events
from app.modules.email.service import email_service, format_money


def invoice_for_customer(client, cashier_headers, customer_headers, product, method):
    order = client.post("/orders/", headers=customer_headers, json={
        "items": [{"product_id": product.id}]
    }).json()
    response = client.post("/invoices/", headers=cashier_headers, json={
        "order_id": order["id"], "payment_method_id": method.id
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]["invoice"]


def invoice_event(db):
    return db.query(OutboxEvent).filter(OutboxEvent.event_type == OutboxEventType.INVOICE_ISSUED).one()


# ===== OUTBOX =====

class TestOutbox:
    def test_record_event_is_pending_until_commit(self, db_session):
        event = record_event(db_session, OutboxEventType.PRODUCT_LOW_STOCK, {"product_id": 1})
        assert event.id is not None
        assert event.status == OutboxStatus.PENDING
        db_session.rollback()
        assert db_session.query(OutboxEvent).count() == 0

    def test_dispatch_failure_is_swallowed(self, monkeypatch):
        import app.modules.email.outbox as outbox_module

        class BrokenBroker:
            def delay(self, event_id):
                raise ConnectionError("redis no disponible")

        monkeypatch.setattr(outbox_module, "dispatch_outbox_event_task", BrokenBroker())
        dispatch_events([1, 2])

    def test_pending_event_ids(self, db_session):
        old = datetime.utcnow() - timedelta(minutes=10)
        events = {
            "stale": OutboxEvent(event_type=OutboxEventType.INVOICE_ISSUED, payload={}, status=OutboxStatus.PENDING, attempts=0, created_at=old),
            "fresh": OutboxEvent(event_type=OutboxEventType.INVOICE_ISSUED, payload={}, status=OutboxStatus.PENDING, attempts=0),
            "retry": OutboxEvent(event_type=OutboxEventType.INVOICE_ISSUED, payload={}, status=OutboxStatus.FAILED, attempts=2),
            "exhausted": OutboxEvent(event_type=OutboxEventType.INVOICE_ISSUED, payload={}, status=OutboxStatus.FAILED, attempts=5),
            "sent": OutboxEvent(event_type=OutboxEventType.INVOICE_ISSUED, payload={}, status=OutboxStatus.SENT, attempts=1, created_at=old),
        }
        db_session.add_all(events.values())
        db_session.commit()

        assert pending_event_ids(db_session, max_attempts=5) == sorted([events["stale"].id, events["retry"].id])


# ===== MANEJADORES =====

class TestInvoiceIssued:
    def test_sends_receipt_with_pdf(
        self, client, db_session, cashier_headers, customer_headers, plain_product, card_method, sent_emails
    ):
        invoice = invoice_for_customer(client, cashier_headers, customer_headers, plain_product, card_method)
        event = process_outbox_event(db_session, invoice_event(db_session).id)

        assert event.status == OutboxStatus.SENT
        assert event.attempts == 1
        assert event.recipient_summary == "cliente@mesa360.co"
        assert len(sent_emails) == 1
        email = sent_emails[0]
        assert email["to"] == ["cliente@mesa360.co"]
        assert email["subject"] == f"Factura {invoice['invoice_number']}"
        assert "Bandeja paisa" in email["html"]
        filename, content, subtype = email["attachments"][0]
        assert filename == "Factura-F-0001.pdf"
        assert content.startswith(b"%PDF")
        assert subtype == "pdf"

    def test_sent_event_is_not_resent(
        self, client, db_session, cashier_headers, customer_headers, plain_product, card_method, sent_emails
    ):
        invoice_for_customer(client, cashier_headers, customer_headers, plain_product, card_method)
        event_id = invoice_event(db_session).id
        process_outbox_event(db_session, event_id)
        event = process_outbox_event(db_session, event_id)

        assert event.attempts == 1
        assert len(sent_emails) == 1

    def test_walk_in_invoice_has_no_recipient(self, client, db_session, cashier_headers, plain_product, card_method, sent_emails):
        order = client.post("/orders/", headers=cashier_headers, json={"items": [{"product_id": plain_product.id}]}).json()
        client.post("/invoices/", headers=cashier_headers, json={"order_id": order["id"], "payment_method_id": card_method.id})

        event = process_outbox_event(db_session, invoice_event(db_session).id)
        assert event.status == OutboxStatus.SENT
        assert event.recipient_summary is None
        assert sent_emails == []

    def test_smtp_failure_marks_failed(
        self, client, db_session, monkeypatch, cashier_headers, customer_headers, plain_product, card_method
    ):
        invoice_for_customer(client, cashier_headers, customer_headers, plain_product, card_method)
        monkeypatch.setattr(email_service, "send_email", lambda *args, **kwargs: False)

        event = process_outbox_event(db_session, invoice_event(db_session).id)
        assert event.status == OutboxStatus.FAILED
        assert event.attempts == 1
        assert "Factura F-0001" in event.last_error

    def test_missing_invoice_fails(self, db_session):
        event = record_event(db_session, OutboxEventType.INVOICE_ISSUED, {"invoice_id": 404})
        db_session.commit()

        processed = process_outbox_event(db_session, event.id)
        assert processed.status == OutboxStatus.FAILED
        assert "404" in processed.last_error

    def test_unknown_event_id(self, db_session):
        assert process_outbox_event(db_session, 12345) is None


class TestStaffNotifications:
    def test_cash_desk_closed_goes_to_admins(
        self, client, db_session, admin_user, cashier_headers, sent_emails
    ):
        client.post("/cash-desk/open", headers=cashier_headers, json={"saldo_inicial": 100000})
        client.post("/cash-desk/close", headers=cashier_headers, json={"saldo_real": 100000})

        event = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == OutboxEventType.CASH_DESK_CLOSED
        ).one()
        process_outbox_event(db_session, event.id)

        assert len(sent_emails) == 1
        assert sent_emails[0]["to"] == ["admin@mesa360.co"]
        assert sent_emails[0]["subject"].endswith("- Carlos Cajero")
        assert "100.000" in sent_emails[0]["html"]

    def test_low_stock_goes_to_staff(
        self, client, db_session, admin_user, cashier_headers, taxed_product, card_method, sent_emails
    ):
        order = client.post("/orders/", headers=cashier_headers, json={
            "items": [{"product_id": taxed_product.id, "quantity": 4}]
        }).json()
        client.post("/invoices/", headers=cashier_headers, json={"order_id": order["id"], "payment_method_id": card_method.id})

        event = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == OutboxEventType.PRODUCT_LOW_STOCK
        ).one()
        process_outbox_event(db_session, event.id)

        assert sent_emails[0]["to"] == ["admin@mesa360.co", "cajero@mesa360.co"]
        assert sent_emails[0]["subject"] == "Alerta de producto - Limonada"


class TestFormatMoney:
    def test_thousands_separator(self):
        assert format_money(18000) == "18.000"
        assert format_money("1234567.6") == "1.234.568"
        assert format_money(None) == "0"
