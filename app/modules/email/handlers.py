"""
Procesamiento de eventos del outbox: cada tipo de evento arma y envía
su correo. Lo ejecutan las tareas de Celery con su propia sesión.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

# Modelos importados para que el worker configure todas las relaciones
import app.modules.taxes.models
import app.modules.tables.models
import app.modules.orders.models
import app.modules.alerts.models
import app.modules.payment_methods.models
from app.modules.auth.models import User, UserRole
from app.modules.products.models import Product
from app.modules.cash_desk.models import Cuadre
from app.modules.invoices.models import Invoice
from app.modules.invoices.pdf import invoice_pdf_service
from app.modules.email.models import OutboxEvent, OutboxEventType, OutboxStatus
from app.modules.email.service import email_service

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """El correo del evento no pudo enviarse"""


def _staff_emails(db: Session, roles: List[UserRole]) -> List[str]:
    users = db.query(User).filter(
        User.role.in_(roles),
        User.is_active == True,
        User.email.isnot(None)
    ).order_by(User.id).all()
    return [user.email for user in users if user.email]


def _send(to_emails: List[str], subject: str, template_name: str, context: dict, attachments=None):
    sent = email_service.send_template_email(
        to_emails=to_emails,
        subject=subject,
        template_name=template_name,
        context=context,
        attachments=attachments
    )
    if not sent:
        raise NotificationError(f"No se pudo enviar el correo '{subject}'")


def handle_invoice_issued(db: Session, payload: dict) -> List[str]:
    invoice = db.query(Invoice).filter(Invoice.id == payload.get("invoice_id")).first()
    if not invoice:
        raise NotificationError(f"Factura {payload.get('invoice_id')} no encontrada")

    if not invoice.customer_email:
        logger.info(f"Factura {invoice.number} sin correo de cliente; no se envía")
        return []

    attachments = []
    try:
        attachments.append((f"Factura-{invoice.number}.pdf", invoice_pdf_service.generate_pdf(invoice), "pdf"))
    except Exception as e:
        # El recibo HTML se envía aunque falle el PDF
        logger.error(f"Error generando PDF de factura {invoice.number}: {str(e)}")

    _send(
        [invoice.customer_email],
        f"Factura {invoice.number}",
        "invoice_receipt.html",
        {"invoice": invoice},
        attachments=attachments
    )
    return [invoice.customer_email]


def handle_cash_desk_closed(db: Session, payload: dict) -> List[str]:
    cuadre = db.query(Cuadre).filter(Cuadre.id == payload.get("cuadre_id")).first()
    if not cuadre:
        raise NotificationError(f"Cuadre {payload.get('cuadre_id')} no encontrado")

    recipients = _staff_emails(db, [UserRole.ADMIN])
    if not recipients:
        logger.info(f"Cierre de caja #{cuadre.id} sin administradores para notificar")
        return []

    closing_name = payload.get("closing_name") or "Usuario"
    subject = f"Cierre de caja #{cuadre.id} - {closing_name}"
    closed_at = cuadre.closed_at.strftime("%d/%m/%Y %H:%M") if cuadre.closed_at else ""
    totals = {key: Decimal(str(value)) for key, value in (payload.get("totals") or {}).items()}

    _send(recipients, subject, "cash_desk_closed.html", {
        "subject": subject,
        "cuadre": cuadre,
        "closing_name": closing_name,
        "closed_at": closed_at,
        "totals": totals,
    })
    return recipients


def handle_product_low_stock(db: Session, payload: dict) -> List[str]:
    product = db.query(Product).filter(Product.id == payload.get("product_id")).first()
    if not product:
        raise NotificationError(f"Producto {payload.get('product_id')} no encontrado")

    recipients = _staff_emails(db, [UserRole.ADMIN, UserRole.CASHIER])
    if not recipients:
        return []

    subject = f"Alerta de producto - {product.name}"
    _send(recipients, subject, "low_stock_alert.html", {
        "subject": subject,
        "message": payload.get("message") or subject,
        "product": product,
    })
    return recipients


HANDLERS: Dict[OutboxEventType, Callable[[Session, dict], List[str]]] = {
    OutboxEventType.INVOICE_ISSUED: handle_invoice_issued,
    OutboxEventType.CASH_DESK_CLOSED: handle_cash_desk_closed,
    OutboxEventType.PRODUCT_LOW_STOCK: handle_product_low_stock,
}


def process_outbox_event(db: Session, event_id: int) -> Optional[OutboxEvent]:
    """
    Procesar un evento pendiente y dejarlo en SENT o FAILED.

    Un evento ya enviado no se reprocesa, así que despachar dos veces el
    mismo id no duplica correos.
    """
    event = db.query(OutboxEvent).filter(OutboxEvent.id == event_id).with_for_update().first()
    if not event:
        logger.warning(f"Evento de outbox {event_id} no existe")
        return None

    if event.status == OutboxStatus.SENT:
        logger.info(f"Evento de outbox {event_id} ya fue enviado")
        return event

    event.attempts = (event.attempts or 0) + 1
    try:
        recipients = HANDLERS[event.event_type](db, event.payload or {})
        event.status = OutboxStatus.SENT
        event.processed_at = datetime.now(timezone.utc)
        event.last_error = None
        event.recipient_summary = ", ".join(recipients)[:500] if recipients else None
        logger.info(f"Evento {event.event_type.value} #{event.id} procesado ({len(recipients)} destinatarios)")
    except Exception as e:
        event.status = OutboxStatus.FAILED
        event.last_error = str(e)[:2000]
        logger.error(f"Error procesando evento {event.event_type.value} #{event.id}: {str(e)}")

    db.commit()
    db.refresh(event)
    return event


def pending_event_ids(db: Session, max_attempts: int, older_than_seconds: float = 60) -> List[int]:
    """
    Eventos a re-despachar: fallidos con intentos disponibles y pendientes
    que llevan más de ``older_than_seconds`` sin procesarse.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)
    rows = db.query(OutboxEvent.id).filter(
        or_(
            and_(OutboxEvent.status == OutboxStatus.FAILED, OutboxEvent.attempts < max_attempts),
            and_(OutboxEvent.status == OutboxStatus.PENDING, OutboxEvent.created_at <= cutoff),
        )
    ).order_by(OutboxEvent.id).all()
    return [row.id for row in rows]

