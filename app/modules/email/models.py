from sqlalchemy import Column, Integer, String, DateTime, Enum, Text, JSON
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class OutboxEventType(enum.Enum):
    INVOICE_ISSUED = "invoice.issued"        # Enviar factura al cliente
    CASH_DESK_CLOSED = "cash_desk.closed"    # Notificar cierre de caja a administradores
    PRODUCT_LOW_STOCK = "product.low_stock"  # Notificar stock mínimo al personal


class OutboxStatus(enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class OutboxEvent(Base, TimestampMixin):
    """
    Evento de notificación guardado en la misma transacción que el cambio
    de estado y procesado por Celery después del commit.
    """
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(Enum(OutboxEventType), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(Enum(OutboxStatus), nullable=False, default=OutboxStatus.PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    recipient_summary = Column(String(500), nullable=True)
