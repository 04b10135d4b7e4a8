"""
Outbox transaccional de notificaciones.

Los servicios registran el evento en la misma sesión del cambio de
estado (``record_event``) y lo despachan a Celery después del commit
(``dispatch_events``). Si el despacho falla el evento queda PENDING y
la tarea periódica lo recoge.
"""
import logging
from typing import Iterable

from sqlalchemy.orm import Session

from app.modules.email.models import OutboxEvent, OutboxEventType, OutboxStatus
from app.modules.email.tasks import dispatch_outbox_event_task

logger = logging.getLogger(__name__)


def record_event(db: Session, event_type: OutboxEventType, payload: dict) -> OutboxEvent:
    """Agregar el evento a la transacción actual (sin commit)."""
    event = OutboxEvent(
        event_type=event_type,
        payload=payload,
        status=OutboxStatus.PENDING,
        attempts=0
    )
    db.add(event)
    db.flush()
    return event


def dispatch_events(event_ids: Iterable[int]) -> None:
    """Encolar eventos ya confirmados; nunca lanza excepción."""
    for event_id in event_ids:
        try:
            dispatch_outbox_event_task.delay(event_id)
            logger.info(f"Evento de outbox {event_id} encolado")
        except Exception as e:
            logger.error(f"No se pudo encolar el evento de outbox {event_id}: {str(e)}")
