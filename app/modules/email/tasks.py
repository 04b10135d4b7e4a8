"""
Tareas asíncronas de Celery para el outbox de notificaciones.
"""
import logging
from app.core.celery import celery_app
from app.core.config import settings
from app.database.database import SessionLocal
from app.modules.email.handlers import process_outbox_event, pending_event_ids

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def dispatch_outbox_event_task(self, event_id: int):
    """
    Procesar un evento del outbox.

    No reintenta por su cuenta: el evento queda en FAILED con el error y
    la tarea periódica lo vuelve a despachar.
    """
    logger.info(f"Procesando evento de outbox {event_id}")
    db = SessionLocal()
    try:
        event = process_outbox_event(db, event_id)
        if event is None:
            return {"status": "missing", "event_id": event_id}
        return {"status": event.status.value, "event_id": event_id, "attempts": event.attempts}
    except Exception as exc:
        db.rollback()
        logger.error(f"Error procesando evento de outbox {event_id}: {str(exc)}")
        return {"status": "error", "event_id": event_id, "error": str(exc)}
    finally:
        db.close()


@celery_app.task
def retry_pending_outbox_events():
    """
    Tarea periódica: re-despachar eventos pendientes o fallidos con
    intentos disponibles.
    """
    db = SessionLocal()
    try:
        event_ids = pending_event_ids(db, settings.OUTBOX_MAX_ATTEMPTS)
    finally:
        db.close()

    for event_id in event_ids:
        try:
            dispatch_outbox_event_task.delay(event_id)
        except Exception as e:
            logger.error(f"No se pudo re-despachar el evento {event_id}: {str(e)}")

    if event_ids:
        logger.info(f"Re-despachados {len(event_ids)} eventos de outbox")
    return {"status": "success", "dispatched": len(event_ids)}
