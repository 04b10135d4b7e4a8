"""
Alertas internas: stock mínimo de productos y cierres de caja.
"""
import logging
import unicodedata
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.modules.alerts.models import Alert, AlertUser, AlertType
from app.modules.auth.models import User, UserRole
from app.modules.products.models import Product
from app.modules.email.models import OutboxEventType
from app.modules.email.outbox import record_event, dispatch_events

logger = logging.getLogger(__name__)

ALERT_LIST_LIMIT = 100


def strip_diacritics(value: Optional[str]) -> str:
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_message(message: Optional[str]) -> str:
    """Clave de búsqueda: sin tildes, minúsculas y sin comas"""
    return strip_diacritics(str(message or "")).lower().replace(",", "").strip()


def low_stock_message(product: Product) -> str:
    name = strip_diacritics(product.name or "").strip() or "Producto"
    return (
        f"El Producto {name} tiene un stock de {product.quantity}, "
        f"por debajo o precisamente en el minimo configurado ({product.alert_min_stock})"
    )


def staff_users(db: Session, roles: List[UserRole]) -> List[User]:
    return db.query(User).filter(
        User.role.in_(roles),
        User.is_active == True
    ).order_by(User.id).all()


def assign_alert(db: Session, alert: Alert, users: List[User]) -> int:
    """Asignar la alerta a los usuarios que aún no la tienen; retorna cuántos se agregaron"""
    existing = {
        row.user_id for row in
        db.query(AlertUser.user_id).filter(AlertUser.alert_id == alert.id).all()
    }
    added = 0
    for user in users:
        if user.id in existing:
            continue
        db.add(AlertUser(alert_id=alert.id, user_id=user.id))
        added += 1
    return added


class ProductAlertService:
    """Evalúa el stock de un producto contra su mínimo configurado."""

    def __init__(self, db: Session):
        self.db = db

    def _find_or_create(self, message: str) -> Alert:
        normalized = normalize_message(message)
        alert = self.db.query(Alert).filter(
            Alert.type == AlertType.STOCK,
            Alert.normalized_message == normalized
        ).first()
        if alert:
            alert.is_active = True
            return alert

        alert = Alert(
            type=AlertType.STOCK,
            message=message,
            normalized_message=normalized,
            is_active=True
        )
        self.db.add(alert)
        self.db.flush()
        return alert

    def evaluate_low_stock(self, product: Product) -> Optional[Alert]:
        """
        Activar o limpiar la alerta de stock del producto.

        Con stock en o por debajo del mínimo enlaza la alerta al producto;
        si la alerta no estaba activa para el producto la asigna al
        personal y registra el correo en el outbox. Hace commit.
        """
        if product.quantity is None or product.alert_min_stock is None:
            return None

        if product.quantity > product.alert_min_stock:
            if product.alert_id:
                previous = product.alert
                product.alert_id = None
                if previous is not None:
                    previous.is_active = False
                self.db.commit()
                logger.info(f"Alerta de stock limpiada para producto {product.id}")
            return None

        message = low_stock_message(product)
        alert = self._find_or_create(message)
        already_active = product.alert_id == alert.id
        product.alert_id = alert.id

        event_ids = []
        if not already_active:
            recipients = staff_users(self.db, [UserRole.ADMIN, UserRole.CASHIER])
            assign_alert(self.db, alert, recipients)
            event = record_event(self.db, OutboxEventType.PRODUCT_LOW_STOCK, {
                "product_id": product.id,
                "alert_id": alert.id,
                "message": message,
            })
            event_ids.append(event.id)

        self.db.commit()
        self.db.refresh(alert)

        if event_ids:
            logger.info(f"Alerta de stock #{alert.id} activada para producto {product.id}")
            dispatch_events(event_ids)
        return alert


class CashClosureAlert:
    """Alerta de cierre de caja asignada a los administradores."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, message: str) -> Alert:
        """Crear la alerta en la transacción del cierre (sin commit)."""
        alert = Alert(
            type=AlertType.CASH_DESK,
            message=message,
            normalized_message=normalize_message(message)[:500],
            is_active=True
        )
        self.db.add(alert)
        self.db.flush()
        assign_alert(self.db, alert, staff_users(self.db, [UserRole.ADMIN]))
        return alert


class AlertService:
    def __init__(self, db: Session):
        self.db = db

    def get_user_alerts(self, user_id: int) -> dict:
        rows = self.db.query(Alert, AlertUser).join(
            AlertUser, AlertUser.alert_id == Alert.id
        ).filter(
            AlertUser.user_id == user_id,
            Alert.is_active == True
        ).order_by(Alert.created_at.desc(), Alert.id.desc()).limit(ALERT_LIST_LIMIT).all()

        alerts = [
            {
                "id": alert.id,
                "type": alert.type,
                "message": alert.message,
                "is_read": assignment.is_read,
                "created_at": alert.created_at,
            }
            for alert, assignment in rows
        ]
        return {"alerts": alerts, "total": len(alerts)}

    def acknowledge(self, user_id: int, alert_id: int) -> None:
        """Quitar la alerta de la bandeja del usuario"""
        assignment = self.db.query(AlertUser).filter(
            AlertUser.alert_id == alert_id,
            AlertUser.user_id == user_id
        ).first()
        if not assignment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Alerta no encontrada"
            )
        self.db.delete(assignment)
        self.db.commit()
