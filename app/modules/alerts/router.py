from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.alerts.service import AlertService
from app.modules.alerts.schemas import AlertList

alerts_router = APIRouter(prefix="/alerts", tags=["Alerts"])


@alerts_router.get("/", response_model=AlertList)
def list_my_alerts(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER]))
):
    """
    Alertas activas asignadas al usuario (stock mínimo, cierres de caja)
    """
    service = AlertService(db)
    return service.get_user_alerts(auth_context.user_id)


@alerts_router.post("/{alert_id}/ack")
def acknowledge_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER]))
):
    """Marcar la alerta como atendida (se quita de la bandeja del usuario)"""
    service = AlertService(db)
    service.acknowledge(auth_context.user_id, alert_id)
    return {"success": True}
