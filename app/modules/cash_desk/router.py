from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.cash_desk.service import CuadreService
from app.modules.cash_desk.schemas import (
    CuadreOpen, CuadreClose, CuadreEnvelope, CurrentCashDesk, CashMovement, CuadreHistoryItem
)

cash_desk_router = APIRouter(prefix="/cash-desk", tags=["Cash Desk"])

staff_only = AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER])


@cash_desk_router.get("/current", response_model=Optional[CurrentCashDesk])
def get_current_cash_desk(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """
    Cuadre abierto con sus movimientos y totales por categoría

    Retorna null si no hay caja abierta.
    """
    service = CuadreService(db)
    return service.current()


@cash_desk_router.post("/open", response_model=CuadreEnvelope, status_code=status.HTTP_201_CREATED)
def open_cash_desk(
    data: CuadreOpen,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Abrir caja; solo puede haber un cuadre abierto"""
    service = CuadreService(db)
    cuadre = service.open(data, auth_context)
    return {"success": True, "message": "Caja abierta correctamente", "data": cuadre}


@cash_desk_router.post("/close", response_model=CuadreEnvelope)
def close_cash_desk(
    data: CuadreClose,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """
    Cerrar caja

    - **saldo_real**: efectivo contado
    - **gastos**: gastos pagados con la caja

    Notifica el cierre a los administradores.
    """
    service = CuadreService(db)
    cuadre = service.close(data, auth_context)
    return {"success": True, "message": "Caja cerrada correctamente", "data": cuadre}


@cash_desk_router.get("/movements", response_model=List[CashMovement])
def get_cash_desk_movements(
    cuadre_id: Optional[int] = Query(None, description="Cuadre; por defecto el abierto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    service = CuadreService(db)
    return service.movements_for(cuadre_id)


@cash_desk_router.get("/history", response_model=List[CuadreHistoryItem])
def list_cash_desk_history(
    start_date: Optional[date] = Query(None, description="Apertura desde (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Apertura hasta, inclusive (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN]))
):
    """Historial de cuadres con totales por categoría, más recientes primero"""
    service = CuadreService(db)
    return service.history(start_date, end_date)


@cash_desk_router.get("/export")
def export_cash_desk_movements(
    cuadre_id: Optional[int] = Query(None),
    format: str = Query("xlsx", pattern="^(xlsx|csv)$", description="xlsx o csv"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Descargar los movimientos de un cuadre"""
    service = CuadreService(db)
    return service.export(cuadre_id, format)
