"""
Cuadre de caja: apertura, movimientos y cierre del turno.

Un movimiento es una factura asociada al cuadre; su monto es total +
propina. Las facturas anuladas se listan pero no suman a los totales.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import HTTPException, Response, status
from sqlalchemy import and_, case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.auth.schemas import AuthContext
from app.modules.alerts.service import CashClosureAlert
from app.modules.cash_desk.models import Cuadre, CuadreStatus
from app.modules.cash_desk.schemas import CuadreOpen, CuadreClose
from app.modules.cash_desk.export import export_movements
from app.modules.email.models import OutboxEventType
from app.modules.email.outbox import record_event, dispatch_events
from app.modules.email.service import format_money
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.payment_methods.models import PaymentCategory
from app.modules.taxes.calculator import to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

CATEGORY_BUCKETS = {
    PaymentCategory.EFECTIVO: "cash",
    PaymentCategory.DATAFONO: "card",
    PaymentCategory.TRANSFERENCIA: "transfer",
}


def categorize(movements: List[dict]) -> dict:
    """Sumar movimientos por categoría de pago (sin facturas anuladas)"""
    totals = {"cash": ZERO, "card": ZERO, "transfer": ZERO}
    for movement in movements:
        if movement["status"] == InvoiceStatus.ANULADA:
            continue
        bucket = CATEGORY_BUCKETS.get(movement["payment_category"], "transfer")
        totals[bucket] += to_decimal(movement["amount"])
    return totals


def _user_summary(user) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name}


def shape_cuadre(cuadre: Cuadre, totals: dict) -> dict:
    saldo_inicial = to_decimal(cuadre.saldo_inicial)
    gastos = to_decimal(cuadre.gastos)
    cash = totals.get("cash", ZERO)
    return {
        "id": cuadre.id,
        "status": cuadre.status,
        "opened_at": cuadre.opened_at,
        "closed_at": cuadre.closed_at,
        "opening_user": _user_summary(cuadre.opened_by_user),
        "closing_user": _user_summary(cuadre.closed_by_user),
        "saldo_inicial": saldo_inicial,
        "saldo_real": to_decimal(cuadre.saldo_real),
        "saldo_teorico": to_decimal(cuadre.saldo_teorico),
        "diferencia": to_decimal(cuadre.diferencia),
        "gastos": gastos,
        "observaciones": cuadre.observaciones,
        "totals": {
            "cash": cash,
            "card": totals.get("card", ZERO),
            "transfer": totals.get("transfer", ZERO),
            "total_caja": saldo_inicial + cash - gastos,
        },
    }


class CuadreService:
    def __init__(self, db: Session):
        self.db = db

    def _active_cuadre(self, lock: bool = False) -> Optional[Cuadre]:
        query = self.db.query(Cuadre).filter(Cuadre.status == CuadreStatus.ABIERTO)
        if lock:
            query = query.with_for_update()
        return query.order_by(Cuadre.opened_at.desc(), Cuadre.id.desc()).first()

    def get_cuadre_or_404(self, cuadre_id: int) -> Cuadre:
        cuadre = self.db.query(Cuadre).filter(Cuadre.id == cuadre_id).first()
        if not cuadre:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cuadre no encontrado"
            )
        return cuadre

    def fetch_movements(self, cuadre_id: int) -> List[dict]:
        invoices = self.db.query(Invoice).filter(
            Invoice.cuadre_id == cuadre_id
        ).order_by(Invoice.created_at.asc(), Invoice.id.asc()).all()

        return [
            {
                "id": invoice.id,
                "invoice_number": invoice.number,
                "order_id": invoice.order_id,
                "total": to_decimal(invoice.total),
                "tip": to_decimal(invoice.tip),
                "amount": invoice.amount_with_tip,
                "payment_method": invoice.payment_method.name if invoice.payment_method else invoice.payment_method_name,
                "payment_category": invoice.payment_category,
                "status": invoice.status,
                "created_at": invoice.created_at,
            }
            for invoice in invoices
        ]

    def open(self, data: CuadreOpen, actor: AuthContext) -> dict:
        if data.saldo_inicial is None or data.saldo_inicial < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Saldo inicial inválido"
            )

        conflict = HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya existe un cuadre abierto"
        )
        if self._active_cuadre():
            raise conflict

        try:
            cuadre = Cuadre(
                status=CuadreStatus.ABIERTO,
                opened_by=actor.user_id,
                opened_at=datetime.now(timezone.utc),
                saldo_inicial=data.saldo_inicial,
                gastos=0,
                observaciones=data.observaciones or None
            )
            self.db.add(cuadre)
            self.db.commit()
        except IntegrityError:
            # Índice único parcial: otra apertura ganó la carrera
            self.db.rollback()
            raise conflict

        self.db.refresh(cuadre)
        logger.info(f"Cuadre {cuadre.id} abierto por usuario {actor.user_id} con base {data.saldo_inicial}")
        return shape_cuadre(cuadre, {})

    def current(self) -> Optional[dict]:
        cuadre = self._active_cuadre()
        if not cuadre:
            return None
        movements = self.fetch_movements(cuadre.id)
        return {
            "cuadre": shape_cuadre(cuadre, categorize(movements)),
            "movements": movements,
        }

    def movements_for(self, cuadre_id: Optional[int] = None) -> List[dict]:
        if cuadre_id is not None:
            cuadre = self.get_cuadre_or_404(cuadre_id)
        else:
            cuadre = self._active_cuadre()
            if not cuadre:
                return []
        return self.fetch_movements(cuadre.id)

    def close(self, data: CuadreClose, actor: AuthContext) -> dict:
        """
        Cerrar el cuadre abierto.

        saldo_teorico = saldo_inicial + efectivo - gastos
        diferencia = saldo_real - saldo_teorico
        """
        if data.saldo_real is None or data.saldo_real < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Saldo real inválido"
            )
        if data.gastos is None or data.gastos < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Gastos inválidos"
            )

        cuadre = self._active_cuadre(lock=True)
        if not cuadre:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No hay caja abierta"
            )

        try:
            movements = self.fetch_movements(cuadre.id)
            totals = categorize(movements)

            saldo_teorico = to_decimal(cuadre.saldo_inicial) + totals["cash"] - data.gastos
            cuadre.closed_by = actor.user_id
            cuadre.closed_at = datetime.now(timezone.utc)
            cuadre.saldo_real = data.saldo_real
            cuadre.saldo_teorico = saldo_teorico
            cuadre.diferencia = data.saldo_real - saldo_teorico
            cuadre.gastos = data.gastos
            cuadre.observaciones = data.observaciones or cuadre.observaciones or None
            cuadre.status = CuadreStatus.CERRADO

            total_caja = to_decimal(cuadre.saldo_inicial) + totals["cash"] - data.gastos
            closing_name = actor.name or str(actor.user_id)
            message = (
                f"Cierre de caja #{cuadre.id} realizado por {closing_name}. "
                f"Total caja: ${format_money(total_caja)}, saldo real: ${format_money(data.saldo_real)}, "
                f"diferencia: ${format_money(cuadre.diferencia)}."
            )
            CashClosureAlert(self.db).create(message)
            event = record_event(self.db, OutboxEventType.CASH_DESK_CLOSED, {
                "cuadre_id": cuadre.id,
                "closing_name": closing_name,
                "totals": {
                    "cash": str(totals["cash"]),
                    "card": str(totals["card"]),
                    "transfer": str(totals["transfer"]),
                    "total_caja": str(total_caja),
                },
            })
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cerrando cuadre {cuadre.id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno del servidor"
            )

        self.db.refresh(cuadre)
        logger.info(
            f"Cuadre {cuadre.id} cerrado por usuario {actor.user_id}: "
            f"teórico {cuadre.saldo_teorico}, real {cuadre.saldo_real}, diferencia {cuadre.diferencia}"
        )
        dispatch_events([event.id])
        return shape_cuadre(cuadre, totals)

    def history(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[dict]:
        amount = Invoice.total + func.coalesce(Invoice.tip, 0)
        issued = Invoice.status == InvoiceStatus.EMITIDA

        def category_sum(category: PaymentCategory):
            return func.coalesce(func.sum(case(
                (and_(issued, Invoice.payment_category == category), amount),
                else_=0
            )), 0)

        query = self.db.query(
            Cuadre,
            func.coalesce(func.sum(case((issued, 1), else_=0)), 0).label("invoices_count"),
            category_sum(PaymentCategory.EFECTIVO).label("total_cash"),
            category_sum(PaymentCategory.DATAFONO).label("total_card"),
            category_sum(PaymentCategory.TRANSFERENCIA).label("total_transfer"),
        ).outerjoin(Invoice, Invoice.cuadre_id == Cuadre.id)

        if start_date:
            query = query.filter(Cuadre.opened_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Cuadre.opened_at < datetime.combine(end_date + timedelta(days=1), time.min))

        rows = query.group_by(Cuadre.id).order_by(
            Cuadre.opened_at.desc(), Cuadre.id.desc()
        ).limit(settings.CASH_DESK_HISTORY_LIMIT).all()

        history = []
        for cuadre, invoices_count, total_cash, total_card, total_transfer in rows:
            item = shape_cuadre(cuadre, {
                "cash": to_decimal(total_cash),
                "card": to_decimal(total_card),
                "transfer": to_decimal(total_transfer),
            })
            item["invoices_count"] = int(invoices_count or 0)
            history.append(item)
        return history

    def export(self, cuadre_id: Optional[int], export_format: str = "xlsx") -> Response:
        if not cuadre_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="cuadreId requerido"
            )
        cuadre = self.get_cuadre_or_404(cuadre_id)
        return export_movements(self.fetch_movements(cuadre.id), cuadre.id, export_format)
