from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from app.modules.auth.schemas import UserSummary
from app.modules.cash_desk.models import CuadreStatus
from app.modules.invoices.models import InvoiceStatus
from app.modules.payment_methods.models import PaymentCategory


class CuadreOpen(BaseModel):
    saldo_inicial: Decimal = Field(Decimal("0"), description="Base de caja al abrir")
    observaciones: Optional[str] = None


class CuadreClose(BaseModel):
    saldo_real: Decimal = Field(Decimal("0"), description="Efectivo contado al cerrar")
    gastos: Decimal = Field(Decimal("0"), description="Gastos pagados con dinero de la caja")
    observaciones: Optional[str] = None


class CashTotals(BaseModel):
    cash: Decimal = Decimal("0")
    card: Decimal = Decimal("0")
    transfer: Decimal = Decimal("0")
    total_caja: Decimal = Decimal("0")


class CuadreOut(BaseModel):
    id: int
    status: CuadreStatus
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    opening_user: Optional[UserSummary] = None
    closing_user: Optional[UserSummary] = None
    saldo_inicial: Decimal
    saldo_real: Decimal
    saldo_teorico: Decimal
    diferencia: Decimal
    gastos: Decimal
    observaciones: Optional[str] = None
    totals: CashTotals


class CuadreHistoryItem(CuadreOut):
    invoices_count: int = 0


class CashMovement(BaseModel):
    id: int
    invoice_number: str
    order_id: int
    total: Decimal
    tip: Decimal
    amount: Decimal
    payment_method: Optional[str] = None
    payment_category: PaymentCategory
    status: InvoiceStatus
    created_at: Optional[datetime] = None


class CurrentCashDesk(BaseModel):
    cuadre: CuadreOut
    movements: List[CashMovement]


class CuadreEnvelope(BaseModel):
    success: bool = True
    message: str
    data: CuadreOut
