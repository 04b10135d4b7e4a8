"""
Indicadores de ventas sobre las facturas emitidas.

Las ventas de un periodo son SUM(total + propina) de las facturas no
anuladas. Los periodos son semiabiertos: [inicio, fin).
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from app.modules.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus
from app.modules.orders.models import Order, OrderStatus
from app.modules.products.models import Product
from app.modules.tables.models import Table
from app.modules.taxes.calculator import to_decimal, round_currency

logger = logging.getLogger(__name__)

CLOSED_ORDER_STATUSES = (OrderStatus.PAGADO, OrderStatus.CERRADO)
DEFAULT_POPULAR_LIMIT = 10


@dataclass
class Period:
    start: datetime
    end: datetime

    @classmethod
    def day(cls, day: date) -> "Period":
        start = datetime.combine(day, time.min)
        return cls(start, start + timedelta(days=1))

    @classmethod
    def month(cls, day: date) -> "Period":
        start = datetime.combine(day.replace(day=1), time.min)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return cls(start, end)

    def previous_month(self) -> "Period":
        return Period.month((self.start - timedelta(days=1)).date())


def compute_change_pct(current, previous) -> Decimal:
    """Variación porcentual; sin base previa es 0 o 100"""
    current = to_decimal(current)
    previous = to_decimal(previous)
    if previous == 0:
        return Decimal("0") if current == 0 else Decimal("100")
    return ((current - previous) / previous * 100).quantize(Decimal("0.01"))


class StatsService:
    def __init__(self, db: Session):
        self.db = db

    def _billed_invoices(self, query):
        return query.filter(Invoice.status != InvoiceStatus.ANULADA)

    def sales_between(self, period: Period) -> Decimal:
        total = self._billed_invoices(
            self.db.query(func.coalesce(func.sum(Invoice.total + Invoice.tip), 0))
        ).filter(
            Invoice.created_at >= period.start,
            Invoice.created_at < period.end
        ).scalar()
        return round_currency(total)

    def active_orders_between(self, period: Period) -> int:
        return self.db.query(func.count(Order.id)).filter(
            Order.created_at >= period.start,
            Order.created_at < period.end,
            Order.status.notin_(CLOSED_ORDER_STATUSES)
        ).scalar() or 0

    def _comparison(self, current: Period, previous: Period) -> dict:
        sales_current = self.sales_between(current)
        sales_previous = self.sales_between(previous)
        active_current = self.active_orders_between(current)
        active_previous = self.active_orders_between(previous)
        return {
            "sales": sales_current,
            "sales_previous": sales_previous,
            "sales_change_pct": compute_change_pct(sales_current, sales_previous),
            "active_orders": active_current,
            "active_orders_previous": active_previous,
            "active_orders_change_pct": compute_change_pct(active_current, active_previous),
        }

    def today_summary(self, today: Optional[date] = None) -> dict:
        """Ventas y pedidos activos de hoy contra ayer, más conteos del catálogo"""
        today = today or date.today()
        summary = self._comparison(Period.day(today), Period.day(today - timedelta(days=1)))
        summary["day"] = today
        summary["counts"] = {
            "products": self.db.query(func.count(Product.id)).scalar() or 0,
            "tables": self.db.query(func.count(Table.id)).scalar() or 0,
        }
        return summary

    def monthly_summary(self, today: Optional[date] = None) -> dict:
        current = Period.month(today or date.today())
        summary = self._comparison(current, current.previous_month())
        summary["month"] = current.start.strftime("%Y-%m")
        return summary

    def popular_products(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = DEFAULT_POPULAR_LIMIT
    ) -> List[dict]:
        """
        Productos más vendidos según las líneas facturadas.

        El monto usa el total de cada línea (precio cobrado, no el precio
        actual de carta). Empates por monto y luego por nombre.
        """
        quantity = func.sum(InvoiceLineItem.quantity).label("total_quantity")
        amount = func.sum(InvoiceLineItem.total).label("total_amount")
        query = self._billed_invoices(
            self.db.query(
                Product.id.label("product_id"),
                Product.name,
                Product.price,
                quantity,
                amount,
            ).join(
                InvoiceLineItem, InvoiceLineItem.product_id == Product.id
            ).join(
                Invoice, InvoiceLineItem.invoice_id == Invoice.id
            )
        )
        if start_date:
            query = query.filter(Invoice.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Invoice.created_at < datetime.combine(end_date + timedelta(days=1), time.min))

        query = query.group_by(Product.id, Product.name, Product.price).order_by(
            desc("total_quantity"), desc("total_amount"), Product.name
        )
        if limit and limit > 0:
            query = query.limit(limit)

        return [
            {
                "rank": position,
                "product_id": row.product_id,
                "name": row.name,
                "unit_price": to_decimal(row.price),
                "total_quantity": int(row.total_quantity or 0),
                "total_amount": round_currency(row.total_amount),
            }
            for position, row in enumerate(query.all(), start=1)
        ]
