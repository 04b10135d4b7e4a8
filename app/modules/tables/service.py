"""
Ocupación de mesas.

El estado de una mesa no se guarda: se calcula con los pedidos que
siguen asociados a ella. Los pedidos facturados se desasocian al
facturar, así que dejan la mesa libre de inmediato.
"""
import logging
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.modules.tables.models import Table, TableStatus
from app.modules.tables.schemas import TableCreate
from app.modules.orders.models import Order, OrderItem, OrderStatus
from app.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)

TABLE_CONFLICT_DETAIL = "La mesa seleccionada ya esta asignada a otro pedido en curso."

# Un pedido en estos estados no ocupa la mesa
NON_OCCUPYING_STATUSES = (OrderStatus.CERRADO, OrderStatus.POR_APROBAR)


def resolve_status(orders: List[Order], item_counts: Dict[int, int]) -> TableStatus:
    """
    Booked si algún pedido sin factura está en curso; PendingApproval si
    hay un pedido por aprobar con al menos una línea; si no, Available.
    """
    if any(order.status not in NON_OCCUPYING_STATUSES for order in orders):
        return TableStatus.BOOKED
    if any(
        order.status == OrderStatus.POR_APROBAR and item_counts.get(order.id, 0) > 0
        for order in orders
    ):
        return TableStatus.PENDING_APPROVAL
    return TableStatus.AVAILABLE


class TableOccupancyService:
    def __init__(self, db: Session):
        self.db = db

    def _bound_orders(self, table_ids: Optional[List[int]] = None) -> List[Order]:
        query = self.db.query(Order).outerjoin(Invoice, Invoice.order_id == Order.id).filter(
            Order.table_id.isnot(None),
            Order.status != OrderStatus.CERRADO,
            Invoice.id.is_(None)
        )
        if table_ids is not None:
            query = query.filter(Order.table_id.in_(table_ids))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def _item_counts(self, order_ids: List[int]) -> Dict[int, int]:
        if not order_ids:
            return {}
        rows = self.db.query(OrderItem.order_id, func.count(OrderItem.id)).filter(
            OrderItem.order_id.in_(order_ids)
        ).group_by(OrderItem.order_id).all()
        return {order_id: count for order_id, count in rows}

    def _shape(self, table: Table, orders: List[Order], item_counts: Dict[int, int]) -> dict:
        return {
            "id": table.id,
            "number": table.number,
            "capacity": table.capacity,
            "status": resolve_status(orders, item_counts),
            "current_order_id": orders[0].id if orders else None,
        }

    def get_table_or_404(self, table_id: int) -> Table:
        table = self.db.query(Table).filter(Table.id == table_id).first()
        if not table:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Mesa no encontrada"
            )
        return table

    def compute_status(self, table_id: int) -> TableStatus:
        orders = self._bound_orders([table_id])
        return resolve_status(orders, self._item_counts([order.id for order in orders]))

    def get_tables(self) -> dict:
        tables = self.db.query(Table).order_by(Table.number).all()
        orders = self._bound_orders()
        item_counts = self._item_counts([order.id for order in orders])

        by_table: Dict[int, List[Order]] = {}
        for order in orders:
            by_table.setdefault(order.table_id, []).append(order)

        shaped = [self._shape(table, by_table.get(table.id, []), item_counts) for table in tables]
        return {"tables": shaped, "total": len(shaped)}

    def get_table(self, table_id: int) -> dict:
        table = self.get_table_or_404(table_id)
        orders = self._bound_orders([table_id])
        return self._shape(table, orders, self._item_counts([order.id for order in orders]))

    def create_table(self, data: TableCreate) -> dict:
        try:
            table = Table(number=data.number, capacity=data.capacity)
            self.db.add(table)
            self.db.commit()
            self.db.refresh(table)
            return self._shape(table, [], {})
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe la mesa número {data.number}"
            )

    def lock_table(self, table_id: int) -> Table:
        """Bloquear la fila de la mesa (SELECT ... FOR UPDATE) hasta el commit"""
        table = self.db.query(Table).filter(Table.id == table_id).with_for_update().first()
        if not table:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Mesa no encontrada"
            )
        return table

    def find_conflicting_order(self, table_id: int, order_id: Optional[int]) -> Optional[Order]:
        query = self.db.query(Order).filter(
            Order.table_id == table_id,
            Order.status.notin_(NON_OCCUPYING_STATUSES)
        )
        if order_id is not None:
            query = query.filter(Order.id != order_id)
        return query.first()

    def bind_table(self, order: Order, table_id: int) -> Order:
        """
        Asociar la mesa al pedido dentro de la transacción actual.

        Rechaza con 409 si otro pedido en curso ya ocupa la mesa. El índice
        único parcial sobre pedidos en curso cubre la carrera entre dos
        transacciones.
        """
        self.lock_table(table_id)
        if self.find_conflicting_order(table_id, order.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=TABLE_CONFLICT_DETAIL
            )
        order.table_id = table_id
        return order

    def release_table(self, order: Order) -> Order:
        if order.table_id is not None:
            logger.info(f"Mesa {order.table_id} liberada del pedido {order.id}")
        order.table_id = None
        return order
