"""
Pedidos de mesa: estado del pedido y sus líneas.

Las filas de ``order_items`` son la única fuente de verdad de las líneas.
Las ediciones concurrentes de líneas no llevan token de versión: gana la
última escritura.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext
from app.modules.orders.models import (
    Order, OrderItem, OrderStatus, OrderPaymentStatus, IN_PROGRESS_STATUSES
)
from app.modules.orders.schemas import (
    OrderCreate, OrderUpdate, OrderItemCreate, OrderItemUpdate, OrderCustomerUpdate
)
from app.modules.products.models import Product
from app.modules.products.service import get_product_or_404
from app.modules.taxes.calculator import TaxCalculator, to_decimal
from app.modules.tables.service import TableOccupancyService, TABLE_CONFLICT_DETAIL

logger = logging.getLogger(__name__)

# PAGADO solo se alcanza al facturar; los estados bloqueados no salen de aquí
ALLOWED_TRANSITIONS = {
    OrderStatus.POR_APROBAR: {OrderStatus.POR_APROBAR, OrderStatus.PENDIENTE, OrderStatus.LISTO, OrderStatus.CERRADO},
    OrderStatus.PENDIENTE: {OrderStatus.PENDIENTE, OrderStatus.LISTO, OrderStatus.CERRADO},
    OrderStatus.LISTO: {OrderStatus.PENDIENTE, OrderStatus.LISTO, OrderStatus.CERRADO},
    OrderStatus.PAGADO: {OrderStatus.CERRADO},
    OrderStatus.CERRADO: set(),
}

CREATABLE_STATUSES = (OrderStatus.POR_APROBAR, OrderStatus.PENDIENTE, OrderStatus.LISTO)
LOCKED_ORDER_DETAIL = "No se puede modificar un pedido pagado o cerrado"
DEFAULT_ORDER_LIMIT = 100


def build_bills(order: Order) -> dict:
    """Totales del pedido calculados desde sus líneas (respaldo: totales guardados)"""
    lines = [
        TaxCalculator.calculate_line(item.unit_price, item.quantity, item.tax_rate, item.original_price)
        for item in order.items
    ]
    totals = TaxCalculator.calculate_totals(lines, order.stored_bills)
    return totals.model_dump()


def shape_customer(order: Order) -> Optional[dict]:
    if order.customer_user_id:
        user = order.customer_user
        return {
            "user_id": order.customer_user_id,
            "name": order.customer_name or (user.name if user else None),
            "phone": order.customer_phone or (user.phone if user else None),
            "email": user.email if user else None,
            "label_only": False,
        }
    if order.customer_name or order.customer_phone:
        return {
            "user_id": None,
            "name": order.customer_name,
            "phone": order.customer_phone,
            "email": None,
            "label_only": bool(order.customer_label_only),
        }
    return None


def shape_item(item: OrderItem) -> dict:
    unit_price = to_decimal(item.unit_price)
    return {
        "id": item.id,
        "product_id": item.product_id,
        "name": item.display_name,
        "base_name": item.name,
        "quantity": item.quantity,
        "note": item.note,
        "unit_price": unit_price,
        "original_price": to_decimal(item.original_price),
        "total": unit_price * (item.quantity or 0),
        "discount": item.discount,
        "tax_rate": to_decimal(item.tax_rate),
        "tax_name": item.tax_name,
        "tax_regimen": item.tax_regimen,
        "printed_qty": item.printed_qty or 0,
    }


def shape_order(order: Order) -> dict:
    return {
        "id": order.id,
        "status": order.status,
        "payment_status": order.payment_status,
        "table_id": order.table_id,
        "customer": shape_customer(order),
        "cashier_user_id": order.cashier_user_id,
        "cashier_name": order.cashier.name if order.cashier else None,
        "invoice_id": order.invoice.id if order.invoice else None,
        "items": [shape_item(item) for item in order.items],
        "bills": build_bills(order),
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.tables = TableOccupancyService(db)

    # ----- helpers -----

    def get_order_or_404(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Pedido no encontrado"
            )
        return order

    def _get_item_or_404(self, order: Order, item_id: int) -> OrderItem:
        item = self.db.query(OrderItem).filter(
            OrderItem.id == item_id,
            OrderItem.order_id == order.id
        ).first()
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Producto del pedido no encontrado"
            )
        return item

    def _check_owner(self, order: Order, actor: AuthContext) -> None:
        if not actor.is_staff and order.customer_user_id != actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes acceso a este pedido"
            )

    def _ensure_not_locked(self, order: Order) -> None:
        if order.is_locked:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=LOCKED_ORDER_DETAIL
            )

    def _ensure_line_editable(self, order: Order, actor: AuthContext) -> None:
        """Pedido pagado/cerrado: nadie edita. Confirmado: solo el admin."""
        self._ensure_not_locked(order)
        if order.status != OrderStatus.POR_APROBAR and not actor.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Solo el admin puede modificar items de un pedido confirmado"
            )

    def _build_item(self, product: Product, data: OrderItemCreate) -> OrderItem:
        """Línea nueva con precio, impuesto y descuento copiados del momento"""
        tax = product.tax
        tax_rate = to_decimal(tax.rate) if tax else Decimal("0")
        selling_price = data.price if data.price is not None else to_decimal(product.price)
        original = data.original_price if data.original_price is not None else selling_price

        # Con descuento el precio efectivo siempre sale del precio original
        if data.discount:
            unit_price = TaxCalculator.discounted_unit_price(original, tax_rate, data.discount, selling_price)
        else:
            unit_price = selling_price

        discount = data.discount
        return OrderItem(
            product_id=product.id,
            name=product.name,
            quantity=data.quantity if data.quantity and data.quantity > 0 else 1,
            unit_price=unit_price,
            original_price=original,
            note=data.note or None,
            printed_qty=0,
            discount_id=discount.id if discount else None,
            discount_name=discount.name if discount else None,
            discount_type=discount.type if discount else None,
            discount_value=discount.value if discount else None,
            tax_rate=tax_rate,
            tax_name=tax.name if tax else None,
            tax_regimen=tax.regimen if tax else None,
        )

    def _open_order_for_table(self, table_id: int, actor: AuthContext) -> Order:
        """Último pedido abierto de la mesa o uno nuevo POR_APROBAR (sin commit)"""
        self.tables.lock_table(table_id)
        order = self.db.query(Order).filter(
            Order.table_id == table_id,
            Order.status.notin_((OrderStatus.CERRADO, OrderStatus.PAGADO))
        ).order_by(Order.created_at.desc(), Order.id.desc()).first()
        if order:
            return order

        order = Order(
            table_id=table_id,
            status=OrderStatus.POR_APROBAR,
            payment_status=OrderPaymentStatus.PENDIENTE,
            created_by_user_id=actor.user_id
        )
        self.db.add(order)
        self.db.flush()
        logger.info(f"Pedido {order.id} creado para la mesa {table_id}")
        return order

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=TABLE_CONFLICT_DETAIL
            )

    # ----- pedidos -----

    def create_order(self, data: OrderCreate, actor: AuthContext) -> dict:
        try:
            if actor.is_staff:
                order_status = data.status or OrderStatus.POR_APROBAR
                if order_status not in CREATABLE_STATUSES:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Un pedido no puede crearse en estado {order_status.value}"
                    )
                order = Order(
                    status=order_status,
                    payment_status=OrderPaymentStatus.PENDIENTE,
                    cashier_user_id=actor.user_id,
                    created_by_user_id=actor.user_id
                )
                if data.customer_user_id:
                    customer = self.db.query(User).filter(User.id == data.customer_user_id).first()
                    if not customer:
                        raise HTTPException(
                            status_code=status.HTTP_404_NOT_FOUND,
                            detail="Usuario no encontrado"
                        )
                    order.customer_user_id = customer.id
                    order.customer_name = customer.name
                    order.customer_phone = customer.phone
                elif data.customer_name:
                    order.customer_name = data.customer_name
                    order.customer_phone = data.customer_phone
                    order.customer_label_only = data.customer_label_only
            else:
                # Un cliente siempre crea el pedido por aprobar y a su nombre
                order = Order(
                    status=OrderStatus.POR_APROBAR,
                    payment_status=OrderPaymentStatus.PENDIENTE,
                    customer_user_id=actor.user_id,
                    customer_name=data.customer_name or actor.name,
                    customer_phone=data.customer_phone,
                    created_by_user_id=actor.user_id
                )

            if order.customer_user_id and order.status in IN_PROGRESS_STATUSES and not data.table_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Esta orden necesita una mesa asignada antes de cambiar el estado."
                )

            if data.bills:
                order.bill_subtotal = data.bills.subtotal
                order.bill_tax = data.bills.tax
                order.bill_total = data.bills.total

            for item_data in data.items:
                product = get_product_or_404(self.db, item_data.product_id)
                order.items.append(self._build_item(product, item_data))

            self.db.add(order)
            self.db.flush()
            if data.table_id:
                self.tables.bind_table(order, data.table_id)

            self._commit()
            self.db.refresh(order)
            logger.info(f"Pedido {order.id} creado por usuario {actor.user_id} en estado {order.status.value}")
            return shape_order(order)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando pedido: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno del servidor"
            )

    def get_orders(
        self,
        actor: AuthContext,
        order_status: Optional[OrderStatus] = None,
        limit: int = DEFAULT_ORDER_LIMIT
    ) -> dict:
        query = self.db.query(Order)
        if not actor.is_staff:
            query = query.filter(Order.customer_user_id == actor.user_id)
        if order_status:
            query = query.filter(Order.status == order_status)

        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
        return {"orders": [shape_order(order) for order in orders], "total": len(orders)}

    def get_order(self, order_id: int, actor: AuthContext) -> dict:
        order = self.get_order_or_404(order_id)
        self._check_owner(order, actor)
        return shape_order(order)

    def update_order(self, order_id: int, data: OrderUpdate, actor: AuthContext) -> dict:
        """
        Cambiar estado y/o mesa del pedido.

        CERRADO sin factura solo lo hace un admin; entrar a CERRADO libera
        la mesa; el personal que pasa el pedido a PENDIENTE/LISTO queda
        como cajero.
        """
        order = self.get_order_or_404(order_id)
        next_status = data.status

        if next_status == OrderStatus.CERRADO and order.invoice is None and not actor.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Solo el admin puede cerrar una orden sin facturacion"
            )

        # Un pedido pagado solo admite el cierre definitivo
        closing_paid = (
            order.status == OrderStatus.PAGADO
            and next_status == OrderStatus.CERRADO
            and not data.table_id
        )
        if order.is_locked and not closing_paid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=LOCKED_ORDER_DETAIL
            )

        if next_status and next_status not in ALLOWED_TRANSITIONS[order.status]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede pasar un pedido de {order.status.value} a {next_status.value}"
            )

        table_id = data.table_id or order.table_id
        moving_in_progress = next_status in IN_PROGRESS_STATUSES
        if order.customer_user_id and moving_in_progress and not table_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Esta orden necesita una mesa asignada antes de cambiar el estado."
            )

        try:
            if table_id and (data.table_id or moving_in_progress):
                self.tables.bind_table(order, table_id)
            if next_status:
                order.status = next_status
            if moving_in_progress and actor.is_staff:
                order.cashier_user_id = actor.user_id
            if next_status == OrderStatus.CERRADO:
                self.tables.release_table(order)

            self._commit()
        except HTTPException:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(f"Pedido {order.id} actualizado a {order.status.value} por usuario {actor.user_id}")
        return shape_order(order)

    def delete_order(self, order_id: int, actor: AuthContext) -> None:
        order = self.get_order_or_404(order_id)
        if order.status != OrderStatus.POR_APROBAR:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Solo se pueden eliminar pedidos en estado POR_APROBAR"
            )
        self.tables.release_table(order)
        self.db.delete(order)
        self.db.commit()
        logger.info(f"Pedido {order_id} eliminado por usuario {actor.user_id}")

    def set_customer(self, order_id: int, data: OrderCustomerUpdate) -> dict:
        order = self.get_order_or_404(order_id)
        if order.status != OrderStatus.POR_APROBAR:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="El pedido ya fue confirmado; no es posible reasignar el cliente"
            )

        if data.clear:
            order.customer_user_id = None
            order.customer_name = None
            order.customer_phone = None
            order.customer_label_only = False
        elif data.user_id:
            user = self.db.query(User).filter(User.id == data.user_id).first()
            if not user:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Usuario no encontrado"
                )
            order.customer_user_id = user.id
            order.customer_name = user.name
            order.customer_phone = user.phone
            order.customer_label_only = False
        else:
            name = (data.name or "").strip()
            if not name:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Debe suministrar un nombre o usuario"
                )
            phone = (data.phone or "").strip() or None
            order.customer_user_id = None
            order.customer_name = name
            order.customer_phone = phone
            order.customer_label_only = data.label_only

        self.db.commit()
        self.db.refresh(order)
        return shape_order(order)

    # ----- mesas y líneas -----

    def ensure_open_order_for_table(self, table_id: int, actor: AuthContext) -> dict:
        self.tables.get_table_or_404(table_id)
        order = self._open_order_for_table(table_id, actor)
        self.db.commit()
        self.db.refresh(order)
        return shape_order(order)

    def add_item_to_table(self, table_id: int, data: OrderItemCreate, actor: AuthContext) -> dict:
        self.tables.get_table_or_404(table_id)
        product = get_product_or_404(self.db, data.product_id)
        order = self._open_order_for_table(table_id, actor)
        return self._add_item(order, product, data)

    def add_item(self, order_id: int, data: OrderItemCreate) -> dict:
        order = self.get_order_or_404(order_id)
        self._ensure_not_locked(order)
        product = get_product_or_404(self.db, data.product_id)
        return self._add_item(order, product, data)

    def _add_item(self, order: Order, product: Product, data: OrderItemCreate) -> dict:
        item = self._build_item(product, data)
        order.items.append(item)
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Producto {product.id} x{item.quantity} agregado al pedido {order.id}")
        return shape_order(order)

    def list_items(self, order_id: int) -> List[dict]:
        order = self.get_order_or_404(order_id)
        return [shape_item(item) for item in order.items]

    def update_item(self, order_id: int, item_id: int, data: OrderItemUpdate, actor: AuthContext) -> dict:
        order = self.get_order_or_404(order_id)
        self._ensure_line_editable(order, actor)
        item = self._get_item_or_404(order, item_id)

        if data.quantity is not None:
            if data.quantity <= 0:
                order.items.remove(item)
            else:
                item.quantity = data.quantity
                item.printed_qty = min(item.printed_qty or 0, data.quantity)
        if "note" in data.model_fields_set and item in order.items:
            item.note = data.note or None

        self.db.commit()
        self.db.refresh(order)
        return shape_order(order)

    def delete_item(self, order_id: int, item_id: int, actor: AuthContext) -> dict:
        order = self.get_order_or_404(order_id)
        self._ensure_line_editable(order, actor)
        item = self._get_item_or_404(order, item_id)
        order.items.remove(item)
        self.db.commit()
        self.db.refresh(order)
        return shape_order(order)

    def move_item(self, order_id: int, item_id: int, table_id: int, actor: AuthContext) -> dict:
        """Pasar la línea al pedido abierto de otra mesa (se crea si no existe)"""
        order = self.get_order_or_404(order_id)
        self._ensure_not_locked(order)
        item = self._get_item_or_404(order, item_id)
        self.tables.get_table_or_404(table_id)

        target = self._open_order_for_table(table_id, actor)
        if target.id != order.id:
            target.items.append(item)
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Línea {item_id} movida del pedido {order.id} al pedido {target.id}")
        return {"source": shape_order(order), "target_order_id": target.id}

    def mark_items_printed(self, order_id: int, item_ids: List[int]) -> dict:
        if not item_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="items requeridos"
            )
        ids = {item_id for item_id in item_ids if item_id and item_id > 0}
        if not ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="items invalidos"
            )

        order = self.get_order_or_404(order_id)
        for item in order.items:
            if item.id in ids:
                item.printed_qty = item.quantity
        self.db.commit()
        self.db.refresh(order)
        return shape_order(order)
