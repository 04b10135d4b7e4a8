from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.orders.models import OrderStatus
from app.modules.orders.service import OrderService
from app.modules.orders.schemas import (
    OrderCreate, OrderUpdate, OrderOut, OrderList, OrderItemCreate, OrderItemUpdate,
    OrderItemOut, OrderItemMove, OrderItemMoveResult, PrintedItems, OrderCustomerUpdate
)

orders_router = APIRouter(prefix="/orders", tags=["Orders"])

staff_only = AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER])


@orders_router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """
    Crear un pedido

    Un cliente siempre crea el pedido POR_APROBAR a su nombre. El personal
    puede indicar estado inicial, mesa, cliente, líneas y totales.
    """
    service = OrderService(db)
    return service.create_order(order_data, auth_context)


@orders_router.get("/", response_model=OrderList)
def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status", description="Filtrar por estado"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Listar pedidos (los clientes solo ven los suyos), más recientes primero"""
    service = OrderService(db)
    return service.get_orders(auth_context, order_status, limit)


@orders_router.get("/table/{table_id}", response_model=OrderOut)
def get_order_by_table(
    table_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Pedido abierto de la mesa; si no hay uno se crea POR_APROBAR"""
    service = OrderService(db)
    return service.ensure_open_order_for_table(table_id, auth_context)


@orders_router.post("/table/{table_id}/item", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def add_item_to_table(
    table_id: int,
    item_data: OrderItemCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """
    Agregar un producto al pedido abierto de la mesa

    - **price**: precio de venta; por defecto el precio actual del producto
    - **discount**: descuento VALUE o PERCENT copiado en la línea
    """
    service = OrderService(db)
    return service.add_item_to_table(table_id, item_data, auth_context)


@orders_router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    service = OrderService(db)
    return service.get_order(order_id, auth_context)


@orders_router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    order_data: OrderUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """
    Cambiar estado o mesa del pedido

    PAGADO solo se asigna al facturar. CERRADO sin factura requiere admin.
    """
    service = OrderService(db)
    return service.update_order(order_id, order_data, auth_context)


@orders_router.delete("/{order_id}")
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Eliminar un pedido POR_APROBAR (libera la mesa y borra sus líneas)"""
    service = OrderService(db)
    service.delete_order(order_id, auth_context)
    return {"success": True, "message": "Pedido eliminado"}


@orders_router.put("/{order_id}/customer", response_model=OrderOut)
def set_order_customer(
    order_id: int,
    customer_data: OrderCustomerUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """
    Asignar cliente a un pedido POR_APROBAR

    - **clear**: quita el cliente
    - **user_id**: cliente registrado (tiene prioridad)
    - **name** / **phone**: cliente de mostrador
    """
    service = OrderService(db)
    return service.set_customer(order_id, customer_data)


@orders_router.post("/{order_id}/item", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def add_item(
    order_id: int,
    item_data: OrderItemCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    service = OrderService(db)
    return service.add_item(order_id, item_data)


@orders_router.get("/{order_id}/items", response_model=List[OrderItemOut])
def list_order_items(
    order_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    service = OrderService(db)
    return service.list_items(order_id)


@orders_router.put("/{order_id}/item/{item_id}", response_model=OrderOut)
def update_order_item(
    order_id: int,
    item_id: int,
    item_data: OrderItemUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Cambiar cantidad o nota; cantidad 0 o menos elimina la línea"""
    service = OrderService(db)
    return service.update_item(order_id, item_id, item_data, auth_context)


@orders_router.delete("/{order_id}/item/{item_id}", response_model=OrderOut)
def delete_order_item(
    order_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    service = OrderService(db)
    return service.delete_item(order_id, item_id, auth_context)


@orders_router.post("/{order_id}/item/{item_id}/move", response_model=OrderItemMoveResult)
def move_order_item(
    order_id: int,
    item_id: int,
    move_data: OrderItemMove,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Mover la línea al pedido abierto de otra mesa"""
    service = OrderService(db)
    return service.move_item(order_id, item_id, move_data.table_id, auth_context)


@orders_router.post("/{order_id}/printed", response_model=OrderOut)
def mark_items_printed(
    order_id: int,
    printed: PrintedItems,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(staff_only)
):
    """Marcar líneas como enviadas a cocina (cantidad impresa = cantidad)"""
    service = OrderService(db)
    return service.mark_items_printed(order_id, printed.items)
