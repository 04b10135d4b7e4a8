"""
Modelos del pedido (pedido de mesa + líneas).

Las líneas normalizadas son la única fuente de verdad del pedido; precio,
impuesto y descuento se copian al agregar la línea y no se recalculan
desde el precio vigente del producto.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Numeric, Enum, Text, Index, text
)
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.common.mixins import TimestampMixin
from app.modules.taxes.models import DiscountType
import enum


class OrderStatus(enum.Enum):
    POR_APROBAR = "POR_APROBAR"  # Creado por cliente o mesero, sin aprobar
    PENDIENTE = "PENDIENTE"      # Aprobado, en preparación
    LISTO = "LISTO"              # Listo para entregar
    PAGADO = "PAGADO"            # Facturado
    CERRADO = "CERRADO"          # Cerrado definitivamente


class OrderPaymentStatus(enum.Enum):
    PENDIENTE = "PENDIENTE"
    PAGADO = "PAGADO"


# Estados que ocupan la mesa; como máximo un pedido por mesa en estos estados
IN_PROGRESS_STATUSES = (OrderStatus.PENDIENTE, OrderStatus.LISTO)
LOCKED_STATUSES = (OrderStatus.PAGADO, OrderStatus.CERRADO)

_in_progress_sql = text("status IN ('PENDIENTE', 'LISTO') AND table_id IS NOT NULL")


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.POR_APROBAR, index=True)
    payment_status = Column(Enum(OrderPaymentStatus), nullable=False, default=OrderPaymentStatus.PENDIENTE)

    table_id = Column(Integer, ForeignKey("restaurant_tables.id"), nullable=True, index=True)

    # Cliente: usuario registrado o nombre libre (excluyentes)
    customer_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    customer_name = Column(String(150), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    customer_label_only = Column(Boolean, nullable=False, default=False)

    cashier_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Totales enviados al crear el pedido; respaldo si las líneas no suman
    bill_subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    bill_tax = Column(Numeric(15, 2), nullable=False, default=0)
    bill_total = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    table = relationship("Table", back_populates="orders")
    customer_user = relationship("User", foreign_keys=[customer_user_id])
    cashier = relationship("User", foreign_keys=[cashier_user_id])
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )
    invoice = relationship("Invoice", back_populates="order", uselist=False)

    __table_args__ = (
        Index(
            "uq_orders_table_in_progress", "table_id", unique=True,
            postgresql_where=_in_progress_sql, sqlite_where=_in_progress_sql
        ),
    )

    @property
    def is_locked(self) -> bool:
        return self.status in LOCKED_STATUSES

    @property
    def stored_bills(self) -> dict:
        return {
            "subtotal": self.bill_subtotal,
            "tax": self.bill_tax,
            "total": self.bill_total,
        }


class OrderItem(Base, TimestampMixin):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False)  # Nombre del producto al agregar
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(15, 2), nullable=False)      # Precio de venta copiado
    original_price = Column(Numeric(15, 2), nullable=False)  # Precio antes de descuento
    note = Column(Text, nullable=True)
    printed_qty = Column(Integer, nullable=False, default=0)  # Cantidad ya enviada a cocina

    # Descuento copiado (uno por línea)
    discount_id = Column(Integer, nullable=True)
    discount_name = Column(String(100), nullable=True)
    discount_type = Column(Enum(DiscountType), nullable=True)
    discount_value = Column(Numeric(15, 2), nullable=True)

    # Impuesto copiado desde la clase tributaria del producto
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_name = Column(String(100), nullable=True)
    tax_regimen = Column(String(50), nullable=True)

    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @property
    def discount(self):
        if not self.discount_type:
            return None
        return {
            "id": self.discount_id,
            "name": self.discount_name,
            "type": self.discount_type.value,
            "value": self.discount_value,
        }

    @property
    def display_name(self) -> str:
        if self.discount_name and self.name:
            return f"{self.name} - {self.discount_name}"
        return self.name
