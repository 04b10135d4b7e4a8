from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Numeric, Enum, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.common.mixins import TimestampMixin
from app.modules.payment_methods.models import PaymentCategory
from app.modules.taxes.models import DiscountType
import enum


class InvoiceStatus(enum.Enum):
    EMITIDA = "EMITIDA"  # Emitida
    ANULADA = "ANULADA"  # Anulada por un administrador


class Invoice(Base, TimestampMixin):
    """
    Factura de venta: registro inmutable de la liquidación de un pedido.

    Emisor, cliente y líneas se copian al crearla; anular solo cambia
    el estado.
    """
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(String(20), nullable=False)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.EMITIDA, index=True)

    # References
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    cuadre_id = Column(Integer, ForeignKey("cuadres.id"), nullable=True, index=True)
    cashier_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=False)

    # Emisor (copiado de la configuración del negocio)
    issuer_name = Column(String(150), nullable=False)
    issuer_nit = Column(String(30), nullable=False)
    issuer_address = Column(String(255), nullable=True)
    issuer_phone = Column(String(50), nullable=True)
    issuer_email = Column(String(150), nullable=True)

    # Cliente (copiado)
    customer_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    customer_name = Column(String(150), nullable=False)
    customer_nit = Column(String(30), nullable=False)
    customer_email = Column(String(150), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    customer_address = Column(String(255), nullable=True)

    # Pago
    payment_method_name = Column(String(100), nullable=False)  # Nombre del método al facturar
    payment_category = Column(Enum(PaymentCategory), nullable=False, index=True)
    payment_type = Column(String(30), nullable=False, default="CONTADO")
    is_electronic = Column(Boolean, nullable=False, default=False)

    # Totales (pesos enteros)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    tip = Column(Numeric(15, 2), nullable=False, default=0)
    total_with_tip = Column(Numeric(15, 2), nullable=False, default=0)
    amount_received = Column(Numeric(15, 2), nullable=False, default=0)
    change = Column(Numeric(15, 2), nullable=False, default=0)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    order = relationship("Order", back_populates="invoice")
    cuadre = relationship("Cuadre", back_populates="invoices")
    payment_method = relationship("PaymentMethod")
    cashier = relationship("User", foreign_keys=[cashier_user_id])
    line_items = relationship(
        "InvoiceLineItem", back_populates="invoice", cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position"
    )

    __table_args__ = (
        UniqueConstraint("number", name="uq_invoice_number"),
        UniqueConstraint("order_id", name="uq_invoice_order"),
    )

    @property
    def payment_method_display(self) -> str:
        return self.payment_category.display_name

    @property
    def amount_with_tip(self):
        """Monto del movimiento de caja: total + propina"""
        return (self.total or 0) + (self.tip or 0)


class InvoiceLineItem(Base, TimestampMixin):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    # Snapshot data (para preservar información si el producto cambia)
    description = Column(String(200), nullable=False)
    note = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)           # Con descuento, impuesto incluido
    original_unit_price = Column(Numeric(15, 2), nullable=False)  # Antes de descuento

    discount_id = Column(Integer, nullable=True)
    discount_name = Column(String(100), nullable=True)
    discount_type = Column(Enum(DiscountType), nullable=True)
    discount_value = Column(Numeric(15, 2), nullable=True)

    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_regimen = Column(String(50), nullable=True)

    # Line calculations
    subtotal = Column(Numeric(15, 2), nullable=False)    # Bruto sin impuesto
    tax_amount = Column(Numeric(15, 2), nullable=False)
    total = Column(Numeric(15, 2), nullable=False)       # subtotal + impuesto

    # Relationships
    invoice = relationship("Invoice", back_populates="line_items")

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


class InvoiceSequence(Base):
    """Contador de numeración de facturas; se bloquea con FOR UPDATE al facturar"""
    __tablename__ = "invoice_sequences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prefix = Column(String(10), nullable=False)  # Ej: "F-"
    current_number = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("prefix", name="uq_invoice_sequence_prefix"),
    )
