from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from app.modules.orders.models import OrderStatus, OrderPaymentStatus
from app.modules.taxes.schemas import LineDiscount


class OrderItemCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, description="Cantidad; valores menores a 1 se toman como 1")
    note: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0, description="Precio de venta; por defecto el del producto")
    original_price: Optional[Decimal] = Field(None, ge=0, description="Precio antes de descuento")
    discount: Optional[LineDiscount] = None


class OrderItemUpdate(BaseModel):
    quantity: Optional[int] = Field(None, description="Cantidad nueva; 0 o menos elimina la línea")
    note: Optional[str] = Field(None, max_length=500)


class OrderItemMove(BaseModel):
    table_id: int = Field(..., gt=0, description="Mesa destino")


class PrintedItems(BaseModel):
    items: List[int] = Field(default_factory=list, description="IDs de líneas enviadas a cocina")


class OrderBills(BaseModel):
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class OrderCreate(BaseModel):
    status: Optional[OrderStatus] = None
    table_id: Optional[int] = Field(None, gt=0)
    customer_user_id: Optional[int] = Field(None, gt=0)
    customer_name: Optional[str] = Field(None, max_length=150)
    customer_phone: Optional[str] = Field(None, max_length=30)
    customer_label_only: bool = False
    items: List[OrderItemCreate] = Field(default_factory=list)
    bills: Optional[OrderBills] = None

    @field_validator('customer_name', 'customer_phone')
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        cleaned = v.strip()
        return cleaned or None


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    table_id: Optional[int] = Field(None, gt=0)


class OrderCustomerUpdate(BaseModel):
    clear: bool = False
    user_id: Optional[int] = Field(None, gt=0)
    name: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=30)
    label_only: bool = True


class OrderCustomerOut(BaseModel):
    user_id: Optional[int] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    label_only: bool = False


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    name: str
    base_name: str
    quantity: int
    note: Optional[str] = None
    unit_price: Decimal
    original_price: Decimal
    total: Decimal
    discount: Optional[LineDiscount] = None
    tax_rate: Decimal
    tax_name: Optional[str] = None
    tax_regimen: Optional[str] = None
    printed_qty: int


class OrderOut(BaseModel):
    id: int
    status: OrderStatus
    payment_status: OrderPaymentStatus
    table_id: Optional[int] = None
    customer: Optional[OrderCustomerOut] = None
    cashier_user_id: Optional[int] = None
    cashier_name: Optional[str] = None
    invoice_id: Optional[int] = None
    items: List[OrderItemOut]
    bills: OrderBills
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderList(BaseModel):
    orders: List[OrderOut]
    total: int


class OrderItemMoveResult(BaseModel):
    source: OrderOut
    target_order_id: int
