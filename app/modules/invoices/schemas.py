from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from app.modules.invoices.models import InvoiceStatus
from app.modules.orders.schemas import OrderOut
from app.modules.payment_methods.models import PaymentCategory


class InvoiceCustomerData(BaseModel):
    """Datos de facturación enviados por el cajero; tienen prioridad sobre el pedido"""
    name: Optional[str] = Field(None, max_length=150)
    nit: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    user_id: Optional[int] = None


class InvoiceCreate(BaseModel):
    order_id: Optional[int] = None
    payment_method_id: Optional[int] = None
    payment_type: Optional[str] = Field(None, max_length=30, description="CONTADO, ELECTRONICO, ...")
    is_electronic: bool = False
    tip: Decimal = Field(Decimal("0"), ge=0, description="Propina")
    cash_amount: Optional[Decimal] = Field(None, ge=0, description="Efectivo recibido")
    customer_data: Optional[InvoiceCustomerData] = None

    @field_validator('payment_type')
    @classmethod
    def normalize_payment_type(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        return v or None


class InvoiceTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    total: Decimal


class InvoicePaymentMethod(BaseModel):
    id: int
    name: str
    raw_name: str
    category: PaymentCategory


class InvoiceParty(BaseModel):
    name: str
    nit: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class InvoiceCustomer(InvoiceParty):
    user_id: Optional[int] = None


class InvoiceItemOut(BaseModel):
    product_id: Optional[int] = None
    description: str
    note: Optional[str] = None
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal
    discount: Optional[dict] = None
    tax_rate: Decimal
    tax_regimen: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    status: InvoiceStatus
    order_id: int
    cuadre_id: Optional[int] = None
    cashier_user_id: Optional[int] = None
    payment_method: InvoicePaymentMethod
    payment_type: str
    is_electronic: bool
    totals: InvoiceTotals
    tip: Decimal
    total_with_tip: Decimal
    amount: Decimal
    change: Decimal
    customer: InvoiceCustomer
    issuer: InvoiceParty
    items: List[InvoiceItemOut]
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int


class InvoiceWithOrder(BaseModel):
    invoice: InvoiceOut
    order: OrderOut


class InvoiceEnvelope(BaseModel):
    success: bool = True
    message: str
    data: InvoiceWithOrder
