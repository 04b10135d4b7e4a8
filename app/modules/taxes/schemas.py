from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from app.modules.taxes.models import TaxType, DiscountType, DEFAULT_TAX_REGIMEN


class LineDiscount(BaseModel):
    """Descuento aplicado a una línea de pedido (un solo tipo por campaña)"""
    id: Optional[int] = Field(None, description="ID de la campaña de descuento")
    name: Optional[str] = Field(None, max_length=100, description="Nombre del descuento")
    type: DiscountType = Field(..., description="VALUE o PERCENT")
    value: Decimal = Field(..., ge=0, description="Valor o porcentaje del descuento")

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator('value')
    @classmethod
    def validate_percent(cls, v, info):
        if info.data.get('type') == DiscountType.PERCENT and v > 100:
            raise ValueError('El porcentaje de descuento no puede superar 100')
        return v


class LineCalculation(BaseModel):
    """Resultado del cálculo de una línea con impuesto incluido"""
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


class TotalsCalculation(BaseModel):
    subtotal: Decimal
    tax: Decimal
    total: Decimal


class TaxBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nombre del impuesto (ej. 'INC 8%')")
    code: str = Field(..., min_length=1, max_length=10, description="Código DIAN (ej. '04' para INC)")
    rate: Decimal = Field(..., ge=0, le=100, description="Tasa en porcentaje (ej. 8 para 8%)")
    type: TaxType = Field(..., description="Tipo de impuesto")
    regimen: str = Field(DEFAULT_TAX_REGIMEN, max_length=50, description="Régimen tributario")


class TaxCreate(TaxBase):
    pass


class TaxOut(TaxBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaxList(BaseModel):
    taxes: List[TaxOut]
    total: int
