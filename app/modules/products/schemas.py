from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from app.modules.taxes.schemas import TaxOut


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    price: Decimal = Field(..., ge=0, description="Precio de venta con impuesto incluido")
    quantity: int = Field(0, ge=0, description="Stock inicial")
    alert_min_stock: int = Field(0, ge=0, description="Stock mínimo antes de alertar")
    tax_id: Optional[int] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre no puede estar vacío')
        return cleaned


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    quantity: int
    alert_min_stock: int
    is_active: bool
    tax: Optional[TaxOut] = None
    alert_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductList(BaseModel):
    products: List[ProductOut]
    total: int
    limit: int
    offset: int
