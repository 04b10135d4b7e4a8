from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from app.modules.payment_methods.models import PaymentCategory, PaymentMethodStatus


class PaymentMethodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nombre visible (ej. 'Efectivo', 'Nequi')")
    category: Optional[PaymentCategory] = Field(
        None, description="Categoría; si se omite se deduce una sola vez del nombre"
    )
    status: PaymentMethodStatus = PaymentMethodStatus.ACTIVO

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre no puede estar vacío')
        return cleaned


class PaymentMethodOut(BaseModel):
    id: int
    name: str
    category: PaymentCategory
    status: PaymentMethodStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentMethodList(BaseModel):
    payment_methods: List[PaymentMethodOut]
    total: int
