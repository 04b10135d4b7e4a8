from pydantic import BaseModel, Field
from typing import Optional, List

from app.modules.tables.models import TableStatus


class TableCreate(BaseModel):
    number: int = Field(..., ge=1, description="Número visible de la mesa")
    capacity: int = Field(4, ge=1, description="Puestos")


class TableOut(BaseModel):
    id: int
    number: int
    capacity: int
    status: TableStatus
    current_order_id: Optional[int] = None


class TableList(BaseModel):
    tables: List[TableOut]
    total: int
