from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel


class SalesComparison(BaseModel):
    sales: Decimal
    sales_previous: Decimal
    sales_change_pct: Decimal
    active_orders: int
    active_orders_previous: int
    active_orders_change_pct: Decimal


class CatalogCounts(BaseModel):
    products: int
    tables: int


class TodaySummary(SalesComparison):
    day: date
    counts: CatalogCounts


class MonthlySummary(SalesComparison):
    month: str


class PopularProduct(BaseModel):
    rank: int
    product_id: int
    name: str
    unit_price: Decimal
    total_quantity: int
    total_amount: Decimal


class PopularProductList(BaseModel):
    products: List[PopularProduct]
    total: int
