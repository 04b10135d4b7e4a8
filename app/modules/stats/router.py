from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.cash_desk.export import create_csv_response
from app.modules.stats.schemas import TodaySummary, MonthlySummary, PopularProductList
from app.modules.stats.service import StatsService, DEFAULT_POPULAR_LIMIT

stats_router = APIRouter(prefix="/stats", tags=["Stats"])

POPULAR_PRODUCTS_CSV_HEADERS = {
    "rank": "Puesto",
    "product_id": "Producto",
    "name": "Nombre",
    "total_quantity": "Cantidad",
    "total_amount": "Monto",
}


@stats_router.get("/today", response_model=TodaySummary)
def get_today_summary(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_staff())
):
    """Ventas (total + propina) y pedidos activos de hoy comparados con ayer"""
    return StatsService(db).today_summary()


@stats_router.get("/monthly", response_model=MonthlySummary)
def get_monthly_summary(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_staff())
):
    return StatsService(db).monthly_summary()


@stats_router.get("/popular-products", response_model=None)
def get_popular_products(
    start_date: Optional[date] = Query(None, description="Facturas desde (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Facturas hasta, inclusive (YYYY-MM-DD)"),
    limit: int = Query(DEFAULT_POPULAR_LIMIT, ge=0, le=500, description="0 = sin límite"),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Formato de exportación: csv"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_staff())
):
    """
    Productos más vendidos

    - **start_date / end_date**: rango de fechas de las facturas
    - **limit**: cantidad de productos (0 devuelve todos)
    - **export=csv**: descarga el ranking
    """
    products = StatsService(db).popular_products(start_date, end_date, limit)
    if export == "csv":
        return create_csv_response(products, "productos-populares.csv", POPULAR_PRODUCTS_CSV_HEADERS)
    return PopularProductList(products=products, total=len(products))
