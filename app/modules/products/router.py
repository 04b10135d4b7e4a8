from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.products import service
from app.modules.products.schemas import ProductCreate, ProductOut, ProductList

product_router = APIRouter(prefix="/products", tags=["Products"])


@product_router.get("/", response_model=ProductList)
def list_products(
    search: Optional[str] = Query(None, description="Buscar por nombre"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Listar productos activos de la carta."""
    return service.get_products(db, search, limit, offset)


@product_router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return service.get_product_or_404(db, product_id)


@product_router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN]))
):
    """
    Crear producto

    - **price**: precio de venta con impuesto incluido
    - **alert_min_stock**: al llegar a este stock se alerta a administradores y cajeros
    """
    return service.create_product(db, data)
