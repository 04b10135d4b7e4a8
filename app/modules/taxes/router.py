from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.taxes.service import TaxService
from app.modules.taxes.schemas import TaxCreate, TaxOut, TaxList

taxes_router = APIRouter(prefix="/taxes", tags=["Taxes"])


@taxes_router.get("/", response_model=TaxList)
def list_taxes(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER]))
):
    """
    Listar clases tributarias (INC 8%, IVA 19%, excluidos...)
    """
    service = TaxService(db)
    return service.get_taxes()


@taxes_router.post("/", response_model=TaxOut, status_code=status.HTTP_201_CREATED)
def create_tax(
    tax_data: TaxCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN]))
):
    """
    Crear una clase tributaria

    - **rate**: porcentaje incluido en el precio de venta (ej. 8 para INC 8%)
    - **regimen**: régimen que se imprime en la factura
    """
    service = TaxService(db)
    return service.create_tax(tax_data)
