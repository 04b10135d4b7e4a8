from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.payment_methods.service import PaymentMethodService
from app.modules.payment_methods.schemas import PaymentMethodCreate, PaymentMethodOut, PaymentMethodList

payment_methods_router = APIRouter(prefix="/payment-methods", tags=["Payment Methods"])


@payment_methods_router.get("/", response_model=PaymentMethodList)
def list_payment_methods(
    only_active: bool = Query(False, description="Solo métodos activos"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER]))
):
    service = PaymentMethodService(db)
    return service.get_payment_methods(only_active)


@payment_methods_router.post("/", response_model=PaymentMethodOut, status_code=status.HTTP_201_CREATED)
def create_payment_method(
    data: PaymentMethodCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN]))
):
    """
    Registrar método de pago

    - **category**: EFECTIVO, DATAFONO o TRANSFERENCIA. Define cómo se cuadra la caja.
    """
    service = PaymentMethodService(db)
    return service.create_payment_method(data)
