from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.modules.payment_methods.models import PaymentMethod, PaymentCategory, PaymentMethodStatus
from app.modules.payment_methods.schemas import PaymentMethodCreate

DATAFONO_KEYWORDS = ("datafon", "datáfon", "datofon")


def infer_category(name: str) -> PaymentCategory:
    """
    Deducir la categoría a partir del nombre del método.

    Solo se usa al registrar un método sin categoría explícita; a partir
    de ahí la categoría guardada es la única fuente de verdad.
    """
    normalized = (name or "").lower()
    if "efect" in normalized:
        return PaymentCategory.EFECTIVO
    if any(keyword in normalized for keyword in DATAFONO_KEYWORDS):
        return PaymentCategory.DATAFONO
    return PaymentCategory.TRANSFERENCIA


class PaymentMethodService:
    def __init__(self, db: Session):
        self.db = db

    def resolve_payment_method(self, payment_method_id: Optional[int]) -> Optional[PaymentMethod]:
        if payment_method_id is None:
            return None
        return self.db.query(PaymentMethod).filter(PaymentMethod.id == payment_method_id).first()

    def get_payment_methods(self, only_active: bool = False) -> dict:
        query = self.db.query(PaymentMethod)
        if only_active:
            query = query.filter(PaymentMethod.status == PaymentMethodStatus.ACTIVO)
        methods = query.order_by(PaymentMethod.name).all()
        return {"payment_methods": methods, "total": len(methods)}

    def create_payment_method(self, data: PaymentMethodCreate) -> PaymentMethod:
        try:
            method = PaymentMethod(
                name=data.name,
                category=data.category or infer_category(data.name),
                status=data.status
            )
            self.db.add(method)
            self.db.commit()
            self.db.refresh(method)
            return method
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un método de pago con el nombre '{data.name}'"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )
