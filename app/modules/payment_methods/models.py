from sqlalchemy import Column, Integer, String, Enum, UniqueConstraint
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class PaymentCategory(enum.Enum):
    """Categoría explícita del método de pago (cuadre de caja y factura)"""
    EFECTIVO = "EFECTIVO"            # Entra al cajón
    DATAFONO = "DATAFONO"            # Tarjeta débito/crédito
    TRANSFERENCIA = "TRANSFERENCIA"  # Nequi, Daviplata, transferencias

    @property
    def display_name(self) -> str:
        return CATEGORY_DISPLAY_NAMES[self]


CATEGORY_DISPLAY_NAMES = {
    PaymentCategory.EFECTIVO: "Efectivo",
    PaymentCategory.DATAFONO: "Datafono",
    PaymentCategory.TRANSFERENCIA: "Transferencia",
}


class PaymentMethodStatus(enum.Enum):
    ACTIVO = "ACTIVO"
    INACTIVO = "INACTIVO"


class PaymentMethod(Base, TimestampMixin):
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    category = Column(Enum(PaymentCategory), nullable=False, index=True)
    status = Column(Enum(PaymentMethodStatus), nullable=False, default=PaymentMethodStatus.ACTIVO)

    __table_args__ = (
        UniqueConstraint("name", name="uq_payment_method_name"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == PaymentMethodStatus.ACTIVO

    @property
    def is_cash(self) -> bool:
        return self.category == PaymentCategory.EFECTIVO
