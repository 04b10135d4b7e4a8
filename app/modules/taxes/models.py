from sqlalchemy import Column, Integer, String, Numeric, Enum, UniqueConstraint
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class TaxType(enum.Enum):
    VAT = "VAT"        # IVA
    INC = "INC"        # INC (Impuesto Nacional al Consumo)
    EXEMPT = "EXEMPT"  # Excluido / exento


class DiscountType(enum.Enum):
    VALUE = "VALUE"      # Valor fijo restado al precio
    PERCENT = "PERCENT"  # Porcentaje sobre la base sin impuesto


DEFAULT_TAX_REGIMEN = "REGIMEN_COMUN"


class Tax(Base, TimestampMixin):
    """
    Clase tributaria de un producto.

    Los precios de venta ya incluyen el impuesto; la tasa se guarda en
    porcentaje (ej. 8.00 para INC 8%) y se copia a cada línea de pedido.
    """
    __tablename__ = "taxes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)  # ej. "INC 8%", "IVA 19%"
    code = Column(String(10), nullable=False)   # Código DIAN ej. "04" = INC
    rate = Column(Numeric(5, 2), nullable=False, default=0)
    type = Column(Enum(TaxType), nullable=False, default=TaxType.INC)
    regimen = Column(String(50), nullable=False, default=DEFAULT_TAX_REGIMEN)

    __table_args__ = (
        UniqueConstraint("name", name="uq_tax_name"),
    )
