from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from app.common.mixins import TimestampMixin


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    price = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de venta, impuesto incluido
    quantity = Column(Integer, nullable=False, default=0)  # Stock disponible
    alert_min_stock = Column(Integer, nullable=False, default=0)  # Cantidad mínima para alertas
    is_active = Column(Boolean, default=True)

    tax_id = Column(Integer, ForeignKey("taxes.id"), nullable=True)
    alert_id = Column(Integer, ForeignKey("alerts.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    tax = relationship("Tax", lazy="joined")
    alert = relationship("Alert", foreign_keys=[alert_id])
