from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Enum, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class AlertType(enum.Enum):
    STOCK = "STOCK"          # Producto en o por debajo del stock mínimo
    CASH_DESK = "CASH_DESK"  # Cierre de caja


class Alert(Base, TimestampMixin):
    """Alerta interna asignada a usuarios del personal"""
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Enum(AlertType), nullable=False, index=True)
    message = Column(Text, nullable=False)
    normalized_message = Column(String(500), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    recipients = relationship("AlertUser", back_populates="alert", cascade="all, delete-orphan")


class AlertUser(Base, TimestampMixin):
    __tablename__ = "alert_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_id = Column(Integer, ForeignKey("alerts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_read = Column(Boolean, nullable=False, default=False)

    # Relationships
    alert = relationship("Alert", back_populates="recipients")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("alert_id", "user_id", name="uq_alert_user"),
    )
