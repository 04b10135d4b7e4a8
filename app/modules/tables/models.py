from sqlalchemy import Column, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class TableStatus(enum.Enum):
    """Estado derivado de una mesa; nunca se guarda en base de datos"""
    AVAILABLE = "Available"
    BOOKED = "Booked"
    PENDING_APPROVAL = "PendingApproval"


class Table(Base, TimestampMixin):
    """Mesa física del restaurante"""
    __tablename__ = "restaurant_tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False, default=4)

    # Relationships
    orders = relationship("Order", back_populates="table")

    __table_args__ = (
        UniqueConstraint("number", name="uq_restaurant_table_number"),
    )
