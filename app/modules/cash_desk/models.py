"""
Modelo del cuadre de caja (turno de un cajero).

Solo puede existir un cuadre ABIERTO en todo el sistema; lo garantiza
un índice único parcial sobre el estado.
"""

from sqlalchemy import Column, Integer, ForeignKey, Numeric, Enum, Text, DateTime, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class CuadreStatus(enum.Enum):
    ABIERTO = "ABIERTO"
    CERRADO = "CERRADO"
    ANULADO = "ANULADO"  # Solo administrativo, sin flujo normal


_open_sql = text("status = 'ABIERTO'")


class Cuadre(Base, TimestampMixin):
    __tablename__ = "cuadres"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(Enum(CuadreStatus), nullable=False, default=CuadreStatus.ABIERTO)

    # Apertura
    opened_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    opened_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    saldo_inicial = Column(Numeric(15, 2), nullable=False, default=0)

    # Cierre (se llenan una sola vez)
    closed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    saldo_real = Column(Numeric(15, 2), nullable=True)
    saldo_teorico = Column(Numeric(15, 2), nullable=True)
    diferencia = Column(Numeric(15, 2), nullable=True)
    gastos = Column(Numeric(15, 2), nullable=False, default=0)
    observaciones = Column(Text, nullable=True)

    # Relationships
    opened_by_user = relationship("User", foreign_keys=[opened_by])
    closed_by_user = relationship("User", foreign_keys=[closed_by])
    invoices = relationship("Invoice", back_populates="cuadre", order_by="Invoice.id")

    __table_args__ = (
        Index(
            "uq_cuadres_single_open", "status", unique=True,
            postgresql_where=_open_sql, sqlite_where=_open_sql
        ),
    )

    @property
    def is_open(self) -> bool:
        return self.status == CuadreStatus.ABIERTO
