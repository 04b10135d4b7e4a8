from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Enum
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class UserRole(enum.Enum):
    """Roles del sistema; única fuente para comparar permisos"""
    ADMIN = "admin"          # Administrador
    CASHIER = "cashier"      # Cajero / mesero
    CUSTOMER = "customer"    # Cliente registrado


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    email = Column(String(150), unique=True, nullable=False)
    password = Column(String, nullable=False)
    phone = Column(String(30), nullable=True)
    nit = Column(String(30), nullable=True)  # Documento / NIT para facturación
    address = Column(String(255), nullable=True)
    birth_date = Column(Date, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.CUSTOMER, index=True)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.CASHIER)
