from pydantic import BaseModel, EmailStr
from typing import Optional

from app.modules.auth.models import UserRole


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None
    nit: Optional[str] = None
    role: UserRole
    is_active: bool

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    """Referencia corta a un usuario (cajero, cliente, apertura de caja)"""
    id: int
    name: Optional[str] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class AuthContext(BaseModel):
    """Usuario autenticado y su rol, resuelto desde el token"""
    user_id: int
    user_role: UserRole
    name: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.user_role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.user_role in (UserRole.ADMIN, UserRole.CASHIER)
