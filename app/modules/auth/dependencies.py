"""
Dependencias de autenticación para FastAPI.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import decode_access_token

# Security scheme
security = HTTPBearer(auto_error=False)

class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Obtener usuario actual desde token JWT.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )

        if credentials is None:
            raise credentials_exception

        user_id = decode_access_token(credentials.credentials)
        if user_id is None:
            raise credentials_exception

        user = db.query(User).filter(User.id == user_id).first()

        if user is None or not user.is_active:
            raise credentials_exception

        return user

    @staticmethod
    def get_auth_context(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> AuthContext:
        """
        Obtener contexto de autenticación (usuario + rol).
        """
        user = AuthDependencies.get_current_user(credentials, db)
        return AuthContext(
            user_id=user.id,
            user_role=user.role,
            name=user.name,
            email=user.email
        )

    @staticmethod
    def require_role(allowed_roles: list[UserRole]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if auth_context.user_role not in allowed_roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Se requiere uno de estos roles: {', '.join(role.value for role in allowed_roles)}"
                )

            return auth_context
        return role_checker

    @staticmethod
    def require_admin():
        """Dependencia para requerir rol de administrador."""
        return AuthDependencies.require_role([UserRole.ADMIN])

    @staticmethod
    def require_staff():
        """Dependencia para requerir personal del restaurante (admin o cajero)."""
        return AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER])

    @staticmethod
    def require_any_role():
        """Dependencia que acepta cualquier usuario autenticado."""
        return AuthDependencies.require_role([UserRole.ADMIN, UserRole.CASHIER, UserRole.CUSTOMER])

# Instancias de dependencias
get_current_user = AuthDependencies.get_current_user
get_auth_context = AuthDependencies.get_auth_context
require_admin = AuthDependencies.require_admin
require_staff = AuthDependencies.require_staff
require_any_role = AuthDependencies.require_any_role
