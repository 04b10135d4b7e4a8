from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm

from app.dependencies.dbDependecies import db_dependency
from app.dependencies.userDependencies import user_dependency
from app.modules.auth.service import AuthService
from app.modules.auth.schemas import UserOut, TokenResponse

auth_router = APIRouter()


@auth_router.post("/login", response_model=TokenResponse)
async def login(db: db_dependency, form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Login con correo y contraseña (formulario OAuth2: username = correo).

    Retorna el token de acceso y el usuario con su rol.
    """
    auth_service = AuthService(db)
    return auth_service.login(form_data.username, form_data.password)


@auth_router.get("/me", response_model=UserOut)
async def get_current_user_info(current_user: user_dependency):
    """Usuario autenticado"""
    return UserOut.model_validate(current_user)
