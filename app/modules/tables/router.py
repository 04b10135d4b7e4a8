from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.tables.service import TableOccupancyService
from app.modules.tables.schemas import TableCreate, TableOut, TableList

tables_router = APIRouter(prefix="/tables", tags=["Tables"])


@tables_router.get("/", response_model=TableList)
def list_tables(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """
    Listar mesas con su estado calculado

    - **Available**: sin pedidos en curso
    - **Booked**: pedido aprobado en curso
    - **PendingApproval**: pedido por aprobar con productos
    """
    service = TableOccupancyService(db)
    return service.get_tables()


@tables_router.get("/{table_id}", response_model=TableOut)
def get_table(
    table_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    service = TableOccupancyService(db)
    return service.get_table(table_id)


@tables_router.post("/", response_model=TableOut, status_code=status.HTTP_201_CREATED)
def create_table(
    data: TableCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN]))
):
    service = TableOccupancyService(db)
    return service.create_table(data)
