from fastapi import APIRouter, Query, status
from uuid import UUID

from textil.core.config import settings
from textil.dependencies.dbDependencies import db_dependency
from textil.dependencies.authDependencies import any_role_dependency, invoicing_dependency
from textil.modules.clients.service import ClientService
from textil.modules.clients.schemas import ClientCreate, ClientOut, ClientList

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(data: ClientCreate, db: db_dependency, auth_context: invoicing_dependency):
    """Registrar un cliente (solo administradores)."""
    return ClientService(db).create_client(data, auth_context.tenant_id)


@router.get("/", response_model=ClientList)
def list_clients(
    db: db_dependency,
    auth_context: any_role_dependency,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    return ClientService(db).list_clients(auth_context.tenant_id, limit, offset)


@router.get("/{client_id}", response_model=ClientOut)
def get_client(client_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    return ClientService(db).get_client(client_id, auth_context.tenant_id)
