from fastapi import APIRouter, Query, status
from uuid import UUID
from datetime import date
from typing import Optional

from textil.core.config import settings
from textil.dependencies.dbDependencies import db_dependency
from textil.dependencies.authDependencies import any_role_dependency, admin_dependency
from textil.modules.entries.service import EntryService
from textil.modules.entries.schemas import (
    EntryCreate,
    EntryList,
    EntryOut,
    EntrySummaryOut,
    EntryUpdate,
    NextCodeOut,
    StatusGroup,
)

router = APIRouter(prefix="/entries", tags=["Entries"])


@router.post("/", response_model=EntryOut, status_code=status.HTTP_201_CREATED)
def create_entry(data: EntryCreate, db: db_dependency, auth_context: any_role_dependency):
    """
    Registrar una entrada nueva en estado `received`.

    Si no se indica código se asigna el siguiente número disponible.
    Las líneas pueden referenciar el producto por id o por referencia.
    """
    return EntryService(db).create_entry(data, auth_context)


@router.get("/", response_model=EntryList)
def list_entries(
    db: db_dependency,
    auth_context: any_role_dependency,
    status_group: Optional[StatusGroup] = Query(None, description="pending, delivered, pre-invoiced, invoiced"),
    client_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    return EntryService(db).list_entries(
        auth_context.tenant_id, status_group, client_id, date_from, date_to, limit, offset
    )


@router.get("/next-code", response_model=NextCodeOut)
def next_code(db: db_dependency, auth_context: any_role_dependency):
    return {"code": EntryService(db).next_code(auth_context.tenant_id)}


@router.get("/{entry_id}", response_model=EntryOut)
def get_entry(entry_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    return EntryService(db).get_entry(entry_id, auth_context.tenant_id)


@router.get("/{entry_id}/summary", response_model=EntrySummaryOut)
def get_entry_summary(entry_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    """Pedido, entregado y pendiente por línea y talla."""
    return EntryService(db).get_summary(entry_id, auth_context.tenant_id)


@router.patch("/{entry_id}", response_model=EntryOut)
def update_entry(entry_id: UUID, data: EntryUpdate, db: db_dependency, auth_context: any_role_dependency):
    """Editar una entrada no facturada. El cambio manual de estado requiere rol admin."""
    return EntryService(db).update_entry(entry_id, data, auth_context)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(entry_id: UUID, db: db_dependency, auth_context: admin_dependency):
    EntryService(db).delete_entry(entry_id, auth_context.tenant_id)
