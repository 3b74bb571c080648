from fastapi import APIRouter, Query, status
from uuid import UUID
from typing import Optional

from textil.core.config import settings
from textil.dependencies.dbDependencies import db_dependency
from textil.dependencies.authDependencies import any_role_dependency
from textil.modules.deliveries.service import DeliveryService
from textil.modules.deliveries.schemas import DeliveryCreate, DeliveryResult, DeliveryOut, DeliveryList

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])


@router.post("/", response_model=DeliveryResult, status_code=status.HTTP_201_CREATED)
def record_delivery(data: DeliveryCreate, db: db_dependency, auth_context: any_role_dependency):
    """
    Registrar una entrega contra una entrada.

    Ninguna talla puede superar lo pendiente. Tras la entrega el estado de la
    entrada pasa a `in_process` o `delivered` según lo entregado.
    """
    return DeliveryService(db).record_delivery(data, auth_context)


@router.get("/", response_model=DeliveryList)
def list_deliveries(
    db: db_dependency,
    auth_context: any_role_dependency,
    entry_code: Optional[str] = Query(None, description="Código exacto de la entrada"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    return DeliveryService(db).list_deliveries(auth_context.tenant_id, entry_code, limit, offset)


@router.get("/{delivery_id}", response_model=DeliveryOut)
def get_delivery(delivery_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    return DeliveryService(db).get_delivery(delivery_id, auth_context.tenant_id)
