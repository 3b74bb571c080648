from fastapi import APIRouter, Query, status
from uuid import UUID
from datetime import date
from typing import Optional, List

from textil.core.config import settings
from textil.dependencies.dbDependencies import db_dependency
from textil.dependencies.authDependencies import any_role_dependency, invoicing_dependency
from textil.modules.documents.models import DocumentType
from textil.modules.documents.service import DocumentService
from textil.modules.documents.totals import DerivedPaymentStatus
from textil.modules.documents.schemas import (
    BulkDeleteRequest,
    BulkDeleteResult,
    DocumentGenerate,
    DocumentList,
    DocumentOut,
    DocumentPreview,
    PaymentCreate,
    PaymentOut,
)
from textil.modules.entries.schemas import EntryOut

router = APIRouter(prefix="/documents", tags=["Documents"])


@router.get("/invoiceable-entries", response_model=List[EntryOut])
def list_invoiceable_entries(
    db: db_dependency,
    auth_context: invoicing_dependency,
    client_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """Entradas entregadas o prefacturadas que aún no pertenecen a ningún documento."""
    return DocumentService(db).list_invoiceable_entries(auth_context.tenant_id, client_id, date_from, date_to)


@router.post("/preview", response_model=DocumentPreview)
def preview_document(data: DocumentGenerate, db: db_dependency, auth_context: invoicing_dependency):
    """Calcular líneas, recargos y totales sin guardar el documento."""
    return DocumentService(db).preview_document(data, auth_context.tenant_id)


@router.post("/", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
def create_document(data: DocumentGenerate, db: db_dependency, auth_context: invoicing_dependency):
    """
    Generar una prefactura o factura.

    Las entradas quedan vinculadas al documento y pasan a `pre_invoiced`
    o `invoiced`. Si alguna ya pertenece a otro documento se devuelve 409.
    """
    service = DocumentService(db)
    return service.to_out(service.create_document(data, auth_context))


@router.get("/", response_model=DocumentList)
def list_documents(
    db: db_dependency,
    auth_context: any_role_dependency,
    client_id: Optional[UUID] = Query(None),
    document_type: Optional[DocumentType] = Query(None),
    derived_status: Optional[DerivedPaymentStatus] = Query(None, description="paid, pending, overdue"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    return DocumentService(db).list_documents(
        auth_context.tenant_id, client_id, document_type, derived_status, date_from, date_to, limit, offset
    )


@router.post("/bulk-delete", response_model=BulkDeleteResult)
def bulk_delete_documents(data: BulkDeleteRequest, db: db_dependency, auth_context: invoicing_dependency):
    return DocumentService(db).bulk_delete(data.document_ids, auth_context.tenant_id)


@router.get("/{document_id}", response_model=DocumentOut)
def get_document(document_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    service = DocumentService(db)
    return service.to_out(service.get_document(document_id, auth_context.tenant_id))


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(document_id: UUID, db: db_dependency, auth_context: invoicing_dependency):
    """Eliminar el documento y devolver sus entradas a `delivered`."""
    DocumentService(db).delete_document(document_id, auth_context.tenant_id)


@router.post("/{document_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def add_payment(document_id: UUID, data: PaymentCreate, db: db_dependency, auth_context: invoicing_dependency):
    return DocumentService(db).add_payment(document_id, data, auth_context.tenant_id)


@router.get("/{document_id}/payments", response_model=List[PaymentOut])
def list_payments(document_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    return DocumentService(db).list_payments(document_id, auth_context.tenant_id)
