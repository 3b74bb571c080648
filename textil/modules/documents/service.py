"""
Servicio de documentos (prefacturas y facturas).

La generación reclama las entradas con un único UPDATE condicionado a
`invoice_id IS NULL`; si no se reclaman todas, otro documento se adelantó
y la operación completa se deshace con `ConcurrentInvoicingConflict`.
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import update
from dataclasses import asdict
from fastapi import HTTPException, status
from uuid import UUID, uuid4
from datetime import date
from typing import Optional, List
import logging

from textil.common.exceptions import (
    ConcurrentInvoicingConflict,
    ConflictError,
    DomainError,
    MixedClientError,
    NotFoundError,
    ValidationError,
)
from textil.core.config import settings
from textil.database.database import get_tenant_query
from textil.modules.auth.schemas import AuthContext
from textil.modules.clients.service import ClientService
from textil.modules.documents import totals
from textil.modules.documents.generator import generate_document_lines
from textil.modules.documents.models import (
    Document,
    DocumentItem,
    DocumentPayment,
    DocumentSequence,
    DocumentType,
    PaymentStatus,
)
from textil.modules.documents.reversal import ReversalCoordinator
from textil.modules.documents.schemas import DocumentGenerate, DocumentOut, DocumentPreview, PaymentCreate
from textil.modules.entries import state_machine
from textil.modules.entries.models import Entry
from textil.modules.entries.service import EntryService
from textil.modules.products.service import ProductService

logger = logging.getLogger(__name__)

DOCUMENT_PREFIXES = {
    DocumentType.PREFACTURA: "PR-",
    DocumentType.FACTURA: "FA-",
}


class DocumentService:
    def __init__(self, db: Session):
        self.db = db

    # Selección de entradas

    def list_invoiceable_entries(
        self,
        tenant_id: UUID,
        client_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[Entry]:
        """Entradas entregadas o prefacturadas sin documento activo."""
        query = get_tenant_query(self.db, Entry, tenant_id).filter(
            Entry.status.in_(list(state_machine.INVOICEABLE_STATUSES)),
            Entry.invoice_id.is_(None),
        )
        if client_id:
            query = query.filter(Entry.client_id == client_id)
        if date_from:
            query = query.filter(Entry.entry_date >= date_from)
        if date_to:
            query = query.filter(Entry.entry_date <= date_to)
        return query.options(selectinload(Entry.items)).order_by(Entry.entry_date, Entry.code).all()

    def _load_selection(self, entry_ids: List[UUID], tenant_id: UUID) -> List[Entry]:
        if not entry_ids:
            raise ValidationError("Seleccione al menos una entrada")

        requested = list(dict.fromkeys(entry_ids))
        entries = EntryService(self.db).get_entries_by_ids(requested, tenant_id)
        by_id = {entry.id: entry for entry in entries}
        missing = [str(entry_id) for entry_id in requested if entry_id not in by_id]
        if missing:
            raise NotFoundError(f"Entradas no encontradas: {', '.join(missing)}")

        selection = [by_id[entry_id] for entry_id in requested]
        if len({entry.client_id for entry in selection}) > 1:
            raise MixedClientError("Todas las entradas seleccionadas deben pertenecer al mismo cliente")
        for entry in selection:
            state_machine.check_invoiceable(entry)
        return selection

    def _build(self, data: DocumentGenerate, tenant_id: UUID):
        entries = self._load_selection(data.entry_ids, tenant_id)
        client = ClientService(self.db).get_client(entries[0].client_id, tenant_id)

        product_ids = {item.product_id for entry in entries for item in entry.items}
        products = ProductService(self.db).get_products_by_ids(product_ids, tenant_id)
        deliveries = EntryService(self.db).deliveries_for(entries, tenant_id)

        lines = generate_document_lines(
            entries,
            products,
            deliveries,
            is_special_client=client.name == settings.SPECIAL_CLIENT_NAME,
            quantity_threshold=data.quantity_threshold,
            surcharge_percent=data.surcharge_percent,
        )
        # El impuesto se calcula con la misma tasa que se guarda (Numeric 5,2)
        tax_rate = totals.money(data.tax_rate if data.tax_rate is not None else settings.DEFAULT_TAX_RATE)
        document_totals = totals.calculate_totals(lines.items, lines.surcharges, tax_rate)
        return entries, client, lines, document_totals, tax_rate

    def preview_document(self, data: DocumentGenerate, tenant_id: UUID) -> DocumentPreview:
        """Calcular el documento sin guardar nada."""
        entries, client, lines, document_totals, tax_rate = self._build(data, tenant_id)
        return DocumentPreview(
            document_type=data.document_type,
            client_id=client.id,
            entry_ids=[entry.id for entry in entries],
            issue_date=data.issue_date or date.today(),
            items=[asdict(item) for item in lines.items],
            surcharges=[asdict(s) for s in lines.surcharges],
            subtotal=document_totals.subtotal,
            total_surcharges=document_totals.total_surcharges,
            tax_rate=tax_rate,
            tax_amount=document_totals.tax_amount,
            total=document_totals.total,
            invoice_period_start=data.invoice_period_start,
            invoice_period_end=data.invoice_period_end,
        )

    # Numeración

    def _next_document_number(self, tenant_id: UUID, document_type: DocumentType) -> str:
        sequence = get_tenant_query(self.db, DocumentSequence, tenant_id).filter(
            DocumentSequence.document_type == document_type
        ).with_for_update().first()

        if not sequence:
            sequence = DocumentSequence(
                tenant_id=tenant_id,
                document_type=document_type,
                prefix=DOCUMENT_PREFIXES[document_type],
                current_number=0,
            )
            self.db.add(sequence)

        sequence.current_number += 1
        self.db.flush()
        return f"{sequence.prefix}{sequence.current_number:04d}"

    # Generación

    def create_document(self, data: DocumentGenerate, auth_context: AuthContext, commit: bool = True) -> Document:
        tenant_id = auth_context.tenant_id
        try:
            entries, client, lines, document_totals, tax_rate = self._build(data, tenant_id)

            document = Document(
                id=uuid4(),
                tenant_id=tenant_id,
                document_number=self._next_document_number(tenant_id, data.document_type),
                document_type=data.document_type,
                client_id=client.id,
                issue_date=data.issue_date or date.today(),
                entry_ids=[str(entry.id) for entry in entries],
                surcharges=[s.to_dict() for s in lines.surcharges],
                subtotal=document_totals.subtotal,
                tax_rate=tax_rate,
                tax_amount=document_totals.tax_amount,
                total=document_totals.total,
                payment_status=PaymentStatus.PENDING,
                invoice_period_start=data.invoice_period_start,
                invoice_period_end=data.invoice_period_end,
                created_by=auth_context.full_name,
                items=[
                    DocumentItem(position=position, **asdict(item))
                    for position, item in enumerate(lines.items)
                ],
            )
            self.db.add(document)
            self.db.flush()

            new_status = state_machine.status_for_document(data.document_type)
            entry_ids = [entry.id for entry in entries]
            result = self.db.execute(
                update(Entry)
                .where(
                    Entry.tenant_id == tenant_id,
                    Entry.id.in_(entry_ids),
                    Entry.invoice_id.is_(None),
                    Entry.status.in_(list(state_machine.INVOICEABLE_STATUSES)),
                )
                .values(invoice_id=document.id, status=new_status, version_id=Entry.version_id + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != len(entry_ids):
                raise ConcurrentInvoicingConflict(
                    "Otra operación facturó alguna de las entradas seleccionadas; recargue e intente de nuevo"
                )
            for entry in entries:
                self.db.expire(entry)

            if commit:
                self.db.commit()
                self.db.refresh(document)
            else:
                self.db.flush()

            logger.info(
                f"{document.document_type.value} {document.document_number} created for client {client.name}: "
                f"{len(entry_ids)} entries, total {document.total}"
            )
            return document

        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Conflicto de numeración de documentos; intente de nuevo")
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating document: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error al generar el documento: {str(e)}"
            )

    # Consultas

    def to_out(self, document: Document, today: Optional[date] = None) -> DocumentOut:
        out = DocumentOut.model_validate(document)
        out.derived_status = totals.derive_payment_status(
            document.issue_date, document.total, document.payments, today
        )
        return out

    def get_document(self, document_id: UUID, tenant_id: UUID) -> Document:
        document = get_tenant_query(self.db, Document, tenant_id).options(
            selectinload(Document.items),
            selectinload(Document.payments),
        ).filter(Document.id == document_id).first()
        if not document:
            raise NotFoundError(f"Documento {document_id} no encontrado")
        return document

    def list_documents(
        self,
        tenant_id: UUID,
        client_id: Optional[UUID] = None,
        document_type: Optional[DocumentType] = None,
        derived_status: Optional[totals.DerivedPaymentStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0
    ) -> dict:
        query = get_tenant_query(self.db, Document, tenant_id)
        if client_id:
            query = query.filter(Document.client_id == client_id)
        if document_type:
            query = query.filter(Document.document_type == document_type)
        if date_from:
            query = query.filter(Document.issue_date >= date_from)
        if date_to:
            query = query.filter(Document.issue_date <= date_to)

        documents = query.options(
            selectinload(Document.items),
            selectinload(Document.payments),
        ).order_by(Document.issue_date.desc(), Document.document_number.desc()).all()

        # El estado derivado se calcula al leer, el filtro no puede ir en SQL
        results = [self.to_out(document) for document in documents]
        if derived_status:
            results = [out for out in results if out.derived_status == derived_status]

        return {
            "documents": results[offset:offset + limit],
            "total": len(results),
            "limit": limit,
            "offset": offset,
        }

    # Pagos

    def add_payment(self, document_id: UUID, data: PaymentCreate, tenant_id: UUID) -> DocumentPayment:
        try:
            document = get_tenant_query(self.db, Document, tenant_id).filter(
                Document.id == document_id
            ).with_for_update().first()
            if not document:
                raise NotFoundError(f"Documento {document_id} no encontrado")

            amount = totals.money(data.amount)
            due = totals.amount_due(document.total, document.payments)
            totals.validate_payment_amount(amount, due)

            payment = DocumentPayment(
                amount=amount,
                payment_date=data.payment_date or date.today(),
                method=data.method,
                notes=data.notes,
            )
            document.payments.append(payment)
            document.payment_status = totals.stored_payment_status(document.total, document.payments)

            self.db.commit()
            self.db.refresh(payment)
            logger.info(
                f"Payment of {payment.amount} added to {document.document_number}, "
                f"status {document.payment_status.value}"
            )
            return payment

        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error adding payment to document {document_id}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error al registrar el pago: {str(e)}"
            )

    def list_payments(self, document_id: UUID, tenant_id: UUID) -> List[DocumentPayment]:
        return self.get_document(document_id, tenant_id).payments

    # Eliminación

    def delete_document(self, document_id: UUID, tenant_id: UUID, commit: bool = True) -> None:
        ReversalCoordinator(self.db).delete_document(document_id, tenant_id, commit=commit)

    def bulk_delete(self, document_ids: List[UUID], tenant_id: UUID) -> dict:
        return ReversalCoordinator(self.db).bulk_delete(document_ids, tenant_id)
