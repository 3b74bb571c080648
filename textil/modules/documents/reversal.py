"""
Reversión de documentos.

Eliminar un documento devuelve sus entradas a `delivered` y las desvincula
(`invoice_id = None`) en la misma transacción en la que se borra el
documento: o se aplican ambos pasos o ninguno.
"""
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from fastapi import HTTPException, status
from uuid import UUID
from typing import Iterable
import logging

from textil.common.exceptions import ConcurrentModificationError, DomainError, NotFoundError
from textil.database.database import get_tenant_query
from textil.modules.documents.models import Document
from textil.modules.entries.models import Entry
from textil.modules.entries.state_machine import REVERSAL_STATUS

logger = logging.getLogger(__name__)


class ReversalCoordinator:
    def __init__(self, db: Session):
        self.db = db

    def _reverse_entries(self, document: Document) -> int:
        entry_ids = [UUID(str(entry_id)) for entry_id in document.entry_ids or []]
        if not entry_ids:
            return 0

        entries = get_tenant_query(self.db, Entry, document.tenant_id).filter(
            Entry.id.in_(entry_ids)
        ).with_for_update().all()
        by_id = {entry.id: entry for entry in entries}

        reverted = 0
        for entry_id in entry_ids:
            entry = by_id.get(entry_id)
            if entry is None:
                logger.warning(f"Document {document.document_number}: entry {entry_id} no longer exists, skipping")
                continue
            if entry.invoice_id is not None and entry.invoice_id != document.id:
                logger.warning(
                    f"Document {document.document_number}: entry {entry.code} is linked to "
                    f"document {entry.invoice_id}, leaving it untouched"
                )
                continue
            entry.status = REVERSAL_STATUS
            entry.invoice_id = None
            reverted += 1
        return reverted

    def delete_document(self, document_id: UUID, tenant_id: UUID, commit: bool = True) -> None:
        try:
            document = get_tenant_query(self.db, Document, tenant_id).filter(
                Document.id == document_id
            ).with_for_update().first()
            if not document:
                raise NotFoundError(f"Documento {document_id} no encontrado")

            number = document.document_number
            reverted = self._reverse_entries(document)
            self.db.delete(document)

            if commit:
                self.db.commit()
            else:
                self.db.flush()
            logger.info(f"Document {number} deleted, {reverted} entries reverted to {REVERSAL_STATUS.value}")

        except StaleDataError:
            self.db.rollback()
            raise ConcurrentModificationError(
                "Una entrada del documento cambió durante la eliminación; no se aplicó ningún cambio"
            )
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting document {document_id}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error al eliminar el documento: {str(e)}"
            )

    def bulk_delete(self, document_ids: Iterable[UUID], tenant_id: UUID) -> dict:
        """Una transacción por documento; un fallo no deshace los ya eliminados."""
        deleted, failed = [], []
        for document_id in dict.fromkeys(document_ids):
            try:
                self.delete_document(document_id, tenant_id)
                deleted.append(document_id)
            except DomainError as e:
                failed.append({"document_id": document_id, "error": e.message})
            except HTTPException as e:
                failed.append({"document_id": document_id, "error": str(e.detail)})
        if failed:
            logger.warning(f"Bulk delete: {len(deleted)} deleted, {len(failed)} failed")
        return {"deleted": deleted, "failed": failed}
