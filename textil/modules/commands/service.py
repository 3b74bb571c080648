"""
Ejecución de comandos tipados.

Cada comando lleva su `action` y un payload con el mismo esquema que el
endpoint equivalente; el despacho delega en los servicios de cada módulo.
"""
from sqlalchemy.orm import Session
import logging

from textil.common.exceptions import ForbiddenError
from textil.core.config import settings
from textil.modules.auth.schemas import AuthContext
from textil.modules.commands.schemas import (
    CommandResult,
    CreateEntryCommand,
    DeleteDocumentCommand,
    GenerateInvoiceCommand,
    RecordDeliveryCommand,
)
from textil.modules.deliveries.service import DeliveryService
from textil.modules.documents.service import DocumentService
from textil.modules.entries.schemas import EntryOut
from textil.modules.entries.service import EntryService

logger = logging.getLogger(__name__)


class CommandService:
    def __init__(self, db: Session):
        self.db = db

    def _require_invoicing_role(self, auth_context: AuthContext) -> None:
        if not auth_context.has_role(settings.INVOICING_ROLES):
            raise ForbiddenError(f"Se requiere uno de estos roles: {', '.join(settings.INVOICING_ROLES)}")

    def create_entry(self, command: CreateEntryCommand, auth_context: AuthContext) -> CommandResult:
        entry = EntryService(self.db).create_entry(command.payload, auth_context)
        return CommandResult(action=command.action, entry=EntryOut.model_validate(entry))

    def record_delivery(self, command: RecordDeliveryCommand, auth_context: AuthContext) -> CommandResult:
        result = DeliveryService(self.db).record_delivery(command.payload, auth_context)
        return CommandResult(action=command.action, delivery=result)

    def generate_invoice(self, command: GenerateInvoiceCommand, auth_context: AuthContext) -> CommandResult:
        self._require_invoicing_role(auth_context)
        service = DocumentService(self.db)
        document = service.create_document(command.payload, auth_context)
        return CommandResult(action=command.action, document=service.to_out(document))

    def delete_document(self, command: DeleteDocumentCommand, auth_context: AuthContext) -> CommandResult:
        self._require_invoicing_role(auth_context)
        DocumentService(self.db).delete_document(command.payload.document_id, auth_context.tenant_id)
        return CommandResult(action=command.action, deleted_document_id=command.payload.document_id)

    def execute(self, command, auth_context: AuthContext) -> CommandResult:
        logger.debug(f"Executing command {command.action} for tenant {auth_context.tenant_id}")
        handler = getattr(self, command.action)
        return handler(command, auth_context)
