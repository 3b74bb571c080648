from pydantic import BaseModel, Field
from typing import Annotated, Optional, Union, Literal
from uuid import UUID

from textil.modules.deliveries.schemas import DeliveryCreate, DeliveryResult
from textil.modules.documents.schemas import DocumentGenerate, DocumentOut
from textil.modules.entries.schemas import EntryCreate, EntryOut


class DeleteDocumentPayload(BaseModel):
    document_id: UUID


class CreateEntryCommand(BaseModel):
    action: Literal["create_entry"]
    payload: EntryCreate


class RecordDeliveryCommand(BaseModel):
    action: Literal["record_delivery"]
    payload: DeliveryCreate


class GenerateInvoiceCommand(BaseModel):
    action: Literal["generate_invoice"]
    payload: DocumentGenerate


class DeleteDocumentCommand(BaseModel):
    action: Literal["delete_document"]
    payload: DeleteDocumentPayload


Command = Annotated[
    Union[CreateEntryCommand, RecordDeliveryCommand, GenerateInvoiceCommand, DeleteDocumentCommand],
    Field(discriminator="action"),
]


class CommandRequest(BaseModel):
    command: Command


class CommandResult(BaseModel):
    action: str
    entry: Optional[EntryOut] = None
    delivery: Optional[DeliveryResult] = None
    document: Optional[DocumentOut] = None
    deleted_document_id: Optional[UUID] = None
