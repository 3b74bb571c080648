from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime
from enum import Enum

from textil.modules.entries.models import EntryStatus


class StatusGroup(str, Enum):
    PENDING = "pending"            # received + in_process
    DELIVERED = "delivered"
    PRE_INVOICED = "pre-invoiced"
    INVOICED = "invoiced"


class EntryItemIn(BaseModel):
    id: Optional[UUID] = Field(None, description="Línea existente (solo al editar)")
    product_id: Optional[UUID] = None
    product_ref: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    size_quantities: Dict[str, int] = Field(default_factory=dict)
    optional_ref1: Optional[str] = Field(None, max_length=100)
    optional_ref2: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def check_product(self):
        if self.product_id is None and not (self.product_ref or "").strip():
            raise ValueError("Cada línea necesita product_id o product_ref")
        return self


class EntryCreate(BaseModel):
    code: Optional[str] = Field(None, max_length=50, description="Se asigna el siguiente número si se omite")
    entry_date: Optional[date] = None
    client_id: UUID
    items: List[EntryItemIn] = Field(..., min_length=1)
    create_missing_products: bool = Field(
        False, description="Crear productos sin precio para referencias desconocidas"
    )


class EntryUpdate(BaseModel):
    code: Optional[str] = Field(None, max_length=50)
    entry_date: Optional[date] = None
    client_id: Optional[UUID] = None
    status: Optional[EntryStatus] = None
    items: Optional[List[EntryItemIn]] = Field(None, min_length=1)
    create_missing_products: bool = False


class EntryItemOut(BaseModel):
    id: UUID
    product_id: UUID
    product_ref: str
    description: str
    size_quantities: Dict[str, int]
    optional_ref1: Optional[str] = None
    optional_ref2: Optional[str] = None
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class EntryOut(BaseModel):
    id: UUID
    code: str
    entry_date: date
    client_id: UUID
    who_input: str
    status: EntryStatus
    invoice_id: Optional[UUID] = None
    version_id: int
    items: List[EntryItemOut]
    created_at: datetime

    class Config:
        from_attributes = True


class EntryList(BaseModel):
    entries: List[EntryOut]
    total: int
    limit: int
    offset: int


class ItemSummaryOut(BaseModel):
    item_id: UUID
    product_id: UUID
    product_ref: str
    ordered: int
    delivered: int
    pending: int
    ordered_by_size: Dict[str, int]
    delivered_by_size: Dict[str, int]
    pending_by_size: Dict[str, int]

    class Config:
        from_attributes = True


class EntrySummaryOut(BaseModel):
    entry_id: UUID
    entry_code: str
    status: EntryStatus
    invoice_id: Optional[UUID] = None
    can_receive_deliveries: bool
    total_ordered: int
    total_delivered: int
    total_pending: int
    last_delivery_date: Optional[date] = None
    last_delivered_by: Optional[str] = None
    items: List[ItemSummaryOut]


class NextCodeOut(BaseModel):
    code: str
