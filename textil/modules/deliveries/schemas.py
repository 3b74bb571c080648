from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime

from textil.modules.entries.models import EntryStatus


class DeliveryItemIn(BaseModel):
    entry_item_id: UUID
    size_quantities: Dict[str, int] = Field(default_factory=dict)


class DeliveryCreate(BaseModel):
    entry_id: UUID
    delivery_date: Optional[date] = None
    who_delivered: Optional[str] = Field(None, max_length=200, description="Por defecto, el usuario actual")
    expected_version: Optional[int] = Field(
        None, description="version_id leído de la entrada; si no coincide la entrega se rechaza"
    )
    items: List[DeliveryItemIn] = Field(..., min_length=1)


class DeliveryItemOut(BaseModel):
    id: UUID
    entry_id: UUID
    entry_item_id: UUID
    product_id: UUID
    size_quantities: Dict[str, int]

    class Config:
        from_attributes = True


class DeliveryOut(BaseModel):
    id: UUID
    entry_code: str
    delivery_date: date
    who_delivered: str
    items: List[DeliveryItemOut]
    created_at: datetime

    class Config:
        from_attributes = True


class DeliveryResult(BaseModel):
    delivery: DeliveryOut
    entry_status: EntryStatus
    entry_version: int
    total_ordered: int
    total_delivered: int
    total_pending: int


class DeliveryList(BaseModel):
    deliveries: List[DeliveryOut]
    total: int
    limit: int
    offset: int
