from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = None
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    vat_number: Optional[str] = Field(None, max_length=50)
    logo_url: Optional[str] = None


class ClientOut(ClientCreate):
    id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ClientList(BaseModel):
    clients: List[ClientOut]
    total: int
    limit: int
    offset: int
