from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class ProductCreate(BaseModel):
    code: str = Field("N/A", max_length=50)
    reference: str = Field(..., min_length=1, max_length=100)
    model_name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(Decimal("0"), ge=0, description="0 = pendiente de precio")
    category: str = Field("Uncategorized", max_length=100)
    description: str = ""
    client_id: Optional[UUID] = None


class ProductOut(ProductCreate):
    id: UUID
    needs_pricing: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    products: List[ProductOut]
    total: int
    limit: int
    offset: int
