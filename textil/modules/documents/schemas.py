from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal

from textil.modules.documents.models import DocumentType, PaymentStatus, PaymentMethod
from textil.modules.documents.totals import DerivedPaymentStatus


class DocumentGenerate(BaseModel):
    entry_ids: List[UUID] = Field(default_factory=list, description="Entradas de un mismo cliente")
    document_type: DocumentType
    quantity_threshold: int = Field(0, ge=0, description="Unidades máximas por línea para aplicar el recargo")
    surcharge_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2, description="Por defecto DEFAULT_TAX_RATE")
    issue_date: Optional[date] = None
    invoice_period_start: Optional[date] = None
    invoice_period_end: Optional[date] = None

    @model_validator(mode="after")
    def check_period(self):
        if self.invoice_period_start and self.invoice_period_end and self.invoice_period_start > self.invoice_period_end:
            raise ValueError("invoice_period_start debe ser anterior a invoice_period_end")
        return self


class SurchargeOut(BaseModel):
    reason: str
    amount: Decimal

    class Config:
        from_attributes = True


class DocumentItemOut(BaseModel):
    product_id: UUID
    description: str
    unit_price: Decimal
    total: Decimal
    entry_code: str
    reference: str
    ordered_qty: int
    delivered_qty: int
    pending_qty: int
    last_delivery_date: Optional[date] = None
    status: str

    class Config:
        from_attributes = True


class DocumentPreview(BaseModel):
    document_type: DocumentType
    client_id: UUID
    entry_ids: List[UUID]
    issue_date: date
    items: List[DocumentItemOut]
    surcharges: List[SurchargeOut]
    subtotal: Decimal
    total_surcharges: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    invoice_period_start: Optional[date] = None
    invoice_period_end: Optional[date] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., decimal_places=2, description="Mayor que 0 y no superior al saldo pendiente")
    payment_date: Optional[date] = None
    method: PaymentMethod = PaymentMethod.TRANSFER
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    id: UUID
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class DocumentOut(BaseModel):
    id: UUID
    document_number: str
    document_type: DocumentType
    client_id: UUID
    issue_date: date
    entry_ids: List[UUID]
    items: List[DocumentItemOut]
    surcharges: List[SurchargeOut]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    payment_status: PaymentStatus
    payments: List[PaymentOut]
    amount_paid: Decimal
    amount_due: Decimal
    derived_status: Optional[DerivedPaymentStatus] = None
    invoice_period_start: Optional[date] = None
    invoice_period_end: Optional[date] = None
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentList(BaseModel):
    documents: List[DocumentOut]
    total: int
    limit: int
    offset: int


class BulkDeleteRequest(BaseModel):
    document_ids: List[UUID] = Field(..., min_length=1)


class BulkDeleteFailure(BaseModel):
    document_id: UUID
    error: str


class BulkDeleteResult(BaseModel):
    deleted: List[UUID]
    failed: List[BulkDeleteFailure]
