from textil.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Date, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from decimal import Decimal
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from textil.common.mixins import TenantMixin, TimestampMixin
import enum


class DocumentType(enum.Enum):
    PREFACTURA = "Prefactura"
    FACTURA = "Factura"


class PaymentStatus(enum.Enum):
    PAID = "paid"
    PENDING = "pending"


class PaymentMethod(enum.Enum):
    CASH = "cash"           # Efectivo
    TRANSFER = "transfer"   # Transferencia
    CARD = "card"           # Tarjeta
    CHECK = "check"         # Cheque
    OTHER = "other"         # Otro


class Document(Base, TenantMixin, TimestampMixin):
    """Prefactura o factura generada a partir de entradas de un mismo cliente"""
    __tablename__ = "documents"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    document_number = Column(String(50), nullable=False)
    document_type = Column(Enum(DocumentType), nullable=False)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    issue_date = Column(Date, nullable=False, default=date.today)

    # Entradas conciliadas en este documento (ids en texto)
    entry_ids = Column(JSON, nullable=False, default=list)
    # [{"reason": str, "amount": "12.50"}]
    surcharges = Column(JSON, nullable=False, default=list)

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    # Estado guardado (facturación); el estado con vencimiento se calcula al leer
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    invoice_period_start = Column(Date, nullable=True)
    invoice_period_end = Column(Date, nullable=True)
    created_by = Column(String(200), nullable=False, default="")

    client = relationship("Client")
    items = relationship(
        "DocumentItem",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentItem.position",
    )
    payments = relationship(
        "DocumentPayment",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentPayment.created_at",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "document_number", name="uq_document_tenant_number"),
    )

    @property
    def amount_paid(self):
        """Calcular monto pagado"""
        return sum((payment.amount for payment in self.payments), Decimal("0"))

    @property
    def amount_due(self):
        """Calcular saldo pendiente"""
        return self.total - self.amount_paid


class DocumentItem(Base):
    """Foto de la línea al generar el documento; no sigue cambios de entradas ni productos"""
    __tablename__ = "document_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    document_id = Column(UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(UUID(as_uuid=True), nullable=False)
    description = Column(Text, nullable=False, default="")
    unit_price = Column(Numeric(15, 2), nullable=False)
    total = Column(Numeric(15, 2), nullable=False)
    entry_code = Column(String(50), nullable=False)
    reference = Column(String(100), nullable=False)
    ordered_qty = Column(Integer, nullable=False, default=0)
    delivered_qty = Column(Integer, nullable=False, default=0)
    pending_qty = Column(Integer, nullable=False, default=0)
    last_delivery_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False)

    document = relationship("Document", back_populates="items")


class DocumentPayment(Base, TimestampMixin):
    __tablename__ = "document_payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    document_id = Column(UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.TRANSFER)
    notes = Column(Text, nullable=True)

    document = relationship("Document", back_populates="payments")


class DocumentSequence(Base, TenantMixin):
    """Numeración de documentos por empresa y tipo (PR-0001, FA-0001)"""
    __tablename__ = "document_sequences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    document_type = Column(Enum(DocumentType), nullable=False)
    prefix = Column(String(10), nullable=False)
    current_number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "document_type", name="uq_sequence_tenant_type"),
    )
