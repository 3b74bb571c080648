from textil.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, Date, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from textil.common.mixins import SizeQuantitiesMixin, TenantMixin, TimestampMixin
import enum


class EntryStatus(enum.Enum):
    RECEIVED = "received"          # Recibida, sin entregas
    IN_PROCESS = "in_process"      # Entregada parcialmente
    DELIVERED = "delivered"        # Entregada por completo
    PRE_INVOICED = "pre_invoiced"  # Incluida en una prefactura
    INVOICED = "invoiced"          # Incluida en una factura


class Entry(Base, TenantMixin, TimestampMixin):
    """Pedido de un cliente con sus líneas por talla"""
    __tablename__ = "entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    # Código humano secuencial; las entregas referencian este valor, no el id
    code = Column(String(50), nullable=False, index=True)
    entry_date = Column(Date, nullable=False, default=date.today)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    who_input = Column(String(200), nullable=False, default="")
    status = Column(Enum(EntryStatus), nullable=False, default=EntryStatus.RECEIVED)

    # Documento que factura la entrada; sin FK para que la reversión controle el desvinculado
    invoice_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    version_id = Column(Integer, nullable=False)

    client = relationship("Client")
    items = relationship(
        "EntryItem",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EntryItem.position",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_entry_tenant_code"),
    )

    __mapper_args__ = {"version_id_col": version_id}


class EntryItem(Base, SizeQuantitiesMixin):
    __tablename__ = "entry_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    entry_id = Column(UUID(as_uuid=True), ForeignKey("entries.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    product_ref = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    optional_ref1 = Column(String(100), nullable=True)
    optional_ref2 = Column(String(100), nullable=True)
    image_url = Column(Text, nullable=True)

    entry = relationship("Entry", back_populates="items")
    product = relationship("Product")
