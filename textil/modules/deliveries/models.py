from textil.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Date
from sqlalchemy.orm import relationship
from datetime import date
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from textil.common.mixins import SizeQuantitiesMixin, TenantMixin, TimestampMixin


class Delivery(Base, TenantMixin, TimestampMixin):
    """Entrega (parcial o total) contra una entrada. Solo se crea, nunca se edita."""
    __tablename__ = "deliveries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    # Se empareja con Entry.code por igualdad exacta de texto
    entry_code = Column(String(50), nullable=False, index=True)
    delivery_date = Column(Date, nullable=False, default=date.today)
    who_delivered = Column(String(200), nullable=False, default="")

    items = relationship("DeliveryItem", back_populates="delivery", cascade="all, delete-orphan")


class DeliveryItem(Base, SizeQuantitiesMixin):
    __tablename__ = "delivery_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    delivery_id = Column(UUID(as_uuid=True), ForeignKey("deliveries.id", ondelete="CASCADE"), nullable=False, index=True)

    # Referencias sueltas: la entrada o su línea pueden desaparecer sin romper el histórico
    entry_id = Column(UUID(as_uuid=True), nullable=False)
    entry_item_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), nullable=False)

    delivery = relationship("Delivery", back_populates="items")
