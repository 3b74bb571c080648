from textil.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
from textil.common.mixins import TenantMixin, TimestampMixin


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(50), nullable=False, default="N/A")
    reference = Column(String(100), nullable=False, index=True)
    model_name = Column(String(200), nullable=False)
    # 0 = pendiente de precio, no se factura
    price = Column(Numeric(15, 2), nullable=False, default=0)
    category = Column(String(100), nullable=False, default="Uncategorized")
    description = Column(Text, nullable=False, default="")
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=True, index=True)

    client = relationship("Client")

    @property
    def needs_pricing(self) -> bool:
        return not self.price or self.price <= 0
