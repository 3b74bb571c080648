from textil.database.database import Base
from sqlalchemy import Column, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from textil.common.mixins import TenantMixin, TimestampMixin


class Client(Base, TenantMixin, TimestampMixin):
    """Clientes de la empresa (registro usado por entradas y documentos)"""
    __tablename__ = "clients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False, index=True)
    address = Column(Text, nullable=True)
    email = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    vat_number = Column(String(50), nullable=True)
    logo_url = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_client_tenant_name"),
    )
