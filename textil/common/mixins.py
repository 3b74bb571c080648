"""
Mixins comunes para los modelos
"""
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func


class TenantMixin:
    """Aísla cada fila en su empresa (tenant)."""

    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class SizeQuantitiesMixin:
    """
    Cantidades por talla, p. ej. {"S": 10, "M": 5}.
    Solo se guardan claves con cantidad positiva (ver entries.ledger.clean).
    """

    size_quantities = Column(JSON, nullable=False, default=dict)
