"""
Catálogo de productos.

Contrato usado por entradas y facturación: `get_product`, `list_products`
(por cliente) y `find_by_reference` (sin distinguir mayúsculas).
"""
from sqlalchemy.orm import Session
from sqlalchemy import func
from uuid import UUID
from typing import Optional, List, Iterable
import logging

from textil.common.exceptions import NotFoundError
from textil.database.database import get_tenant_query
from textil.modules.clients.service import ClientService
from textil.modules.products.models import Product
from textil.modules.products.schemas import ProductCreate

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def create_product(self, data: ProductCreate, tenant_id: UUID, commit: bool = True) -> Product:
        if data.client_id:
            ClientService(self.db).get_client(data.client_id, tenant_id)

        product = Product(tenant_id=tenant_id, **data.model_dump())
        self.db.add(product)
        if commit:
            self.db.commit()
            self.db.refresh(product)
        else:
            self.db.flush()

        if product.needs_pricing:
            logger.info(f"Product {product.reference} created without price (needs pricing)")
        return product

    def find_product(self, product_id: UUID, tenant_id: UUID) -> Optional[Product]:
        return get_tenant_query(self.db, Product, tenant_id).filter(Product.id == product_id).first()

    def get_product(self, product_id: UUID, tenant_id: UUID) -> Product:
        product = self.find_product(product_id, tenant_id)
        if not product:
            raise NotFoundError(f"Producto {product_id} no encontrado")
        return product

    def find_by_reference(self, reference: str, tenant_id: UUID) -> Optional[Product]:
        return get_tenant_query(self.db, Product, tenant_id).filter(
            func.lower(Product.reference) == reference.strip().lower()
        ).first()

    def get_products_by_ids(self, product_ids: Iterable[UUID], tenant_id: UUID) -> List[Product]:
        ids = set(product_ids)
        if not ids:
            return []
        return get_tenant_query(self.db, Product, tenant_id).filter(Product.id.in_(ids)).all()

    def list_products(
        self,
        tenant_id: UUID,
        client_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0
    ) -> dict:
        query = get_tenant_query(self.db, Product, tenant_id)
        if client_id:
            query = query.filter(Product.client_id == client_id)
        query = query.order_by(Product.reference)
        return {
            "products": query.offset(offset).limit(limit).all(),
            "total": query.count(),
            "limit": limit,
            "offset": offset,
        }
