from fastapi import APIRouter, Query, status
from uuid import UUID
from typing import Optional

from textil.core.config import settings
from textil.dependencies.dbDependencies import db_dependency
from textil.dependencies.authDependencies import any_role_dependency, invoicing_dependency
from textil.modules.products.service import ProductService
from textil.modules.products.schemas import ProductCreate, ProductOut, ProductList

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: db_dependency, auth_context: invoicing_dependency):
    """Crear un producto del catálogo (solo administradores)."""
    return ProductService(db).create_product(data, auth_context.tenant_id)


@router.get("/", response_model=ProductList)
def list_products(
    db: db_dependency,
    auth_context: any_role_dependency,
    client_id: Optional[UUID] = Query(None, description="Filtrar por cliente"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    return ProductService(db).list_products(auth_context.tenant_id, client_id, limit, offset)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: UUID, db: db_dependency, auth_context: any_role_dependency):
    return ProductService(db).get_product(product_id, auth_context.tenant_id)
