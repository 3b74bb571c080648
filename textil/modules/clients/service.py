from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from uuid import UUID
from typing import Optional
import logging

from textil.common.exceptions import NotFoundError, ValidationError
from textil.database.database import get_tenant_query
from textil.modules.clients.models import Client
from textil.modules.clients.schemas import ClientCreate

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: Session):
        self.db = db

    def create_client(self, data: ClientCreate, tenant_id: UUID) -> Client:
        client = Client(tenant_id=tenant_id, **data.model_dump())
        self.db.add(client)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError(f"Ya existe un cliente con el nombre '{data.name}'")
        self.db.refresh(client)
        logger.info(f"Client {client.name} created for tenant {tenant_id}")
        return client

    def find_client(self, client_id: UUID, tenant_id: UUID) -> Optional[Client]:
        return get_tenant_query(self.db, Client, tenant_id).filter(Client.id == client_id).first()

    def get_client(self, client_id: UUID, tenant_id: UUID) -> Client:
        client = self.find_client(client_id, tenant_id)
        if not client:
            raise NotFoundError("Cliente no encontrado")
        return client

    def list_clients(self, tenant_id: UUID, limit: int = 100, offset: int = 0) -> dict:
        query = get_tenant_query(self.db, Client, tenant_id).order_by(Client.name)
        return {
            "clients": query.offset(offset).limit(limit).all(),
            "total": query.count(),
            "limit": limit,
            "offset": offset,
        }
