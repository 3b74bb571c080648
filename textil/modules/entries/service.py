"""
Servicio de entradas (pedidos de clientes).

Las entradas se crean en estado `received`; el estado solo avanza por
entregas, por facturación o por la edición manual de un administrador.
Una entrada con `invoice_id` está bloqueada hasta que se elimine su documento.
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from fastapi import HTTPException, status
from uuid import UUID
from datetime import date
from typing import Optional, List
import logging

from textil.common.exceptions import (
    ConcurrentModificationError,
    DomainError,
    EntryLockedError,
    NotFoundError,
    ValidationError,
)
from textil.core.config import settings
from textil.database.database import get_tenant_query
from textil.modules.auth.schemas import AuthContext
from textil.modules.clients.service import ClientService
from textil.modules.deliveries import aggregator
from textil.modules.deliveries.models import Delivery
from textil.modules.entries import ledger, state_machine
from textil.modules.entries.models import Entry, EntryItem, EntryStatus
from textil.modules.entries.schemas import (
    EntryCreate,
    EntryItemIn,
    EntrySummaryOut,
    EntryUpdate,
    ItemSummaryOut,
    StatusGroup,
)
from textil.modules.products.models import Product
from textil.modules.products.schemas import ProductCreate
from textil.modules.products.service import ProductService

logger = logging.getLogger(__name__)

STATUS_GROUPS = {
    StatusGroup.PENDING: [EntryStatus.RECEIVED, EntryStatus.IN_PROCESS],
    StatusGroup.DELIVERED: [EntryStatus.DELIVERED],
    StatusGroup.PRE_INVOICED: [EntryStatus.PRE_INVOICED],
    StatusGroup.INVOICED: [EntryStatus.INVOICED],
}


class EntryService:
    def __init__(self, db: Session):
        self.db = db

    # Códigos

    def next_code(self, tenant_id: UUID) -> str:
        """Siguiente código numérico: máximo código numérico existente + 1."""
        codes = [row[0] for row in self.db.query(Entry.code).filter(Entry.tenant_id == tenant_id).all()]
        numeric = [int(code) for code in codes if code and code.isdigit()]
        return str(max(numeric, default=0) + 1)

    def _code_taken(self, code: str, tenant_id: UUID, exclude_id: Optional[UUID] = None) -> bool:
        query = get_tenant_query(self.db, Entry, tenant_id).filter(Entry.code == code)
        if exclude_id:
            query = query.filter(Entry.id != exclude_id)
        return self.db.query(query.exists()).scalar()

    # Líneas

    def _resolve_product(self, item_in: EntryItemIn, tenant_id: UUID, create_missing: bool) -> Product:
        products = ProductService(self.db)
        if item_in.product_id:
            return products.get_product(item_in.product_id, tenant_id)

        reference = item_in.product_ref.strip()
        product = products.find_by_reference(reference, tenant_id)
        if product:
            return product
        if not create_missing:
            raise ValidationError(f"No existe un producto con la referencia '{reference}'")

        logger.info(f"Creating placeholder product for unknown reference {reference}")
        return products.create_product(
            ProductCreate(
                reference=reference,
                model_name=item_in.description or reference,
                description=item_in.description or "",
            ),
            tenant_id,
            commit=False,
        )

    def _apply_item(self, item: EntryItem, item_in: EntryItemIn, product: Product, position: int) -> EntryItem:
        size_quantities = ledger.validate_non_negative(item_in.size_quantities, settings.SIZES)
        if not size_quantities:
            raise ValidationError(f"La línea {product.reference} debe tener al menos una talla con cantidad")

        item.position = position
        item.product_id = product.id
        item.product_ref = product.reference
        item.description = item_in.description or product.description or product.model_name
        item.size_quantities = size_quantities
        item.optional_ref1 = item_in.optional_ref1
        item.optional_ref2 = item_in.optional_ref2
        item.image_url = item_in.image_url
        return item

    def _build_items(self, items_in: List[EntryItemIn], tenant_id: UUID, create_missing: bool) -> List[EntryItem]:
        return [
            self._apply_item(EntryItem(), item_in, self._resolve_product(item_in, tenant_id, create_missing), position)
            for position, item_in in enumerate(items_in)
        ]

    def _sync_items(self, entry: Entry, items_in: List[EntryItemIn], tenant_id: UUID, create_missing: bool):
        """Actualiza las líneas existentes por id, añade las nuevas y quita las omitidas."""
        existing = {item.id: item for item in entry.items}
        kept = []
        for position, item_in in enumerate(items_in):
            product = self._resolve_product(item_in, tenant_id, create_missing)
            if item_in.id is not None:
                item = existing.get(item_in.id)
                if item is None:
                    raise ValidationError(f"La línea {item_in.id} no pertenece a la entrada {entry.code}")
            else:
                item = EntryItem()
            kept.append(self._apply_item(item, item_in, product, position))
        entry.items = kept

    # Consultas

    def find_entry(self, entry_id: UUID, tenant_id: UUID) -> Optional[Entry]:
        return get_tenant_query(self.db, Entry, tenant_id).options(
            selectinload(Entry.items)
        ).filter(Entry.id == entry_id).first()

    def get_entry(self, entry_id: UUID, tenant_id: UUID) -> Entry:
        entry = self.find_entry(entry_id, tenant_id)
        if not entry:
            raise NotFoundError(f"Entrada {entry_id} no encontrada")
        return entry

    def get_entries_by_ids(self, entry_ids: List[UUID], tenant_id: UUID) -> List[Entry]:
        if not entry_ids:
            return []
        return get_tenant_query(self.db, Entry, tenant_id).options(
            selectinload(Entry.items)
        ).filter(Entry.id.in_(set(entry_ids))).all()

    def deliveries_for(self, entries: List[Entry], tenant_id: UUID) -> List[Delivery]:
        codes = {entry.code for entry in entries}
        if not codes:
            return []
        return get_tenant_query(self.db, Delivery, tenant_id).options(
            selectinload(Delivery.items)
        ).filter(Delivery.entry_code.in_(codes)).all()

    def list_entries(
        self,
        tenant_id: UUID,
        status_group: Optional[StatusGroup] = None,
        client_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0
    ) -> dict:
        query = get_tenant_query(self.db, Entry, tenant_id)
        if status_group:
            query = query.filter(Entry.status.in_(STATUS_GROUPS[status_group]))
        if client_id:
            query = query.filter(Entry.client_id == client_id)
        if date_from:
            query = query.filter(Entry.entry_date >= date_from)
        if date_to:
            query = query.filter(Entry.entry_date <= date_to)

        total = query.count()
        entries = query.options(selectinload(Entry.items)).order_by(
            Entry.entry_date.desc(), Entry.created_at.desc()
        ).offset(offset).limit(limit).all()

        return {"entries": entries, "total": total, "limit": limit, "offset": offset}

    def get_summary(self, entry_id: UUID, tenant_id: UUID) -> EntrySummaryOut:
        entry = self.get_entry(entry_id, tenant_id)
        deliveries = self.deliveries_for([entry], tenant_id)
        aggregate = aggregator.aggregate_entry(entry, deliveries)
        latest = aggregator.last_delivery(entry, deliveries)

        return EntrySummaryOut(
            entry_id=entry.id,
            entry_code=entry.code,
            status=entry.status,
            invoice_id=entry.invoice_id,
            can_receive_deliveries=not state_machine.is_locked(entry) and aggregate.total_pending > 0,
            total_ordered=aggregate.total_ordered,
            total_delivered=aggregate.total_delivered,
            total_pending=aggregate.total_pending,
            last_delivery_date=aggregate.last_delivery_date,
            last_delivered_by=latest.who_delivered if latest else None,
            items=[ItemSummaryOut.model_validate(item) for item in aggregate.items],
        )

    # Escritura

    def create_entry(self, data: EntryCreate, auth_context: AuthContext, commit: bool = True) -> Entry:
        tenant_id = auth_context.tenant_id
        try:
            ClientService(self.db).get_client(data.client_id, tenant_id)

            code = (data.code or "").strip() or self.next_code(tenant_id)
            if self._code_taken(code, tenant_id):
                raise ValidationError(f"Ya existe una entrada con el código {code}")

            entry = Entry(
                tenant_id=tenant_id,
                code=code,
                entry_date=data.entry_date or date.today(),
                client_id=data.client_id,
                who_input=auth_context.full_name,
                status=state_machine.INITIAL_STATUS,
                items=self._build_items(data.items, tenant_id, data.create_missing_products),
            )
            self.db.add(entry)
            if commit:
                self.db.commit()
                self.db.refresh(entry)
            else:
                self.db.flush()

            logger.info(f"Entry {entry.code} created with {len(entry.items)} items by {entry.who_input}")
            return entry

        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Ya existe una entrada con ese código")
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating entry: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error al crear la entrada: {str(e)}"
            )

    def update_entry(self, entry_id: UUID, data: EntryUpdate, auth_context: AuthContext) -> Entry:
        tenant_id = auth_context.tenant_id
        try:
            entry = self.get_entry(entry_id, tenant_id)
            if state_machine.is_locked(entry):
                raise EntryLockedError(
                    f"La entrada {entry.code} está vinculada a un documento y no se puede editar"
                )

            if data.code is not None and data.code.strip() != entry.code:
                new_code = data.code.strip()
                if not new_code:
                    raise ValidationError("El código de la entrada no puede estar vacío")
                if self._code_taken(new_code, tenant_id, exclude_id=entry.id):
                    raise ValidationError(f"Ya existe una entrada con el código {new_code}")
                if self.deliveries_for([entry], tenant_id):
                    raise ValidationError(
                        f"La entrada {entry.code} tiene entregas registradas; su código no se puede cambiar"
                    )
                entry.code = new_code

            if data.client_id is not None and data.client_id != entry.client_id:
                ClientService(self.db).get_client(data.client_id, tenant_id)
                entry.client_id = data.client_id

            if data.entry_date is not None:
                entry.entry_date = data.entry_date

            if data.items is not None:
                self._sync_items(entry, data.items, tenant_id, data.create_missing_products)

            if data.status is not None and data.status != entry.status:
                old_status = entry.status
                entry.status = state_machine.check_manual_transition(entry, data.status, auth_context.user_role)
                logger.info(
                    f"Entry {entry.code} status manually changed from {old_status.value} "
                    f"to {entry.status.value} by {auth_context.full_name}"
                )

            self.db.commit()
            self.db.refresh(entry)
            return entry

        except StaleDataError:
            self.db.rollback()
            raise ConcurrentModificationError(
                "La entrada fue modificada por otra operación; recargue e intente de nuevo"
            )
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Ya existe una entrada con ese código")
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating entry {entry_id}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error al actualizar la entrada: {str(e)}"
            )

    def delete_entry(self, entry_id: UUID, tenant_id: UUID) -> None:
        entry = self.get_entry(entry_id, tenant_id)
        if state_machine.is_locked(entry):
            logger.warning(f"Deleting entry {entry.code} still linked to document {entry.invoice_id}")
        self.db.delete(entry)
        self.db.commit()
        logger.info(f"Entry {entry.code} deleted")
