"""
Registro de entregas.

Cada entrega se valida contra lo pendiente de la entrada por línea y talla
con la fila de la entrada bloqueada (`SELECT ... FOR UPDATE`) y su
`version_id` incrementado, de modo que dos entregas concurrentes sobre la
misma entrada se serializan o la segunda falla con conflicto.
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql import func
from fastapi import HTTPException, status
from uuid import UUID
from datetime import date
from typing import Optional, Dict
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
from textil.modules.deliveries import aggregator
from textil.modules.deliveries.models import Delivery, DeliveryItem
from textil.modules.deliveries.schemas import DeliveryCreate, DeliveryResult, DeliveryOut
from textil.modules.entries import ledger, state_machine
from textil.modules.entries.models import Entry
from textil.modules.entries.service import EntryService

logger = logging.getLogger(__name__)


class DeliveryService:
    def __init__(self, db: Session):
        self.db = db

    def _lock_entry(self, entry_id: UUID, tenant_id: UUID) -> Entry:
        entry = get_tenant_query(self.db, Entry, tenant_id).filter(
            Entry.id == entry_id
        ).with_for_update().first()
        if not entry:
            raise NotFoundError(f"Entrada {entry_id} no encontrada")
        return entry

    def _requested_quantities(self, entry: Entry, data: DeliveryCreate) -> Dict[UUID, Dict[str, int]]:
        items_by_id = {item.id: item for item in entry.items}
        requested: Dict[UUID, Dict[str, int]] = {}
        for item_in in data.items:
            if item_in.entry_item_id not in items_by_id:
                raise ValidationError(
                    f"La línea {item_in.entry_item_id} no pertenece a la entrada {entry.code}"
                )
            sizes = ledger.validate_non_negative(item_in.size_quantities, settings.SIZES)
            requested[item_in.entry_item_id] = ledger.merge(requested.get(item_in.entry_item_id), sizes)
        return {item_id: sizes for item_id, sizes in requested.items() if sizes}

    def _check_remaining(self, entry: Entry, requested: Dict[UUID, Dict[str, int]], deliveries) -> None:
        items_by_id = {item.id: item for item in entry.items}
        for item_id, sizes in requested.items():
            item = items_by_id[item_id]
            already = aggregator.delivered_sizes(entry, item, deliveries)
            for size, qty in sizes.items():
                remaining = ledger.subtract(
                    ledger.units_for_size(item.size_quantities, size), already.get(size, 0)
                )
                if qty > remaining:
                    raise ValidationError(
                        f"Entrada {entry.code}, {item.product_ref} talla {size}: "
                        f"se intentan entregar {qty} unidades y quedan {remaining}"
                    )

    def record_delivery(self, data: DeliveryCreate, auth_context: AuthContext, commit: bool = True) -> DeliveryResult:
        tenant_id = auth_context.tenant_id
        try:
            entry = self._lock_entry(data.entry_id, tenant_id)
            if state_machine.is_locked(entry):
                raise EntryLockedError(
                    f"La entrada {entry.code} está facturada y no admite nuevas entregas"
                )
            if data.expected_version is not None and data.expected_version != entry.version_id:
                raise ConcurrentModificationError(
                    f"La entrada {entry.code} cambió desde la última lectura; recargue e intente de nuevo"
                )

            requested = self._requested_quantities(entry, data)
            if not requested:
                raise ValidationError("La entrega no contiene cantidades")

            deliveries = EntryService(self.db).deliveries_for([entry], tenant_id)
            self._check_remaining(entry, requested, deliveries)

            items_by_id = {item.id: item for item in entry.items}
            delivery = Delivery(
                tenant_id=tenant_id,
                entry_code=entry.code,
                delivery_date=data.delivery_date or date.today(),
                who_delivered=data.who_delivered or auth_context.full_name,
                items=[
                    DeliveryItem(
                        entry_id=entry.id,
                        entry_item_id=item_id,
                        product_id=items_by_id[item_id].product_id,
                        size_quantities=sizes,
                    )
                    for item_id, sizes in requested.items()
                ],
            )
            self.db.add(delivery)

            all_deliveries = deliveries + [delivery]
            ordered = aggregator.total_ordered(entry)
            delivered = aggregator.total_delivered(entry, all_deliveries)
            old_status = entry.status
            entry.status = state_machine.status_after_delivery(old_status, ordered, delivered)
            # Fuerza UPDATE de la entrada para comprobar e incrementar version_id
            entry.updated_at = func.now()

            if commit:
                self.db.commit()
                self.db.refresh(delivery)
                self.db.refresh(entry)
            else:
                self.db.flush()

            if entry.status != old_status:
                logger.info(f"Entry {entry.code} status changed from {old_status.value} to {entry.status.value}")
            logger.info(f"Delivery recorded for entry {entry.code}: {delivered}/{ordered} units delivered")

            return DeliveryResult(
                delivery=DeliveryOut.model_validate(delivery),
                entry_status=entry.status,
                entry_version=entry.version_id,
                total_ordered=ordered,
                total_delivered=delivered,
                total_pending=ledger.subtract(ordered, delivered),
            )

        except StaleDataError:
            self.db.rollback()
            raise ConcurrentModificationError(
                "Otra entrega modificó la entrada al mismo tiempo; recargue e intente de nuevo"
            )
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error recording delivery for entry {data.entry_id}: {str(e)}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error al registrar la entrega: {str(e)}"
            )

    def get_delivery(self, delivery_id: UUID, tenant_id: UUID) -> Delivery:
        delivery = get_tenant_query(self.db, Delivery, tenant_id).options(
            selectinload(Delivery.items)
        ).filter(Delivery.id == delivery_id).first()
        if not delivery:
            raise NotFoundError(f"Entrega {delivery_id} no encontrada")
        return delivery

    def list_deliveries(
        self,
        tenant_id: UUID,
        entry_code: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> dict:
        query = get_tenant_query(self.db, Delivery, tenant_id)
        if entry_code is not None:
            query = query.filter(Delivery.entry_code == entry_code)
        total = query.count()
        deliveries = query.options(selectinload(Delivery.items)).order_by(
            Delivery.delivery_date.desc(), Delivery.created_at.desc()
        ).offset(offset).limit(limit).all()
        return {"deliveries": deliveries, "total": total, "limit": limit, "offset": offset}
