"""
Agregación de entregas contra una entrada.

Las entregas se emparejan con la entrada por `entry_code` (igualdad exacta)
y con cada línea por `entry_item_id`. Las funciones no tienen estado:
la misma entrada y las mismas entregas producen siempre el mismo resultado.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional
from uuid import UUID
import logging

from textil.modules.deliveries.models import Delivery
from textil.modules.entries import ledger
from textil.modules.entries.models import Entry, EntryItem

logger = logging.getLogger(__name__)


@dataclass
class ItemAggregate:
    item_id: UUID
    product_id: UUID
    product_ref: str
    ordered: int
    delivered: int
    pending: int
    ordered_by_size: Dict[str, int] = field(default_factory=dict)
    delivered_by_size: Dict[str, int] = field(default_factory=dict)
    pending_by_size: Dict[str, int] = field(default_factory=dict)


@dataclass
class EntryAggregate:
    entry_code: str
    total_ordered: int
    total_delivered: int
    total_pending: int
    last_delivery_date: Optional[date]
    items: List[ItemAggregate] = field(default_factory=list)


def deliveries_for_entry(entry: Entry, deliveries: Iterable[Delivery]) -> List[Delivery]:
    return [d for d in deliveries if d.entry_code == entry.code]


def _delivery_items(entry: Entry, item: EntryItem, deliveries: Iterable[Delivery]):
    for delivery in deliveries_for_entry(entry, deliveries):
        for delivery_item in delivery.items:
            if delivery_item.entry_item_id == item.id:
                yield delivery_item


def delivered_sizes(entry: Entry, item: EntryItem, deliveries: Iterable[Delivery]) -> Dict[str, int]:
    """Unidades entregadas por talla para una línea."""
    return ledger.merge(*(d.size_quantities for d in _delivery_items(entry, item, deliveries)))


def delivered_qty(entry: Entry, item: EntryItem, deliveries: Iterable[Delivery]) -> int:
    return sum(ledger.total_units(d.size_quantities) for d in _delivery_items(entry, item, deliveries))


def delivered_by_size(entry: Entry, item: EntryItem, size: str, deliveries: Iterable[Delivery]) -> int:
    return sum(ledger.units_for_size(d.size_quantities, size) for d in _delivery_items(entry, item, deliveries))


def pending_qty(entry: Entry, item: EntryItem, deliveries: Iterable[Delivery]) -> int:
    ordered = ledger.total_units(item.size_quantities)
    delivered = delivered_qty(entry, item, deliveries)
    if delivered > ordered:
        logger.warning(
            f"Entry {entry.code} item {item.id}: delivered {delivered} exceeds ordered {ordered}"
        )
    return ledger.subtract(ordered, delivered)


def last_delivery(entry: Entry, deliveries: Iterable[Delivery]) -> Optional[Delivery]:
    matching = deliveries_for_entry(entry, deliveries)
    if not matching:
        return None
    return max(matching, key=lambda d: d.delivery_date)


def last_delivery_date(entry: Entry, deliveries: Iterable[Delivery]) -> Optional[date]:
    latest = last_delivery(entry, deliveries)
    return latest.delivery_date if latest else None


def total_ordered(entry: Entry) -> int:
    return sum(ledger.total_units(item.size_quantities) for item in entry.items)


def total_delivered(entry: Entry, deliveries: Iterable[Delivery]) -> int:
    deliveries = list(deliveries)
    return sum(delivered_qty(entry, item, deliveries) for item in entry.items)


def aggregate_entry(entry: Entry, deliveries: Iterable[Delivery]) -> EntryAggregate:
    """Totales de la entrada y de cada una de sus líneas."""
    matching = deliveries_for_entry(entry, deliveries)
    items = []
    for item in entry.items:
        ordered_sizes = ledger.clean(item.size_quantities)
        delivered_map = delivered_sizes(entry, item, matching)
        pending_map = {}
        for size in set(ordered_sizes) | set(delivered_map):
            pending = ledger.subtract(ordered_sizes.get(size, 0), delivered_map.get(size, 0))
            if pending:
                pending_map[size] = pending

        items.append(ItemAggregate(
            item_id=item.id,
            product_id=item.product_id,
            product_ref=item.product_ref,
            ordered=ledger.total_units(ordered_sizes),
            delivered=ledger.total_units(delivered_map),
            pending=pending_qty(entry, item, matching),
            ordered_by_size=ordered_sizes,
            delivered_by_size=delivered_map,
            pending_by_size=pending_map,
        ))

    return EntryAggregate(
        entry_code=entry.code,
        total_ordered=sum(i.ordered for i in items),
        total_delivered=sum(i.delivered for i in items),
        total_pending=sum(i.pending for i in items),
        last_delivery_date=last_delivery_date(entry, matching),
        items=items,
    )
