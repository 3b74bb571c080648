"""
Generación de líneas de documento a partir de entradas y sus entregas.

Se factura lo entregado, nunca lo pedido. Los recargos por cantidad pequeña
se acumulan aparte del precio unitario y cada línea alimenta como mucho una
de las dos bolsas de recargo.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Union
from uuid import UUID

from textil.common.exceptions import MixedClientError, NoBillableItems, ValidationError
from textil.modules.deliveries import aggregator
from textil.modules.deliveries.models import Delivery
from textil.modules.documents.totals import money
from textil.modules.entries import ledger
from textil.modules.entries.models import Entry
from textil.modules.products.models import Product

# Regla fija del cliente especial: 10% sobre líneas de hasta 20 unidades
SPECIAL_CLIENT_MAX_UNITS = 20
SPECIAL_CLIENT_PERCENT = Decimal("10")


@dataclass
class GeneratedItem:
    product_id: UUID
    description: str
    unit_price: Decimal
    total: Decimal
    entry_code: str
    reference: str
    ordered_qty: int
    delivered_qty: int
    pending_qty: int
    last_delivery_date: Optional[date]
    status: str


@dataclass
class SurchargeLine:
    reason: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {"reason": self.reason, "amount": str(self.amount)}


@dataclass
class GeneratedLines:
    items: List[GeneratedItem] = field(default_factory=list)
    surcharges: List[SurchargeLine] = field(default_factory=list)


def format_percent(percent: Decimal) -> str:
    return f"{Decimal(percent).normalize():f}"


def _valid_price(product: Optional[Product]) -> Optional[Decimal]:
    if product is None or product.price is None:
        return None
    price = Decimal(str(product.price))
    return price if price > 0 else None


def generate_document_lines(
    entries: Iterable[Entry],
    products: Union[Mapping[UUID, Product], Iterable[Product]],
    deliveries: Iterable[Delivery],
    is_special_client: bool,
    quantity_threshold: int = 0,
    surcharge_percent: Decimal = Decimal("0"),
) -> GeneratedLines:
    entries = list(entries)
    if not entries:
        raise ValidationError("Seleccione al menos una entrada")
    if len({entry.client_id for entry in entries}) > 1:
        raise MixedClientError("Todas las entradas seleccionadas deben pertenecer al mismo cliente")

    if not isinstance(products, Mapping):
        products = {product.id: product for product in products}
    deliveries = list(deliveries)
    threshold = int(quantity_threshold or 0)
    percent = Decimal(str(surcharge_percent or 0))

    result = GeneratedLines()
    special_base = Decimal("0")
    dynamic_base = Decimal("0")

    for entry in entries:
        entry_deliveries = aggregator.deliveries_for_entry(entry, deliveries)
        last_date = aggregator.last_delivery_date(entry, entry_deliveries)

        for item in entry.items:
            # Producto sin precio: pendiente de tarifar, no se factura
            unit_price = _valid_price(products.get(item.product_id))
            if unit_price is None:
                continue

            delivered = aggregator.delivered_qty(entry, item, entry_deliveries)
            if delivered <= 0:
                continue

            ordered = ledger.total_units(item.size_quantities)
            item_total = money(delivered * unit_price)

            in_special_pool = is_special_client and delivered <= SPECIAL_CLIENT_MAX_UNITS
            if in_special_pool:
                special_base += item_total
            elif threshold > 0 and percent > 0 and delivered <= threshold:
                dynamic_base += item_total

            result.items.append(GeneratedItem(
                product_id=item.product_id,
                description=item.description or "",
                unit_price=unit_price,
                total=item_total,
                entry_code=entry.code,
                reference=item.product_ref,
                ordered_qty=ordered,
                delivered_qty=delivered,
                pending_qty=aggregator.pending_qty(entry, item, entry_deliveries),
                last_delivery_date=last_date,
                status=entry.status.value,
            ))

    if not result.items:
        raise NoBillableItems("No hay artículos entregados con precio válido en las entradas seleccionadas")

    if special_base > 0:
        result.surcharges.append(SurchargeLine(
            reason=f"Recargo por cantidad pequeña (≤{SPECIAL_CLIENT_MAX_UNITS} unidades)",
            amount=money(special_base * SPECIAL_CLIENT_PERCENT / Decimal("100")),
        ))
    if dynamic_base > 0:
        result.surcharges.append(SurchargeLine(
            reason=f"Recargo por cantidad ({format_percent(percent)}%) para pedidos ≤ {threshold} uds",
            amount=money(dynamic_base * percent / Decimal("100")),
        ))

    return result
