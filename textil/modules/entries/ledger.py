"""
Aritmética de cantidades por talla.

Todas las funciones trabajan sobre mapas `{talla: unidades}` y son puras.
Un mapa ausente, una talla ausente o un valor `None` cuentan como 0.
"""
from typing import Dict, Iterable, Mapping, Optional

from textil.common.exceptions import ValidationError

SizeQuantities = Dict[str, int]


def _units(value) -> int:
    if value is None:
        return 0
    value = int(value)
    return value if value > 0 else 0


def total_units(size_quantities: Optional[Mapping[str, int]]) -> int:
    """Suma de unidades de todas las tallas."""
    if not size_quantities:
        return 0
    return sum(_units(q) for q in size_quantities.values())


def units_for_size(size_quantities: Optional[Mapping[str, int]], size: str) -> int:
    if not size_quantities:
        return 0
    return _units(size_quantities.get(size))


def subtract(ordered: int, delivered: int) -> int:
    """Pendiente = pedido - entregado, nunca negativo."""
    return max(0, (ordered or 0) - (delivered or 0))


def merge(*maps: Optional[Mapping[str, int]]) -> SizeQuantities:
    """Suma talla a talla varios mapas."""
    merged: SizeQuantities = {}
    for size_quantities in maps:
        for size, qty in (size_quantities or {}).items():
            units = _units(qty)
            if units:
                merged[size] = merged.get(size, 0) + units
    return merged


def clean(size_quantities: Optional[Mapping[str, int]]) -> SizeQuantities:
    """Elimina las tallas con cantidad <= 0."""
    return {size: int(qty) for size, qty in (size_quantities or {}).items() if qty is not None and int(qty) > 0}


def validate_non_negative(
    size_quantities: Optional[Mapping[str, int]],
    allowed_sizes: Optional[Iterable[str]] = None,
) -> SizeQuantities:
    """
    Validar un mapa recibido del exterior y devolverlo limpio.

    Rechaza cantidades no enteras, negativas y tallas desconocidas.
    """
    allowed = set(allowed_sizes) if allowed_sizes is not None else None
    for size, qty in (size_quantities or {}).items():
        if allowed is not None and size not in allowed:
            raise ValidationError(f"Talla desconocida: {size}")
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise ValidationError(f"La cantidad de la talla {size} debe ser un número entero")
        if qty < 0:
            raise ValidationError(f"La cantidad de la talla {size} no puede ser negativa")
    return clean(size_quantities)
