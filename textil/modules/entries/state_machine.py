"""
Ciclo de vida de una entrada.

received -> in_process -> delivered avanza solo al registrar entregas.
pre_invoiced / invoiced se alcanzan al generar un documento y vuelven a
delivered únicamente cuando ese documento se elimina. Un administrador
puede forzar el estado entre {actual, delivered, pre_invoiced}.
"""
from typing import Optional, Set

from textil.common.exceptions import (
    ConcurrentInvoicingConflict,
    EntryLockedError,
    ForbiddenError,
    ValidationError,
)
from textil.core.config import settings
from textil.modules.documents.models import DocumentType
from textil.modules.entries.models import Entry, EntryStatus

INITIAL_STATUS = EntryStatus.RECEIVED
AUTOMATIC_STATUSES = {EntryStatus.RECEIVED, EntryStatus.IN_PROCESS}
INVOICEABLE_STATUSES = {EntryStatus.DELIVERED, EntryStatus.PRE_INVOICED}
REVERSAL_STATUS = EntryStatus.DELIVERED


def status_after_delivery(current: EntryStatus, total_ordered: int, total_delivered: int) -> EntryStatus:
    """Estado resultante tras registrar una entrega."""
    if current not in AUTOMATIC_STATUSES:
        return current
    if total_delivered >= total_ordered:
        return EntryStatus.DELIVERED
    if total_delivered > 0:
        return EntryStatus.IN_PROCESS
    return EntryStatus.RECEIVED


def manual_status_options(current: EntryStatus) -> Set[EntryStatus]:
    return {current, EntryStatus.DELIVERED, EntryStatus.PRE_INVOICED}


def is_locked(entry: Entry) -> bool:
    return entry.invoice_id is not None


def check_manual_transition(entry: Entry, target: EntryStatus, role: Optional[str]) -> EntryStatus:
    """Validar un cambio de estado manual y devolver el estado destino."""
    if target == entry.status:
        return target
    if is_locked(entry):
        raise EntryLockedError(f"La entrada {entry.code} está facturada y no admite cambios de estado")
    if role not in settings.STATUS_EDIT_ROLES:
        raise ForbiddenError("Solo un administrador puede cambiar el estado manualmente")
    if target not in manual_status_options(entry.status):
        raise ValidationError(
            f"Transición no permitida para la entrada {entry.code}: {entry.status.value} -> {target.value}"
        )
    return target


def status_for_document(document_type: DocumentType) -> EntryStatus:
    if document_type == DocumentType.FACTURA:
        return EntryStatus.INVOICED
    return EntryStatus.PRE_INVOICED


def check_invoiceable(entry: Entry) -> None:
    if is_locked(entry):
        raise ConcurrentInvoicingConflict(
            f"La entrada {entry.code} ya está vinculada al documento {entry.invoice_id}"
        )
    if entry.status not in INVOICEABLE_STATUSES:
        raise ValidationError(
            f"La entrada {entry.code} no se puede facturar en estado {entry.status.value}"
        )
