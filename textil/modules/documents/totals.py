"""
Totales de documento y libro de pagos.

`payment_status` guardado en el documento (paid/pending) y el estado derivado
(paid/pending/overdue) son conceptos distintos: el primero se fija al crear
el documento o al registrar un pago, el segundo se calcula en cada lectura.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
import enum

from textil.common.exceptions import ValidationError
from textil.core.config import settings
from textil.modules.documents.models import PaymentStatus

CENT = Decimal("0.01")


class DerivedPaymentStatus(enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


@dataclass
class DocumentTotals:
    subtotal: Decimal
    total_surcharges: Decimal
    tax_amount: Decimal
    total: Decimal


def money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value or 0))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _amount(line) -> Decimal:
    value = line.get("amount") if isinstance(line, dict) else line.amount
    return Decimal(str(value or 0))


def calculate_totals(items: Iterable, surcharges: Iterable, tax_rate: Decimal) -> DocumentTotals:
    """subtotal + recargos + IVA, redondeado a céntimos."""
    subtotal = money(sum((Decimal(str(item.total or 0)) for item in items), Decimal("0")))
    total_surcharges = money(sum((_amount(s) for s in surcharges), Decimal("0")))
    tax_amount = money((subtotal + total_surcharges) * Decimal(str(tax_rate)) / Decimal("100"))
    return DocumentTotals(
        subtotal=subtotal,
        total_surcharges=total_surcharges,
        tax_amount=tax_amount,
        total=subtotal + total_surcharges + tax_amount,
    )


def amount_paid(payments: Iterable) -> Decimal:
    return sum((_amount(p) for p in payments), Decimal("0"))


def amount_due(total: Decimal, payments: Iterable) -> Decimal:
    return Decimal(str(total or 0)) - amount_paid(payments)


def derive_payment_status(
    issue_date: date,
    total: Decimal,
    payments: Iterable,
    today: Optional[date] = None,
) -> DerivedPaymentStatus:
    today = today or date.today()
    if amount_due(total, payments) <= settings.PAYMENT_EPSILON:
        return DerivedPaymentStatus.PAID
    if issue_date < today - timedelta(days=settings.OVERDUE_AFTER_DAYS):
        return DerivedPaymentStatus.OVERDUE
    return DerivedPaymentStatus.PENDING


def stored_payment_status(total: Decimal, payments: Iterable) -> PaymentStatus:
    if amount_paid(payments) >= Decimal(str(total or 0)):
        return PaymentStatus.PAID
    return PaymentStatus.PENDING


def validate_payment_amount(amount: Decimal, due: Decimal) -> None:
    if amount is None or amount <= 0:
        raise ValidationError("El importe del pago debe ser mayor que 0")
    if amount > due + settings.PAYMENT_EPSILON:
        raise ValidationError(f"El importe del pago ({amount}) supera el saldo pendiente ({money(due)})")
