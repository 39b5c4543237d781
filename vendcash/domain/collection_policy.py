"""
===============================================================================
TARJETA CRC — domain/collection_policy.py
===============================================================================

Responsabilidades:
  - Definir la máquina de estados de una cobranza.
  - Decidir si una operación es válida desde el estado actual.
  - Normalizar montos y su representación en auditoría.

Colaboradores:
  - domain.entities.Collection / CollectionStatus
  - application/usecases/collections (consultan antes de mutar)

Reglas:
  - COLLECTED -> RECEIVED -> (terminal)
  - COLLECTED | RECEIVED -> CANCELLED (terminal)
  - Nunca se vuelve a COLLECTED ni se sale de CANCELLED.
===============================================================================
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from .entities import CollectionStatus

_ALLOWED_TRANSITIONS: dict[CollectionStatus, frozenset[CollectionStatus]] = {
    CollectionStatus.COLLECTED: frozenset(
        {CollectionStatus.RECEIVED, CollectionStatus.CANCELLED}
    ),
    CollectionStatus.RECEIVED: frozenset({CollectionStatus.CANCELLED}),
    CollectionStatus.CANCELLED: frozenset(),
}

_CENTS = Decimal("0.01")


def can_transition(current: CollectionStatus, target: CollectionStatus) -> bool:
    """True si la transición current -> target está permitida."""
    return target in _ALLOWED_TRANSITIONS.get(current, frozenset())


def can_receive(status: CollectionStatus) -> bool:
    return status == CollectionStatus.COLLECTED


def can_edit(status: CollectionStatus) -> bool:
    """Solo se editan montos ya conciliados."""
    return status == CollectionStatus.RECEIVED


def can_cancel(status: CollectionStatus) -> bool:
    return can_transition(status, CollectionStatus.CANCELLED)


def normalize_amount(value) -> Optional[Decimal]:
    """
    Convierte un monto a Decimal con 2 decimales.

    Devuelve None si el valor no es numérico (el caller lo reporta como
    VALIDATION_ERROR). Los float pasan por str() para no arrastrar ruido
    binario.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite():
        return None
    try:
        return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Más dígitos que la precisión del contexto: ningún límite lo acepta,
        # amount_in_bounds lo rechaza sin redondear.
        return amount


def amount_in_bounds(amount: Decimal, *, minimum: int, maximum: int) -> bool:
    return Decimal(minimum) <= amount <= Decimal(maximum)


def format_audit_value(value) -> Optional[str]:
    """Representación textual estable para old_value/new_value."""
    if value is None:
        return None
    if isinstance(value, CollectionStatus):
        return value.value
    if isinstance(value, Decimal):
        return str(value.quantize(_CENTS))
    return str(value)
