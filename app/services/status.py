"""
Máquina de estados compartida por planes, metas de ahorro y compras a cuotas.

    active ──(progreso >= objetivo)──> completed
    completed ──(objetivo sube por encima del progreso)──> active
    active | completed ──(acción explícita del usuario)──> cancelled

``cancelled`` es terminal. Nada lo asigna automáticamente.
"""

from app.core.exceptions import InvalidTransition
from app.models.enums import ProgressStatus

ALLOWED_TRANSITIONS: dict[ProgressStatus, set[ProgressStatus]] = {
    ProgressStatus.active: {ProgressStatus.completed, ProgressStatus.cancelled},
    ProgressStatus.completed: {ProgressStatus.active, ProgressStatus.cancelled},
    ProgressStatus.cancelled: set(),
}


def derive_status(current: ProgressStatus, progress: float, target: float) -> ProgressStatus:
    """Estado que corresponde al progreso, respetando una cancelación previa."""
    current = ProgressStatus(current)
    if current == ProgressStatus.cancelled:
        return current
    if progress >= target:
        return ProgressStatus.completed
    return ProgressStatus.active


def ensure_transition(current: ProgressStatus, target: ProgressStatus) -> ProgressStatus:
    current = ProgressStatus(current)
    target = ProgressStatus(target)
    if current == target:
        return target
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(
            f"No se puede pasar de '{current.value}' a '{target.value}'."
        )
    return target


def ensure_open(status: ProgressStatus, what: str = "El registro") -> None:
    if ProgressStatus(status) == ProgressStatus.cancelled:
        raise InvalidTransition(f"{what} está cancelado.")


def cancel(entity) -> None:
    """Cancela explícitamente un plan, meta o compra a cuotas."""
    entity.status = ensure_transition(entity.status, ProgressStatus.cancelled)


def apply_status(entity, progress: float, target: float) -> bool:
    """Recalcula ``entity.status``; devuelve True si cambió."""
    new_status = derive_status(entity.status, progress, target)
    if new_status == entity.status:
        return False
    entity.status = ensure_transition(entity.status, new_status)
    return True


# Movimientos recurrentes: bandera binaria is_active

def deactivate(recurring) -> None:
    if not recurring.is_active:
        raise InvalidTransition("El movimiento recurrente ya está inactivo.")
    recurring.is_active = False


def reactivate(recurring) -> None:
    if recurring.is_active:
        raise InvalidTransition("El movimiento recurrente ya está activo.")
    recurring.is_active = True
