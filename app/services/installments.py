"""
Compras a cuotas: creación, avance de una cuota y edición.

El avance toma la fecha del último pago registrado y le suma un mes; no
hay calendario canónico por cuota. La escritura de ``current_installment``
es condicional (compare-and-swap) para que dos ejecuciones simultáneas no
materialicen la misma cuota dos veces.
"""

import datetime as dt
from typing import Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.core import config
from app.core.exceptions import AlreadyComplete, InvalidTransition, NotFound, ValidationError
from app.core.logging import get_logger
from app.models.category import Category
from app.models.enums import ProgressStatus, TransactionSource, TransactionType
from app.models.installment import Installment
from app.models.saving_account import SavingAccount, SavingAccountStatus
from app.models.transaction import Transaction
from app.schemas.batch import BatchResult, BatchStatus
from app.schemas.installment import InstallmentCreate, InstallmentUpdate
from app.services.batch import Outcome, run_batch
from app.services.reconciliation import get_user_installment, installment_entry_count
from app.services.status import apply_status, cancel, ensure_open
from app.utils.dates import add_months, normalize_datetime

log = get_logger(__name__)


def entry_description(installment: Installment, number: int) -> str:
    return f"{installment.description} ({number}/{installment.installment_count})"


def validate_expense_category(session: Session, category_id: int, user_id: UUID) -> Category:
    category = session.exec(
        select(Category).where(
            Category.id == category_id,
            Category.user_id == user_id,
            Category.is_active == True,
        )
    ).first()
    if not category:
        raise NotFound("Categoría no encontrada")
    if not category.accepts(TransactionType.expense):
        raise ValidationError("La categoría no es de gasto")
    return category


def validate_saving_account(session: Session, account_id: Optional[int], user_id: UUID) -> None:
    if account_id is None:
        return
    account = session.exec(
        select(SavingAccount).where(
            SavingAccount.id == account_id,
            SavingAccount.user_id == user_id,
        )
    ).first()
    if not account:
        raise NotFound("Medio de pago no encontrado")
    if account.status != SavingAccountStatus.active:
        raise ValidationError("El medio de pago no está activo.")


def _installment_entry(installment: Installment, number: int, date: dt.datetime) -> Transaction:
    return Transaction(
        user_id=installment.user_id,
        description=entry_description(installment, number),
        amount=installment.installment_amount,
        type=TransactionType.expense,
        category_id=installment.category_id,
        date=date,
        installment_id=installment.id,
        saving_account_id=installment.saving_account_id,
        source_type=TransactionSource.installment,
    )


def create_installment(
    session: Session, data: InstallmentCreate, user_id: UUID, now: dt.datetime
) -> Installment:
    if data.installment_count < 2:
        raise ValidationError("Se requieren al menos 2 cuotas.")
    if data.total_amount <= 0:
        raise ValidationError("El monto debe ser mayor a cero.")
    validate_expense_category(session, data.category_id, user_id)
    validate_saving_account(session, data.saving_account_id, user_id)

    start_date = normalize_datetime(data.start_date) or now
    installment = Installment(
        user_id=user_id,
        description=data.description,
        total_amount=data.total_amount,
        installment_count=data.installment_count,
        current_installment=1,
        category_id=data.category_id,
        saving_account_id=data.saving_account_id,
        start_date=start_date,
        status=ProgressStatus.active,
    )
    session.add(installment)
    session.flush()  # necesitamos el id para vincular la primera cuota

    session.add(_installment_entry(installment, 1, start_date))
    session.commit()
    session.refresh(installment)

    log.info(
        "installment.created",
        installment_id=installment.id,
        user_id=str(user_id),
        installments=installment.installment_count,
    )
    return installment


def last_payment_date(session: Session, installment_id: int) -> Optional[dt.datetime]:
    return session.exec(
        select(func.max(Transaction.date)).where(Transaction.installment_id == installment_id)
    ).one()


def next_payment_date(session: Session, installment: Installment) -> dt.datetime:
    last = last_payment_date(session, installment.id)
    if last is None:
        return installment.start_date
    return add_months(last, 1, anchor_day=installment.start_date.day)


def _advance(session: Session, installment: Installment) -> Transaction:
    """Materializa la siguiente cuota dentro de la sesión (sin commit)."""
    ensure_open(installment.status, "La compra a cuotas")
    if installment.current_installment >= installment.installment_count:
        raise AlreadyComplete("Todas las cuotas ya fueron pagadas")

    previous = installment.current_installment
    next_number = previous + 1
    date = next_payment_date(session, installment)
    completed = next_number >= installment.installment_count
    new_status = ProgressStatus.completed if completed else ProgressStatus.active

    swapped = session.execute(
        update(Installment)
        .where(
            Installment.id == installment.id,
            Installment.current_installment == previous,
            Installment.status != ProgressStatus.cancelled,
        )
        .values(current_installment=next_number, status=new_status)
    )
    if swapped.rowcount != 1:
        raise InvalidTransition("La cuota ya fue registrada por otra operación.")

    entry = _installment_entry(installment, next_number, date)
    session.add(entry)
    installment.current_installment = next_number
    installment.status = new_status
    return entry


def advance_installment(session: Session, installment_id: int, user_id: UUID) -> Installment:
    installment = get_user_installment(session, installment_id, user_id)
    entry = _advance(session, installment)
    session.commit()
    session.refresh(installment)

    log.info(
        "installment.advanced",
        installment_id=installment.id,
        user_id=str(user_id),
        installment=installment.current_installment,
        transaction_id=entry.id,
    )
    return installment


def due_installment_ids(session: Session, now: dt.datetime) -> list[int]:
    """Cuotas activas cuyo próximo pago (último pago + 1 mes) ya venció."""
    candidates = session.exec(
        select(Installment)
        .where(
            Installment.status == ProgressStatus.active,
            Installment.current_installment < Installment.installment_count,
        )
        .order_by(Installment.id)
        .limit(config.BATCH_MAX_ENTITIES)
    ).all()
    return [i.id for i in candidates if next_payment_date(session, i) <= now]


def _advance_handler(now: dt.datetime):
    def handle(session: Session, installment_id: int) -> Outcome:
        installment = session.get(Installment, installment_id)
        if not installment:
            raise NotFound(f"Compra a cuotas {installment_id} no encontrada")
        # Otra ejecución pudo adelantarse entre la consulta y este punto
        if (
            installment.status != ProgressStatus.active
            or next_payment_date(session, installment) > now
        ):
            return Outcome(skipped=True)
        entry = _advance(session, installment)
        log.info(
            "installment.advanced",
            installment_id=installment.id,
            user_id=str(installment.user_id),
            installment=installment.current_installment,
        )
        return Outcome(
            change={
                "installment_id": installment.id,
                "installment": installment.current_installment,
                "date": entry.date.isoformat(),
                "status": installment.status.value,
            }
        )
    return handle


def advance_due_installments(session: Session, now: dt.datetime) -> BatchResult:
    return run_batch(
        session, "installments.advance", due_installment_ids(session, now), _advance_handler(now), now
    )


def installments_due_status(session: Session, now: dt.datetime) -> BatchStatus:
    due = due_installment_ids(session, now)
    return BatchStatus(
        job="installments.advance",
        checked_at=now,
        total=len(due),
        counts={"due": len(due)},
    )


def update_installment(
    session: Session, installment_id: int, data: InstallmentUpdate, user_id: UUID
) -> Installment:
    installment = get_user_installment(session, installment_id, user_id)
    ensure_open(installment.status, "La compra a cuotas")

    if data.description:
        installment.description = data.description
    if data.category_id:
        validate_expense_category(session, data.category_id, user_id)
        installment.category_id = data.category_id

    if data.total_amount is not None or data.installment_count is not None:
        if data.total_amount is not None:
            installment.total_amount = data.total_amount
        if data.installment_count is not None:
            installment.installment_count = data.installment_count
        # Se recalcula desde los movimientos reales, no desde el contador guardado
        paid = installment_entry_count(session, installment.id)
        installment.current_installment = min(paid, installment.installment_count)
        apply_status(installment, installment.current_installment, installment.installment_count)

    if data.status == ProgressStatus.cancelled:
        cancel(installment)
    elif data.status is not None and data.status != installment.status:
        # active/completed se derivan de las cuotas pagadas
        raise InvalidTransition("El estado se deriva de las cuotas pagadas.")

    session.add(installment)
    session.commit()
    session.refresh(installment)
    log.info("installment.updated", installment_id=installment.id, user_id=str(user_id))
    return installment


def delete_installment(session: Session, installment_id: int, user_id: UUID) -> int:
    """Elimina la compra y desvincula sus movimientos (no se pierde historial)."""
    installment = get_user_installment(session, installment_id, user_id)
    entries = session.exec(
        select(Transaction).where(Transaction.installment_id == installment.id)
    ).all()
    for entry in entries:
        entry.installment_id = None
        session.add(entry)
    session.flush()
    session.delete(installment)
    session.commit()
    log.info(
        "installment.deleted",
        installment_id=installment_id,
        user_id=str(user_id),
        transactions_unlinked=len(entries),
    )
    return len(entries)


def installment_transactions(session: Session, installment_id: int) -> list[Transaction]:
    return session.exec(
        select(Transaction)
        .where(Transaction.installment_id == installment_id)
        .order_by(Transaction.date)
    ).all()
