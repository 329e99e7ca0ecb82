"""
Procesamiento de movimientos recurrentes.

Cada ejecución materializa como máximo UNA ocurrencia por recurrente, con
fecha igual a su ``next_due_date``, y avanza la serie desde esa fecha (no
desde "ahora"). Los periodos perdidos no se rellenan: el lote debe correr
al menos una vez al día. La escritura de ``next_due_date`` es condicional
(compare-and-swap), por lo que dos lotes solapados no duplican la ocurrencia.
"""

import datetime as dt
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core import config
from app.core.exceptions import InvalidTransition, NotFound, ValidationError
from app.core.logging import get_logger
from app.models.category import Category
from app.models.enums import TransactionSource
from app.models.recurring_transaction import RecurringTransaction
from app.models.transaction import Transaction
from app.schemas.batch import BatchResult, BatchStatus
from app.schemas.recurring_transaction import RecurringTransactionCreate, RecurringTransactionUpdate
from app.services.batch import Outcome, run_batch
from app.services.installments import validate_saving_account
from app.services.notifications import notify_upcoming_recurring, upcoming_recurring_query
from app.services.status import deactivate, reactivate
from app.utils.dates import first_occurrence_after, next_occurrence, normalize_datetime

log = get_logger(__name__)


def get_user_recurring(session: Session, recurring_id: int, user_id: UUID) -> RecurringTransaction:
    recurring = session.exec(
        select(RecurringTransaction).where(
            RecurringTransaction.id == recurring_id,
            RecurringTransaction.user_id == user_id,
        )
    ).first()
    if not recurring:
        raise NotFound("Movimiento recurrente no encontrado")
    return recurring


def _validate_category(session: Session, category_id: Optional[int], kind, user_id: UUID) -> None:
    if category_id is None:
        return
    category = session.exec(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    ).first()
    if not category:
        raise NotFound("Categoría no encontrada")
    if not category.accepts(kind):
        raise ValidationError("La categoría no corresponde al tipo de movimiento.")


def create_recurring(
    session: Session, data: RecurringTransactionCreate, user_id: UUID, now: dt.datetime
) -> RecurringTransaction:
    _validate_category(session, data.category_id, data.type, user_id)
    validate_saving_account(session, data.saving_account_id, user_id)

    start_date = normalize_datetime(data.start_date)
    end_date = normalize_datetime(data.end_date)
    if end_date is not None and end_date <= start_date:
        raise ValidationError("La fecha de finalización debe ser posterior a la fecha de inicio.")

    recurring = RecurringTransaction(
        user_id=user_id,
        description=data.description,
        amount=data.amount,
        type=data.type,
        frequency=data.frequency,
        category_id=data.category_id,
        saving_account_id=data.saving_account_id,
        start_date=start_date,
        end_date=end_date,
        # La primera ocurrencia es la propia fecha de inicio
        next_due_date=start_date,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    session.add(recurring)
    session.commit()
    session.refresh(recurring)
    log.info("recurring.created", recurring_id=recurring.id, user_id=str(user_id))
    return recurring


def last_materialized_date(session: Session, recurring_id: int) -> Optional[dt.datetime]:
    return session.exec(
        select(func.max(Transaction.date)).where(
            Transaction.recurring_transaction_id == recurring_id
        )
    ).one()


def update_recurring(
    session: Session,
    recurring_id: int,
    data: RecurringTransactionUpdate,
    user_id: UUID,
    now: dt.datetime,
) -> RecurringTransaction:
    recurring = get_user_recurring(session, recurring_id, user_id)

    if data.description:
        recurring.description = data.description
    if data.amount is not None:
        recurring.amount = data.amount
    if data.type is not None:
        recurring.type = data.type
    if data.category_id is not None or data.type is not None:
        _validate_category(session, data.category_id or recurring.category_id, recurring.type, user_id)
        if data.category_id is not None:
            recurring.category_id = data.category_id

    if data.end_date is not None:
        recurring.end_date = normalize_datetime(data.end_date)
    elif data.clear_end_date:
        recurring.end_date = None

    if data.frequency is not None or data.start_date is not None:
        if data.frequency is not None:
            recurring.frequency = data.frequency
        if data.start_date is not None:
            recurring.start_date = normalize_datetime(data.start_date)
        # La serie se recalcula a partir de lo que ya se materializó
        recurring.next_due_date = first_occurrence_after(
            recurring.frequency,
            recurring.start_date,
            last_materialized_date(session, recurring.id),
        )

    if recurring.end_date is not None and recurring.end_date <= recurring.start_date:
        raise ValidationError("La fecha de finalización debe ser posterior a la fecha de inicio.")

    past_end = recurring.end_date is not None and recurring.next_due_date > recurring.end_date
    if data.is_active is True and not recurring.is_active:
        if past_end:
            raise ValidationError("No se puede reactivar: la serie ya terminó.")
        reactivate(recurring)
    elif data.is_active is False and recurring.is_active:
        deactivate(recurring)
    elif past_end and recurring.is_active:
        deactivate(recurring)

    recurring.updated_at = now
    session.add(recurring)
    session.commit()
    session.refresh(recurring)
    log.info("recurring.updated", recurring_id=recurring.id, user_id=str(user_id))
    return recurring


def delete_recurring(session: Session, recurring_id: int, user_id: UUID) -> int:
    recurring = get_user_recurring(session, recurring_id, user_id)
    entries = session.exec(
        select(Transaction).where(Transaction.recurring_transaction_id == recurring.id)
    ).all()
    for entry in entries:
        entry.recurring_transaction_id = None
        session.add(entry)
    session.flush()
    session.delete(recurring)
    session.commit()
    log.info(
        "recurring.deleted",
        recurring_id=recurring_id,
        user_id=str(user_id),
        transactions_unlinked=len(entries),
    )
    return len(entries)


def _materialize(
    session: Session, recurring: RecurringTransaction, now: dt.datetime
) -> Optional[Transaction]:
    """
    Crea el movimiento de la ocurrencia vencida y avanza la serie (sin commit).

    Devuelve None si otra ejecución ya avanzó la serie.
    """
    due_date = recurring.next_due_date
    new_next = next_occurrence(recurring.frequency, due_date, anchor_day=recurring.start_date.day)
    expired = recurring.end_date is not None and new_next > recurring.end_date

    swapped = session.execute(
        update(RecurringTransaction)
        .where(
            RecurringTransaction.id == recurring.id,
            RecurringTransaction.next_due_date == due_date,
            RecurringTransaction.is_active == True,
        )
        .values(
            next_due_date=new_next,
            last_executed_at=now,
            is_active=not expired,
            updated_at=now,
        )
    )
    if swapped.rowcount != 1:
        return None

    transaction = Transaction(
        user_id=recurring.user_id,
        description=recurring.description,
        amount=recurring.amount,
        type=recurring.type,
        category_id=recurring.category_id,
        saving_account_id=recurring.saving_account_id,
        date=due_date,
        recurring_transaction_id=recurring.id,
        source_type=TransactionSource.recurring,
    )
    session.add(transaction)

    recurring.next_due_date = new_next
    recurring.last_executed_at = now
    recurring.is_active = not expired
    return transaction


def execute_recurring(
    session: Session, recurring_id: int, user_id: UUID, now: dt.datetime
) -> tuple[Transaction, RecurringTransaction]:
    """Ejecución manual de una ocurrencia ya vencida."""
    recurring = get_user_recurring(session, recurring_id, user_id)
    if not recurring.is_active:
        raise InvalidTransition("El movimiento recurrente está inactivo.")
    if recurring.next_due_date > now:
        raise ValidationError("Todavía no es la fecha de ejecución de este movimiento.")

    transaction = _materialize(session, recurring, now)
    if transaction is None:
        raise InvalidTransition("La ocurrencia ya fue procesada por otra operación.")
    session.commit()
    session.refresh(transaction)
    session.refresh(recurring)
    log.info(
        "recurring.executed",
        recurring_id=recurring.id,
        user_id=str(user_id),
        transaction_id=transaction.id,
    )
    return transaction, recurring


def _due_filter(now: dt.datetime):
    return (
        RecurringTransaction.is_active == True,
        RecurringTransaction.next_due_date <= now,
        or_(RecurringTransaction.end_date.is_(None), RecurringTransaction.end_date >= now),
    )


def due_recurring_ids(session: Session, now: dt.datetime) -> list[int]:
    return session.exec(
        select(RecurringTransaction.id)
        .where(*_due_filter(now))
        .order_by(RecurringTransaction.next_due_date, RecurringTransaction.id)
        .limit(config.BATCH_MAX_ENTITIES)
    ).all()


def _process_handler(now: dt.datetime):
    def handle(session: Session, recurring_id: int) -> Outcome:
        recurring = session.get(RecurringTransaction, recurring_id)
        if not recurring:
            raise NotFound(f"Movimiento recurrente {recurring_id} no encontrado")
        if not recurring.is_active or recurring.next_due_date > now:
            return Outcome(skipped=True)

        due_date = recurring.next_due_date
        transaction = _materialize(session, recurring, now)
        if transaction is None:
            return Outcome(skipped=True)

        log.info(
            "recurring.processed",
            recurring_id=recurring.id,
            user_id=str(recurring.user_id),
            next_due_date=recurring.next_due_date.isoformat(),
            expired=not recurring.is_active,
        )
        return Outcome(
            change={
                "recurring_id": recurring.id,
                "date": due_date.isoformat(),
                "next_due_date": recurring.next_due_date.isoformat(),
                "is_active": recurring.is_active,
            }
        )
    return handle


def notify_upcoming(session: Session, now: dt.datetime, result: BatchResult) -> None:
    """Avisos de recurrentes que vencen dentro de UPCOMING_DAYS."""
    upcoming = session.exec(upcoming_recurring_query(now).limit(config.BATCH_MAX_ENTITIES)).all()
    for recurring in upcoming:
        try:
            if notify_upcoming_recurring(session, recurring, now):
                result.notifications += 1
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            log.error("recurring.notify_failed", recurring_id=recurring.id, error=str(exc))
            # Un aviso fallido no cuenta como obligación con error
            result.notifications_failed += 1


def process_recurring_transactions(session: Session, now: dt.datetime) -> BatchResult:
    result = run_batch(
        session, "recurring.process", due_recurring_ids(session, now), _process_handler(now), now
    )
    notify_upcoming(session, now, result)
    return result


def recurring_status(session: Session, now: dt.datetime) -> BatchStatus:
    """Variante de solo lectura: cuántos vencieron y cuántos vencen pronto."""
    due = session.exec(
        select(func.count(RecurringTransaction.id)).where(*_due_filter(now))
    ).one()
    upcoming = len(session.exec(upcoming_recurring_query(now)).all())
    return BatchStatus(
        job="recurring.process",
        checked_at=now,
        total=due + upcoming,
        counts={"due": due, "upcoming": upcoming},
    )


def list_recurring(session: Session, user_id: UUID) -> list[RecurringTransaction]:
    return session.exec(
        select(RecurringTransaction)
        .where(RecurringTransaction.user_id == user_id)
        .order_by(RecurringTransaction.next_due_date)
    ).all()
