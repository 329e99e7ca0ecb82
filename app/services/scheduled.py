"""
Confirmación de movimientos agendados.

Un movimiento agendado (``is_pending``) no cuenta en saldos ni agregados
hasta confirmarse, a mano o por el barrido cuando su fecha ya pasó. La
confirmación es condicional sobre ``is_pending`` para que dos barridos
simultáneos no la apliquen dos veces.
"""

import datetime as dt
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, select

from app.core import config
from app.core.exceptions import InvalidTransition, NotFound
from app.core.logging import get_logger
from app.models.enums import TransactionType
from app.models.plan import Plan
from app.models.transaction import Transaction
from app.schemas.batch import BatchResult, BatchStatus
from app.services.batch import Outcome, run_batch
from app.services.reconciliation import reconcile_installment_by_id, reconcile_plan
from app.services.transactions import get_user_transaction

log = get_logger(__name__)


def _confirm(session: Session, transaction: Transaction, now: dt.datetime) -> int:
    """Confirma dentro de la sesión (sin commit). Devuelve notificaciones creadas."""
    if not transaction.is_pending:
        raise InvalidTransition("El movimiento ya está confirmado.")

    effective_date = transaction.pending_date or now
    swapped = session.execute(
        update(Transaction)
        .where(Transaction.id == transaction.id, Transaction.is_pending == True)
        .values(is_pending=False, pending_date=None, date=effective_date)
    )
    if swapped.rowcount != 1:
        raise InvalidTransition("El movimiento ya fue confirmado por otra operación.")

    transaction.is_pending = False
    transaction.pending_date = None
    transaction.date = effective_date

    notified = 0
    if transaction.plan_id and transaction.type == TransactionType.expense:
        plan = session.get(Plan, transaction.plan_id)
        if plan:
            report, notified = reconcile_plan(session, plan, now)
            log.info(
                "plan.updated_after_confirm",
                plan_id=plan.id,
                previous_amount=report.previous_amount,
                new_amount=plan.current_amount,
            )
    reconcile_installment_by_id(session, transaction.installment_id)
    return notified


def confirm_transaction(
    session: Session, transaction_id: int, user_id: UUID, now: dt.datetime
) -> Transaction:
    transaction = get_user_transaction(session, transaction_id, user_id)
    _confirm(session, transaction, now)
    session.commit()
    session.refresh(transaction)
    log.info(
        "scheduled.confirmed",
        transaction_id=transaction.id,
        user_id=str(user_id),
        had_plan=transaction.plan_id is not None,
    )
    return transaction


def _due_query(now: dt.datetime):
    return select(Transaction.id).where(
        Transaction.is_pending == True,
        Transaction.pending_date <= now,
    )


def _confirm_handler(now: dt.datetime):
    def handle(session: Session, transaction_id: int) -> Outcome:
        transaction = session.get(Transaction, transaction_id)
        if not transaction:
            raise NotFound(f"Movimiento {transaction_id} no encontrado")
        if not transaction.is_pending:
            return Outcome(skipped=True)
        scheduled_for = transaction.pending_date
        notified = _confirm(session, transaction, now)
        log.info(
            "scheduled.processed",
            transaction_id=transaction.id,
            user_id=str(transaction.user_id),
            scheduled_date=scheduled_for.isoformat() if scheduled_for else None,
        )
        return Outcome(
            notifications=notified,
            change={"transaction_id": transaction.id, "date": transaction.date.isoformat()},
        )
    return handle


def process_scheduled_transactions(session: Session, now: dt.datetime) -> BatchResult:
    due_ids = session.exec(
        _due_query(now).order_by(Transaction.pending_date).limit(config.BATCH_MAX_ENTITIES)
    ).all()
    return run_batch(session, "scheduled.process", due_ids, _confirm_handler(now), now)


def scheduled_status(session: Session, now: dt.datetime) -> BatchStatus:
    due = len(session.exec(_due_query(now)).all())
    upcoming = len(
        session.exec(
            select(Transaction.id).where(
                Transaction.is_pending == True,
                Transaction.pending_date > now,
            )
        ).all()
    )
    return BatchStatus(
        job="scheduled.process",
        checked_at=now,
        total=due + upcoming,
        counts={"due": due, "upcoming": upcoming},
    )
