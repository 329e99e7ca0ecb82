"""
Alta, edición y baja de movimientos del libro.

Toda operación que agrega o quita un movimiento vinculado a un plan o a una
compra a cuotas concilia ese agregado en la misma unidad de trabajo.
"""

import datetime as dt
from uuid import UUID

from sqlmodel import Session, select

from app.core.exceptions import InvalidTransition, NotFound, ValidationError
from app.core.logging import get_logger
from app.models.category import Category
from app.models.enums import ProgressStatus, TransactionSource, TransactionType
from app.models.plan import Plan
from app.models.transaction import Transaction
from app.schemas.transaction import TransactionCreate, TransactionUpdate
from app.services.installments import validate_saving_account
from app.services.reconciliation import reconcile_installment_by_id, reconcile_plan_by_id
from app.utils.dates import normalize_datetime

log = get_logger(__name__)


def get_user_transaction(session: Session, transaction_id: int, user_id: UUID) -> Transaction:
    transaction = session.exec(
        select(Transaction).where(Transaction.id == transaction_id, Transaction.user_id == user_id)
    ).first()
    if not transaction:
        raise NotFound("Movimiento no encontrado")
    return transaction


def _validate_category(session: Session, category_id: int, kind: TransactionType, user_id: UUID) -> None:
    category = session.exec(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    ).first()
    if not category:
        raise NotFound("Categoría no encontrada")
    if not category.accepts(kind):
        raise ValidationError("La categoría no corresponde al tipo de movimiento.")


def _validate_plan(session: Session, plan_id: int, user_id: UUID) -> None:
    plan = session.exec(
        select(Plan).where(Plan.id == plan_id, Plan.user_id == user_id)
    ).first()
    if not plan:
        raise NotFound("Plan no encontrado")
    if plan.status == ProgressStatus.cancelled:
        raise ValidationError("El plan está cancelado.")


def create_transaction(
    session: Session, data: TransactionCreate, user_id: UUID, now: dt.datetime
) -> Transaction:
    if data.amount <= 0:
        raise ValidationError("El monto debe ser mayor a cero.")

    if data.category_id is not None:
        _validate_category(session, data.category_id, data.type, user_id)

    validate_saving_account(session, data.saving_account_id, user_id)

    if data.plan_id is not None:
        _validate_plan(session, data.plan_id, user_id)

    pending_date = normalize_datetime(data.pending_date)
    if data.is_pending and pending_date <= now:
        raise ValidationError("La fecha programada debe ser futura.")

    transaction = Transaction(
        user_id=user_id,
        description=data.description,
        amount=data.amount,
        type=data.type,
        category_id=data.category_id,
        date=pending_date if data.is_pending else (normalize_datetime(data.date) or now),
        is_pending=data.is_pending,
        pending_date=pending_date,
        plan_id=data.plan_id,
        saving_account_id=data.saving_account_id,
        source_type=TransactionSource.manual,
    )
    session.add(transaction)
    session.flush()

    if not transaction.is_pending:
        reconcile_plan_by_id(session, transaction.plan_id, now)

    session.commit()
    session.refresh(transaction)
    log.info(
        "transaction.created",
        transaction_id=transaction.id,
        user_id=str(user_id),
        pending=transaction.is_pending,
    )
    return transaction


def update_transaction(
    session: Session, transaction_id: int, data: TransactionUpdate, user_id: UUID, now: dt.datetime
) -> Transaction:
    """
    Edita el movimiento y concilia en la misma unidad de trabajo el plan
    anterior, el plan nuevo y la compra a cuotas a la que pertenezca.
    """
    transaction = get_user_transaction(session, transaction_id, user_id)
    fields = data.model_fields_set
    previous_plan_id = transaction.plan_id

    relinks = "plan_id" in fields and data.plan_id != transaction.plan_id
    if relinks and transaction.is_pending:
        raise InvalidTransition("Confirmá el movimiento agendado antes de cambiar su plan.")
    if relinks and data.plan_id is not None:
        if transaction.installment_id is not None or transaction.recurring_transaction_id is not None:
            raise ValidationError("El movimiento ya está vinculado a otro agregado.")
        _validate_plan(session, data.plan_id, user_id)

    kind = data.type or transaction.type
    category_id = data.category_id if data.category_id is not None else transaction.category_id
    if category_id is not None and (data.category_id is not None or data.type is not None):
        _validate_category(session, category_id, kind, user_id)
    if data.saving_account_id is not None:
        validate_saving_account(session, data.saving_account_id, user_id)

    if transaction.is_pending:
        if data.date is not None:
            raise ValidationError("Un movimiento agendado se reprograma con su fecha programada.")
        if data.pending_date is not None:
            pending_date = normalize_datetime(data.pending_date)
            if pending_date <= now:
                raise ValidationError("La fecha programada debe ser futura.")
            transaction.pending_date = pending_date
            transaction.date = pending_date
    else:
        if data.pending_date is not None:
            raise ValidationError("Solo los movimientos agendados llevan fecha programada.")
        if data.date is not None:
            transaction.date = normalize_datetime(data.date)

    if data.description:
        transaction.description = data.description
    if data.amount is not None:
        transaction.amount = data.amount
    transaction.type = kind
    transaction.category_id = category_id
    if data.saving_account_id is not None:
        transaction.saving_account_id = data.saving_account_id
    if relinks:
        transaction.plan_id = data.plan_id

    session.add(transaction)
    session.flush()

    reconcile_plan_by_id(session, previous_plan_id, now)
    if transaction.plan_id != previous_plan_id:
        reconcile_plan_by_id(session, transaction.plan_id, now)
    reconcile_installment_by_id(session, transaction.installment_id)

    session.commit()
    session.refresh(transaction)
    log.info(
        "transaction.updated",
        transaction_id=transaction.id,
        user_id=str(user_id),
        previous_plan_id=previous_plan_id,
        plan_id=transaction.plan_id,
    )
    return transaction


def delete_transaction(session: Session, transaction_id: int, user_id: UUID, now: dt.datetime) -> None:
    """Borra el movimiento y vuelve a conciliar el agregado al que apuntaba."""
    transaction = get_user_transaction(session, transaction_id, user_id)
    plan_id = transaction.plan_id
    installment_id = transaction.installment_id

    session.delete(transaction)
    session.flush()
    reconcile_plan_by_id(session, plan_id, now)
    reconcile_installment_by_id(session, installment_id)
    session.commit()

    log.info(
        "transaction.deleted",
        transaction_id=transaction_id,
        user_id=str(user_id),
        plan_id=plan_id,
        installment_id=installment_id,
    )


def list_transactions(
    session: Session, user_id: UUID, pending: bool | None = None
) -> list[Transaction]:
    query = select(Transaction).where(Transaction.user_id == user_id)
    if pending is not None:
        query = query.where(Transaction.is_pending == pending)
    return session.exec(query.order_by(Transaction.date.desc())).all()
