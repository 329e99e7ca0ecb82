# app/services/plans.py

import datetime as dt
from uuid import UUID

from sqlmodel import Session, select

from app.core.exceptions import InvalidTransition, NotFound, ValidationError
from app.core.logging import get_logger
from app.models.category import Category
from app.models.enums import ProgressStatus
from app.models.plan import Plan
from app.models.transaction import Transaction
from app.schemas.plan import PlanCreate, PlanUpdate
from app.services.reconciliation import get_user_plan, reconcile_plan
from app.services.status import cancel, ensure_open
from app.utils.dates import normalize_datetime

log = get_logger(__name__)


def _validate_category(session: Session, category_id, user_id: UUID) -> None:
    if category_id is None:
        return
    category = session.exec(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    ).first()
    if not category:
        raise NotFound("Categoría no encontrada")


def create_plan(session: Session, data: PlanCreate, user_id: UUID, now: dt.datetime) -> Plan:
    _validate_category(session, data.category_id, user_id)
    plan = Plan(
        user_id=user_id,
        name=data.name,
        description=data.description,
        target_amount=data.target_amount,
        current_amount=0.0,
        start_date=normalize_datetime(data.start_date),
        end_date=normalize_datetime(data.end_date),
        category_id=data.category_id,
        status=ProgressStatus.active,
        created_at=now,
    )
    session.add(plan)
    session.commit()
    session.refresh(plan)
    log.info("plan.created", plan_id=plan.id, user_id=str(user_id))
    return plan


def update_plan(
    session: Session, plan_id: int, data: PlanUpdate, user_id: UUID, now: dt.datetime
) -> Plan:
    plan = get_user_plan(session, plan_id, user_id)
    ensure_open(plan.status, "El plan")

    if data.name:
        plan.name = data.name
    if data.description is not None:
        plan.description = data.description
    if data.category_id is not None:
        _validate_category(session, data.category_id, user_id)
        plan.category_id = data.category_id
    if data.start_date is not None:
        plan.start_date = normalize_datetime(data.start_date)
    if data.end_date is not None:
        plan.end_date = normalize_datetime(data.end_date)
    if plan.end_date <= plan.start_date:
        raise ValidationError("La fecha final debe ser posterior a la fecha inicial.")
    if data.target_amount is not None:
        plan.target_amount = data.target_amount

    if data.status == ProgressStatus.cancelled:
        cancel(plan)
    elif data.status is not None and data.status != plan.status:
        raise InvalidTransition("El estado del plan se deriva de lo gastado.")

    # Un nuevo objetivo puede completar o reabrir el plan
    reconcile_plan(session, plan, now)
    session.add(plan)
    session.commit()
    session.refresh(plan)
    log.info("plan.updated", plan_id=plan.id, user_id=str(user_id), status=plan.status.value)
    return plan


def delete_plan(session: Session, plan_id: int, user_id: UUID) -> int:
    plan = get_user_plan(session, plan_id, user_id)
    entries = session.exec(select(Transaction).where(Transaction.plan_id == plan.id)).all()
    for entry in entries:
        entry.plan_id = None
        session.add(entry)
    session.flush()
    session.delete(plan)
    session.commit()
    log.info("plan.deleted", plan_id=plan_id, user_id=str(user_id), transactions_unlinked=len(entries))
    return len(entries)


def list_plans(session: Session, user_id: UUID, status: ProgressStatus | None = None) -> list[Plan]:
    query = select(Plan).where(Plan.user_id == user_id)
    if status is not None:
        query = query.where(Plan.status == status)
    return session.exec(query.order_by(Plan.end_date)).all()
