# app/services/savings_goals.py

import datetime as dt
from uuid import UUID

from sqlmodel import Session, select

from app.core.exceptions import InvalidTransition, NotFound, ValidationError
from app.core.logging import get_logger
from app.models.enums import ProgressStatus
from app.models.savings_goal import SavingsGoal
from app.schemas.savings_goal import SavingsGoalCreate, SavingsGoalUpdate
from app.services.notifications import notify_progress
from app.services.status import apply_status, cancel, ensure_open
from app.utils.dates import normalize_datetime

log = get_logger(__name__)


def get_user_goal(session: Session, goal_id: int, user_id: UUID) -> SavingsGoal:
    goal = session.exec(
        select(SavingsGoal).where(SavingsGoal.id == goal_id, SavingsGoal.user_id == user_id)
    ).first()
    if not goal:
        raise NotFound("Meta de ahorro no encontrada")
    return goal


def create_goal(session: Session, data: SavingsGoalCreate, user_id: UUID, now: dt.datetime) -> SavingsGoal:
    start_date = normalize_datetime(data.start_date) or now
    end_date = normalize_datetime(data.end_date)
    if end_date is not None and end_date <= start_date:
        raise ValidationError("La fecha final debe ser posterior a la fecha inicial.")

    goal = SavingsGoal(
        user_id=user_id,
        name=data.name,
        description=data.description,
        target_amount=data.target_amount,
        start_date=start_date,
        end_date=end_date,
        status=ProgressStatus.active,
        created_at=now,
    )
    session.add(goal)
    session.commit()
    session.refresh(goal)
    log.info("savings_goal.created", goal_id=goal.id, user_id=str(user_id))
    return goal


def add_amount(
    session: Session, goal_id: int, amount: float, user_id: UUID, now: dt.datetime
) -> SavingsGoal:
    if amount <= 0:
        raise ValidationError("El monto debe ser mayor a cero.")

    goal = get_user_goal(session, goal_id, user_id)
    if goal.status != ProgressStatus.active:
        raise InvalidTransition("Solo las metas activas pueden recibir aportes.")

    previous_amount = goal.current_amount
    previous_status = goal.status
    goal.current_amount = previous_amount + amount
    apply_status(goal, goal.current_amount, goal.target_amount)
    session.add(goal)
    notify_progress(
        session,
        goal,
        related_type="savings_goal",
        previous_amount=previous_amount,
        previous_status=previous_status,
        now=now,
    )
    session.commit()
    session.refresh(goal)

    log.info(
        "savings_goal.deposit",
        goal_id=goal.id,
        user_id=str(user_id),
        amount=amount,
        completed=goal.status == ProgressStatus.completed,
    )
    return goal


def update_goal(
    session: Session, goal_id: int, data: SavingsGoalUpdate, user_id: UUID, now: dt.datetime
) -> SavingsGoal:
    goal = get_user_goal(session, goal_id, user_id)
    ensure_open(goal.status, "La meta")
    previous_status = goal.status

    if data.name:
        goal.name = data.name
    if data.description is not None:
        goal.description = data.description
    if data.end_date is not None:
        end_date = normalize_datetime(data.end_date)
        if end_date <= goal.start_date:
            raise ValidationError("La fecha final debe ser posterior a la fecha inicial.")
        goal.end_date = end_date
    if data.target_amount is not None:
        goal.target_amount = data.target_amount

    if data.status == ProgressStatus.cancelled:
        cancel(goal)
    elif data.status is not None and data.status != goal.status:
        raise InvalidTransition("El estado de la meta se deriva de lo ahorrado.")
    else:
        # Subir el objetivo por encima de lo ahorrado reabre la meta
        apply_status(goal, goal.current_amount, goal.target_amount)
        notify_progress(
            session,
            goal,
            related_type="savings_goal",
            previous_amount=goal.current_amount,
            previous_status=previous_status,
            now=now,
        )

    session.add(goal)
    session.commit()
    session.refresh(goal)
    log.info("savings_goal.updated", goal_id=goal.id, user_id=str(user_id), status=goal.status.value)
    return goal


def delete_goal(session: Session, goal_id: int, user_id: UUID) -> None:
    goal = get_user_goal(session, goal_id, user_id)
    session.delete(goal)
    session.commit()
    log.info("savings_goal.deleted", goal_id=goal_id, user_id=str(user_id))


def list_goals(session: Session, user_id: UUID) -> list[SavingsGoal]:
    return session.exec(
        select(SavingsGoal).where(SavingsGoal.user_id == user_id).order_by(SavingsGoal.created_at.desc())
    ).all()
