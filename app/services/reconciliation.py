"""
Conciliación de agregados cacheados contra el libro de movimientos.

``Plan.current_amount`` y ``Installment.current_installment`` son vistas
materializadas: se recalculan desde los movimientos confirmados y se
sobrescriben solo cuando difieren. Correr la conciliación dos veces
seguidas sin cambios en el libro no escribe nada la segunda vez.
"""

import datetime as dt
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from app.core import config
from app.core.exceptions import NotFound
from app.core.logging import get_logger
from app.models.enums import ProgressStatus, TransactionType
from app.models.installment import Installment
from app.models.plan import Plan
from app.models.savings_goal import SavingsGoal
from app.models.transaction import Transaction
from app.schemas.batch import BatchResult, BatchStatus
from app.schemas.installment import InstallmentSync
from app.schemas.plan import PlanSync
from app.services.batch import Outcome, run_batch
from app.services.notifications import notify_progress
from app.services.status import apply_status, derive_status

log = get_logger(__name__)

SWEEP_STATUSES = (ProgressStatus.active, ProgressStatus.completed)


# Planes

def plan_totals(session: Session, plan_id: int) -> tuple[float, int]:
    """Suma y cantidad de gastos confirmados vinculados al plan."""
    total, count = session.exec(
        select(func.coalesce(func.sum(Transaction.amount), 0.0), func.count(Transaction.id))
        .where(
            Transaction.plan_id == plan_id,
            Transaction.type == TransactionType.expense,
            Transaction.is_pending == False,
        )
    ).one()
    return float(total), int(count)


def check_plan(session: Session, plan: Plan) -> PlanSync:
    calculated, count = plan_totals(session, plan.id)
    difference = calculated - plan.current_amount
    amount_drift = abs(difference) > config.RECONCILE_EPSILON
    progress = calculated if amount_drift else plan.current_amount
    expected = derive_status(plan.status, progress, plan.target_amount)
    return PlanSync(
        plan_id=plan.id,
        previous_amount=plan.current_amount,
        calculated_amount=calculated,
        difference=difference,
        transaction_count=count,
        is_synced=not amount_drift and expected == plan.status,
        status=plan.status,
    )


def reconcile_plan(session: Session, plan: Plan, now: dt.datetime) -> tuple[PlanSync, int]:
    """Repara el plan en la sesión (sin commit). Devuelve el informe y las notificaciones."""
    report = check_plan(session, plan)
    if report.is_synced:
        return report, 0

    previous_amount = plan.current_amount
    previous_status = plan.status
    if abs(report.difference) > config.RECONCILE_EPSILON:
        plan.current_amount = report.calculated_amount
    apply_status(plan, plan.current_amount, plan.target_amount)
    session.add(plan)

    notified = notify_progress(
        session,
        plan,
        related_type="plan",
        previous_amount=previous_amount,
        previous_status=previous_status,
        now=now,
    )
    log.info(
        "plan.synced",
        plan_id=plan.id,
        user_id=str(plan.user_id),
        previous_amount=previous_amount,
        new_amount=plan.current_amount,
        status=plan.status.value,
    )
    report.changed = True
    report.status = plan.status
    return report, 1 if notified else 0


def reconcile_plan_by_id(session: Session, plan_id: Optional[int], now: dt.datetime) -> Optional[PlanSync]:
    if plan_id is None:
        return None
    plan = session.get(Plan, plan_id)
    if not plan:
        return None
    report, _ = reconcile_plan(session, plan, now)
    return report


def get_user_plan(session: Session, plan_id: int, user_id: UUID) -> Plan:
    plan = session.exec(select(Plan).where(Plan.id == plan_id, Plan.user_id == user_id)).first()
    if not plan:
        raise NotFound("Plan no encontrado")
    return plan


def sync_plan(session: Session, plan_id: int, user_id: UUID, now: dt.datetime) -> PlanSync:
    plan = get_user_plan(session, plan_id, user_id)
    report, _ = reconcile_plan(session, plan, now)
    session.commit()
    return report


def _plan_handler(now: dt.datetime):
    def handle(session: Session, plan_id: int) -> Outcome:
        plan = session.get(Plan, plan_id)
        if not plan:
            raise NotFound(f"Plan {plan_id} no encontrado")
        report, notified = reconcile_plan(session, plan, now)
        if not report.changed:
            return Outcome(notifications=notified)
        return Outcome(
            fixed=True,
            notifications=notified,
            change={
                "plan_id": plan.id,
                "previous_amount": report.previous_amount,
                "new_amount": plan.current_amount,
                "status": plan.status.value,
            },
        )
    return handle


def _sweep_ids(session: Session, model) -> list[int]:
    return session.exec(
        select(model.id)
        .where(model.status.in_(SWEEP_STATUSES))
        .order_by(model.id)
        .limit(config.BATCH_MAX_ENTITIES)
    ).all()


def reconcile_all_plans(session: Session, now: dt.datetime) -> BatchResult:
    return run_batch(session, "plans.reconcile", _sweep_ids(session, Plan), _plan_handler(now), now)


def plans_status(session: Session, now: dt.datetime) -> BatchStatus:
    status = BatchStatus(job="plans.reconcile", checked_at=now)
    needs_sync = 0
    for plan_id in _sweep_ids(session, Plan):
        report = check_plan(session, session.get(Plan, plan_id))
        status.total += 1
        if not report.is_synced:
            needs_sync += 1
            if len(status.samples) < config.BATCH_SAMPLE_LIMIT:
                status.samples.append({"plan_id": plan_id, "difference": report.difference})
    status.counts["needs_sync"] = needs_sync
    return status


# Compras a cuotas

def installment_entry_count(session: Session, installment_id: int) -> int:
    return session.exec(
        select(func.count(Transaction.id)).where(
            Transaction.installment_id == installment_id,
            Transaction.is_pending == False,
        )
    ).one()


def check_installment(session: Session, installment: Installment) -> InstallmentSync:
    count = installment_entry_count(session, installment.id)
    # El contador nunca supera la cantidad de cuotas
    calculated = min(count, installment.installment_count)
    expected = derive_status(installment.status, calculated, installment.installment_count)
    difference = calculated - installment.current_installment
    return InstallmentSync(
        installment_id=installment.id,
        previous_installment=installment.current_installment,
        calculated_installment=calculated,
        difference=difference,
        transaction_count=count,
        is_synced=difference == 0 and expected == installment.status,
        status=installment.status,
    )


def reconcile_installment(session: Session, installment: Installment) -> InstallmentSync:
    report = check_installment(session, installment)
    if report.is_synced:
        return report

    installment.current_installment = report.calculated_installment
    apply_status(installment, installment.current_installment, installment.installment_count)
    session.add(installment)
    log.info(
        "installment.synced",
        installment_id=installment.id,
        user_id=str(installment.user_id),
        previous_installment=report.previous_installment,
        new_installment=installment.current_installment,
        status=installment.status.value,
    )
    report.changed = True
    report.status = installment.status
    return report


def reconcile_installment_by_id(session: Session, installment_id: Optional[int]) -> Optional[InstallmentSync]:
    if installment_id is None:
        return None
    installment = session.get(Installment, installment_id)
    if not installment:
        return None
    return reconcile_installment(session, installment)


def get_user_installment(session: Session, installment_id: int, user_id: UUID) -> Installment:
    installment = session.exec(
        select(Installment).where(Installment.id == installment_id, Installment.user_id == user_id)
    ).first()
    if not installment:
        raise NotFound("Compra a cuotas no encontrada")
    return installment


def sync_installment(session: Session, installment_id: int, user_id: UUID) -> InstallmentSync:
    installment = get_user_installment(session, installment_id, user_id)
    report = reconcile_installment(session, installment)
    session.commit()
    return report


def _installment_handler(session: Session, installment_id: int) -> Outcome:
    installment = session.get(Installment, installment_id)
    if not installment:
        raise NotFound(f"Compra a cuotas {installment_id} no encontrada")
    report = reconcile_installment(session, installment)
    if not report.changed:
        return Outcome()
    return Outcome(
        fixed=True,
        change={
            "installment_id": installment.id,
            "previous_installment": report.previous_installment,
            "new_installment": installment.current_installment,
            "status": installment.status.value,
        },
    )


def reconcile_all_installments(session: Session, now: dt.datetime) -> BatchResult:
    return run_batch(
        session, "installments.reconcile", _sweep_ids(session, Installment), _installment_handler, now
    )


def installments_status(session: Session, now: dt.datetime) -> BatchStatus:
    status = BatchStatus(job="installments.reconcile", checked_at=now)
    needs_sync = 0
    for installment_id in _sweep_ids(session, Installment):
        report = check_installment(session, session.get(Installment, installment_id))
        status.total += 1
        if not report.is_synced:
            needs_sync += 1
            if len(status.samples) < config.BATCH_SAMPLE_LIMIT:
                status.samples.append(
                    {"installment_id": installment_id, "difference": report.difference}
                )
    status.counts["needs_sync"] = needs_sync
    return status


# Metas de ahorro: el monto es manual, solo se repara el estado

def reconcile_savings_goal(session: Session, goal: SavingsGoal, now: dt.datetime) -> tuple[bool, int]:
    previous_status = goal.status
    if not apply_status(goal, goal.current_amount, goal.target_amount):
        return False, 0
    session.add(goal)
    notified = notify_progress(
        session,
        goal,
        related_type="savings_goal",
        previous_amount=goal.current_amount,
        previous_status=previous_status,
        now=now,
    )
    log.info(
        "savings_goal.synced",
        goal_id=goal.id,
        user_id=str(goal.user_id),
        previous_status=ProgressStatus(previous_status).value,
        status=goal.status.value,
    )
    return True, 1 if notified else 0


def _savings_goal_handler(now: dt.datetime):
    def handle(session: Session, goal_id: int) -> Outcome:
        goal = session.get(SavingsGoal, goal_id)
        if not goal:
            raise NotFound(f"Meta {goal_id} no encontrada")
        previous_status = goal.status
        changed, notified = reconcile_savings_goal(session, goal, now)
        if not changed:
            return Outcome(notifications=notified)
        return Outcome(
            fixed=True,
            notifications=notified,
            change={
                "goal_id": goal.id,
                "previous_status": ProgressStatus(previous_status).value,
                "status": goal.status.value,
            },
        )
    return handle


def reconcile_all_savings_goals(session: Session, now: dt.datetime) -> BatchResult:
    return run_batch(
        session,
        "savings_goals.reconcile",
        _sweep_ids(session, SavingsGoal),
        _savings_goal_handler(now),
        now,
    )


def savings_goals_status(session: Session, now: dt.datetime) -> BatchStatus:
    status = BatchStatus(job="savings_goals.reconcile", checked_at=now)
    needs_sync = 0
    for goal_id in _sweep_ids(session, SavingsGoal):
        goal = session.get(SavingsGoal, goal_id)
        status.total += 1
        expected = derive_status(goal.status, goal.current_amount, goal.target_amount)
        if expected != goal.status:
            needs_sync += 1
            if len(status.samples) < config.BATCH_SAMPLE_LIMIT:
                status.samples.append(
                    {"goal_id": goal_id, "status": goal.status.value, "expected": expected.value}
                )
    status.counts["needs_sync"] = needs_sync
    return status
