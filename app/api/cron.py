# app/api/cron.py
#
# Disparadores para el cron externo. Los POST requieren el secreto
# compartido y escriben; los GET hacen el mismo cálculo en modo lectura.

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.security import get_current_user, verify_cron_secret
from app.database import get_session
from app.schemas.batch import BatchResult, BatchStatus
from app.services import installments, notifications, reconciliation, recurring, scheduled
from app.utils.dates import utcnow

router = APIRouter(prefix="/cron", tags=["cron"])


@router.post("/recurring/process", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def process_recurring(session: Session = Depends(get_session)):
    return recurring.process_recurring_transactions(session, utcnow())


@router.get("/recurring/process", response_model=BatchStatus)
def recurring_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return recurring.recurring_status(session, utcnow())


@router.post("/scheduled/process", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def process_scheduled(session: Session = Depends(get_session)):
    return scheduled.process_scheduled_transactions(session, utcnow())


@router.get("/scheduled/process", response_model=BatchStatus)
def scheduled_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return scheduled.scheduled_status(session, utcnow())


@router.post("/installments/advance", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def advance_installments(session: Session = Depends(get_session)):
    return installments.advance_due_installments(session, utcnow())


@router.get("/installments/advance", response_model=BatchStatus)
def installments_due_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return installments.installments_due_status(session, utcnow())


@router.post("/plans/reconcile", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def reconcile_plans(session: Session = Depends(get_session)):
    return reconciliation.reconcile_all_plans(session, utcnow())


@router.get("/plans/reconcile", response_model=BatchStatus)
def plans_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return reconciliation.plans_status(session, utcnow())


@router.post("/installments/reconcile", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def reconcile_installments(session: Session = Depends(get_session)):
    return reconciliation.reconcile_all_installments(session, utcnow())


@router.get("/installments/reconcile", response_model=BatchStatus)
def installments_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return reconciliation.installments_status(session, utcnow())


@router.post("/savings-goals/reconcile", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def reconcile_savings_goals(session: Session = Depends(get_session)):
    return reconciliation.reconcile_all_savings_goals(session, utcnow())


@router.get("/savings-goals/reconcile", response_model=BatchStatus)
def savings_goals_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return reconciliation.savings_goals_status(session, utcnow())


@router.post("/notifications/check", response_model=BatchResult, dependencies=[Depends(verify_cron_secret)])
def check_notifications(session: Session = Depends(get_session)):
    return notifications.check_notifications(session, utcnow())


@router.get("/notifications/check", response_model=BatchStatus)
def notifications_status(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return notifications.notifications_status(session, utcnow())
