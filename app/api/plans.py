# app/api/plans.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.security import get_current_user
from app.database import get_session
from app.models.enums import ProgressStatus
from app.schemas.plan import PlanCreate, PlanRead, PlanSync, PlanUpdate
from app.services import plans, reconciliation
from app.utils.dates import utcnow

router = APIRouter(prefix="/plans", tags=["plans"])


@router.post("", response_model=PlanRead, status_code=201)
@router.post("/", response_model=PlanRead, status_code=201)
def create_plan(
    data: PlanCreate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return plans.create_plan(session, data, user_id, utcnow())


@router.get("", response_model=List[PlanRead])
@router.get("/", response_model=List[PlanRead])
def list_plans(
    status: Optional[ProgressStatus] = Query(None),
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return plans.list_plans(session, user_id, status)


@router.put("/{plan_id}", response_model=PlanRead)
def update_plan(
    plan_id: int,
    data: PlanUpdate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return plans.update_plan(session, plan_id, data, user_id, utcnow())


@router.delete("/{plan_id}")
def delete_plan(
    plan_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    unlinked = plans.delete_plan(session, plan_id, user_id)
    return {"message": "Plan eliminado correctamente", "transactions_unlinked": unlinked}


@router.post("/{plan_id}/reconcile", response_model=PlanSync)
def reconcile_plan(
    plan_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return reconciliation.sync_plan(session, plan_id, user_id, utcnow())


@router.get("/{plan_id}/reconcile", response_model=PlanSync)
def check_plan_sync(
    plan_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    plan = reconciliation.get_user_plan(session, plan_id, user_id)
    return reconciliation.check_plan(session, plan)
