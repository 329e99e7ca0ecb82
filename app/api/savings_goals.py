# app/api/savings_goals.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.security import get_current_user
from app.database import get_session
from app.schemas.savings_goal import (
    SavingsGoalCreate,
    SavingsGoalDeposit,
    SavingsGoalRead,
    SavingsGoalUpdate,
)
from app.services import savings_goals
from app.utils.dates import utcnow

router = APIRouter(prefix="/savings-goals", tags=["savings-goals"])


@router.post("", response_model=SavingsGoalRead, status_code=201)
@router.post("/", response_model=SavingsGoalRead, status_code=201)
def create_savings_goal(
    data: SavingsGoalCreate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return savings_goals.create_goal(session, data, user_id, utcnow())


@router.get("", response_model=List[SavingsGoalRead])
@router.get("/", response_model=List[SavingsGoalRead])
def list_savings_goals(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return savings_goals.list_goals(session, user_id)


@router.put("/{goal_id}", response_model=SavingsGoalRead)
def update_savings_goal(
    goal_id: int,
    data: SavingsGoalUpdate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return savings_goals.update_goal(session, goal_id, data, user_id, utcnow())


@router.post("/{goal_id}/add-amount", response_model=SavingsGoalRead)
def add_amount_to_savings_goal(
    goal_id: int,
    data: SavingsGoalDeposit,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return savings_goals.add_amount(session, goal_id, data.amount, user_id, utcnow())


@router.delete("/{goal_id}")
def delete_savings_goal(
    goal_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    savings_goals.delete_goal(session, goal_id, user_id)
    return {"message": "Meta de ahorro eliminada correctamente"}
