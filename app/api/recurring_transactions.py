# app/api/recurring_transactions.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.security import get_current_user
from app.database import get_session
from app.schemas.recurring_transaction import (
    RecurringExecutionRead,
    RecurringTransactionCreate,
    RecurringTransactionRead,
    RecurringTransactionUpdate,
)
from app.schemas.transaction import TransactionRead
from app.services import recurring
from app.utils.dates import utcnow

router = APIRouter(prefix="/recurring-transactions", tags=["recurring-transactions"])


@router.post("", response_model=RecurringTransactionRead, status_code=201)
@router.post("/", response_model=RecurringTransactionRead, status_code=201)
def create_recurring_transaction(
    data: RecurringTransactionCreate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return recurring.create_recurring(session, data, user_id, utcnow())


@router.get("", response_model=List[RecurringTransactionRead])
@router.get("/", response_model=List[RecurringTransactionRead])
def list_recurring_transactions(
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return recurring.list_recurring(session, user_id)


@router.put("/{recurring_id}", response_model=RecurringTransactionRead)
def update_recurring_transaction(
    recurring_id: int,
    data: RecurringTransactionUpdate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return recurring.update_recurring(session, recurring_id, data, user_id, utcnow())


@router.delete("/{recurring_id}")
def delete_recurring_transaction(
    recurring_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    unlinked = recurring.delete_recurring(session, recurring_id, user_id)
    return {"message": "Movimiento recurrente eliminado", "transactions_unlinked": unlinked}


@router.post("/{recurring_id}/execute", response_model=RecurringExecutionRead)
def execute_recurring_transaction(
    recurring_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    transaction, updated = recurring.execute_recurring(session, recurring_id, user_id, utcnow())
    return RecurringExecutionRead(
        transaction=TransactionRead.model_validate(transaction),
        recurring=RecurringTransactionRead.model_validate(updated),
    )
