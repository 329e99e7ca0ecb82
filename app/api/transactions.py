from uuid import UUID
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.security import get_current_user
from app.database import get_session
from app.schemas.transaction import TransactionCreate, TransactionRead, TransactionUpdate
from app.services import scheduled, transactions
from app.utils.dates import utcnow

router = APIRouter(prefix="/transactions", tags=["transactions"])

@router.post("", response_model=TransactionRead, status_code=201)
@router.post("/", response_model=TransactionRead, status_code=201)
def create_transaction(
    transaction_data: TransactionCreate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return transactions.create_transaction(session, transaction_data, user_id, utcnow())

@router.get("", response_model=List[TransactionRead])
@router.get("/", response_model=List[TransactionRead])
def list_transactions(
    pending: Optional[bool] = Query(None, description="true: solo agendados, false: solo confirmados"),
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return transactions.list_transactions(session, user_id, pending)

@router.put("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: int,
    transaction_data: TransactionUpdate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return transactions.update_transaction(session, transaction_id, transaction_data, user_id, utcnow())

@router.post("/{transaction_id}/confirm", response_model=TransactionRead)
def confirm_transaction(
    transaction_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return scheduled.confirm_transaction(session, transaction_id, user_id, utcnow())

@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    transactions.delete_transaction(session, transaction_id, user_id, utcnow())
    return {"message": "Movimiento eliminado correctamente"}
