# app/api/installments.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from app.core.security import get_current_user
from app.database import get_session
from app.models.enums import ProgressStatus
from app.models.installment import Installment
from app.schemas.installment import (
    InstallmentCreate,
    InstallmentRead,
    InstallmentSync,
    InstallmentUpdate,
    InstallmentWithTransactionsRead,
)
from app.schemas.transaction import TransactionRead
from app.services import installments, reconciliation
from app.utils.dates import utcnow

router = APIRouter(prefix="/installments", tags=["installments"])


def _with_transactions(session: Session, installment: Installment) -> InstallmentWithTransactionsRead:
    data = InstallmentRead.model_validate(installment).model_dump()
    entries = installments.installment_transactions(session, installment.id)
    return InstallmentWithTransactionsRead(
        **data, transactions=[TransactionRead.model_validate(t) for t in entries]
    )


@router.post("", response_model=InstallmentWithTransactionsRead, status_code=201)
@router.post("/", response_model=InstallmentWithTransactionsRead, status_code=201)
def create_installment(
    data: InstallmentCreate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    installment = installments.create_installment(session, data, user_id, utcnow())
    return _with_transactions(session, installment)


@router.get("", response_model=List[InstallmentRead])
@router.get("/", response_model=List[InstallmentRead])
def list_installments(
    status: Optional[ProgressStatus] = Query(None),
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    query = select(Installment).where(Installment.user_id == user_id)
    if status is not None:
        query = query.where(Installment.status == status)
    return session.exec(query.order_by(Installment.created_at.desc())).all()


@router.get("/{installment_id}", response_model=InstallmentWithTransactionsRead)
def get_installment(
    installment_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    installment = reconciliation.get_user_installment(session, installment_id, user_id)
    return _with_transactions(session, installment)


@router.put("/{installment_id}", response_model=InstallmentRead)
def update_installment(
    installment_id: int,
    data: InstallmentUpdate,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return installments.update_installment(session, installment_id, data, user_id)


@router.delete("/{installment_id}")
def delete_installment(
    installment_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    unlinked = installments.delete_installment(session, installment_id, user_id)
    return {"message": "Compra a cuotas eliminada", "transactions_unlinked": unlinked}


@router.post("/{installment_id}/next", response_model=InstallmentWithTransactionsRead)
def next_installment(
    installment_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    installment = installments.advance_installment(session, installment_id, user_id)
    return _with_transactions(session, installment)


@router.post("/{installment_id}/sync", response_model=InstallmentSync)
def sync_installment(
    installment_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    return reconciliation.sync_installment(session, installment_id, user_id)


@router.get("/{installment_id}/sync", response_model=InstallmentSync)
def check_installment_sync(
    installment_id: int,
    session: Session = Depends(get_session),
    user_id: UUID = Depends(get_current_user),
):
    installment = reconciliation.get_user_installment(session, installment_id, user_id)
    return reconciliation.check_installment(session, installment)
