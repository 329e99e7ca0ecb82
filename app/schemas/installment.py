# app/schemas/installment.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ProgressStatus
from app.schemas.transaction import TransactionRead


class InstallmentCreate(BaseModel):
    description: str = Field(..., min_length=1)
    total_amount: float = Field(..., gt=0)
    installment_count: int = Field(..., ge=2)
    category_id: int
    start_date: Optional[datetime] = None
    saving_account_id: Optional[int] = None


class InstallmentUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    total_amount: Optional[float] = Field(None, gt=0)
    installment_count: Optional[int] = Field(None, ge=2)
    category_id: Optional[int] = None
    status: Optional[ProgressStatus] = None


class InstallmentRead(BaseModel):
    id: int
    description: str
    total_amount: float
    installment_count: int
    current_installment: int
    installment_amount: float
    remaining: int
    category_id: Optional[int] = None
    saving_account_id: Optional[int] = None
    start_date: datetime
    status: ProgressStatus

    model_config = ConfigDict(from_attributes=True)


class InstallmentWithTransactionsRead(InstallmentRead):
    transactions: List[TransactionRead] = []


class InstallmentSync(BaseModel):
    installment_id: int
    previous_installment: int
    calculated_installment: int
    difference: int
    transaction_count: int
    is_synced: bool
    changed: bool = False
    status: ProgressStatus
