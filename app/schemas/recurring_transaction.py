# app/schemas/recurring_transaction.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import Frequency, TransactionType
from app.schemas.transaction import TransactionRead


class RecurringTransactionCreate(BaseModel):
    description: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    type: TransactionType
    frequency: Frequency
    category_id: Optional[int] = None
    saving_account_id: Optional[int] = None
    start_date: datetime
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def end_date_after_start(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("La fecha de finalización debe ser posterior a la fecha de inicio.")
        return self


class RecurringTransactionUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    frequency: Optional[Frequency] = None
    category_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    clear_end_date: bool = False
    is_active: Optional[bool] = None


class RecurringTransactionRead(BaseModel):
    id: int
    description: str
    amount: float
    type: TransactionType
    frequency: Frequency
    category_id: Optional[int] = None
    saving_account_id: Optional[int] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    next_due_date: datetime
    last_executed_at: Optional[datetime] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class RecurringExecutionRead(BaseModel):
    transaction: TransactionRead
    recurring: RecurringTransactionRead
    message: str = "Movimiento creado correctamente"
