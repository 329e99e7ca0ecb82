from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from datetime import datetime
from app.models.enums import TransactionSource, TransactionType

class TransactionCreate(BaseModel):
    description: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    type: TransactionType
    category_id: Optional[int] = None
    date: Optional[datetime] = None
    saving_account_id: Optional[int] = None
    plan_id: Optional[int] = None
    is_pending: bool = False
    pending_date: Optional[datetime] = None

    @model_validator(mode="after")
    def pending_needs_date(self):
        if self.is_pending and self.pending_date is None:
            raise ValueError("Un movimiento agendado requiere fecha programada.")
        if not self.is_pending and self.pending_date is not None:
            raise ValueError("Solo los movimientos agendados llevan fecha programada.")
        return self

class TransactionUpdate(BaseModel):
    """Edición parcial; enviar ``plan_id: null`` desvincula el movimiento del plan."""

    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    date: Optional[datetime] = None
    saving_account_id: Optional[int] = None
    plan_id: Optional[int] = None
    pending_date: Optional[datetime] = None

class TransactionRead(BaseModel):
    id: int
    user_id: UUID
    description: str
    amount: float
    type: TransactionType
    date: datetime
    category_id: Optional[int] = None
    is_pending: bool
    pending_date: Optional[datetime] = None
    recurring_transaction_id: Optional[int] = None
    installment_id: Optional[int] = None
    plan_id: Optional[int] = None
    saving_account_id: Optional[int] = None
    source_type: TransactionSource

    model_config = ConfigDict(from_attributes=True)
